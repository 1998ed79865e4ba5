"""Update command implementation for imagekeeper.

Checks every configured item against its upstream source, patches the build
manifest and releases the result:

1. **UpdateSession**: runs the checks in order and collects the ledger
2. **Patcher**: rewrites each explicit and hidden update in the manifest
3. **Releaser**: derives the next release version, commits, tags, pushes

Errors are not handled here; :func:`imagekeeper.cli.main` turns them into
the matching exit code.

Typical usage::

    # Interactive run
    $ imagekeeper update

    # Show what would change
    $ imagekeeper update --dry-run

    # Unattended, with a backup of the manifest
    $ imagekeeper update --noconfirm --backup
"""

from __future__ import annotations

import click

from imagekeeper.config import ImageKeeperConfig, require
from imagekeeper.context import ImageKeeperContext, pass_context
from imagekeeper.core import (
    Ledger,
    Manifest,
    UpdateSession,
    UpstreamResolver,
    apply_updates,
    next_release_version,
    publish_release,
    run_checks,
)
from imagekeeper.exceptions import ActionDenied, ImageKeeperError
from imagekeeper.models import UpdateKind
from imagekeeper.utils import (
    HTTPClient,
    colorize_update_type,
    confirm,
    create_timestamped_backup,
    get_logger,
    get_update_type,
    print_error,
    print_info,
    print_success,
    print_table,
    print_warning,
    restore_backup,
)
from imagekeeper.utils.docker import get_docker_client

logger = get_logger("commands.update")


@click.command()
@click.option(
    "--noconfirm",
    "--yes",
    "-y",
    "noconfirm",
    is_flag=True,
    help="Save and commit without asking.",
)
@click.option(
    "--dry-run",
    is_flag=True,
    help="Show the update plan without changing anything.",
)
@click.option(
    "--backup",
    is_flag=True,
    help="Back up the manifest before patching it.",
)
@pass_context
def update(
    ctx: ImageKeeperContext,
    noconfirm: bool,
    dry_run: bool,
    backup: bool,
) -> None:
    """Check for updates, patch the manifest and release a new version.

    Exits with 0 when nothing needs updating or the release was pushed.
    Declining a confirmation exits with 107.
    """
    config = ctx.config
    require(config, "main_item", "release_version")

    ledger = _collect_updates(config)
    if not ledger:
        print_info("No updates available.")
        return

    _display_update_plan(ledger, dry_run)
    if dry_run:
        print_warning("Dry run mode - no changes applied")
        return

    if not noconfirm and not confirm("Save changes?"):
        raise ActionDenied("Changes were not saved.")

    manifest_path = config.manifest_path
    backup_path = create_timestamped_backup(manifest_path) if backup else None
    if backup_path is not None:
        logger.info("Created backup: %s", backup_path)

    try:
        applied = apply_updates(ledger, manifest_path)
    except ImageKeeperError:
        if backup_path is not None:
            print_error(f"Patching {manifest_path.name} failed, restoring backup")
            restore_backup(backup_path, manifest_path)
        raise
    print_success(f"Saved {applied} change(s) to {manifest_path.name}")

    if not noconfirm and not confirm("Commit changes?"):
        raise ActionDenied("Changes were saved but not committed.")

    version = next_release_version(config.release_version, ledger, config.main_item)
    publish_release(
        manifest_path,
        ledger.commit_message or f"Rebuild {version}",
        version,
        cwd=config.base_dir,
        allow_empty=applied == 0,
    )
    print_success(f"Released {version}")


# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------


def _collect_updates(config: ImageKeeperConfig, *, docker_client=None) -> Ledger:
    """Run all configured checks and return their ledger."""
    if config.uses_docker() and docker_client is None:
        docker_client = get_docker_client()

    manifest = Manifest.load(config.manifest_path)
    logger.info("Checking %s for updates...", manifest.path)

    with HTTPClient(timeout=config.timeout, max_retries=config.max_retries) as http:
        session = UpdateSession(
            manifest,
            UpstreamResolver(http),
            release_version=config.release_version or "",
            docker_client=docker_client,
        )
        return run_checks(
            session,
            config.checks,
            image_name=config.image_name,
            separator=config.separator,
        )


def _change_label(current: str, new: str) -> str:
    update_type = get_update_type(current, new)
    return "update" if update_type == "unknown" else update_type


def _display_update_plan(ledger: Ledger, dry_run: bool) -> None:
    """Render the ledger as a table, one row per update."""
    title = "Update Plan (Dry Run)" if dry_run else "Update Plan"

    data = []
    for update in ledger:
        if update.kind is UpdateKind.HIDDEN:
            change = "rebuild"
        else:
            change = colorize_update_type(
                _change_label(update.current_version, update.new_version)
            )
        data.append(
            {
                "Item": update.name,
                "Current": update.current_version,
                "New": f"[bold green]{update.new_version}[/bold green]",
                "Change": change,
                "Kind": update.kind.value,
            }
        )

    column_styles = {
        "Item": {"style": "bold cyan", "no_wrap": True},
        "Current": {"justify": "center", "style": "dim"},
        "New": {"justify": "center"},
        "Change": {"justify": "center"},
        "Kind": {"justify": "left"},
    }

    print_table(data, title=title, column_styles=column_styles)
