"""
Command-line interface for imagekeeper.

This module provides the main CLI entry point and handles global options,
configuration loading, and command registration.
"""

from __future__ import annotations

import os
import sys
import logging
from pathlib import Path
from typing import Optional

import click

from imagekeeper.config import load_config
from imagekeeper.__version__ import __version__
from imagekeeper.context import ImageKeeperContext
from imagekeeper.exceptions import ImageKeeperError
from imagekeeper.utils.logger import get_logger, level_for_verbosity, setup_logging
from imagekeeper.utils.console import print_error, print_warning, reconfigure_console
from imagekeeper.commands.build import build
from imagekeeper.commands.update import update

logger = get_logger("cli")


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to configuration file.",
    envvar="IMAGEKEEPER_CONFIG",
)
@click.option(
    "--verbose",
    "-v",
    count=True,
    help="Increase verbosity (can be repeated: -v, -vv).",
)
@click.option(
    "--color/--no-color",
    default=True,
    help="Enable or disable colored output.",
    envvar="IMAGEKEEPER_COLOR",
)
@click.version_option(
    version=__version__,
    prog_name="imagekeeper",
    message="%(prog)s %(version)s",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config: Optional[Path],
    verbose: int,
    color: bool,
) -> None:
    """imagekeeper: keep container image manifests up to date.

    \b
    Available commands:
      imagekeeper update           Check, patch, commit and tag updates
      imagekeeper build            Build, tag, test or upload the image

    \b
    Examples:
      imagekeeper update --dry-run
      imagekeeper -v update --noconfirm
      imagekeeper build --upload
    """
    # Respect NO_COLOR for downstream libraries
    if color:
        os.environ.pop("NO_COLOR", None)
    else:
        os.environ["NO_COLOR"] = "1"
    reconfigure_console()

    _configure_logging(verbose)

    loaded_config = load_config(config)

    imagekeeper_ctx = ImageKeeperContext()
    imagekeeper_ctx.config_path = loaded_config.source_path
    imagekeeper_ctx.color = color
    imagekeeper_ctx.verbose = verbose
    imagekeeper_ctx.config = loaded_config
    ctx.obj = imagekeeper_ctx

    logger.debug("imagekeeper v%s", __version__)
    logger.debug("Config path: %s", imagekeeper_ctx.config_path)
    logger.debug("Verbosity: %s | Color: %s", verbose, color)


def _configure_logging(verbose: int) -> None:
    """Configure logging level based on verbosity flags."""
    level = level_for_verbosity(verbose)
    setup_logging(level=level, verbose=verbose >= 2)
    logger.debug("Logging initialized at %s level", logging.getLevelName(level))


cli.add_command(update)
cli.add_command(build)


def main() -> int:
    """Main entry point for the imagekeeper CLI.

    Returns:
        Exit code: 0 on success, the ``exit_code`` of an
        :class:`ImageKeeperError`, 2 for usage errors, 130 when
        interrupted and 1 for anything else.
    """
    try:
        result = cli(standalone_mode=False)
        # --help and --version return their exit code here
        return result if isinstance(result, int) else 0

    except click.ClickException as exc:
        exc.show()
        return exc.exit_code

    except click.exceptions.Abort:
        print_warning("Operation cancelled by user")
        return 130

    except ImageKeeperError as exc:
        print_error(str(exc))
        logger.debug(
            "%s details: %s",
            type(exc).__name__,
            exc.details or "<none>",
            exc_info=True,
        )
        return exc.exit_code

    except KeyboardInterrupt:
        print_warning("Operation cancelled by user")
        return 130

    except Exception as exc:
        print_error(f"Unexpected error: {exc}")
        logger.exception("Unhandled exception in CLI")
        return 1


if __name__ == "__main__":
    sys.exit(main())
