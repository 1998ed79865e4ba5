"""Release version derivation and publishing.

Release versions have the form ``<base>-<counter>``. Any update bumps the
counter. When the *main item* changed beyond its own release suffix, its new
version becomes the base and the counter restarts at 1::

    >>> next_release_version("2.3-5", [], "")
    '2.3-6'

Publishing commits the manifest with the changelog as message, creates a
lightweight tag and pushes both. Git failures are fatal; the patched
manifest stays on disk for manual reconciliation.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional

from imagekeeper.models import PendingUpdate
from imagekeeper.utils import git
from imagekeeper.utils.logger import get_logger
from imagekeeper.utils.version_utils import bump_release, strip_version

logger = get_logger("releaser")

__all__ = ["next_release_version", "publish_release"]


def next_release_version(
    release_version: str,
    updates: Iterable[PendingUpdate],
    main_item: Optional[str],
) -> str:
    """Compute the tag for the release that contains ``updates``.

    Args:
        release_version: Current release, e.g. ``"3.19.1-4"``.
        updates: Ledger contents in check order.
        main_item: Item whose version drives the base; empty disables it.

    Returns:
        ``<strippedNew>-1`` taken from the last update of ``main_item``
        whose stripped version changed, otherwise ``release_version`` with
        its counter incremented.
    """
    next_version = bump_release(release_version)

    if not main_item:
        return next_version

    for update in updates:
        if update.item != main_item:
            continue

        stripped_current = strip_version(update.current_version)
        stripped_new = strip_version(update.new_version)
        if stripped_current != stripped_new:
            next_version = f"{stripped_new}-1"
        else:
            logger.debug(
                "Main item %s only changed its release suffix (%s -> %s)",
                main_item,
                update.current_version,
                update.new_version,
            )

    return next_version


def publish_release(
    manifest_path: Path,
    message: str,
    version: str,
    *,
    cwd: Optional[Path] = None,
    allow_empty: bool = False,
) -> None:
    """Commit the manifest, tag ``version`` and push commit and tag.

    ``allow_empty`` permits a release commit when only implicit updates
    were found and the manifest is unchanged.

    Raises:
        GitCommandFailed: Any git step failed.
    """
    logger.info("Committing %s as %s", manifest_path, version)
    git.add(manifest_path, cwd=cwd)
    git.commit(message, cwd=cwd, allow_empty=allow_empty)
    git.tag(version, cwd=cwd)
    git.push(cwd=cwd)
    git.push_tag(version, cwd=cwd)
