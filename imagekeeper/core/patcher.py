"""Write pending updates back into the build manifest.

Each explicit or hidden update must find its anchor
(``item<separator>current``) exactly once in the manifest. The anchor's
value is replaced and the file is written before the next update is
attempted, so a failure leaves earlier substitutions on disk and later ones
unapplied. Implicit updates have no anchor and are never written.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

from imagekeeper.core.manifest import anchor_pattern
from imagekeeper.exceptions import AmbiguousPattern, PatternNotFound
from imagekeeper.models import PendingUpdate
from imagekeeper.utils.filesystem import safe_read_file, safe_write_file
from imagekeeper.utils.logger import get_logger

logger = get_logger("patcher")

__all__ = ["apply_updates", "substitute"]


def substitute(text: str, update: PendingUpdate, source: str = "manifest") -> str:
    """Return ``text`` with the anchor of ``update`` rewritten.

    Raises:
        PatternNotFound: The anchor does not occur.
        AmbiguousPattern: The anchor occurs more than once.
    """
    pattern = anchor_pattern(update.item, update.current_value, update.separator)
    lines = text.splitlines(keepends=True)

    hits = [
        (index, match)
        for index, line in enumerate(lines)
        for match in pattern.finditer(line)
    ]

    if not hits:
        raise PatternNotFound(
            f'Item "{update.item} {update.current_value}" not found in "{source}"',
            pattern=pattern.pattern,
            file_path=source,
        )
    if len(hits) > 1:
        raise AmbiguousPattern(
            f'Item "{update.item} {update.current_value}" is ambiguous in "{source}"',
            pattern=pattern.pattern,
            file_path=source,
            matches=len(hits),
        )

    index, match = hits[0]
    line = lines[index]
    lines[index] = (
        line[: match.start()]
        + match.group("prefix")
        + update.new_value
        + line[match.end():]
    )
    logger.debug(
        "Line %d: %s -> %s", index + 1, line.rstrip("\r\n"), lines[index].rstrip("\r\n")
    )
    return "".join(lines)


def apply_updates(updates: Iterable[PendingUpdate], manifest_path: Path) -> int:
    """Apply every non-implicit update to ``manifest_path`` in order.

    Returns:
        Number of substitutions written.
    """
    path = Path(manifest_path)
    text = safe_read_file(path)
    applied = 0

    for update in updates:
        if not update.writes_manifest:
            logger.debug("Skipping implicit update %s", update.item)
            continue

        text = substitute(text, update, path.name)
        safe_write_file(path, text)
        applied += 1

    logger.info("Applied %d update(s) to %s", applied, path)
    return applied
