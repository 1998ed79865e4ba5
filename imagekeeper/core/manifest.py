"""Build manifest access for imagekeeper.

A manifest (usually a ``Dockerfile``) is treated as line-oriented
``key<separator>value`` declarations. This module extracts current values
and locates the exact text an update would rewrite (its *anchor*).

Keys and values are always matched literally; only the separator and the
value regex given to :func:`extract_value` are regular expressions. Blanks
after the separator are part of it, so ``BAR: 0.9`` declares ``0.9``. A key
must not be glued to a longer name, so ``curl`` does not match inside
``libcurl=8.5.0``. A value anchor may be followed by anything, so
``20.11.0`` is the anchor of ``NODE_VERSION=20.11.0-alpine``.

Typical usage::

    manifest = Manifest.load(Path("Dockerfile"))
    current = manifest.extract("CURL_VERSION", r"[\\d.]+")
    manifest.contains_item("CURL_VERSION", current)  # True when pinned
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import List, Optional, Pattern, Tuple

from imagekeeper.constants import ASSIGNMENT_REGEX, DEFAULT_VALUE_REGEX
from imagekeeper.exceptions import ExtractionFailed, PatternMalformed
from imagekeeper.utils.filesystem import safe_read_file
from imagekeeper.utils.logger import get_logger

logger = get_logger("manifest")

__all__ = ["Manifest", "anchor_pattern", "compile_pattern", "extract_value"]

_KEY_BOUNDARY = r"(?<![\w.+-])"
_QUOTES = ('"', "'")


def compile_pattern(pattern: str) -> Pattern[str]:
    """Compile ``pattern``, raising :class:`PatternMalformed` on error."""
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise PatternMalformed(pattern, str(exc)) from exc


def _strip_quotes(value: str) -> str:
    if value.startswith(_QUOTES):
        value = value[1:]
    if value.endswith(_QUOTES):
        value = value[:-1]
    return value


def extract_value(
    text: str,
    key: str,
    *,
    regex: str = DEFAULT_VALUE_REGEX,
    separator: str = ASSIGNMENT_REGEX,
    source: str = "manifest",
) -> str:
    """Return the value of ``key`` from the first line declaring it.

    Args:
        text: Manifest contents.
        key: Literal key, e.g. ``"ENV CURL_VERSION"`` or ``"FROM"``.
        regex: Pattern the value must match.
        separator: Pattern between key and value.
        source: Manifest name used in error messages.

    Returns:
        The matched value with one pair of surrounding quotes removed.

    Raises:
        ExtractionFailed: No line declares ``key`` or the value is empty.
        PatternMalformed: ``regex`` or ``separator`` is not a valid regex.
    """
    pattern = compile_pattern(
        f"{_KEY_BOUNDARY}{re.escape(key)}(?:{separator})\\s*(?P<value>{regex})"
    )

    for line in text.splitlines():
        match = pattern.search(line)
        if match is None:
            continue
        value = _strip_quotes(match.group("value").strip())
        if not value:
            break
        logger.debug("Extracted %s=%s from %s", key, value, source)
        return value

    raise ExtractionFailed(key, source)


def anchor_pattern(item: str, value: str, separator: str = ASSIGNMENT_REGEX) -> Pattern[str]:
    """Pattern matching ``item<separator>value`` with an optional opening quote.

    The ``prefix`` group holds everything that stays untouched when the
    value is replaced.
    """
    return compile_pattern(
        f"{_KEY_BOUNDARY}(?P<prefix>{re.escape(item)}(?:{separator})\\s*[\"']?)"
        f"{re.escape(value)}"
    )


class Manifest:
    """In-memory view of a build manifest.

    Args:
        path: Location of the manifest on disk.
        text: Manifest contents; read from ``path`` when omitted.
    """

    def __init__(self, path: Path, text: Optional[str] = None) -> None:
        self.path = Path(path)
        self.text = safe_read_file(self.path) if text is None else text

    @classmethod
    def load(cls, path: Path) -> "Manifest":
        return cls(path)

    @property
    def name(self) -> str:
        return self.path.name

    def extract(
        self,
        key: str,
        regex: str = DEFAULT_VALUE_REGEX,
        separator: str = ASSIGNMENT_REGEX,
    ) -> str:
        """See :func:`extract_value`."""
        return extract_value(
            self.text, key, regex=regex, separator=separator, source=self.name
        )

    def search(self, pattern: str) -> bool:
        """True if any line matches the regex ``pattern``."""
        compiled = compile_pattern(pattern)
        return any(compiled.search(line) for line in self.text.splitlines())

    def find_anchors(
        self,
        item: str,
        value: str,
        separator: str = ASSIGNMENT_REGEX,
    ) -> List[Tuple[int, "re.Match[str]"]]:
        """Return ``(line_number, match)`` for every anchor occurrence."""
        pattern = anchor_pattern(item, value, separator)
        return [
            (number, match)
            for number, line in enumerate(self.text.splitlines(), start=1)
            for match in pattern.finditer(line)
        ]

    def contains_item(
        self,
        item: str,
        value: str,
        separator: str = ASSIGNMENT_REGEX,
    ) -> bool:
        """True if ``item`` is pinned to ``value`` somewhere in the manifest."""
        return bool(self.find_anchors(item, value, separator))
