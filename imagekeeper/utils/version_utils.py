"""
Version comparison utilities for imagekeeper.

Upstream sources publish versions in every imaginable shape (``3.19.1``,
``bookworm-20240110``, ``8.5.0-r0``, ``1.2~rc1``), so ordering uses a
numeric-segment key in the spirit of ``sort --version-sort`` rather than
PEP 440. :func:`get_update_type` still uses ``packaging`` to label changes
for display, falling back to ``"unknown"`` for non-PEP 440 strings.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Optional, Tuple

from packaging.version import InvalidVersion, Version, parse

_SEGMENT_RE = re.compile(r"(\D*)(\d*)")

# Sentinel segment appended to every key; "~" sorts below it.
_END_SEGMENT: Tuple[Tuple[int, ...], int] = ((0,), 0)


def _char_order(char: str) -> int:
    """Order non-digit characters: ``~`` < end < letters < everything else."""
    if char == "~":
        return -1
    if char.isalpha():
        return ord(char)
    return ord(char) + 256


def version_key(value: str) -> List[Tuple[Tuple[int, ...], int]]:
    """Build a sort key comparing digit runs numerically.

    Examples:
        >>> version_key("1.10") > version_key("1.9")
        True
        >>> version_key("1.0~rc1") < version_key("1.0")
        True
    """
    key: List[Tuple[Tuple[int, ...], int]] = []
    for text, digits in _SEGMENT_RE.findall(value):
        if not text and not digits:
            continue
        text_key = tuple(_char_order(char) for char in text) + (0,)
        key.append((text_key, int(digits) if digits else 0))
    key.append(_END_SEGMENT)
    return key


def version_max(values: Iterable[str]) -> Optional[str]:
    """Return the greatest version in ``values``, or ``None`` when empty.

    Examples:
        >>> version_max(["1.9.0", "1.10.0"])
        '1.10.0'
    """
    candidates = [value for value in values if value]
    if not candidates:
        return None
    return max(candidates, key=version_key)


def strip_version(version: str) -> str:
    """Return the part of ``version`` before the first hyphen.

    ``"3.19.1-r0"`` and ``"3.19.1"`` both strip to ``"3.19.1"``.
    """
    return version.split("-", 1)[0]


def bump_release(release_version: str) -> str:
    """Increment the trailing ``-<counter>`` of a release version.

    Raises:
        ValueError: ``release_version`` has no numeric counter.

    Examples:
        >>> bump_release("2.3-5")
        '2.3-6'
    """
    base, sep, counter = release_version.rpartition("-")
    if not sep or not base or not counter.isdigit():
        raise ValueError(f"Release version has no counter: {release_version!r}")
    return f"{base}-{int(counter) + 1}"


def get_update_type(
    current_version: Optional[str],
    target_version: Optional[str],
) -> str:
    """Determine the semantic update type between two versions.

    Returns:
        One of ``"new"``, ``"same"``, ``"downgrade"``, ``"major"``,
        ``"minor"``, ``"patch"``, ``"update"`` or ``"unknown"``.
    """
    if current_version is None and target_version is None:
        return "unknown"

    if current_version is None:
        return "new"

    if target_version is None:
        return "unknown"

    try:
        current = _parse_version(current_version)
        target = _parse_version(target_version)
    except InvalidVersion:
        return "unknown"

    if target == current:
        return "same"

    if target < current:
        return "downgrade"

    return _classify_upgrade(current, target)


def _parse_version(value: str) -> Version:
    parsed = parse(value)
    if not isinstance(parsed, Version):
        raise InvalidVersion(value)
    return parsed


def _classify_upgrade(current: Version, target: Version) -> str:
    current_release = _normalize_release(current)
    target_release = _normalize_release(target)

    for label, old, new in zip(("major", "minor", "patch"), current_release, target_release):
        if old != new:
            return label

    # Pre-release → release or metadata-only change
    return "update"


def _normalize_release(version: Version) -> Tuple[int, int, int]:
    release = version.release + (0, 0, 0)
    return release[0], release[1], release[2]
