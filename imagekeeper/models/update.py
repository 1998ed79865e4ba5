"""
Pending update data model for imagekeeper.

A :class:`PendingUpdate` records one detected drift between the value pinned
in a build manifest and the latest value published upstream. Records are
immutable; the :class:`~imagekeeper.core.ledger.Ledger` collects them in
check order.
"""

from __future__ import annotations

from enum import Enum
from dataclasses import dataclass
from typing import Optional

from imagekeeper.constants import ASSIGNMENT_REGEX


class UpdateKind(str, Enum):
    """How an update relates to the manifest text.

    Attributes:
        EXPLICIT: The current value is pinned literally in the manifest and
            will be rewritten.
        IMPLICIT: The value is inherited or unpinned; the update is
            reported but nothing is rewritten.
        HIDDEN: Synthetic rewrite that forces a rebuild; excluded from the
            changelog.
    """

    EXPLICIT = "explicit"
    IMPLICIT = "implicit"
    HIDDEN = "hidden"


@dataclass(frozen=True)
class PendingUpdate:
    """
    One detected drift for a tracked item.

    Attributes:
        item: Manifest key identifying the item (e.g. ``"CURL_VERSION"``).
        current_value: Literal text currently in the manifest.
        new_value: Literal text that replaces ``current_value``.
        current_version: Human-readable current version.
        new_version: Human-readable new version.
        kind: Relation of the update to the manifest text.
        name: Display name used in messages and the changelog.
        separator: Regex between ``item`` and its value in the manifest.
    """

    item: str
    current_value: str
    new_value: str
    current_version: str
    new_version: str
    kind: UpdateKind
    name: str
    separator: str = ASSIGNMENT_REGEX

    @property
    def writes_manifest(self) -> bool:
        """True if the patcher rewrites this item."""
        return self.kind is not UpdateKind.IMPLICIT

    @property
    def changelog_entry(self) -> Optional[str]:
        """``"<name> <current> -> <new>"``, or ``None`` for hidden updates."""
        if self.kind is UpdateKind.HIDDEN:
            return None
        return f"{self.name} {self.current_version} -> {self.new_version}"
