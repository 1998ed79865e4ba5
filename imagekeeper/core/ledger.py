"""Update classification and the pending-updates ledger.

Every check funnels its ``(current, new)`` observation through
:func:`classify`. Observations that represent real drift become
:class:`~imagekeeper.models.PendingUpdate` records which the
:class:`Ledger` keeps in check order. The ledger also derives the
changelog used as the release commit message.

Classification rules, in order:

1. An empty item id is skipped with a warning.
2. Any empty value or version label raises :class:`ScrapeFailed`.
3. ``current == new`` is not drift and is skipped silently.
4. Otherwise the update is *explicit* when the manifest pins
   ``item<separator>current`` literally and *implicit* when it does not.
   Hidden updates skip this test.
"""

from __future__ import annotations

from typing import Iterator, List, Optional

from imagekeeper.constants import ASSIGNMENT_REGEX
from imagekeeper.core.manifest import Manifest
from imagekeeper.exceptions import ScrapeFailed
from imagekeeper.models import PendingUpdate, UpdateKind
from imagekeeper.utils.console import print_info, print_warning
from imagekeeper.utils.logger import get_logger

logger = get_logger("ledger")

__all__ = ["Ledger", "classify"]

CHANGELOG_SEPARATOR = ", "


def classify(
    manifest: Manifest,
    item: str,
    current_value: Optional[str],
    new_value: Optional[str],
    *,
    name: Optional[str] = None,
    current_version: Optional[str] = None,
    new_version: Optional[str] = None,
    separator: str = ASSIGNMENT_REGEX,
    hidden: bool = False,
) -> Optional[PendingUpdate]:
    """Turn an observation into a :class:`PendingUpdate`, or ``None``.

    ``current_value``/``new_value`` are the literal manifest texts;
    ``current_version``/``new_version`` are display labels and default to
    the values. This lets a check report drift for items whose manifest
    text is not a clean version, such as a download URL.

    Raises:
        ScrapeFailed: A value or label is empty.
    """
    if not item:
        print_warning("Skipping empty ITEM!")
        return None

    if current_version is None:
        current_version = current_value
    if new_version is None:
        new_version = new_value

    for field, value in (
        ("current value", current_value),
        ("new value", new_value),
        ("current version", current_version),
        ("new version", new_version),
    ):
        if not value:
            raise ScrapeFailed(item, field)

    if current_value == new_value:
        logger.debug("%s is up to date (%s)", item, current_value)
        return None

    assert current_value and new_value and current_version and new_version

    if hidden:
        kind = UpdateKind.HIDDEN
    elif manifest.contains_item(item, current_value, separator):
        kind = UpdateKind.EXPLICIT
    else:
        kind = UpdateKind.IMPLICIT

    return PendingUpdate(
        item=item,
        current_value=current_value,
        new_value=new_value,
        current_version=current_version,
        new_version=new_version,
        kind=kind,
        name=name or item,
        separator=separator,
    )


class Ledger:
    """Ordered, append-only collection of pending updates for one run."""

    def __init__(self) -> None:
        self._updates: List[PendingUpdate] = []

    def __len__(self) -> int:
        return len(self._updates)

    def __bool__(self) -> bool:
        return bool(self._updates)

    def __iter__(self) -> Iterator[PendingUpdate]:
        return iter(self._updates)

    @property
    def updates(self) -> List[PendingUpdate]:
        """A copy of the recorded updates in insertion order."""
        return list(self._updates)

    def append(self, update: PendingUpdate) -> None:
        self._updates.append(update)
        logger.debug(
            "Recorded %s update %s: %s -> %s",
            update.kind.value,
            update.item,
            update.current_value,
            update.new_value,
        )

    def process(
        self,
        manifest: Manifest,
        item: str,
        current_value: Optional[str],
        new_value: Optional[str],
        **kwargs,
    ) -> Optional[PendingUpdate]:
        """Classify an observation and record it when it is drift.

        Keyword arguments are passed to :func:`classify`.
        """
        update = classify(manifest, item, current_value, new_value, **kwargs)
        if update is None:
            return None

        self.append(update)
        if update.kind is not UpdateKind.HIDDEN:
            print_info(f"{update.name} {update.new_version} is available!")
        return update

    def find(self, item: str) -> Optional[PendingUpdate]:
        """Return the last recorded update for ``item``."""
        for update in reversed(self._updates):
            if update.item == item:
                return update
        return None

    @property
    def changelog(self) -> str:
        """Concatenated ``"<name> <cur> -> <new>, "`` fragments."""
        return "".join(
            f"{entry}{CHANGELOG_SEPARATOR}"
            for entry in (update.changelog_entry for update in self._updates)
            if entry is not None
        )

    @property
    def commit_message(self) -> str:
        """The changelog without its trailing separator."""
        changelog = self.changelog
        if changelog.endswith(CHANGELOG_SEPARATOR):
            return changelog[: -len(CHANGELOG_SEPARATOR)]
        return changelog
