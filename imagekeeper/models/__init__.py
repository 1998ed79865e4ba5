"""
Unified data model exports for imagekeeper.

Example:
    >>> from imagekeeper.models import PendingUpdate, UpdateKind
"""

from __future__ import annotations

from imagekeeper.models.update import PendingUpdate, UpdateKind

__all__ = [
    "PendingUpdate",
    "UpdateKind",
]
