"""
Core functionality exports for imagekeeper.

    from imagekeeper.core import Manifest, UpdateSession, run_checks
"""

from __future__ import annotations

from imagekeeper.core.manifest import Manifest, extract_value
from imagekeeper.core.ledger import Ledger, classify
from imagekeeper.core.resolvers import UpstreamResolver
from imagekeeper.core.checks import UpdateSession, run_checks
from imagekeeper.core.patcher import apply_updates
from imagekeeper.core.releaser import next_release_version, publish_release

__all__ = [
    "Manifest",
    "extract_value",
    "Ledger",
    "classify",
    "UpstreamResolver",
    "UpdateSession",
    "run_checks",
    "apply_updates",
    "next_release_version",
    "publish_release",
]
