"""
imagekeeper: keep container image build manifests up to date.

imagekeeper watches the upstream sources of everything a container image is
built from and turns detected drift into a patched manifest and a new
release tag.

Features include:
    • Base image tag tracking on Docker Hub
    • OS package upgrade detection (Alpine apk, Debian apt)
    • GitHub release, git tag, web page, file server and PyPI tracking
    • Surgical, fail-loud manifest patching
    • Release tag derivation with main-item precedence
    • Image build, tag, test and upload helpers
"""

from __future__ import annotations

from imagekeeper.__version__ import __version__

# ---------------------------------------------------------------------------
# Package Metadata
# ---------------------------------------------------------------------------

__author__ = "imagekeeper Contributors"
__license__ = "Apache-2.0"
__description__ = "Upstream drift detection and release automation for container images."

__all__ = [
    "__version__",
]
