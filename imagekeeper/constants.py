"""
Centralized constants for imagekeeper.

This module defines immutable configuration values used across imagekeeper,
including network settings, upstream endpoints, manifest conventions, and
logging formats. All values are intended to be treated as read-only.
"""

from typing import Final, Mapping

# ---------------------------------------------------------------------------
# Project metadata
# ---------------------------------------------------------------------------

#: HTTP User-Agent template used for outbound requests.
USER_AGENT_TEMPLATE: Final[str] = "imagekeeper/{version}"

# ---------------------------------------------------------------------------
# Upstream endpoints
# ---------------------------------------------------------------------------

#: Docker Hub tag listing for a repository.
DOCKER_HUB_TAGS_API: Final[str] = (
    "https://registry.hub.docker.com/v2/repositories/{repository}/tags"
)

#: GitHub "latest release" endpoint.
GITHUB_LATEST_RELEASE_API: Final[str] = (
    "https://api.github.com/repos/{repo}/releases/latest"
)

#: Base URL for the PyPI JSON API.
PYPI_JSON_API: Final[str] = "https://pypi.org/pypi/{package}/json"

# ---------------------------------------------------------------------------
# HTTP configuration
# ---------------------------------------------------------------------------

#: Default network timeout in seconds.
DEFAULT_TIMEOUT: Final[int] = 30

#: Maximum number of retries for transport-level HTTP failures.
DEFAULT_MAX_RETRIES: Final[int] = 3

#: Default page size for registry tag listings.
DEFAULT_PAGE_SIZE: Final[int] = 128

#: Default number of registry pages followed before giving up.
DEFAULT_MAX_PAGES: Final[int] = 10

# ---------------------------------------------------------------------------
# Manifest conventions
# ---------------------------------------------------------------------------

#: Default build manifest file name.
DEFAULT_MANIFEST: Final[str] = "Dockerfile"

#: Separator regex between a manifest key and its value.
ASSIGNMENT_REGEX: Final[str] = "[ =:]"

#: Default value regex used when extracting a key.
DEFAULT_VALUE_REGEX: Final[str] = ".*"

#: Default prefix stripped from GitHub release tags.
DEFAULT_RELEASE_PREFIX: Final[str] = "v"

#: Default separator between a PyPI package and its pinned version.
PYPI_SEPARATOR: Final[str] = "=="

#: Manifest line whose value is rewritten to force an image rebuild.
REBUILD_TRIGGER: Final[str] = "ARG LAST_UPGRADE"

#: Lifetime in seconds of the throwaway container used to inspect packages.
PACKAGE_PROBE_LIFETIME: Final[int] = 60

#: Tag applied to every built image.
DEFAULT_IMAGE_TAG: Final[str] = "latest"

# ---------------------------------------------------------------------------
# Check kinds
# ---------------------------------------------------------------------------

#: Required parameters per check kind (besides ``kind`` itself).
CHECK_REQUIRED_PARAMS: Final[Mapping[str, tuple]] = {
    "registry": ("regex",),
    "packages": (),
    "github": ("repo", "item", "regex"),
    "git": ("url", "item", "regex"),
    "web": ("url", "item", "regex"),
    "fileserver": ("url", "item", "regex"),
    "pypi": ("package", "regex"),
}

# ---------------------------------------------------------------------------
# Security constraints
# ---------------------------------------------------------------------------

#: Maximum allowed file size (in bytes) when reading manifests.
MAX_FILE_SIZE: Final[int] = 10 * 1024 * 1024  # 10 MB

# ---------------------------------------------------------------------------
# Logging configuration
# ---------------------------------------------------------------------------

#: Timestamp format for verbose logging.
LOG_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

#: Default log format (non-verbose).
LOG_DEFAULT_FORMAT: Final[str] = "%(levelname)s: %(message)s"

#: Verbose log format including timestamp and logger name.
LOG_VERBOSE_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
