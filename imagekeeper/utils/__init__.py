"""
Utility helpers for imagekeeper.

This package provides reusable utilities used across imagekeeper, including:

- Console output helpers (Rich-based)
- Logging configuration and retrieval
- Filesystem safety helpers
- Synchronous HTTP client
- Version ordering helpers

Git and Docker wrappers live in :mod:`imagekeeper.utils.git` and
:mod:`imagekeeper.utils.docker` and are imported from there directly.
"""

from __future__ import annotations

from imagekeeper.utils.filesystem import (
    create_timestamped_backup,
    restore_backup,
    safe_read_file,
    safe_write_file,
)

from imagekeeper.utils.logger import (
    disable_logging,
    get_logger,
    is_logging_configured,
    level_for_verbosity,
    setup_logging,
)

from imagekeeper.utils.console import (
    colorize_update_type,
    confirm,
    print_error,
    print_info,
    print_success,
    print_table,
    print_warning,
    reconfigure_console,
)

from imagekeeper.utils.http import HTTPClient

from imagekeeper.utils.version_utils import (
    bump_release,
    get_update_type,
    strip_version,
    version_key,
    version_max,
)

__all__ = [
    # Console
    "confirm",
    "print_error",
    "print_info",
    "print_table",
    "print_success",
    "print_warning",
    "reconfigure_console",
    "colorize_update_type",
    # Logging
    "get_logger",
    "setup_logging",
    "disable_logging",
    "level_for_verbosity",
    "is_logging_configured",
    # Filesystem
    "safe_read_file",
    "safe_write_file",
    "restore_backup",
    "create_timestamped_backup",
    # HTTP
    "HTTPClient",
    # Version utilities
    "bump_release",
    "get_update_type",
    "strip_version",
    "version_key",
    "version_max",
]
