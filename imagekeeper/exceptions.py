"""
Custom exception hierarchy for imagekeeper.

This module defines structured exception types used across imagekeeper.
All exceptions inherit from :class:`ImageKeeperError` and support optional
structured metadata via the ``details`` attribute to improve diagnostics
and logging.

Every exception class carries an ``exit_code`` which the CLI uses as the
process exit status, so callers can tell failure modes apart.
"""

from __future__ import annotations

from typing import Any, Mapping, MutableMapping, Optional


class ImageKeeperError(Exception):
    """Base exception for all imagekeeper errors.

    Args:
        message: Human-readable error message.
        details: Optional structured metadata describing the error.
    """

    __slots__ = ("message", "details")

    exit_code: int = 1

    def __init__(
        self,
        message: str,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.message: str = message
        # Internally normalize to a mutable dict
        self.details: MutableMapping[str, Any] = dict(details) if details else {}
        super().__init__(message)

    def __str__(self) -> str:
        if not self.details:
            return self.message
        formatted = ", ".join(f"{k}={v}" for k, v in self.details.items())
        return f"{self.message} ({formatted})"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, details={dict(self.details)!r})"
        )


def _add_if(details: MutableMapping[str, Any], key: str, value: Any) -> None:
    """Add a key to ``details`` only if ``value`` is not ``None``."""
    if value is not None:
        details[key] = value


def _truncate(text: str, max_length: int = 200) -> str:
    """Truncate long text for safe logging or error reporting."""
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."


class ConfigError(ImageKeeperError):
    """Raised when the configuration file is missing, unreadable or invalid.

    Args:
        message: Error description.
        config_path: Path to the configuration file.
        option: Name of the offending option, if any.
    """

    __slots__ = ("config_path", "option")

    def __init__(
        self,
        message: str,
        *,
        config_path: Optional[str] = None,
        option: Optional[str] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "path", config_path)
        _add_if(details, "option", option)

        super().__init__(message, details)

        self.config_path = config_path
        self.option = option


class VariableNotSet(ImageKeeperError):
    """Raised when a required configuration variable is not set."""

    __slots__ = ("variable",)

    exit_code = 106

    def __init__(self, variable: str) -> None:
        super().__init__(f'"{variable}" is not set!')
        self.variable = variable


class DockerNotReachable(ImageKeeperError):
    """Raised when the Docker daemon cannot be contacted."""

    exit_code = 101


class RequestFailed(ImageKeeperError):
    """Raised when an HTTP request fails or returns a non-2xx status.

    Args:
        message: Error description.
        url: URL being accessed.
        status_code: HTTP status code, if available.
        response_body: Raw response body, truncated for safety.
    """

    __slots__ = ("url", "status_code", "response_body")

    exit_code = 102

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "url", url)
        _add_if(details, "status_code", status_code)

        if response_body is not None:
            details["response"] = _truncate(response_body)

        super().__init__(message, details)

        self.url = url
        self.status_code = status_code
        self.response_body = response_body


class ExtractionFailed(ImageKeeperError):
    """Raised when a key's value cannot be extracted from a manifest."""

    __slots__ = ("key", "file_path")

    exit_code = 103

    def __init__(self, key: str, file_path: str) -> None:
        super().__init__(f'Failed to extract value of "{key}" from "{file_path}"!')
        self.key = key
        self.file_path = file_path


class PatternNotFound(ImageKeeperError):
    """Raised when an expected pattern is absent from a file."""

    __slots__ = ("pattern", "file_path")

    exit_code = 104

    def __init__(
        self,
        message: str,
        *,
        pattern: Optional[str] = None,
        file_path: Optional[str] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "pattern", pattern)
        _add_if(details, "file", file_path)

        super().__init__(message, details)

        self.pattern = pattern
        self.file_path = file_path


class PatternMalformed(ImageKeeperError):
    """Raised when a configured regex or separator does not compile."""

    __slots__ = ("pattern",)

    exit_code = 105

    def __init__(self, pattern: str, reason: str) -> None:
        super().__init__(f"Malformed pattern: {reason}", {"pattern": pattern})
        self.pattern = pattern


class AmbiguousPattern(ImageKeeperError):
    """Raised when a patch anchor matches more than one manifest line."""

    __slots__ = ("pattern", "file_path", "matches")

    exit_code = 108

    def __init__(self, message: str, *, pattern: str, file_path: str, matches: int) -> None:
        super().__init__(
            message, {"pattern": pattern, "file": file_path, "matches": matches}
        )
        self.pattern = pattern
        self.file_path = file_path
        self.matches = matches


class ActionDenied(ImageKeeperError):
    """Raised when the user declines a confirmation prompt."""

    exit_code = 107


class GitCommandFailed(ImageKeeperError):
    """Raised when a git subprocess exits with a non-zero status.

    Args:
        command: The git arguments that were executed.
        returncode: Process exit status.
        stderr: Captured standard error, truncated for safety.
    """

    __slots__ = ("command", "returncode", "stderr")

    exit_code = 109

    def __init__(self, command: str, returncode: int, stderr: str = "") -> None:
        details: MutableMapping[str, Any] = {"returncode": returncode}
        if stderr:
            details["stderr"] = _truncate(stderr.strip())

        super().__init__(f"git {command} failed", details)

        self.command = command
        self.returncode = returncode
        self.stderr = stderr


class ScrapeFailed(ImageKeeperError):
    """Raised when an upstream source yields empty or missing data."""

    __slots__ = ("item", "field")

    exit_code = 201

    def __init__(self, item: str, field: str) -> None:
        super().__init__(f"Failed to scrape {item} {field}!")
        self.item = item
        self.field = field


class UnsupportedPackageManager(ImageKeeperError):
    """Raised when no supported package manager exists in an image."""

    __slots__ = ("image",)

    exit_code = 202

    def __init__(self, image: str) -> None:
        super().__init__(f'No supported package manager found in image "{image}"!')
        self.image = image


class FileOperationError(ImageKeeperError):
    """Raised when file system operations fail.

    Args:
        message: Error description.
        file_path: Path to the file involved.
        operation: Operation being performed (read/write/backup).
        original_error: Original exception that triggered this error.
    """

    __slots__ = ("file_path", "operation", "original_error")

    def __init__(
        self,
        message: str,
        *,
        file_path: Optional[str] = None,
        operation: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "path", file_path)
        _add_if(details, "operation", operation)
        _add_if(
            details,
            "original_error",
            str(original_error) if original_error else None,
        )

        super().__init__(message, details)

        self.file_path = file_path
        self.operation = operation
        self.original_error = original_error
