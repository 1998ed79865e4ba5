"""Configuration file loader for imagekeeper.

Handles discovery, loading, parsing, and validation of configuration files.
Supports two formats:

- ``imagekeeper.toml``: settings under the ``[imagekeeper]`` table
- ``pyproject.toml``: settings under the ``[tool.imagekeeper]`` table

Discovery order:

1. Explicit path from ``--config`` or ``IMAGEKEEPER_CONFIG``
2. ``imagekeeper.toml`` in current directory
3. ``pyproject.toml`` with ``[tool.imagekeeper]`` section

Typical usage::

    config = load_config()  # Auto-discover
    config = load_config(Path("custom.toml"))  # Explicit path

Example (``imagekeeper.toml``)::

    [imagekeeper]
    image_name = "acme/curl"
    main_item = "alpine"
    release_version = "3.19.1-4"

    [[imagekeeper.checks]]
    kind = "registry"
    regex = '\\d+\\.\\d+\\.\\d+'

    [[imagekeeper.checks]]
    kind = "packages"

    [[imagekeeper.checks]]
    kind = "github"
    repo = "curl/curl"
    item = "CURL_VERSION"
    regex = '[\\d_]+'
    prefix = "curl-"
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field

import tomli as tomllib

from imagekeeper.exceptions import ConfigError, VariableNotSet
from imagekeeper.utils.logger import get_logger
from imagekeeper.constants import (
    ASSIGNMENT_REGEX,
    CHECK_REQUIRED_PARAMS,
    DEFAULT_MANIFEST,
    DEFAULT_MAX_PAGES,
    DEFAULT_MAX_RETRIES,
    DEFAULT_PAGE_SIZE,
    DEFAULT_TIMEOUT,
)

logger = get_logger("config")

_RELEASE_VERSION_RE = re.compile(r"^.+-\d+$")

_TOP_LEVEL_TYPES: Dict[str, type] = {
    "image_name": str,
    "main_item": str,
    "release_version": str,
    "manifest": str,
    "separator": str,
    "timeout": int,
    "max_retries": int,
    "checks": list,
}

_CHECK_TYPES: Dict[str, type] = {
    "kind": str,
    "item": str,
    "regex": str,
    "name": str,
    "url": str,
    "repo": str,
    "package": str,
    "image": str,
    "prefix": str,
    "separator": str,
    "page_size": int,
    "max_pages": int,
}


@dataclass
class CheckConfig:
    """One ``[[imagekeeper.checks]]`` entry.

    Only the parameters relevant to ``kind`` are used; see
    :data:`~imagekeeper.constants.CHECK_REQUIRED_PARAMS` for the required
    ones. ``separator`` and ``prefix`` fall back to per-kind defaults when
    left as ``None``.
    """

    kind: str
    item: Optional[str] = None
    regex: Optional[str] = None
    name: Optional[str] = None
    url: Optional[str] = None
    repo: Optional[str] = None
    package: Optional[str] = None
    image: Optional[str] = None
    prefix: Optional[str] = None
    separator: Optional[str] = None
    page_size: int = DEFAULT_PAGE_SIZE
    max_pages: int = DEFAULT_MAX_PAGES

    @property
    def label(self) -> str:
        """Short description for log messages."""
        target = self.item or self.package or self.repo or self.image or self.url
        return f"{self.kind}:{target}" if target else self.kind


@dataclass
class ImageKeeperConfig:
    """Parsed and validated imagekeeper configuration.

    Attributes:
        image_name: Repository name of the published image.
        main_item: Item whose version drives the release base version.
            ``None`` when not configured; an empty string disables it.
        release_version: Current release, ``<base>-<counter>``.
        manifest: Build manifest path, relative to the config file.
        separator: Default key/value separator regex for checks.
        timeout: HTTP timeout in seconds.
        max_retries: HTTP retries for transport errors.
        checks: Checks in execution order.
        source_path: Path to loaded config file, or ``None`` if using defaults.
    """

    image_name: Optional[str] = None
    main_item: Optional[str] = None
    release_version: Optional[str] = None
    manifest: str = DEFAULT_MANIFEST
    separator: str = ASSIGNMENT_REGEX
    timeout: int = DEFAULT_TIMEOUT
    max_retries: int = DEFAULT_MAX_RETRIES
    checks: List[CheckConfig] = field(default_factory=list)

    # Metadata (not a user-facing option)
    source_path: Optional[Path] = field(default=None, repr=False)

    @property
    def base_dir(self) -> Path:
        """Directory relative paths are resolved against."""
        if self.source_path is not None:
            return self.source_path.parent
        return Path.cwd()

    @property
    def manifest_path(self) -> Path:
        return self.base_dir / self.manifest

    def uses_docker(self) -> bool:
        """True if any check needs the container engine."""
        return any(check.kind == "packages" for check in self.checks)

    def to_log_dict(self) -> Dict[str, Any]:
        """Return configuration as dictionary for debug logging."""
        return {
            "image_name": self.image_name,
            "main_item": self.main_item,
            "release_version": self.release_version,
            "manifest": self.manifest,
            "separator": self.separator,
            "timeout": self.timeout,
            "max_retries": self.max_retries,
            "checks": [check.label for check in self.checks],
        }


def require(config: ImageKeeperConfig, *names: str) -> None:
    """Ensure every option in ``names`` is set.

    ``main_item`` may be an empty string; it only has to be present.

    Raises:
        VariableNotSet: An option is missing.
    """
    for name in names:
        if getattr(config, name) is None:
            raise VariableNotSet(name)


def discover_config_file(explicit_path: Optional[Path] = None) -> Optional[Path]:
    """Find the configuration file to load.

    Args:
        explicit_path: Explicit config path. If provided, must exist.

    Returns:
        Resolved path to config file, or ``None`` if not found.

    Raises:
        ConfigError: Explicit path provided but does not exist.
    """
    if explicit_path is not None:
        resolved = explicit_path.resolve()
        if not resolved.is_file():
            raise ConfigError(
                f"Configuration file not found: {explicit_path}",
                config_path=str(explicit_path),
            )
        logger.debug("Using explicit config: %s", resolved)
        return resolved

    cwd = Path.cwd()

    imagekeeper_toml = cwd / "imagekeeper.toml"
    if imagekeeper_toml.is_file():
        logger.debug("Found imagekeeper.toml: %s", imagekeeper_toml)
        return imagekeeper_toml

    pyproject_toml = cwd / "pyproject.toml"
    if pyproject_toml.is_file() and _pyproject_has_section(pyproject_toml):
        logger.debug("Found [tool.imagekeeper] in pyproject.toml: %s", pyproject_toml)
        return pyproject_toml

    logger.debug("No configuration file found")
    return None


def _pyproject_has_section(path: Path) -> bool:
    """Check if pyproject.toml contains a ``[tool.imagekeeper]`` section.

    An unreadable pyproject.toml is treated as having none.
    """
    try:
        raw = _read_toml(path)
    except ConfigError as exc:
        logger.debug("Ignoring %s: %s", path, exc)
        return False
    return "imagekeeper" in raw.get("tool", {})


def load_config(config_path: Optional[Path] = None) -> ImageKeeperConfig:
    """Load and validate imagekeeper configuration.

    Args:
        config_path: Explicit path to config file. If ``None``, uses
            auto-discovery (see :func:`discover_config_file`).

    Returns:
        Validated :class:`ImageKeeperConfig` with values from file or defaults.

    Raises:
        ConfigError: File cannot be parsed, has unknown keys, or invalid values.
    """
    resolved = discover_config_file(config_path)

    if resolved is None:
        logger.debug("No config file found, using defaults")
        return ImageKeeperConfig()

    logger.info("Loading configuration from %s", resolved)
    raw = _read_toml(resolved)

    if resolved.name == "pyproject.toml":
        section = raw.get("tool", {}).get("imagekeeper", {})
    else:
        section = raw.get("imagekeeper", {})

    if not section:
        logger.debug("Config file found but no imagekeeper section, using defaults")
        return ImageKeeperConfig(source_path=resolved)

    config = _parse_section(section, config_path=str(resolved))
    config.source_path = resolved

    logger.debug("Loaded configuration: %s", config.to_log_dict())
    return config


def _read_toml(path: Path) -> Dict[str, Any]:
    """Read and parse a TOML file.

    Raises:
        ConfigError: File cannot be read or is not valid TOML.
    """
    try:
        with open(path, "rb") as fh:
            return tomllib.load(fh)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(
            f"Invalid TOML in {path.name}: {exc}",
            config_path=str(path),
        ) from exc
    except OSError as exc:
        raise ConfigError(
            f"Cannot read configuration file {path}: {exc}",
            config_path=str(path),
        ) from exc


def _check_type(
    table: Dict[str, Any],
    types: Dict[str, type],
    *,
    config_path: str,
    context: str,
) -> None:
    """Reject unknown keys and values of the wrong type in ``table``."""
    unknown = set(table) - set(types)
    if unknown:
        raise ConfigError(
            f"Unknown {context} keys: {', '.join(sorted(unknown))}",
            config_path=config_path,
        )

    for key, value in table.items():
        expected = types[key]
        # bool is a subclass of int
        if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
            raise ConfigError(
                f"{key} must be of type {expected.__name__}, got {type(value).__name__}",
                config_path=config_path,
                option=key,
            )


def _parse_section(
    section: Dict[str, Any],
    *,
    config_path: str,
) -> ImageKeeperConfig:
    """Parse and validate the ``[imagekeeper]`` table.

    Raises:
        ConfigError: Unknown keys, wrong types or invalid values.
    """
    _check_type(section, _TOP_LEVEL_TYPES, config_path=config_path, context="configuration")

    config = ImageKeeperConfig()
    for key in ("image_name", "main_item", "release_version", "manifest", "separator"):
        if key in section:
            setattr(config, key, section[key])

    for key in ("timeout", "max_retries"):
        if key in section:
            value = section[key]
            if value < 0:
                raise ConfigError(
                    f"{key} must not be negative, got {value}",
                    config_path=config_path,
                    option=key,
                )
            setattr(config, key, value)

    if config.release_version is not None and not _RELEASE_VERSION_RE.match(
        config.release_version
    ):
        raise ConfigError(
            f'release_version must look like "<version>-<counter>", '
            f"got {config.release_version!r}",
            config_path=config_path,
            option="release_version",
        )

    config.checks = [
        _parse_check(entry, index, config_path=config_path)
        for index, entry in enumerate(section.get("checks", []))
    ]
    return config


def _parse_check(entry: Any, index: int, *, config_path: str) -> CheckConfig:
    """Parse and validate one ``[[imagekeeper.checks]]`` table."""
    context = f"checks[{index}]"
    if not isinstance(entry, dict):
        raise ConfigError(
            f"{context} must be a table, got {type(entry).__name__}",
            config_path=config_path,
            option="checks",
        )

    _check_type(entry, _CHECK_TYPES, config_path=config_path, context=context)

    kind = entry.get("kind")
    if kind not in CHECK_REQUIRED_PARAMS:
        raise ConfigError(
            f"{context}.kind must be one of {', '.join(CHECK_REQUIRED_PARAMS)}, got {kind!r}",
            config_path=config_path,
            option="kind",
        )

    missing = [name for name in CHECK_REQUIRED_PARAMS[kind] if not entry.get(name)]
    if missing:
        raise ConfigError(
            f"{context} ({kind}) is missing: {', '.join(missing)}",
            config_path=config_path,
            option=missing[0],
        )

    for key in ("page_size", "max_pages"):
        if key in entry and entry[key] < 1:
            raise ConfigError(
                f"{context}.{key} must be positive, got {entry[key]}",
                config_path=config_path,
                option=key,
            )

    return CheckConfig(**entry)
