"""Update checks.

A check compares one tracked item in the manifest with its upstream source
and hands the observation to the session ledger. Checks run strictly in
configuration order and share one :class:`UpdateSession`; the first
failure aborts the whole run.

Typical usage::

    with HTTPClient() as http:
        session = UpdateSession(
            Manifest.load(Path("Dockerfile")),
            UpstreamResolver(http),
            release_version="3.19.1-4",
        )
        run_checks(session, config.checks)
        for update in session.ledger:
            ...
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Callable, Iterable, Optional

from imagekeeper.config import CheckConfig
from imagekeeper.constants import (
    ASSIGNMENT_REGEX,
    DEFAULT_MAX_PAGES,
    DEFAULT_PAGE_SIZE,
    DEFAULT_RELEASE_PREFIX,
    PYPI_SEPARATOR,
    REBUILD_TRIGGER,
)
from imagekeeper.core.ledger import Ledger
from imagekeeper.core.manifest import Manifest
from imagekeeper.core.packages import detect_package_manager, start_probe_container
from imagekeeper.core.resolvers import UpstreamResolver
from imagekeeper.exceptions import ConfigError, ExtractionFailed, PatternNotFound
from imagekeeper.models import PendingUpdate
from imagekeeper.utils.docker import get_docker_client
from imagekeeper.utils.logger import get_logger

logger = get_logger("checks")

__all__ = [
    "UpdateSession",
    "check_base_image",
    "check_fileserver",
    "check_git",
    "check_github",
    "check_packages",
    "check_pypi",
    "check_web",
    "run_check",
    "run_checks",
]

# FROM [--platform=... ...] <image>
_FROM_KEY = "FROM"
_FROM_SEPARATOR = r" (?:--\S+ )*"
_FROM_VALUE = r"\S+"


class UpdateSession:
    """State shared by the checks of one run.

    Args:
        manifest: Manifest the checks read current values from.
        resolver: Source of upstream values.
        release_version: Current release, used to pick the image whose
            packages are inspected.
        docker_client: Container engine client; created on first use when
            omitted.
    """

    def __init__(
        self,
        manifest: Manifest,
        resolver: UpstreamResolver,
        *,
        release_version: str = "",
        docker_client=None,
        docker_client_factory: Callable = get_docker_client,
    ) -> None:
        self.manifest = manifest
        self.resolver = resolver
        self.release_version = release_version
        self.ledger = Ledger()
        self._docker_client = docker_client
        self._docker_client_factory = docker_client_factory

    @property
    def docker(self):
        if self._docker_client is None:
            self._docker_client = self._docker_client_factory()
        return self._docker_client

    def record(
        self,
        item: str,
        current_value: Optional[str],
        new_value: Optional[str],
        **kwargs,
    ) -> Optional[PendingUpdate]:
        """Classify an observation against the manifest and ledger it."""
        return self.ledger.process(self.manifest, item, current_value, new_value, **kwargs)


def _timestamp() -> str:
    return datetime.now().astimezone().isoformat(timespec="seconds")


# ---------------------------------------------------------------------------
# Base image
# ---------------------------------------------------------------------------


def check_base_image(
    session: UpdateSession,
    regex: str,
    *,
    page_size: int = DEFAULT_PAGE_SIZE,
    max_pages: int = DEFAULT_MAX_PAGES,
) -> Optional[PendingUpdate]:
    """Compare the ``FROM`` image tag with the newest matching registry tag.

    Raises:
        ExtractionFailed: No ``FROM`` line, or its image has no tag.
    """
    manifest = session.manifest
    reference = manifest.extract(_FROM_KEY, _FROM_VALUE, _FROM_SEPARATOR)

    image = reference.split("@", 1)[0]
    name, sep, version = image.rpartition(":")
    if not sep or not name or "/" in version:
        raise ExtractionFailed(_FROM_KEY, manifest.name)

    latest = session.resolver.latest_registry_tag(
        name, regex, page_size=page_size, max_pages=max_pages
    )
    return session.record(
        name,
        version,
        latest,
        name=f"Base Image {name}",
        separator=":",
    )


# ---------------------------------------------------------------------------
# OS packages
# ---------------------------------------------------------------------------


def check_packages(session: UpdateSession, image: str) -> int:
    """Record upgradeable OS packages of the released ``image``.

    When at least one package update is recorded, a hidden update rewrites
    the rebuild trigger so the image is rebuilt even if no package is
    pinned in the manifest.

    Returns:
        Number of package updates recorded.

    Raises:
        PatternNotFound: The manifest lacks the upgrade command or trigger.
        UnsupportedPackageManager: No known package manager in the image.
        ScrapeFailed: Listing upgradeable packages failed.
    """
    manifest = session.manifest
    reference = f"{image}:{session.release_version}"

    container = start_probe_container(session.docker, reference)
    manager = detect_package_manager(container, reference)

    if not manifest.search(manager.upgrade_pattern):
        raise PatternNotFound(
            f'No "{manager.upgrade_command}" found in "{manifest.name}"!',
            pattern=manager.upgrade_pattern,
            file_path=manifest.name,
        )
    trigger_pattern = f"^{re.escape(REBUILD_TRIGGER)}=.+"
    if not manifest.search(trigger_pattern):
        raise PatternNotFound(
            f'No "{REBUILD_TRIGGER}" found in "{manifest.name}"!',
            pattern=trigger_pattern,
            file_path=manifest.name,
        )

    recorded = 0
    for package in manager.list_upgradeable(container):
        if session.record(package.name, package.current_version, package.new_version):
            recorded += 1

    if recorded:
        session.record(
            REBUILD_TRIGGER,
            manifest.extract(REBUILD_TRIGGER, ".+", "="),
            _timestamp(),
            separator="=",
            hidden=True,
        )
    return recorded


# ---------------------------------------------------------------------------
# Manifest items with an upstream source
# ---------------------------------------------------------------------------


def check_github(
    session: UpdateSession,
    repo: str,
    item: str,
    regex: str,
    *,
    name: Optional[str] = None,
    prefix: str = DEFAULT_RELEASE_PREFIX,
    separator: str = ASSIGNMENT_REGEX,
) -> Optional[PendingUpdate]:
    """Compare ``item`` with the latest GitHub release of ``repo``."""
    current = session.manifest.extract(item, regex, separator)
    latest = session.resolver.latest_github_release(repo, prefix)
    return session.record(item, current, latest, name=name, separator=separator)


def check_git(
    session: UpdateSession,
    url: str,
    item: str,
    regex: str,
    *,
    name: Optional[str] = None,
    separator: str = ASSIGNMENT_REGEX,
) -> Optional[PendingUpdate]:
    """Compare ``item`` with the greatest matching tag of a git remote."""
    current = session.manifest.extract(item, regex, separator)
    latest = session.resolver.latest_git_tag(url, regex)
    return session.record(item, current, latest, name=name, separator=separator)


def check_web(
    session: UpdateSession,
    url: str,
    item: str,
    regex: str,
    *,
    name: Optional[str] = None,
    separator: str = ASSIGNMENT_REGEX,
) -> Optional[PendingUpdate]:
    """Compare ``item`` with the greatest match of ``regex`` on a web page."""
    current = session.manifest.extract(item, regex, separator)
    latest = session.resolver.latest_web_value(url, regex)
    return session.record(item, current, latest, name=name, separator=separator)


def check_fileserver(
    session: UpdateSession,
    url: str,
    item: str,
    regex: str,
    *,
    name: Optional[str] = None,
    separator: str = ASSIGNMENT_REGEX,
) -> Optional[PendingUpdate]:
    """Compare ``item`` with the greatest matching directory in a listing."""
    current = session.manifest.extract(item, regex, separator)
    latest = session.resolver.latest_fileserver_value(url, regex)
    return session.record(item, current, latest, name=name, separator=separator)


def check_pypi(
    session: UpdateSession,
    package: str,
    regex: str,
    *,
    name: Optional[str] = None,
    separator: str = PYPI_SEPARATOR,
) -> Optional[PendingUpdate]:
    """Compare the pinned ``package`` with its current PyPI release."""
    current = session.manifest.extract(package, regex, separator)
    latest = session.resolver.latest_pypi_version(package)
    return session.record(package, current, latest, name=name, separator=separator)


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


def run_check(
    session: UpdateSession,
    check: CheckConfig,
    *,
    image_name: Optional[str] = None,
    separator: str = ASSIGNMENT_REGEX,
) -> None:
    """Run one configured check.

    Args:
        session: Session receiving the observations.
        check: The configured check.
        image_name: Default image for ``packages`` checks.
        separator: Default separator for manifest items.
    """
    logger.info("Running check %s", check.label)
    item_separator = check.separator or separator

    if check.kind == "registry":
        check_base_image(
            session, check.regex, page_size=check.page_size, max_pages=check.max_pages
        )
    elif check.kind == "packages":
        image = check.image or image_name
        if not image:
            raise ConfigError(
                "packages check needs an image (set image or image_name)",
                option="image",
            )
        check_packages(session, image)
    elif check.kind == "github":
        check_github(
            session,
            check.repo,
            check.item,
            check.regex,
            name=check.name,
            prefix=DEFAULT_RELEASE_PREFIX if check.prefix is None else check.prefix,
            separator=item_separator,
        )
    elif check.kind == "git":
        check_git(
            session, check.url, check.item, check.regex,
            name=check.name, separator=item_separator,
        )
    elif check.kind == "web":
        check_web(
            session, check.url, check.item, check.regex,
            name=check.name, separator=item_separator,
        )
    elif check.kind == "fileserver":
        check_fileserver(
            session, check.url, check.item, check.regex,
            name=check.name, separator=item_separator,
        )
    elif check.kind == "pypi":
        check_pypi(
            session,
            check.package,
            check.regex,
            name=check.name,
            separator=check.separator or PYPI_SEPARATOR,
        )
    else:
        raise ConfigError(f"Unknown check kind: {check.kind}", option="kind")


def run_checks(
    session: UpdateSession,
    checks: Iterable[CheckConfig],
    *,
    image_name: Optional[str] = None,
    separator: str = ASSIGNMENT_REGEX,
) -> Ledger:
    """Run ``checks`` in order and return the session ledger."""
    for check in checks:
        run_check(session, check, image_name=image_name, separator=separator)
    return session.ledger
