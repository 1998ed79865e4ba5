"""Upstream resolvers for imagekeeper.

Each ``latest_*`` method asks one kind of upstream source for the newest
available value of an item and returns it as a string, or ``None`` when the
source had nothing matching (the classifier reports that as a scrape
failure). HTTP errors raise :class:`~imagekeeper.exceptions.RequestFailed`
and abort the run.

Where several candidates exist, the greatest one under numeric-segment
ordering wins (see :func:`~imagekeeper.utils.version_utils.version_max`).

Typical usage::

    with HTTPClient() as http:
        resolver = UpstreamResolver(http)
        resolver.latest_registry_tag("alpine", r"\\d+\\.\\d+\\.\\d+")  # "3.19.1"
        resolver.latest_pypi_version("requests")                       # "2.31.0"
"""

from __future__ import annotations

import os
from typing import Dict, Iterable, List, Optional, Tuple

from imagekeeper.constants import (
    DEFAULT_MAX_PAGES,
    DEFAULT_PAGE_SIZE,
    DEFAULT_RELEASE_PREFIX,
    DOCKER_HUB_TAGS_API,
    GITHUB_LATEST_RELEASE_API,
    PYPI_JSON_API,
)
from imagekeeper.core.manifest import compile_pattern
from imagekeeper.utils import git
from imagekeeper.utils.http import HTTPClient
from imagekeeper.utils.logger import get_logger
from imagekeeper.utils.version_utils import version_max

logger = get_logger("resolvers")

__all__ = ["UpstreamResolver", "docker_hub_repository"]


def docker_hub_repository(name: str) -> str:
    """Map an image name to its Docker Hub repository path.

    Official images live under ``library/``.
    """
    return name if "/" in name else f"library/{name}"


def _docker_hub_auth() -> Optional[Tuple[str, str]]:
    username = os.environ.get("DOCKERHUB_USERNAME")
    token = os.environ.get("DOCKERHUB_TOKEN")
    if username and token:
        return username, token
    return None


def _github_headers() -> Dict[str, str]:
    headers = {"Accept": "application/vnd.github+json"}
    token = os.environ.get("GITHUB_TOKEN")
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


def _prefix_matches(values: Iterable[str], regex: str) -> List[str]:
    """Return the leading part of each value that matches ``regex``."""
    pattern = compile_pattern(f"(?:{regex})")
    matches = []
    for value in values:
        match = pattern.match(value)
        if match and match.group(0):
            matches.append(match.group(0))
    return matches


def _scan_matches(text: str, regex: str) -> List[str]:
    """Return every non-empty match of ``regex`` in ``text``, line by line."""
    pattern = compile_pattern(regex)
    return [
        match.group(0)
        for line in text.splitlines()
        for match in pattern.finditer(line)
        if match.group(0)
    ]


class UpstreamResolver:
    """Queries upstream sources for the latest version of an item.

    Args:
        http: Open :class:`HTTPClient` used for every web request.
    """

    def __init__(self, http: HTTPClient) -> None:
        self.http = http

    # ------------------------------------------------------------------
    # Container registry
    # ------------------------------------------------------------------

    def list_registry_tags(
        self,
        name: str,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_pages: int = DEFAULT_MAX_PAGES,
    ) -> List[str]:
        """List tag names of a Docker Hub repository, newest pages first."""
        url = DOCKER_HUB_TAGS_API.format(
            repository=docker_hub_repository(name)
        )
        params: Optional[Dict[str, int]] = {"page_size": page_size}
        auth = _docker_hub_auth()
        tags: List[str] = []

        for _ in range(max_pages):
            kwargs = {"auth": auth} if auth else {}
            data = self.http.get_json(url, params=params, **kwargs)
            tags.extend(
                result["name"] for result in data.get("results") or [] if result.get("name")
            )

            # "next" already carries the query string
            next_url = data.get("next")
            params = None
            if not next_url:
                break
            url = next_url
        else:
            logger.debug("Stopped listing %s tags after %d pages", name, max_pages)

        logger.debug("Found %d tags for %s", len(tags), name)
        return tags

    def latest_registry_tag(
        self,
        name: str,
        version_regex: str,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_pages: int = DEFAULT_MAX_PAGES,
    ) -> Optional[str]:
        """Greatest tag prefix of ``name`` matching ``version_regex``."""
        tags = self.list_registry_tags(name, page_size=page_size, max_pages=max_pages)
        return version_max(_prefix_matches(tags, version_regex))

    # ------------------------------------------------------------------
    # Source hosting
    # ------------------------------------------------------------------

    def latest_github_release(
        self,
        repo: str,
        prefix: str = DEFAULT_RELEASE_PREFIX,
    ) -> Optional[str]:
        """Tag of the latest GitHub release of ``repo`` without ``prefix``."""
        data = self.http.get_json(
            GITHUB_LATEST_RELEASE_API.format(repo=repo),
            headers=_github_headers(),
        )
        tag = data.get("tag_name")
        if not tag:
            return None
        if prefix and tag.startswith(prefix):
            tag = tag[len(prefix):]
        return tag

    def latest_git_tag(self, url: str, regex: str) -> Optional[str]:
        """Greatest tag of the remote repository at ``url`` matching ``regex``."""
        return version_max(_prefix_matches(git.ls_remote_tags(url), regex))

    # ------------------------------------------------------------------
    # Web pages
    # ------------------------------------------------------------------

    def latest_web_value(self, url: str, regex: str) -> Optional[str]:
        """Greatest match of ``regex`` in the page at ``url``."""
        return version_max(_scan_matches(self.http.get_text(url), regex))

    def latest_fileserver_value(self, url: str, regex: str) -> Optional[str]:
        """Greatest directory name matching ``regex`` in a file server listing.

        Only matches directly followed by ``/`` count, which separates
        directory entries from files.
        """
        return version_max(_scan_matches(self.http.get_text(url), f"(?:{regex})(?=/)"))

    # ------------------------------------------------------------------
    # Package indexes
    # ------------------------------------------------------------------

    def latest_pypi_version(self, package: str) -> Optional[str]:
        """Current release version of ``package`` as reported by PyPI."""
        data = self.http.get_json(PYPI_JSON_API.format(package=package))
        return (data.get("info") or {}).get("version")
