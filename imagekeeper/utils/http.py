"""
HTTP client utilities for imagekeeper.

This module provides a synchronous HTTP client with retry logic for
transport failures. Any response outside the 2xx range is a hard failure
and raises :class:`RequestFailed` immediately, without retrying.
"""

from __future__ import annotations

import os
import time
import random
from pathlib import Path
from typing import Any, Dict, Optional, cast

import httpx

from imagekeeper.utils.logger import get_logger
from imagekeeper.__version__ import __version__
from imagekeeper.exceptions import RequestFailed
from imagekeeper.constants import (
    DEFAULT_TIMEOUT,
    DEFAULT_MAX_RETRIES,
    USER_AGENT_TEMPLATE,
)

logger = get_logger("http")


def _netrc_auth() -> Optional[httpx.Auth]:
    """Return netrc-based auth when a netrc file is present."""
    netrc_file = os.environ.get("NETRC") or str(Path.home() / ".netrc")
    if not Path(netrc_file).is_file():
        return None
    logger.debug("Using credentials from %s", netrc_file)
    return httpx.NetRCAuth(file=netrc_file)


class HTTPClient:
    """Synchronous HTTP client with retries for transport errors.

    Args:
        timeout: Request timeout in seconds.
        max_retries: Maximum number of retry attempts after a timeout or
            connection error.
        verify_ssl: Whether to verify SSL certificates.
        user_agent: Custom User-Agent header value.
        transport: Optional ``httpx`` transport (e.g. ``httpx.MockTransport``).

    Example:
        >>> with HTTPClient() as client:
        ...     data = client.get_json("https://pypi.org/pypi/requests/json")
    """

    def __init__(
        self,
        *,
        timeout: int = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        verify_ssl: bool = True,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.timeout = timeout
        self.max_retries = max_retries
        self.verify_ssl = verify_ssl
        self.user_agent = user_agent or USER_AGENT_TEMPLATE.format(version=__version__)
        self.transport = transport

        self._client: Optional[httpx.Client] = None

    def __enter__(self) -> "HTTPClient":
        self._ensure_client()
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.close()

    def _ensure_client(self) -> httpx.Client:
        """Initialize the underlying httpx client if needed."""
        if self._client is None:
            self._client = httpx.Client(
                timeout=httpx.Timeout(self.timeout),
                http2=self.transport is None,
                verify=self.verify_ssl,
                follow_redirects=True,
                headers={"User-Agent": self.user_agent},
                auth=_netrc_auth(),
                transport=self.transport,
            )
        return self._client

    def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def _request_with_retry(
        self,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """Execute an HTTP request, retrying timeouts and connection errors."""
        client = self._ensure_client()
        last_exc: Optional[Exception] = None

        for attempt in range(self.max_retries + 1):
            try:
                response = client.request(method, url, **kwargs)
            except httpx.TimeoutException as exc:
                last_exc = exc
                logger.warning(
                    "Request timeout (%d/%d): %s",
                    attempt + 1,
                    self.max_retries + 1,
                    url,
                )
            except httpx.TransportError as exc:
                last_exc = exc
                logger.warning(
                    "Network error (%d/%d): %s",
                    attempt + 1,
                    self.max_retries + 1,
                    exc,
                )
            else:
                if not response.is_success:
                    raise RequestFailed(
                        f"Request failed: {response.status_code}",
                        url=url,
                        status_code=response.status_code,
                        response_body=response.text,
                    )
                return response

            if attempt < self.max_retries:
                delay = (2**attempt) + random.uniform(0.0, 0.3)
                logger.debug("Retrying in %.2fs", delay)
                time.sleep(delay)

        raise RequestFailed(
            f"Request failed after {self.max_retries + 1} attempts: {url}",
            url=url,
        ) from last_exc

    def get(self, url: str, **kwargs: Any) -> httpx.Response:
        """Perform a GET request with retry logic."""
        return self._request_with_retry("GET", url, **kwargs)

    def get_text(self, url: str, **kwargs: Any) -> str:
        """Fetch a URL and return the decoded body."""
        return self.get(url, **kwargs).text

    def get_json(self, url: str, **kwargs: Any) -> Dict[str, Any]:
        """Fetch a URL and parse the response as a JSON object."""
        response = self.get(url, **kwargs)

        try:
            data = response.json()
        except ValueError as exc:
            raise RequestFailed(
                f"Invalid JSON response from {url}",
                url=url,
                response_body=response.text,
            ) from exc

        if not isinstance(data, dict):
            raise RequestFailed(
                f"Expected JSON object from {url}",
                url=url,
                response_body=response.text,
            )

        return cast(Dict[str, Any], data)
