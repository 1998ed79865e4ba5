from __future__ import annotations

from pathlib import Path
from typing import Callable, List
from unittest.mock import patch

import httpx
import pytest

from imagekeeper.exceptions import RequestFailed
from imagekeeper.utils.http import HTTPClient, _netrc_auth


Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture(autouse=True)
def no_netrc(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep the developer's ~/.netrc out of the tests."""
    monkeypatch.setenv("NETRC", str(tmp_path / "missing-netrc"))


def make_client(handler: Handler, **kwargs) -> HTTPClient:
    return HTTPClient(transport=httpx.MockTransport(handler), **kwargs)


@pytest.mark.unit
class TestHTTPClientInit:
    """Tests for HTTPClient initialization and configuration."""

    def test_default_values(self) -> None:
        client = HTTPClient()

        assert client.timeout == 30
        assert client.max_retries == 3
        assert client.verify_ssl is True
        assert client.user_agent.startswith("imagekeeper/")
        assert client._client is None

    def test_custom_values(self) -> None:
        client = HTTPClient(timeout=5, max_retries=0, verify_ssl=False, user_agent="X/1")

        assert client.timeout == 5
        assert client.max_retries == 0
        assert client.verify_ssl is False
        assert client.user_agent == "X/1"

    def test_context_manager_opens_and_closes(self) -> None:
        client = make_client(lambda request: httpx.Response(200))

        with client as opened:
            assert opened is client
            assert client._client is not None

        assert client._client is None

    def test_close_is_idempotent(self) -> None:
        client = HTTPClient()
        client.close()
        client.close()


@pytest.mark.unit
class TestRequests:
    """Tests for get, get_text and get_json."""

    def test_sends_user_agent(self) -> None:
        seen: List[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, text="ok")

        with make_client(handler, user_agent="imagekeeper/test") as client:
            assert client.get_text("https://example.org/") == "ok"

        assert seen[0].headers["User-Agent"] == "imagekeeper/test"

    def test_get_json_returns_object(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"info": {"version": "2.31.0"}})

        with make_client(handler) as client:
            data = client.get_json("https://pypi.org/pypi/requests/json")

        assert data == {"info": {"version": "2.31.0"}}

    def test_query_params_forwarded(self) -> None:
        seen: List[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={})

        with make_client(handler) as client:
            client.get_json("https://example.org/tags", params={"page_size": 5})

        assert seen[0].url.params["page_size"] == "5"

    def test_invalid_json_raises(self) -> None:
        with make_client(lambda request: httpx.Response(200, text="<html>")) as client:
            with pytest.raises(RequestFailed) as exc_info:
                client.get_json("https://example.org/")

        assert "Invalid JSON" in exc_info.value.message

    def test_non_object_json_raises(self) -> None:
        with make_client(lambda request: httpx.Response(200, json=[1, 2])) as client:
            with pytest.raises(RequestFailed) as exc_info:
                client.get_json("https://example.org/")

        assert "Expected JSON object" in exc_info.value.message

    @pytest.mark.parametrize("status", [301, 404, 429, 500])
    def test_non_success_status_fails_without_retry(self, status: int) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(status, text="nope")

        with make_client(handler, max_retries=3) as client:
            with pytest.raises(RequestFailed) as exc_info:
                client.get("https://example.org/")

        assert len(calls) == 1
        assert exc_info.value.status_code == status
        assert exc_info.value.message == f"Request failed: {status}"
        assert exc_info.value.exit_code == 102

    def test_redirects_are_followed(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/old":
                return httpx.Response(302, headers={"Location": "https://example.org/new"})
            return httpx.Response(200, text="moved")

        with make_client(handler) as client:
            assert client.get_text("https://example.org/old") == "moved"


@pytest.mark.unit
class TestRetries:
    """Transport errors are retried with backoff."""

    def test_retries_then_succeeds(self) -> None:
        attempts = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(request)
            if len(attempts) < 3:
                raise httpx.ConnectError("refused", request=request)
            return httpx.Response(200, text="ok")

        with patch("imagekeeper.utils.http.time.sleep") as sleep:
            with make_client(handler, max_retries=3) as client:
                assert client.get_text("https://example.org/") == "ok"

        assert len(attempts) == 3
        assert sleep.call_count == 2

    def test_gives_up_after_max_retries(self) -> None:
        attempts = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(request)
            raise httpx.ReadTimeout("slow", request=request)

        with patch("imagekeeper.utils.http.time.sleep"):
            with make_client(handler, max_retries=2) as client:
                with pytest.raises(RequestFailed) as exc_info:
                    client.get("https://example.org/")

        assert len(attempts) == 3
        assert "after 3 attempts" in exc_info.value.message
        assert isinstance(exc_info.value.__cause__, httpx.ReadTimeout)


@pytest.mark.unit
class TestNetrcAuth:
    """Tests for _netrc_auth."""

    def test_missing_file_returns_none(self) -> None:
        assert _netrc_auth() is None

    def test_existing_file_returns_auth(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        netrc_file = tmp_path / "netrc"
        netrc_file.write_text("machine example.org login u password p\n", encoding="utf-8")
        netrc_file.chmod(0o600)
        monkeypatch.setenv("NETRC", str(netrc_file))

        assert isinstance(_netrc_auth(), httpx.NetRCAuth)
