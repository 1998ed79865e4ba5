from __future__ import annotations

from typing import Generator

import pytest

from imagekeeper.utils.console import reconfigure_console


@pytest.fixture(autouse=True)
def plain_console(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Give every test a fresh, colorless console bound to the captured stdout."""
    monkeypatch.setenv("NO_COLOR", "1")
    reconfigure_console()
    yield
    reconfigure_console()
