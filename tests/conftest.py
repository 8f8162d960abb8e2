"""Shared test fixtures for the pulsefeed data jobs."""

import json
from typing import Any

import pytest

from pulsefeed.config import (
    ApiSettings,
    AppSettings,
    PaginationSettings,
    RetentionSettings,
    RetrySettings,
    StorageSettings,
)
from pulsefeed.storage.files import JsonFileStore


class FakeResponse:
    """Stands in for an aiohttp response used as ``async with session.get(...)``."""

    def __init__(
        self, status: int = 200, body: Any = None, text: str | None = None, raw: bytes | None = None
    ) -> None:
        self.status = status
        if raw is None:
            raw = (text if text is not None else json.dumps(body if body is not None else {})).encode("utf-8")
        self._raw = raw

    async def read(self) -> bytes:
        return self._raw

    async def text(self) -> str:
        return self._raw.decode("utf-8")

    async def __aenter__(self) -> "FakeResponse":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # type: ignore[no-untyped-def]
        return None


class FakeSession:
    """Replays queued responses in order and records every GET.

    A queued exception instance is raised from ``get`` instead, which is
    how transport errors are simulated.
    """

    def __init__(self, responses: list[FakeResponse | Exception] | None = None) -> None:
        self.responses = list(responses or [])
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    def reply(
        self, status: int = 200, body: Any = None, text: str | None = None, raw: bytes | None = None
    ) -> "FakeSession":
        self.responses.append(FakeResponse(status, body, text, raw))
        return self

    def fail(self, error: Exception) -> "FakeSession":
        self.responses.append(error)
        return self

    def get(self, url: str, params: Any = None, headers: Any = None, timeout: Any = None) -> FakeResponse:
        self.calls.append({"url": url, "params": dict(params or {}), "headers": dict(headers or {})})
        if not self.responses:
            raise AssertionError(f"unexpected request to {url}")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def mock_settings(tmp_path) -> AppSettings:  # type: ignore[no-untyped-def]
    """AppSettings with test endpoints, dummy keys and no courtesy delays."""
    return AppSettings(
        log_level="DEBUG",
        api=ApiSettings(
            explorer_url="https://explorer.test/api/v2",
            geckoterminal_url="https://gecko.test/api/v2",
            coingecko_url="https://cg.test/api/v3",
            dexscreener_url="https://dex.test/latest/dex",
            moralis_url="https://moralis.test/api/v2.2",
            moralis_api_key="test-moralis-key",  # type: ignore[arg-type]
            coingecko_api_key="test-cg-key",  # type: ignore[arg-type]
        ),
        retry=RetrySettings(max_attempts=3, rate_limit_delay=60.0, backoff_step=2.0),
        pagination=PaginationSettings(page_delay=0.0, error_delay=3.0, call_delay=0.0),
        retention=RetentionSettings(),
        storage=StorageSettings(data_dir=str(tmp_path / "data")),
    )


@pytest.fixture
def store(mock_settings: AppSettings) -> JsonFileStore:
    return JsonFileStore(mock_settings.storage.data_dir)
