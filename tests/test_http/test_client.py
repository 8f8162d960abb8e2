"""Tests for JsonHttpClient and the retry policy.

Covers plain success, HTTP 429 with the fixed rate-limit wait, HTML error
pages, linear backoff, transport errors and retry exhaustion.
"""

from unittest.mock import AsyncMock, call, patch

import aiohttp
import pytest

from pulsefeed.exceptions import RateLimitedError, RequestError, ResponseFormatError
from pulsefeed.http.client import JsonHttpClient, parse_json_body
from pulsefeed.http.retry import Failure, RetryPolicy, run_with_retry

SLEEP = "pulsefeed.http.retry.asyncio.sleep"


@pytest.fixture
def http(fake_session) -> JsonHttpClient:  # type: ignore[no-untyped-def]
    return JsonHttpClient(RetryPolicy(max_attempts=3, rate_limit_delay=60.0, backoff_step=2.0), session=fake_session)


# =============================================================================
# Body parsing
# =============================================================================


class TestParseJsonBody:
    def test_parses_json(self) -> None:
        assert parse_json_body('{"items": [1, 2]}') == {"items": [1, 2]}

    def test_rejects_markup(self) -> None:
        with pytest.raises(ResponseFormatError):
            parse_json_body("  <!DOCTYPE html><html></html>")

    def test_rejects_error_page_text(self) -> None:
        with pytest.raises(ResponseFormatError):
            parse_json_body('{"message": "Internal Server Error"}')

    def test_rejects_invalid_json(self) -> None:
        with pytest.raises(ResponseFormatError):
            parse_json_body("not json")


# =============================================================================
# Requests
# =============================================================================


class TestGetJson:
    @pytest.mark.asyncio
    async def test_success_returns_body(self, http, fake_session) -> None:  # type: ignore[no-untyped-def]
        fake_session.reply(200, {"ok": True})

        result = await http.get_json(
            "https://api.test/x",
            params={"limit": 100, "cursor": None, "spam": False},
            headers={"X-API-Key": "k"},
        )

        assert result == {"ok": True}
        assert fake_session.calls[0]["params"] == {"limit": "100", "spam": "false"}
        assert fake_session.calls[0]["headers"] == {"X-API-Key": "k"}

    @pytest.mark.asyncio
    async def test_rate_limit_waits_fixed_delay_then_succeeds(self, http, fake_session) -> None:  # type: ignore[no-untyped-def]
        fake_session.reply(429).reply(200, {"items": ["a"]})

        with patch(SLEEP, new_callable=AsyncMock) as mock_sleep:
            result = await http.get_json("https://api.test/page")

        assert result == {"items": ["a"]}
        mock_sleep.assert_awaited_once_with(60.0)
        assert len(fake_session.calls) == 2

    @pytest.mark.asyncio
    async def test_html_body_is_retried(self, http, fake_session) -> None:  # type: ignore[no-untyped-def]
        fake_session.reply(200, text="<html>Bad Gateway</html>").reply(200, {"ok": 1})

        with patch(SLEEP, new_callable=AsyncMock) as mock_sleep:
            result = await http.get_json("https://api.test/x")

        assert result == {"ok": 1}
        mock_sleep.assert_awaited_once_with(2.0)

    @pytest.mark.asyncio
    async def test_non_utf8_body_is_retried(self, http, fake_session) -> None:  # type: ignore[no-untyped-def]
        fake_session.reply(200, raw=b"\xff\xfe<html>bad gateway</html>").reply(200, {"ok": 1})

        with patch(SLEEP, new_callable=AsyncMock) as mock_sleep:
            result = await http.get_json("https://api.test/x")

        assert result == {"ok": 1}
        mock_sleep.assert_awaited_once_with(2.0)

    @pytest.mark.asyncio
    async def test_non_utf8_body_exhaustion_returns_failure(self, http, fake_session) -> None:  # type: ignore[no-untyped-def]
        for _ in range(3):
            fake_session.reply(200, raw=b"\xff\xfe<html>bad gateway</html>")

        with patch(SLEEP, new_callable=AsyncMock):
            result = await http.get_json("https://api.test/x")

        assert isinstance(result, Failure)
        assert "undecodable body" in result.reason
        assert result.attempts == 3

    @pytest.mark.asyncio
    async def test_transport_error_is_retried(self, http, fake_session) -> None:  # type: ignore[no-untyped-def]
        fake_session.fail(aiohttp.ClientConnectionError("reset")).reply(200, [1, 2, 3])

        with patch(SLEEP, new_callable=AsyncMock):
            result = await http.get_json("https://api.test/x")

        assert result == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_exhaustion_returns_failure(self, http, fake_session) -> None:  # type: ignore[no-untyped-def]
        fake_session.reply(500).reply(502).reply(503)

        with patch(SLEEP, new_callable=AsyncMock) as mock_sleep:
            result = await http.get_json("https://api.test/x")

        assert isinstance(result, Failure)
        assert result.status == 503
        assert result.attempts == 3
        assert result.target == "https://api.test/x"
        # linear backoff, no wait after the last attempt
        assert mock_sleep.await_args_list == [call(2.0), call(4.0)]

    @pytest.mark.asyncio
    async def test_close_keeps_injected_session(self, http, fake_session) -> None:  # type: ignore[no-untyped-def]
        await http.close()
        assert fake_session.closed is False


# =============================================================================
# Retry primitive
# =============================================================================


class TestRunWithRetry:
    def test_delay_for_rate_limit_is_fixed(self) -> None:
        policy = RetryPolicy(rate_limit_delay=45.0, backoff_step=2.0)
        assert policy.delay_for(RateLimitedError(), 1) == 45.0
        assert policy.delay_for(RateLimitedError(), 3) == 45.0
        assert policy.delay_for(RequestError("HTTP 500", 500), 3) == 6.0

    @pytest.mark.asyncio
    async def test_unexpected_errors_propagate(self) -> None:
        operation = AsyncMock(side_effect=ValueError("bug"))

        with pytest.raises(ValueError):
            await run_with_retry(operation, RetryPolicy())

        operation.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_single_attempt_policy_never_sleeps(self) -> None:
        operation = AsyncMock(side_effect=RateLimitedError())

        with patch(SLEEP, new_callable=AsyncMock) as mock_sleep:
            result = await run_with_retry(operation, RetryPolicy(max_attempts=1), target="t")

        assert result == Failure(reason="rate limited", status=429, attempts=1, target="t")
        mock_sleep.assert_not_awaited()
