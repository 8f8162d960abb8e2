"""JSON-over-HTTP GET client shared by all provider clients.

Wraps an aiohttp session with per-request timeout, HTML/error-page
detection and the retry policy. Callers get parsed JSON or a Failure and
never see an exception for network trouble.
"""

import asyncio
import json
from typing import Any, Self

import aiohttp

from pulsefeed.exceptions import RateLimitedError, RequestError, ResponseFormatError
from pulsefeed.http.retry import Failure, RetryPolicy, run_with_retry
from pulsefeed.logging import get_logger

logger = get_logger(__name__)


def parse_json_body(text: str) -> Any:
    """Decode a response body, rejecting HTML error pages."""
    stripped = text.lstrip()
    if stripped.startswith("<") or "Internal Server Error" in stripped:
        raise ResponseFormatError("server returned HTML/error page")
    try:
        return json.loads(stripped)
    except ValueError as exc:
        raise ResponseFormatError(f"invalid JSON: {exc}") from exc


def _clean_params(params: dict[str, Any] | None) -> dict[str, str]:
    if not params:
        return {}
    cleaned: dict[str, str] = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            cleaned[key] = "true" if value else "false"
        else:
            cleaned[key] = str(value)
    return cleaned


class JsonHttpClient:
    """Sequential GET client with retry.

    Usage:
        async with JsonHttpClient(RetryPolicy()) as http:
            data = await http.get_json("https://...", params={"limit": 100})
            if isinstance(data, Failure):
                ...
    """

    def __init__(
        self,
        policy: RetryPolicy,
        session: aiohttp.ClientSession | None = None,
        timeout: float = 30.0,
    ) -> None:
        self._policy = policy
        self._session = session
        self._own_session = session is None
        self._timeout = timeout

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                headers={"Accept": "application/json", "User-Agent": "pulsefeed/1.0"}
            )
            self._own_session = True
        return self._session

    async def close(self) -> None:
        """Close the session if this client created it."""
        if self._own_session and self._session is not None:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore[no-untyped-def]
        await self.close()

    async def get_json(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any | Failure:
        """GET ``url`` and return the decoded JSON body, or a Failure."""
        query = _clean_params(params)

        async def attempt() -> Any:
            return await self._get_once(url, query, headers or {})

        return await run_with_retry(attempt, self._policy, target=url)

    async def _get_once(self, url: str, query: dict[str, str], headers: dict[str, str]) -> Any:
        session = self._get_session()
        try:
            async with session.get(
                url,
                params=query,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            ) as response:
                if response.status == 429:
                    raise RateLimitedError()
                raw = await response.read()
                if not 200 <= response.status < 300:
                    raise RequestError(f"HTTP {response.status}", status=response.status)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise RequestError(f"transport error: {exc!r}") from exc

        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ResponseFormatError(f"undecodable body: {exc}") from exc
        return parse_json_body(text)
