"""Moralis Web3 Data API client (API key required).

Wallet history endpoints paginate with an opaque ``cursor``; the next
page is requested by echoing it back with the same filters.
"""

from typing import Any

from pulsefeed.config import KNOWN_TOKENS, KnownToken
from pulsefeed.http.client import JsonHttpClient
from pulsefeed.http.retry import Failure
from pulsefeed.logging import get_logger
from pulsefeed.pipeline.normalize import (
    normalize_token_balance,
    normalize_token_transfer,
    normalize_wallet_transaction,
    scale_amount,
    to_int,
)
from pulsefeed.pipeline.paginate import Page

logger = get_logger(__name__)

API_KEY_HEADER = "X-API-Key"


def parse_cursor_page(data: Any) -> tuple[list[dict[str, Any]], dict[str, Any] | None]:
    """Moralis ``{"result": [...], "cursor": ...}`` -> (rows, next cursor params)."""
    if not isinstance(data, dict):
        return [], None
    rows = data.get("result")
    cursor = data.get("cursor")
    return (
        [row for row in rows if isinstance(row, dict)] if isinstance(rows, list) else [],
        {"cursor": cursor} if cursor else None,
    )


class MoralisClient:
    """Holder totals, wallet history and balances.

    Usage:
        moralis = MoralisClient(http, settings.api.moralis_url, key, "0x171")
        page = await moralis.wallet_transactions_page(wallet, {"limit": 100})
    """

    def __init__(
        self,
        http: JsonHttpClient,
        base_url: str,
        api_key: str,
        chain: str,
        known_tokens: dict[str, KnownToken] = KNOWN_TOKENS,
    ) -> None:
        self._http = http
        self._base_url = base_url.rstrip("/")
        self._headers = {API_KEY_HEADER: api_key}
        self._chain = chain
        self._known_tokens = known_tokens

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any | Failure:
        return await self._http.get_json(
            f"{self._base_url}{path}",
            params={"chain": self._chain, **(params or {})},
            headers=self._headers,
        )

    async def holder_total(self, token_address: str) -> int | None:
        """Total holder count reported alongside the owners listing."""
        data = await self._get(f"/erc20/{token_address}/owners", {"order": "DESC"})
        if isinstance(data, Failure) or not isinstance(data, dict):
            return None
        rows = data.get("result")
        if not isinstance(rows, list):
            return None
        total = to_int(data.get("total"))
        return total if total is not None else len(rows)

    async def wallet_transactions_page(self, wallet: str, params: dict[str, Any]) -> Page[dict[str, Any]] | Failure:
        data = await self._get(f"/{wallet}", {"include": "internal_transactions", **params})
        if isinstance(data, Failure):
            return data
        rows, next_params = parse_cursor_page(data)
        return Page(items=[normalize_wallet_transaction(row) for row in rows], next_params=next_params)

    async def token_transfers_page(self, wallet: str, params: dict[str, Any]) -> Page[dict[str, Any]] | Failure:
        data = await self._get(f"/{wallet}/erc20/transfers", params)
        if isinstance(data, Failure):
            return data
        rows, next_params = parse_cursor_page(data)
        return Page(
            items=[normalize_token_transfer(row, self._known_tokens) for row in rows],
            next_params=next_params,
        )

    async def token_balances(self, wallet: str) -> list[dict[str, Any]]:
        """Non-spam, non-zero ERC-20 balances, largest first."""
        data = await self._get(f"/{wallet}/erc20")
        if isinstance(data, Failure) or not isinstance(data, list):
            return []
        balances = [
            normalize_token_balance(row, self._known_tokens) for row in data if isinstance(row, dict)
        ]
        balances = [b for b in balances if b["balance"] > 0 and not b["possible_spam"]]
        balances.sort(key=lambda b: b["balance"], reverse=True)
        logger.info("token_balances_fetched", wallet=wallet, tokens=len(balances))
        return balances

    async def native_balance(self, wallet: str, decimals: int = 18) -> float:
        data = await self._get(f"/{wallet}/balance")
        if isinstance(data, Failure) or not isinstance(data, dict):
            return 0.0
        balance = float(scale_amount(data.get("balance"), decimals))
        logger.info("native_balance_fetched", wallet=wallet, balance=balance)
        return balance
