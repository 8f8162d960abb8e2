"""CoinGecko Pro: coin price changes and the on-chain pool API."""

from typing import Any

from pulsefeed.http.client import JsonHttpClient
from pulsefeed.http.retry import Failure
from pulsefeed.logging import get_logger
from pulsefeed.providers.geckoterminal import PRO_KEY_HEADER, GeckoTerminalClient

logger = get_logger(__name__)

# dashboard key -> market_data field; d90 has no source field and is always null
PRICE_CHANGE_FIELDS: dict[str, str | None] = {
    "h24": "price_change_percentage_24h",
    "d7": "price_change_percentage_7d",
    "d30": "price_change_percentage_30d",
    "d60": "price_change_percentage_60d",
    "d90": None,
    "d200": "price_change_percentage_200d",
    "d1y": "price_change_percentage_1y",
}


def parse_price_changes(data: Any) -> dict[str, float | None] | None:
    market = data.get("market_data") if isinstance(data, dict) else None
    if not isinstance(market, dict):
        return None
    changes: dict[str, float | None] = {}
    for key, source in PRICE_CHANGE_FIELDS.items():
        value = market.get(source) if source else None
        changes[key] = float(value) if isinstance(value, (int, float)) and not isinstance(value, bool) else None
    return changes


class CoinGeckoClient:
    def __init__(self, http: JsonHttpClient, base_url: str, api_key: str, platform: str = "pulsechain") -> None:
        self._http = http
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._platform = platform

    def onchain(self, network: str) -> GeckoTerminalClient:
        """Pool client for the Pro on-chain endpoints."""
        return GeckoTerminalClient(self._http, f"{self._base_url}/onchain", network, api_key=self._api_key)

    async def price_changes(self, token_address: str) -> dict[str, float | None] | None:
        """Price change percentages by window, None when the coin is unknown."""
        data = await self._http.get_json(
            f"{self._base_url}/coins/{self._platform}/contract/{token_address}",
            headers={PRO_KEY_HEADER: self._api_key},
        )
        if isinstance(data, Failure):
            return None
        changes = parse_price_changes(data)
        logger.info(
            "price_changes_fetched",
            token=token_address,
            d7=changes.get("d7") if changes else None,
            d30=changes.get("d30") if changes else None,
        )
        return changes
