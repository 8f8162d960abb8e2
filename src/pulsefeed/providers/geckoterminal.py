"""GeckoTerminal on-chain pool data, free or through the CoinGecko Pro key.

The free API (``api.geckoterminal.com/api/v2``) and the Pro on-chain API
(``pro-api.coingecko.com/api/v3/onchain``) share their paths and response
shapes; only the base URL and the key header differ.
"""

from dataclasses import dataclass
from typing import Any

from pulsefeed.http.client import JsonHttpClient
from pulsefeed.http.retry import Failure
from pulsefeed.logging import get_logger
from pulsefeed.pipeline.models import parse_iso_ms
from pulsefeed.pipeline.normalize import to_float

logger = get_logger(__name__)

PRO_KEY_HEADER = "x-cg-pro-api-key"


@dataclass(frozen=True)
class PoolInfo:
    liquidity: float
    volume24h: float
    price_usd: float
    price_change_24h: float

    def to_dict(self) -> dict[str, float]:
        return {
            "liquidity": self.liquidity,
            "volume24h": self.volume24h,
            "priceUsd": self.price_usd,
            "priceChange24h": self.price_change_24h,
        }


@dataclass(frozen=True)
class Candle:
    """Daily OHLCV candle, reduced to what the dashboard plots."""

    timestamp_ms: int
    close: float
    volume: float


@dataclass(frozen=True)
class Trade:
    timestamp_ms: int
    is_buy: bool
    volume_usd: float


@dataclass(frozen=True)
class PoolRef:
    address: str
    name: str


def _attributes(data: Any) -> dict[str, Any] | None:
    inner = data.get("data") if isinstance(data, dict) else None
    attrs = inner.get("attributes") if isinstance(inner, dict) else None
    return attrs if isinstance(attrs, dict) else None


def parse_pool_info(data: Any) -> PoolInfo | None:
    attrs = _attributes(data)
    if attrs is None:
        return None
    volume = attrs.get("volume_usd") or {}
    price_change = attrs.get("price_change_percentage") or {}
    return PoolInfo(
        liquidity=to_float(attrs.get("reserve_in_usd")),
        volume24h=to_float(volume.get("h24")) if isinstance(volume, dict) else 0.0,
        price_usd=to_float(attrs.get("base_token_price_usd")),
        price_change_24h=to_float(price_change.get("h24")) if isinstance(price_change, dict) else 0.0,
    )


def parse_ohlcv(data: Any) -> list[Candle]:
    """OHLCV list ``[ts_s, open, high, low, close, volume]`` -> candles, newest first."""
    attrs = _attributes(data)
    rows = attrs.get("ohlcv_list") if attrs else None
    if not isinstance(rows, list):
        return []
    candles = [
        Candle(timestamp_ms=int(to_float(row[0]) * 1000), close=to_float(row[4]), volume=to_float(row[5]))
        for row in rows
        if isinstance(row, list) and len(row) >= 6
    ]
    candles.sort(key=lambda c: c.timestamp_ms, reverse=True)
    return candles


def parse_trades(data: Any) -> list[Trade]:
    items = data.get("data") if isinstance(data, dict) else None
    if not isinstance(items, list):
        return []
    trades: list[Trade] = []
    for item in items:
        attrs = item.get("attributes") if isinstance(item, dict) else None
        if not isinstance(attrs, dict):
            continue
        timestamp = parse_iso_ms(attrs.get("block_timestamp"))
        if timestamp is None:
            continue
        trades.append(
            Trade(
                timestamp_ms=timestamp,
                is_buy=attrs.get("kind") == "buy",
                volume_usd=to_float(attrs.get("volume_in_usd")),
            )
        )
    return trades


def parse_pools(data: Any) -> list[PoolRef]:
    """Token pool listing. Pool ids look like ``pulsechain_0xabc...``."""
    items = data.get("data") if isinstance(data, dict) else None
    if not isinstance(items, list):
        return []
    pools: list[PoolRef] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        _, _, address = str(item.get("id") or "").partition("_")
        if not address:
            continue
        attrs = item.get("attributes")
        name = attrs.get("name") if isinstance(attrs, dict) else None
        pools.append(PoolRef(address=address, name=str(name or "Unknown")))
    return pools


def summarize_volume(candles: list[Candle]) -> dict[str, Any] | None:
    """Daily volume block for the burn dashboard."""
    if not candles:
        return None
    current = candles[0].volume
    yesterday = candles[1].volume if len(candles) > 1 else 0.0
    return {
        "current24h": current,
        "yesterday24h": yesterday,
        "change24h": (current - yesterday) / yesterday * 100 if yesterday > 0 else 0.0,
        "vol7d": sum(c.volume for c in candles[:7]),
        "vol30d": sum(c.volume for c in candles[:30]),
        "history": [{"t": c.timestamp_ms, "v": c.volume, "c": c.close} for c in candles[:90]],
    }


class GeckoTerminalClient:
    """Pool, OHLCV, trade and token-pool lookups for one network.

    Args:
        http: Shared JSON client.
        base_url: API root up to (not including) ``/networks``.
        network: GeckoTerminal network id, e.g. "pulsechain".
        api_key: CoinGecko Pro key; empty for the free API.
    """

    def __init__(self, http: JsonHttpClient, base_url: str, network: str, api_key: str = "") -> None:
        self._http = http
        self._base_url = base_url.rstrip("/")
        self._network = network
        self._headers = {PRO_KEY_HEADER: api_key} if api_key else {}

    def _url(self, path: str) -> str:
        return f"{self._base_url}/networks/{self._network}{path}"

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any | Failure:
        return await self._http.get_json(self._url(path), params=params, headers=self._headers)

    async def pool_info(self, pool_address: str) -> PoolInfo | None:
        data = await self._get(f"/pools/{pool_address}")
        if isinstance(data, Failure):
            return None
        info = parse_pool_info(data)
        if info is None:
            logger.warning("pool_info_missing", pool=pool_address)
        return info

    async def daily_ohlcv(self, pool_address: str, limit: int = 90) -> list[Candle]:
        data = await self._get(f"/pools/{pool_address}/ohlcv/day", params={"aggregate": 1, "limit": limit})
        if isinstance(data, Failure):
            return []
        return parse_ohlcv(data)

    async def trades(self, pool_address: str) -> list[Trade]:
        data = await self._get(f"/pools/{pool_address}/trades")
        if isinstance(data, Failure):
            return []
        return parse_trades(data)

    async def token_pools(self, token_address: str) -> list[PoolRef]:
        data = await self._get(f"/tokens/{token_address}/pools", params={"page": 1})
        if isinstance(data, Failure):
            return []
        return parse_pools(data)
