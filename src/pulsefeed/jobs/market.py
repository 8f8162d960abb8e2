"""Market data job (CoinGecko Pro) -- pool liquidity, volume and trade flow.

Writes ``coingecko-data.json`` and appends to the liquidity, transaction
and tokens-in-LP histories. Holder history belongs to the holders job
and is never touched here.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from pulsefeed.config import AppSettings, TokenConfig
from pulsefeed.logging import get_logger
from pulsefeed.pipeline.models import DAY_MS, now_ms, to_iso
from pulsefeed.pipeline.rollup import append_capped
from pulsefeed.providers.coingecko import CoinGeckoClient
from pulsefeed.providers.dexscreener import DexScreenerClient
from pulsefeed.providers.explorer import ExplorerClient
from pulsefeed.providers.geckoterminal import Candle, GeckoTerminalClient, Trade
from pulsefeed.storage.files import JsonFileStore

logger = get_logger(__name__)

OUTPUT_FILE = "coingecko-data.json"
LIQUIDITY_HISTORY = "liquidity-history.json"
TRANSACTION_HISTORY = "transaction-history.json"
TOKENS_IN_LP_HISTORY = "tokensinlp-history.json"

VOLUME_WINDOWS: dict[str, int] = {"vol7d": 7, "vol30d": 30, "vol90d": 90}


@dataclass
class TradeFlow:
    buys: int = 0
    sells: int = 0
    buy_volume: float = 0.0
    sell_volume: float = 0.0

    @property
    def total(self) -> int:
        return self.buys + self.sells

    def add(self, other: "TradeFlow") -> None:
        self.buys += other.buys
        self.sells += other.sells
        self.buy_volume += other.buy_volume
        self.sell_volume += other.sell_volume

    def to_dict(self) -> dict[str, Any]:
        return {
            "buys": self.buys,
            "sells": self.sells,
            "total": self.total,
            "buyVolume": self.buy_volume,
            "sellVolume": self.sell_volume,
        }


@dataclass
class TokenMarket:
    """Everything the market job gathers for one token."""

    liquidity: float = 0.0
    volume: dict[str, float] = field(default_factory=lambda: {name: 0.0 for name in VOLUME_WINDOWS})
    transactions: TradeFlow = field(default_factory=TradeFlow)
    holders: int | None = None
    tokens_in_lp: float | None = None
    pool_count: int = 0
    price_changes: dict[str, float | None] | None = None
    errors: list[dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "volume": self.volume,
            "liquidity": self.liquidity,
            "transactions": self.transactions.to_dict(),
            "holders": self.holders,
            "tokensInLP": self.tokens_in_lp,
            "poolCount": self.pool_count,
            "priceChanges": self.price_changes,
            "errors": self.errors,
        }


def volume_sums(candles: list[Candle]) -> dict[str, float]:
    """Summed volume over the newest 7/30/90 daily candles."""
    return {name: sum(c.volume for c in candles[:days]) for name, days in VOLUME_WINDOWS.items()}


def trade_flow(trades: list[Trade], now: int, window_ms: int = DAY_MS) -> TradeFlow:
    """Buy/sell counts and USD volume for trades within ``window_ms``."""
    flow = TradeFlow()
    for trade in trades:
        if trade.timestamp_ms < now - window_ms:
            continue
        if trade.is_buy:
            flow.buys += 1
            flow.buy_volume += trade.volume_usd
        else:
            flow.sells += 1
            flow.sell_volume += trade.volume_usd
    return flow


class MarketDataJob:
    def __init__(
        self,
        coingecko: CoinGeckoClient,
        pools: GeckoTerminalClient,
        dexscreener: DexScreenerClient,
        explorer: ExplorerClient,
        store: JsonFileStore,
        settings: AppSettings,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._coingecko = coingecko
        self._pools = pools
        self._dexscreener = dexscreener
        self._explorer = explorer
        self._store = store
        self._settings = settings
        self._clock = clock

    async def _pause(self) -> None:
        await asyncio.sleep(self._settings.pagination.page_delay)

    async def collect(self, token: TokenConfig, now: int) -> TokenMarket:
        result = TokenMarket()

        result.price_changes = await self._coingecko.price_changes(token.address)
        await self._pause()
        result.holders = await self._explorer.token_holders(token.address)
        await self._pause()
        result.tokens_in_lp = await self._dexscreener.tokens_in_lp(token.address)
        await self._pause()

        pools = await self._pools.token_pools(token.address)
        result.pool_count = len(pools)
        logger.info("token_pools_found", token=token.symbol, pools=len(pools))
        await self._pause()

        for pool in pools[: self._settings.retention.max_pools]:
            info = await self._pools.pool_info(pool.address)
            await self._pause()
            if info is None:
                logger.warning("pool_info_missing", token=token.symbol, pool=pool.address, name=pool.name)
                result.errors.append({"pool": pool.address, "error": "pool info unavailable"})

            volume = volume_sums(await self._pools.daily_ohlcv(pool.address, limit=90))
            await self._pause()
            flow = trade_flow(await self._pools.trades(pool.address), now)
            await self._pause()

            if info is not None:
                result.liquidity += info.liquidity
            for name, amount in volume.items():
                result.volume[name] += amount
            result.transactions.add(flow)
            logger.debug(
                "pool_processed",
                token=token.symbol,
                pool=pool.address,
                name=pool.name,
                liquidity=info.liquidity if info is not None else None,
                vol7d=volume["vol7d"],
                trades_24h=flow.total,
            )

        logger.info(
            "token_market_collected",
            token=token.symbol,
            liquidity=result.liquidity,
            vol7d=result.volume["vol7d"],
            vol30d=result.volume["vol30d"],
            transactions=result.transactions.total,
            holders=result.holders,
            errors=len(result.errors),
        )
        return result

    async def core_price_changes(self) -> dict[str, dict[str, Any]]:
        cores: dict[str, dict[str, Any]] = {}
        for name, address in self._settings.rh_cores.items():
            cores[name] = {
                "address": address,
                "priceChanges": await self._coingecko.price_changes(address),
            }
            await self._pause()
        return cores

    def _append_history(self, name: str, entry: dict[str, Any], timestamp: str) -> None:
        document = self._store.load(name) or {}
        snapshots = document.get("snapshots")
        document["snapshots"] = append_capped(
            snapshots if isinstance(snapshots, list) else [],
            entry,
            self._settings.retention.history_cap,
        )
        document["lastUpdated"] = timestamp
        self._store.save(name, document)

    async def run(self) -> dict[str, Any]:
        now = self._clock()
        timestamp = to_iso(now)

        markets: dict[str, TokenMarket] = {}
        for token in self._settings.tokens:
            markets[token.symbol] = await self.collect(token, now)
            await asyncio.sleep(self._settings.pagination.call_delay)

        cores = await self.core_price_changes()

        self._append_history(
            LIQUIDITY_HISTORY,
            {"timestamp": timestamp, **{symbol: m.liquidity for symbol, m in markets.items()}},
            timestamp,
        )
        self._append_history(
            TRANSACTION_HISTORY,
            {"timestamp": timestamp, **{symbol: m.transactions.to_dict() for symbol, m in markets.items()}},
            timestamp,
        )
        if any(m.tokens_in_lp is not None for m in markets.values()):
            self._append_history(
                TOKENS_IN_LP_HISTORY,
                {"timestamp": timestamp, **{symbol: m.tokens_in_lp for symbol, m in markets.items()}},
                timestamp,
            )

        document: dict[str, Any] = {
            "lastUpdated": timestamp,
            **{symbol: m.to_dict() for symbol, m in markets.items()},
            "rhCores": cores,
        }
        self._store.save(OUTPUT_FILE, document)
        return document
