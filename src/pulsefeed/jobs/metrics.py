"""Metrics history job -- appends one market snapshot per token per run.

Snapshots go into the three-tier store in ``metrics-history.json`` and
are rolled up to hourly and daily averages as the tiers fill.
"""

import asyncio
from collections.abc import Callable
from typing import Any

from pulsefeed.config import AppSettings, TokenConfig
from pulsefeed.logging import get_logger
from pulsefeed.pipeline.models import now_ms, to_iso
from pulsefeed.pipeline.rollup import SnapshotStore, append_snapshot, changes_24h
from pulsefeed.providers.dexscreener import DexScreenerClient
from pulsefeed.providers.explorer import ExplorerClient
from pulsefeed.providers.moralis import MoralisClient
from pulsefeed.storage.files import JsonFileStore

logger = get_logger(__name__)

OUTPUT_FILE = "metrics-history.json"


class MetricsHistoryJob:
    """DexScreener aggregates plus holder counts, rolled into snapshot tiers.

    ``moralis`` is optional; without it holder counts come from the
    explorer's token info.
    """

    def __init__(
        self,
        dexscreener: DexScreenerClient,
        explorer: ExplorerClient,
        moralis: MoralisClient | None,
        store: JsonFileStore,
        settings: AppSettings,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._dexscreener = dexscreener
        self._explorer = explorer
        self._moralis = moralis
        self._store = store
        self._settings = settings
        self._clock = clock

    async def holder_count(self, token: TokenConfig) -> int | None:
        """Moralis total first, explorer token info as the fallback."""
        if self._moralis is not None:
            holders = await self._moralis.holder_total(token.address)
            if holders is not None:
                return holders
            logger.info("moralis_holders_unavailable", token=token.symbol, fallback="explorer")
        return await self._explorer.token_holders(token.address)

    async def collect(self, token: TokenConfig) -> dict[str, Any] | None:
        """Current metrics for ``token``, or None without DexScreener data."""
        aggregate = await self._dexscreener.aggregate(token.address)
        if aggregate is None:
            return None
        holders = await self.holder_count(token)
        return {
            "price": aggregate.price,
            "volume24h": aggregate.volume24h,
            "liquidity": aggregate.liquidity,
            "mcap": aggregate.mcap,
            "liqMcapRatio": aggregate.liq_mcap_ratio,
            "holders": holders,
            "tokensInLP": aggregate.tokens_in_lp,
            "pairCount": aggregate.pair_count,
        }

    async def run(self) -> dict[str, Any]:
        document = self._store.load(OUTPUT_FILE) or {"lastUpdated": None}
        now = self._clock()
        timestamp = to_iso(now)

        for token in self._settings.tokens:
            metrics = await self.collect(token)
            if metrics is None:
                logger.error("metrics_collection_failed", token=token.symbol)
                document.setdefault(token.symbol, SnapshotStore().to_dict())
            else:
                snapshot = {"timestamp": timestamp, **metrics}
                store = append_snapshot(
                    SnapshotStore.from_dict(document.get(token.symbol)),
                    snapshot,
                    now,
                    self._settings.retention,
                )
                changes = changes_24h(store, metrics, now)
                document[token.symbol] = {**store.to_dict(), "changes24h": changes}
                logger.info(
                    "metrics_collected",
                    token=token.symbol,
                    price=metrics["price"],
                    liquidity=metrics["liquidity"],
                    liq_mcap_ratio=metrics["liqMcapRatio"],
                    holders=metrics["holders"],
                    snapshots=len(store.snapshots),
                    hourly=len(store.hourly),
                    daily=len(store.daily),
                )
            await asyncio.sleep(self._settings.pagination.call_delay)

        document["lastUpdated"] = timestamp
        self._store.save(OUTPUT_FILE, document)
        return document
