"""Burn history job -- the only writer of ``burn-history.json``.

For each tracked token: load the sharded burn archive, page explorer
transfers to the burn address down to the newest stored burn, merge,
rewrite the shards, then recompute totals, lookback periods and the
buyback-burn split (burns sent by the token's own LP pair are the
automated swap-and-burn ones). Pool volume, liquidity and holder counts
are attached for the dashboard's daily view.
"""

import asyncio
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from pulsefeed.config import AppSettings, TokenConfig
from pulsefeed.http.retry import Failure
from pulsefeed.logging import get_logger
from pulsefeed.pipeline.merge import merge_history
from pulsefeed.pipeline.models import BurnRecord, Window, now_ms, to_iso
from pulsefeed.pipeline.paginate import Page, fetch_all
from pulsefeed.pipeline.periods import filter_by_counterparty, summarize
from pulsefeed.pipeline.rollup import day_over_day, upsert_daily_snapshot
from pulsefeed.providers.explorer import ExplorerClient
from pulsefeed.providers.geckoterminal import GeckoTerminalClient, summarize_volume
from pulsefeed.storage.files import JsonFileStore
from pulsefeed.storage.shards import ShardedArchive

logger = get_logger(__name__)

OUTPUT_FILE = "burn-history.json"

# Summary key for each token's buyback burns
BUYBACK_KEYS: dict[str, str] = {"PTGC": "PTGCbyUFO", "UFO": "UFOBuybacks"}

# Burns newer than this stay inline in the summary; the rest live in shards
INLINE_WINDOW = Window.D90


class BurnHistoryJob:
    """Incremental burn fetch, merge and period bucketing for every token.

    Usage:
        job = BurnHistoryJob(explorer, gecko, store, settings)
        document = await job.run()
    """

    def __init__(
        self,
        explorer: ExplorerClient,
        gecko: GeckoTerminalClient,
        store: JsonFileStore,
        settings: AppSettings,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._explorer = explorer
        self._gecko = gecko
        self._store = store
        self._settings = settings
        self._clock = clock

    def _archive(self, token: TokenConfig) -> ShardedArchive:
        return ShardedArchive(self._store, f"burns/{token.symbol}", records_key="burns")

    def load_history(self, token: TokenConfig, previous: dict[str, Any]) -> list[BurnRecord]:
        """Stored burns, newest first, from shards or the legacy inline array."""
        rows = self._archive(token).load_all()
        if not rows:
            block = previous.get(token.symbol)
            legacy = block.get("burns") if isinstance(block, dict) else None
            rows = [row for row in legacy if isinstance(row, dict)] if isinstance(legacy, list) else []
            if rows:
                logger.info("burn_history_legacy_loaded", token=token.symbol, burns=len(rows))
        history = [BurnRecord.from_compact(row) for row in rows]
        history.sort(key=lambda r: r.timestamp_ms, reverse=True)
        return history

    async def update_burns(self, token: TokenConfig, existing: list[BurnRecord]) -> list[BurnRecord]:
        """Fetch burns newer than ``existing`` and return the merged history."""
        watermark = existing[0].timestamp_ms if existing else None
        logger.info(
            "burn_fetch_started",
            token=token.symbol,
            mode="incremental" if watermark else "full",
            watermark=to_iso(watermark) if watermark else None,
        )

        async def fetch_page(params: dict[str, Any]) -> Page[BurnRecord] | Failure:
            return await self._explorer.burn_transfers_page(token, params)

        result = await fetch_all(
            fetch_page,
            self._settings.pagination,
            timestamp_of=lambda r: r.timestamp_ms,
            watermark=watermark,
            label=token.symbol,
        )

        if not result.complete:
            # a partial newest-first fetch must not advance the watermark
            logger.warning(
                "burn_fetch_incomplete",
                token=token.symbol,
                pages=result.pages,
                discarded=len(result.records),
            )
            return existing

        merged = merge_history(existing, result.records, self._settings.retention.max_retained_burns)
        logger.info(
            "burn_fetch_complete",
            token=token.symbol,
            new_burns=len(merged) - len(existing),
            total_burns=len(merged),
            pages=result.pages,
        )
        return merged

    def save_history(self, token: TokenConfig, history: list[BurnRecord], updated: str) -> list[str]:
        return self._archive(token).save_all(
            [record.to_compact(include_hash=True) for record in history],
            timestamp_of=lambda row: int(row["t"]),
            extra={"symbol": token.symbol, "lastUpdated": updated},
        )

    async def _market_block(self, token: TokenConfig, previous: dict[str, Any], today: str) -> dict[str, Any]:
        delay = self._settings.pagination.call_delay

        volume = summarize_volume(await self._gecko.daily_ohlcv(token.lp_pair, limit=90))
        await asyncio.sleep(delay)
        pool = await self._gecko.pool_info(token.lp_pair)
        await asyncio.sleep(delay)
        holders = await self._explorer.holder_count(token.address) or 0
        await asyncio.sleep(delay)

        block = previous.get(token.symbol)
        existing_snapshots = block.get("snapshots") if isinstance(block, dict) else None
        snapshot = {
            "date": today,
            "holders": holders,
            "liquidity": pool.liquidity if pool else 0.0,
            "price": pool.price_usd if pool else 0.0,
        }
        snapshots = upsert_daily_snapshot(
            existing_snapshots if isinstance(existing_snapshots, list) else [],
            snapshot,
            self._settings.retention.daily_snapshot_days,
        )
        return {
            "volume": volume,
            "pool": pool.to_dict() if pool else None,
            "snapshots": snapshots,
            "changes": day_over_day(snapshots),
        }

    async def run(self) -> dict[str, Any]:
        previous = self._store.load(OUTPUT_FILE) or {}
        started = self._clock()
        updated = to_iso(started)
        today = datetime.fromtimestamp(started / 1000, tz=timezone.utc).strftime("%Y-%m-%d")

        histories: dict[str, list[BurnRecord]] = {}
        for token in self._settings.tokens:
            existing = self.load_history(token, previous)
            histories[token.symbol] = await self.update_burns(token, existing)
            self.save_history(token, histories[token.symbol], updated)
            await asyncio.sleep(self._settings.pagination.call_delay)

        now = self._clock()
        inline_cutoff = now - INLINE_WINDOW.duration_ms
        document: dict[str, Any] = {"lastUpdated": updated}
        buybacks: dict[str, dict[str, Any]] = {}

        for token in self._settings.tokens:
            history = histories[token.symbol]
            document[token.symbol] = {
                **summarize(history, now),
                "burns": [r.to_compact() for r in history if r.timestamp_ms >= inline_cutoff],
                **await self._market_block(token, previous, today),
            }

            buyback_burns = filter_by_counterparty(history, token.lp_pair)
            buybacks[BUYBACK_KEYS.get(token.symbol, f"{token.symbol}Buybacks")] = summarize(
                buyback_burns, now
            )
            logger.info(
                "burn_summary",
                token=token.symbol,
                total_burned=document[token.symbol]["totalBurned"],
                burn_count=len(history),
                buyback_count=len(buyback_burns),
            )

        document.update(buybacks)
        self._store.save(OUTPUT_FILE, document)
        return document
