"""Holder history job -- the only writer of ``holder-history.json``."""

from collections.abc import Callable
from typing import Any

from pulsefeed.config import AppSettings
from pulsefeed.logging import get_logger
from pulsefeed.pipeline.models import now_ms, to_iso
from pulsefeed.pipeline.rollup import append_capped
from pulsefeed.providers.explorer import ExplorerClient
from pulsefeed.storage.files import JsonFileStore

logger = get_logger(__name__)

OUTPUT_FILE = "holder-history.json"
SOURCE = "PulseScan"


class HolderHistoryJob:
    """Appends ``{timestamp, <SYMBOL>: holders, ...}`` and keeps the newest entries."""

    def __init__(
        self,
        explorer: ExplorerClient,
        store: JsonFileStore,
        settings: AppSettings,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._explorer = explorer
        self._store = store
        self._settings = settings
        self._clock = clock

    async def run(self) -> dict[str, Any]:
        counts: dict[str, int | None] = {}
        for token in self._settings.tokens:
            counts[token.symbol] = await self._explorer.holder_count(token.address)

        timestamp = to_iso(self._clock())
        document = self._store.load(OUTPUT_FILE) or {}
        snapshots = document.get("snapshots")
        document["snapshots"] = append_capped(
            snapshots if isinstance(snapshots, list) else [],
            {"timestamp": timestamp, **counts},
            self._settings.retention.holder_history_cap,
        )
        document["lastUpdated"] = timestamp
        document["source"] = SOURCE
        self._store.save(OUTPUT_FILE, document)

        logger.info("holder_snapshot_saved", snapshots=len(document["snapshots"]), **counts)
        return document
