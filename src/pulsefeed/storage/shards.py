"""Half-year sharding for large record arrays.

A record array is split into one document per calendar half-year
(``<prefix>-2025-H1.json``, ``<prefix>-2025-H2.json``) so no single file
grows without bound. Shards are always written whole. A shard that exists
but cannot be parsed is never deleted; before being overwritten it is
renamed to ``.corrupt`` so its records can be recovered by hand.
"""

from collections import defaultdict
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from pulsefeed.logging import get_logger
from pulsefeed.storage.files import JsonFileStore

logger = get_logger(__name__)


def half_year_key(timestamp_ms: int) -> str:
    """Epoch ms -> "YYYY-H1" (Jan-Jun) or "YYYY-H2" (Jul-Dec), UTC."""
    dt = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
    return f"{dt.year}-H{1 if dt.month <= 6 else 2}"


class ShardedArchive:
    """Record array persisted as half-year shard documents.

    Args:
        store: Underlying JSON store.
        prefix: Path prefix relative to the store root, e.g. "burns/ptgc".
        records_key: Name of the array inside each shard document.
    """

    def __init__(self, store: JsonFileStore, prefix: str, records_key: str = "records") -> None:
        self._store = store
        self._prefix = prefix
        self._records_key = records_key

    def shard_names(self) -> list[str]:
        return self._store.glob(f"{self._prefix}-*-H[12].json")

    def load_all(self) -> list[dict[str, Any]]:
        """Concatenate records from every shard, newest shard first."""
        records: list[dict[str, Any]] = []
        for name in sorted(self.shard_names(), reverse=True):
            document = self._store.load(name) or {}
            items = document.get(self._records_key)
            if isinstance(items, list):
                records.extend(item for item in items if isinstance(item, dict))
        return records

    def save_all(
        self,
        records: list[dict[str, Any]],
        timestamp_of: Callable[[dict[str, Any]], int],
        extra: dict[str, Any] | None = None,
    ) -> list[str]:
        """Rewrite every shard from ``records`` and remove emptied shards.

        Records keep their given order within each shard. Returns the
        written shard names, newest first.
        """
        groups: dict[str, list[dict[str, Any]]] = defaultdict(list)
        for record in records:
            groups[half_year_key(timestamp_of(record))].append(record)

        existing = set(self.shard_names())
        unreadable = {name for name in existing if self._store.load(name) is None}

        written: list[str] = []
        for key in sorted(groups, reverse=True):
            name = f"{self._prefix}-{key}.json"
            if name in unreadable:
                self._store.set_aside(name)
            document = {
                **(extra or {}),
                "period": key,
                "count": len(groups[key]),
                self._records_key: groups[key],
            }
            self._store.save(name, document, pretty=False)
            written.append(name)

        for stale in sorted(existing - set(written)):
            if stale in unreadable:
                logger.warning("shard_unreadable_kept", shard=stale)
                continue
            self._store.delete(stale)

        logger.debug("shards_written", prefix=self._prefix, shards=len(written), records=len(records))
        return written
