"""Fetch/merge/aggregate pipeline.

Provides burn record models, provider record normalization, cursor
pagination with watermark stop, incremental merge, lookback-window
aggregation with buyback attribution, and the snapshot rollup store.
"""

from pulsefeed.pipeline.merge import merge_by_key, merge_history
from pulsefeed.pipeline.models import (
    DEFAULT_WINDOWS,
    EXTENDED_WINDOWS,
    BurnRecord,
    PeriodBucket,
    Window,
)
from pulsefeed.pipeline.paginate import Page, PaginationResult, fetch_all
from pulsefeed.pipeline.periods import (
    aggregate,
    filter_by_counterparty,
    partition_by_counterparty,
    summarize,
)
from pulsefeed.pipeline.rollup import SnapshotStore, append_snapshot, changes_24h

__all__ = [
    "DEFAULT_WINDOWS",
    "EXTENDED_WINDOWS",
    "BurnRecord",
    "Page",
    "PaginationResult",
    "PeriodBucket",
    "SnapshotStore",
    "Window",
    "aggregate",
    "append_snapshot",
    "changes_24h",
    "fetch_all",
    "filter_by_counterparty",
    "merge_by_key",
    "merge_history",
    "partition_by_counterparty",
    "summarize",
]
