"""Scheduled jobs, one per output domain.

Each job reads its persisted JSON, fetches sequentially from its
providers, recomputes aggregates and rewrites its files.
"""

from pulsefeed.jobs.burns import BurnHistoryJob
from pulsefeed.jobs.holders import HolderHistoryJob
from pulsefeed.jobs.market import MarketDataJob
from pulsefeed.jobs.metrics import MetricsHistoryJob
from pulsefeed.jobs.treasury import TreasuryLedgerJob

__all__ = [
    "BurnHistoryJob",
    "HolderHistoryJob",
    "MarketDataJob",
    "MetricsHistoryJob",
    "TreasuryLedgerJob",
]
