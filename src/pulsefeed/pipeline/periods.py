"""Lookback-window aggregation and buyback attribution over burn history."""

from collections.abc import Iterable, Sequence
from decimal import Decimal
from typing import Any

from pulsefeed.pipeline.models import DEFAULT_WINDOWS, BurnRecord, PeriodBucket, Window


def aggregate(
    history: Iterable[BurnRecord],
    now_ms: int,
    windows: Sequence[Window] = DEFAULT_WINDOWS,
) -> dict[str, PeriodBucket]:
    """Count and sum burns whose age is within each window.

    A record counts toward a window when ``now - timestamp <= duration``.
    Records from the future (clock skew) have negative age and count
    toward every window.
    """
    buckets = {window.value: PeriodBucket() for window in windows}
    for record in history:
        age = now_ms - record.timestamp_ms
        for window in windows:
            if age <= window.duration_ms:
                bucket = buckets[window.value]
                bucket.count += 1
                bucket.amount += record.amount
    return buckets


def total_amount(history: Iterable[BurnRecord]) -> Decimal:
    return sum((r.amount for r in history), Decimal("0"))


def filter_by_counterparty(history: Iterable[BurnRecord], address: str) -> list[BurnRecord]:
    """Burns whose sender equals ``address`` (case-insensitive)."""
    target = address.lower()
    if not target:
        return []
    return [r for r in history if r.counterparty and r.counterparty.lower() == target]


def partition_by_counterparty(
    history: Iterable[BurnRecord], address: str
) -> tuple[list[BurnRecord], list[BurnRecord]]:
    """Split history into (sent by ``address``, everything else)."""
    target = address.lower()
    matching: list[BurnRecord] = []
    rest: list[BurnRecord] = []
    for record in history:
        if target and record.counterparty and record.counterparty.lower() == target:
            matching.append(record)
        else:
            rest.append(record)
    return matching, rest


def summarize(
    history: Sequence[BurnRecord],
    now_ms: int,
    windows: Sequence[Window] = DEFAULT_WINDOWS,
) -> dict[str, Any]:
    """Dashboard block: totalBurned, burnCount and per-window periods."""
    periods = aggregate(history, now_ms, windows)
    return {
        "totalBurned": float(total_amount(history)),
        "burnCount": len(history),
        "periods": {name: bucket.to_dict() for name, bucket in periods.items()},
    }
