"""Incremental merge of freshly fetched records into persisted history."""

from collections.abc import Callable, Hashable, Iterable
from typing import Any, TypeVar

from pulsefeed.pipeline.models import BurnRecord

T = TypeVar("T")


def merge_history(
    existing: Iterable[BurnRecord],
    incoming: Iterable[BurnRecord],
    max_records: int | None = None,
) -> list[BurnRecord]:
    """Combine burn history with new records, newest first.

    Records are identified by tx hash. Existing records without a hash
    (saved before hashes were kept) are always retained and a hashed
    incoming record is never matched against them. Incoming records
    without a hash fall back to a (timestamp, amount, counterparty) key.
    Running the merge twice with the same ``incoming`` gives the same
    result as running it once.
    """
    merged: list[BurnRecord] = []
    seen_hashes: set[str] = set()
    seen_unhashed: set[tuple[int, Any, str]] = set()

    for record in existing:
        if record.tx_hash:
            if record.tx_hash in seen_hashes:
                continue
            seen_hashes.add(record.tx_hash)
        else:
            seen_unhashed.add((record.timestamp_ms, record.amount, record.counterparty))
        merged.append(record)

    for record in incoming:
        if record.tx_hash:
            if record.tx_hash in seen_hashes:
                continue
            seen_hashes.add(record.tx_hash)
        else:
            key = (record.timestamp_ms, record.amount, record.counterparty)
            if key in seen_unhashed:
                continue
            seen_unhashed.add(key)
        merged.append(record)

    merged.sort(key=lambda r: r.timestamp_ms, reverse=True)

    if max_records is not None and len(merged) > max_records:
        merged = merged[:max_records]
    return merged


def merge_by_key(
    new_items: Iterable[T],
    existing_items: Iterable[T],
    key: Callable[[T], Hashable],
    sort_key: Callable[[T], Any],
) -> list[T]:
    """Dedupe new-then-existing by ``key`` and sort descending by ``sort_key``.

    New items win over existing ones with the same key.
    """
    seen: set[Hashable] = set()
    merged: list[T] = []
    for item in (*new_items, *existing_items):
        k = key(item)
        if k in seen:
            continue
        seen.add(k)
        merged.append(item)
    merged.sort(key=sort_key, reverse=True)
    return merged
