"""Three-tier snapshot store with lossy hourly/daily rollup.

Fine-grained snapshots are kept newest-first. When a tier exceeds its cap,
entries older than the tier's retention cutoff (and any overflow beyond
the cap) are grouped by hour or day and replaced by one averaged entry
per group in the next tier. Holder-style counts are rounded after
averaging; prices and volumes keep full float precision.
"""

from collections import defaultdict
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from pulsefeed.config import RetentionSettings
from pulsefeed.pipeline.models import DAY_MS, HOUR_MS, parse_iso_ms, to_iso

ROUNDED_FIELDS = frozenset({"holders", "pairCount"})
CHANGE_FIELDS = ("volume24h", "liquidity", "liqMcapRatio", "tokensInLP")

Snapshot = dict[str, Any]


@dataclass
class SnapshotStore:
    snapshots: list[Snapshot] = field(default_factory=list)
    hourly: list[Snapshot] = field(default_factory=list)
    daily: list[Snapshot] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "SnapshotStore":
        data = data or {}
        return cls(
            snapshots=list(data.get("snapshots") or []),
            hourly=list(data.get("hourly") or []),
            daily=list(data.get("daily") or []),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"snapshots": self.snapshots, "hourly": self.hourly, "daily": self.daily}


def _timestamp(entry: Snapshot) -> int:
    return parse_iso_ms(entry.get("timestamp")) or 0


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def average_snapshots(entries: Sequence[Snapshot], timestamp: str) -> Snapshot:
    """Average every numeric field across ``entries``; missing counts as 0."""
    fields: list[str] = []
    for entry in entries:
        for key, value in entry.items():
            if key != "timestamp" and _is_number(value) and key not in fields:
                fields.append(key)

    averaged: Snapshot = {"timestamp": timestamp}
    for name in fields:
        total = 0.0
        for entry in entries:
            value = entry.get(name)
            total += value if _is_number(value) else 0.0
        mean = total / len(entries)
        averaged[name] = round(mean) if name in ROUNDED_FIELDS else mean
    return averaged


def _hour_key(ts: int) -> str:
    return to_iso(ts)[:13]  # YYYY-MM-DDTHH


def _day_key(ts: int) -> str:
    return to_iso(ts)[:10]  # YYYY-MM-DD


def rollup_tier(
    entries: list[Snapshot],
    cap: int,
    cutoff_ms: int,
    group_key: Callable[[int], str],
    group_stamp: Callable[[str], str],
) -> tuple[list[Snapshot], list[Snapshot]]:
    """Return (kept entries, averaged entries for the next tier), newest first.

    Nothing happens while ``entries`` is within ``cap``. Otherwise every
    entry at or before ``cutoff_ms`` is rolled, and if the survivors still
    exceed ``cap`` the oldest of them are rolled too.
    """
    if len(entries) <= cap:
        return entries, []

    keep: list[Snapshot] = []
    rolled: list[Snapshot] = []
    for entry in sorted(entries, key=_timestamp, reverse=True):
        if _timestamp(entry) > cutoff_ms:
            keep.append(entry)
        else:
            rolled.append(entry)

    if len(keep) > cap:
        rolled = keep[cap:] + rolled
        keep = keep[:cap]

    groups: dict[str, list[Snapshot]] = defaultdict(list)
    for entry in rolled:
        groups[group_key(_timestamp(entry))].append(entry)

    averaged = [average_snapshots(groups[key], group_stamp(key)) for key in sorted(groups, reverse=True)]
    return keep, averaged


def append_snapshot(
    store: SnapshotStore,
    snapshot: Snapshot,
    now_ms: int,
    retention: RetentionSettings,
) -> SnapshotStore:
    """Prepend ``snapshot`` and roll older data down the tiers."""
    fine = [snapshot, *store.snapshots]

    fine, to_hourly = rollup_tier(
        fine,
        retention.max_fine_snapshots,
        now_ms - retention.fine_retention_hours * HOUR_MS,
        _hour_key,
        lambda key: f"{key}:00:00.000Z",
    )
    hourly = sorted([*to_hourly, *store.hourly], key=_timestamp, reverse=True)

    hourly, to_daily = rollup_tier(
        hourly,
        retention.max_hourly_snapshots,
        now_ms - retention.hourly_retention_days * DAY_MS,
        _day_key,
        lambda key: f"{key}T12:00:00.000Z",
    )
    daily = sorted([*to_daily, *store.daily], key=_timestamp, reverse=True)
    daily = daily[: retention.max_daily_snapshots]

    return SnapshotStore(snapshots=fine, hourly=hourly, daily=daily)


def _pct_change(current: Any, previous: Any) -> float | None:
    if not _is_number(current) or not _is_number(previous) or previous == 0:
        return None
    return (current - previous) / previous * 100


def changes_24h(
    store: SnapshotStore,
    current: Snapshot,
    now_ms: int,
    tolerance_ms: int = 2 * HOUR_MS,
) -> dict[str, float | int | None]:
    """Change versus the stored snapshot closest to 24h ago.

    Percentage change for volume/liquidity fields, absolute change for
    holders. All None when nothing lies within ``tolerance_ms`` of the
    target time.
    """
    target = now_ms - DAY_MS
    closest: Snapshot | None = None
    closest_diff: int | None = None
    for entry in (*store.snapshots, *store.hourly):
        diff = abs(_timestamp(entry) - target)
        if closest_diff is None or diff < closest_diff:
            closest, closest_diff = entry, diff

    empty: dict[str, float | int | None] = {name: None for name in (*CHANGE_FIELDS, "holders")}
    if closest is None or closest_diff is None or closest_diff > tolerance_ms:
        return empty

    changes: dict[str, float | int | None] = {
        name: _pct_change(current.get(name), closest.get(name)) for name in CHANGE_FIELDS
    }
    holders_now, holders_then = current.get("holders"), closest.get("holders")
    changes["holders"] = (
        holders_now - holders_then if _is_number(holders_now) and _is_number(holders_then) else None
    )
    return {name: changes[name] for name in empty}


def upsert_daily_snapshot(snapshots: Iterable[Snapshot], snapshot: Snapshot, limit: int) -> list[Snapshot]:
    """Put ``snapshot`` first, replacing any entry with the same "date"."""
    others = [s for s in snapshots if s.get("date") != snapshot.get("date")]
    return [snapshot, *others][:limit]


def day_over_day(snapshots: Sequence[Snapshot]) -> dict[str, float] | None:
    """Percentage change of holders and liquidity between the two newest daily entries."""
    if len(snapshots) < 2:
        return None
    today, yesterday = snapshots[0], snapshots[1]
    result: dict[str, float] = {}
    for name in ("holders", "liquidity"):
        change = _pct_change(today.get(name) or 0, yesterday.get(name) or 0)
        result[name] = change if change is not None else 0.0
    return result


def append_capped(entries: Iterable[Snapshot], entry: Snapshot, cap: int) -> list[Snapshot]:
    """Append ``entry`` to an oldest-first list and keep the newest ``cap``."""
    appended = [*entries, entry]
    return appended[-cap:] if cap > 0 else appended
