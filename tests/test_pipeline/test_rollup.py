"""Tests for the three-tier snapshot store and its rollups."""

import math
from datetime import datetime, timezone

import pytest
from hypothesis import given
from hypothesis import strategies as st

from pulsefeed.config import RetentionSettings
from pulsefeed.pipeline.models import DAY_MS, HOUR_MS, parse_iso_ms, to_iso
from pulsefeed.pipeline.rollup import (
    SnapshotStore,
    append_capped,
    append_snapshot,
    average_snapshots,
    changes_24h,
    day_over_day,
    upsert_daily_snapshot,
)

NOW = int(datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc).timestamp() * 1000)
MINUTE_MS = 60_000
RETENTION = RetentionSettings()


def _at(iso: str, **fields: float) -> dict:
    return {"timestamp": iso, **fields}


def _aged(age_ms: int, **fields: float) -> dict:
    return {"timestamp": to_iso(NOW - age_ms), **fields}


# =============================================================================
# Averaging
# =============================================================================


class TestAverageSnapshots:
    def test_missing_fields_count_as_zero(self) -> None:
        avg = average_snapshots([_aged(0, price=2.0, volume24h=10.0), _aged(0, price=4.0)], "T")

        assert avg == {"timestamp": "T", "price": 3.0, "volume24h": 5.0}

    def test_holders_rounded_other_fields_exact(self) -> None:
        avg = average_snapshots([_aged(0, holders=10, price=1.0), _aged(0, holders=11, price=1.5), _aged(0, holders=11, price=2.0)], "T")

        assert avg["holders"] == 11
        assert avg["price"] == pytest.approx(1.5)

    def test_non_numeric_values_ignored(self) -> None:
        avg = average_snapshots([{"timestamp": "a", "holders": None, "price": 1.0}], "T")

        assert avg == {"timestamp": "T", "price": 1.0}

    @given(st.lists(st.floats(min_value=0, max_value=1e12, allow_nan=False), min_size=1, max_size=30))
    def test_average_is_mean_of_rolled_values(self, values: list[float]) -> None:
        avg = average_snapshots([{"timestamp": "x", "liquidity": v} for v in values], "T")

        assert math.isclose(avg["liquidity"], sum(values) / len(values), rel_tol=1e-9, abs_tol=1e-9)


# =============================================================================
# Fine -> hourly
# =============================================================================


class TestAppendSnapshot:
    def test_under_cap_only_prepends(self) -> None:
        store = SnapshotStore(snapshots=[_aged(60 * HOUR_MS, price=1.0)])

        result = append_snapshot(store, _aged(0, price=2.0), NOW, RETENTION)

        assert [s["price"] for s in result.snapshots] == [2.0, 1.0]
        assert result.hourly == []

    def test_cap_plus_one_rolls_old_entries_by_hour(self) -> None:
        recent = [_aged(i * 10 * MINUTE_MS, price=5.0, holders=100) for i in range(1, 91)]
        old = [
            _at("2024-01-08T09:05:00.000Z", price=1.0, holders=10),
            _at("2024-01-08T09:25:00.000Z", price=2.0, holders=11),
            _at("2024-01-08T09:45:00.000Z", price=3.0, holders=11),
            _at("2024-01-08T08:10:00.000Z", price=4.0, holders=20),
            _at("2024-01-08T08:50:00.000Z", price=6.0, holders=20),
            _at("2024-01-08T07:30:00.000Z", price=7.0, holders=30),
        ]
        store = SnapshotStore(snapshots=recent + old)
        assert len(store.snapshots) + 1 == RETENTION.max_fine_snapshots + 1

        result = append_snapshot(store, _aged(0, price=9.0, holders=101), NOW, RETENTION)

        assert len(result.snapshots) == 91
        assert len(result.snapshots) <= RETENTION.max_fine_snapshots
        assert [h["timestamp"] for h in result.hourly] == [
            "2024-01-08T09:00:00.000Z",
            "2024-01-08T08:00:00.000Z",
            "2024-01-08T07:00:00.000Z",
        ]
        assert result.hourly[0]["price"] == pytest.approx(2.0)
        assert result.hourly[0]["holders"] == 11
        assert result.hourly[1]["price"] == pytest.approx(5.0)
        assert result.hourly[2] == {"timestamp": "2024-01-08T07:00:00.000Z", "price": 7.0, "holders": 30}

    def test_overflow_within_retention_still_bounded(self) -> None:
        store = SnapshotStore(snapshots=[_aged(i * 20 * MINUTE_MS, price=float(i)) for i in range(1, 97)])

        result = append_snapshot(store, _aged(0, price=0.0), NOW, RETENTION)

        assert len(result.snapshots) == RETENTION.max_fine_snapshots
        assert len(result.hourly) == 1
        assert result.hourly[0]["price"] == 96.0

    def test_hourly_rolls_into_daily(self) -> None:
        recent = [_aged(i * HOUR_MS, price=1.0) for i in range(1, 167)]
        old = [
            _at("2024-01-01T03:00:00.000Z", price=2.0),
            _at("2024-01-01T15:00:00.000Z", price=4.0),
            _at("2023-12-31T10:00:00.000Z", price=8.0),
        ]
        store = SnapshotStore(hourly=recent + old, daily=[_at("2023-12-01T12:00:00.000Z", price=1.0)])

        result = append_snapshot(store, _aged(0, price=1.0), NOW, RETENTION)

        assert len(result.hourly) == 166
        assert [d["timestamp"] for d in result.daily] == [
            "2024-01-01T12:00:00.000Z",
            "2023-12-31T12:00:00.000Z",
            "2023-12-01T12:00:00.000Z",
        ]
        assert result.daily[0]["price"] == pytest.approx(3.0)

    def test_daily_trimmed_to_cap(self) -> None:
        daily = [_aged((10 + i) * DAY_MS, price=1.0) for i in range(RETENTION.max_daily_snapshots + 5)]

        result = append_snapshot(SnapshotStore(daily=daily), _aged(0), NOW, RETENTION)

        assert len(result.daily) == RETENTION.max_daily_snapshots
        assert parse_iso_ms(result.daily[0]["timestamp"]) == NOW - 10 * DAY_MS


# =============================================================================
# 24h changes
# =============================================================================


class TestChanges24h:
    def test_percentage_and_absolute_holders(self) -> None:
        store = SnapshotStore(
            snapshots=[_aged(0), _aged(DAY_MS - 30 * MINUTE_MS, liquidity=100.0, volume24h=50.0, holders=10)]
        )
        current = {"liquidity": 150.0, "volume24h": 25.0, "holders": 15, "tokensInLP": 5.0}

        changes = changes_24h(store, current, NOW)

        assert changes["liquidity"] == pytest.approx(50.0)
        assert changes["volume24h"] == pytest.approx(-50.0)
        assert changes["holders"] == 5
        assert changes["tokensInLP"] is None
        assert changes["liqMcapRatio"] is None

    def test_nothing_near_target_gives_nulls(self) -> None:
        store = SnapshotStore(hourly=[_aged(DAY_MS + 3 * HOUR_MS, liquidity=1.0)])

        changes = changes_24h(store, {"liquidity": 2.0}, NOW)

        assert set(changes) == {"volume24h", "liquidity", "liqMcapRatio", "tokensInLP", "holders"}
        assert all(value is None for value in changes.values())


# =============================================================================
# Daily snapshots and capped histories
# =============================================================================


class TestDailySnapshots:
    def test_upsert_replaces_same_date(self) -> None:
        existing = [{"date": "2024-01-10", "holders": 1}, {"date": "2024-01-09", "holders": 2}]

        result = upsert_daily_snapshot(existing, {"date": "2024-01-10", "holders": 3}, limit=30)

        assert result == [{"date": "2024-01-10", "holders": 3}, {"date": "2024-01-09", "holders": 2}]

    def test_upsert_limit(self) -> None:
        existing = [{"date": f"2023-12-{d:02d}"} for d in range(31, 0, -1)]

        assert len(upsert_daily_snapshot(existing, {"date": "2024-01-01"}, limit=30)) == 30

    def test_day_over_day(self) -> None:
        snapshots = [{"holders": 110, "liquidity": 50.0}, {"holders": 100, "liquidity": 0}]

        assert day_over_day(snapshots) == {"holders": pytest.approx(10.0), "liquidity": 0.0}
        assert day_over_day(snapshots[:1]) is None

    def test_append_capped_keeps_newest_oldest_first(self) -> None:
        entries = [{"n": i} for i in range(5)]

        assert append_capped(entries, {"n": 5}, cap=3) == [{"n": 3}, {"n": 4}, {"n": 5}]
