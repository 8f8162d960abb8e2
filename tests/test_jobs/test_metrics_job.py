"""Tests for MetricsHistoryJob."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest

from pulsefeed.jobs.metrics import OUTPUT_FILE, MetricsHistoryJob
from pulsefeed.pipeline.models import DAY_MS
from pulsefeed.providers.dexscreener import DexScreenerClient, PairAggregate
from pulsefeed.providers.explorer import ExplorerClient
from pulsefeed.providers.moralis import MoralisClient

NOW = int(datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc).timestamp() * 1000)

AGGREGATE = PairAggregate(
    price=0.002,
    mcap=1_000_000.0,
    volume24h=5000.0,
    liquidity=80_000.0,
    tokens_in_lp=4_000_000.0,
    liq_mcap_ratio=8.0,
    pair_count=3,
)


@pytest.fixture
def dexscreener() -> AsyncMock:
    dex = AsyncMock(spec=DexScreenerClient)

    async def aggregate(address: str) -> PairAggregate | None:
        # only PTGC has pairs
        return AGGREGATE if address.lower().startswith("0x9453") else None

    dex.aggregate.side_effect = aggregate
    return dex


@pytest.fixture
def explorer() -> AsyncMock:
    explorer = AsyncMock(spec=ExplorerClient)
    explorer.token_holders.return_value = 321
    return explorer


@pytest.fixture(autouse=True)
def no_sleep():  # type: ignore[no-untyped-def]
    with patch("pulsefeed.jobs.metrics.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        yield mock_sleep


class TestMetricsHistoryJob:
    @pytest.mark.asyncio
    async def test_snapshot_appended_and_missing_token_kept_empty(  # type: ignore[no-untyped-def]
        self, dexscreener, explorer, store, mock_settings
    ) -> None:
        job = MetricsHistoryJob(dexscreener, explorer, None, store, mock_settings, clock=lambda: NOW)

        document = await job.run()

        ptgc = document["PTGC"]
        assert len(ptgc["snapshots"]) == 1
        assert ptgc["snapshots"][0] == {
            "timestamp": "2024-01-10T12:00:00.000Z",
            "price": 0.002,
            "volume24h": 5000.0,
            "liquidity": 80_000.0,
            "mcap": 1_000_000.0,
            "liqMcapRatio": 8.0,
            "holders": 321,
            "tokensInLP": 4_000_000.0,
            "pairCount": 3,
        }
        assert all(value is None for value in ptgc["changes24h"].values())
        assert document["UFO"] == {"snapshots": [], "hourly": [], "daily": []}
        assert store.load(OUTPUT_FILE)["lastUpdated"] == "2024-01-10T12:00:00.000Z"

    @pytest.mark.asyncio
    async def test_changes_against_previous_day(self, dexscreener, explorer, store, mock_settings) -> None:  # type: ignore[no-untyped-def]
        clock = iter([NOW - DAY_MS, NOW])
        job = MetricsHistoryJob(dexscreener, explorer, None, store, mock_settings, clock=lambda: next(clock))
        await job.run()

        explorer.token_holders.return_value = 330
        document = await job.run()

        assert len(document["PTGC"]["snapshots"]) == 2
        assert document["PTGC"]["changes24h"]["holders"] == 9
        assert document["PTGC"]["changes24h"]["liquidity"] == pytest.approx(0.0)

    @pytest.mark.asyncio
    async def test_failed_token_keeps_existing_history(self, dexscreener, explorer, store, mock_settings) -> None:  # type: ignore[no-untyped-def]
        existing = {"snapshots": [{"timestamp": "2024-01-09T12:00:00.000Z", "price": 1.0}], "hourly": [], "daily": []}
        store.save(OUTPUT_FILE, {"UFO": existing})
        job = MetricsHistoryJob(dexscreener, explorer, None, store, mock_settings, clock=lambda: NOW)

        document = await job.run()

        assert document["UFO"] == existing


class TestHolderSource:
    @pytest.mark.asyncio
    async def test_moralis_total_preferred(self, dexscreener, explorer, store, mock_settings) -> None:  # type: ignore[no-untyped-def]
        moralis = AsyncMock(spec=MoralisClient)
        moralis.holder_total.return_value = 4210
        job = MetricsHistoryJob(dexscreener, explorer, moralis, store, mock_settings, clock=lambda: NOW)

        assert await job.holder_count(mock_settings.tokens[0]) == 4210
        explorer.token_holders.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_falls_back_to_explorer(self, dexscreener, explorer, store, mock_settings) -> None:  # type: ignore[no-untyped-def]
        moralis = AsyncMock(spec=MoralisClient)
        moralis.holder_total.return_value = None
        job = MetricsHistoryJob(dexscreener, explorer, moralis, store, mock_settings, clock=lambda: NOW)

        assert await job.holder_count(mock_settings.tokens[0]) == 321
        explorer.token_holders.assert_awaited_once()
