"""Entry points for the scheduled data jobs.

One console script per job, no flags. Each run:
1. AppSettings (environment / .env)
2. Logging setup
3. Credential check (missing key -> stderr, exit 1, nothing written)
4. JsonHttpClient (one aiohttp session for the whole run)
5. Provider clients and JsonFileStore
6. The job itself
"""

import asyncio
import sys
from collections.abc import Awaitable, Callable
from typing import Any

from pulsefeed.config import AppSettings, require_secret
from pulsefeed.exceptions import MissingCredentialError
from pulsefeed.http.client import JsonHttpClient
from pulsefeed.http.retry import RetryPolicy
from pulsefeed.jobs.burns import BurnHistoryJob
from pulsefeed.jobs.holders import HolderHistoryJob
from pulsefeed.jobs.market import MarketDataJob
from pulsefeed.jobs.metrics import MetricsHistoryJob
from pulsefeed.jobs.treasury import TreasuryLedgerJob
from pulsefeed.logging import get_logger, job_context, setup_logging
from pulsefeed.providers.coingecko import CoinGeckoClient
from pulsefeed.providers.dexscreener import DexScreenerClient
from pulsefeed.providers.explorer import ExplorerClient
from pulsefeed.providers.geckoterminal import GeckoTerminalClient
from pulsefeed.providers.moralis import MoralisClient
from pulsefeed.storage.files import JsonFileStore

logger = get_logger("pulsefeed.main")

JobRunner = Callable[[AppSettings, JsonHttpClient, JsonFileStore], Awaitable[Any]]


def _http_client(settings: AppSettings) -> JsonHttpClient:
    return JsonHttpClient(
        RetryPolicy.from_settings(settings.retry),
        timeout=settings.api.request_timeout,
    )


def _explorer(settings: AppSettings, http: JsonHttpClient) -> ExplorerClient:
    return ExplorerClient(http, settings.api.explorer_url)


def _moralis(settings: AppSettings, http: JsonHttpClient, api_key: str) -> MoralisClient:
    return MoralisClient(http, settings.api.moralis_url, api_key, settings.api.moralis_chain)


async def _run_burns(settings: AppSettings, http: JsonHttpClient, store: JsonFileStore) -> Any:
    gecko = GeckoTerminalClient(http, settings.api.geckoterminal_url, settings.api.network)
    return await BurnHistoryJob(_explorer(settings, http), gecko, store, settings).run()


async def _run_metrics(settings: AppSettings, http: JsonHttpClient, store: JsonFileStore) -> Any:
    moralis_key = settings.api.moralis_api_key.get_secret_value().strip()
    if not moralis_key:
        logger.warning("moralis_key_missing", fallback="explorer holder counts")
    moralis = _moralis(settings, http, moralis_key) if moralis_key else None
    dexscreener = DexScreenerClient(http, settings.api.dexscreener_url)
    return await MetricsHistoryJob(dexscreener, _explorer(settings, http), moralis, store, settings).run()


async def _run_market(settings: AppSettings, http: JsonHttpClient, store: JsonFileStore) -> Any:
    api_key = require_secret(settings.api.coingecko_api_key, "COINGECKO_API_KEY")
    coingecko = CoinGeckoClient(http, settings.api.coingecko_url, api_key, platform=settings.api.network)
    job = MarketDataJob(
        coingecko,
        coingecko.onchain(settings.api.network),
        DexScreenerClient(http, settings.api.dexscreener_url),
        _explorer(settings, http),
        store,
        settings,
    )
    return await job.run()


async def _run_treasury(settings: AppSettings, http: JsonHttpClient, store: JsonFileStore) -> Any:
    api_key = require_secret(settings.api.moralis_api_key, "MORALIS_API_KEY")
    return await TreasuryLedgerJob(_moralis(settings, http, api_key), store, settings).run()


async def _run_holders(settings: AppSettings, http: JsonHttpClient, store: JsonFileStore) -> Any:
    return await HolderHistoryJob(_explorer(settings, http), store, settings).run()


async def run(name: str, runner: JobRunner, settings: AppSettings) -> None:
    """Run one job with a fresh HTTP session."""
    store = JsonFileStore(settings.storage.data_dir)
    with job_context(name):
        logger.info("job_started", data_dir=str(store.root))
        async with _http_client(settings) as http:
            await runner(settings, http, store)
        logger.info("job_completed")


def _main(name: str, runner: JobRunner, required: tuple[tuple[str, str], ...] = ()) -> None:
    """Synchronous entry point shared by every job.

    ``required`` pairs an ApiSettings secret field with the environment
    variable reported when it is missing.
    """
    settings = AppSettings()
    setup_logging(settings.log_level)

    try:
        for field_name, variable in required:
            require_secret(getattr(settings.api, field_name), variable)
    except MissingCredentialError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        sys.exit(1)

    try:
        asyncio.run(run(name, runner, settings))
    except Exception:
        logger.exception("fatal_error", job=name)
        sys.exit(1)


def burns() -> None:
    _main("burns", _run_burns)


def metrics() -> None:
    _main("metrics", _run_metrics)


def market() -> None:
    _main("market", _run_market, required=(("coingecko_api_key", "COINGECKO_API_KEY"),))


def treasury() -> None:
    _main("treasury", _run_treasury, required=(("moralis_api_key", "MORALIS_API_KEY"),))


def holders() -> None:
    _main("holders", _run_holders)
