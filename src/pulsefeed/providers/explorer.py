"""PulseScan (Blockscout v2) explorer client: burn transfers and holder counts."""

from typing import Any

from pulsefeed.config import BURN_ADDRESS, TokenConfig
from pulsefeed.http.client import JsonHttpClient
from pulsefeed.http.retry import Failure
from pulsefeed.logging import get_logger
from pulsefeed.pipeline.models import BurnRecord
from pulsefeed.pipeline.normalize import normalize_explorer_transfer, to_int
from pulsefeed.pipeline.paginate import Page

logger = get_logger(__name__)


def parse_transfer_page(data: Any, decimals: int) -> Page[BurnRecord]:
    """Explorer transfer page -> normalized records plus next cursor."""
    if not isinstance(data, dict):
        return Page(items=[])
    raw_items = data.get("items")
    items: list[BurnRecord] = []
    if isinstance(raw_items, list):
        for raw in raw_items:
            record = normalize_explorer_transfer(raw, decimals)
            if record is not None:
                items.append(record)
    next_params = data.get("next_page_params")
    return Page(items=items, next_params=next_params if isinstance(next_params, dict) else None)


class ExplorerClient:
    """Free block-explorer API; no credentials."""

    def __init__(self, http: JsonHttpClient, base_url: str) -> None:
        self._http = http
        self._base_url = base_url.rstrip("/")

    async def burn_transfers_page(
        self,
        token: TokenConfig,
        params: dict[str, Any],
    ) -> Page[BurnRecord] | Failure:
        """One page of transfers of ``token`` to the burn address, newest first."""
        data = await self._http.get_json(
            f"{self._base_url}/tokens/{token.address}/transfers",
            params={"to_address_hash": BURN_ADDRESS, **params},
        )
        if isinstance(data, Failure):
            return data
        return parse_transfer_page(data, token.decimals)

    async def holder_count(self, token_address: str) -> int | None:
        """Holder count from the token counters endpoint (0 when absent)."""
        data = await self._http.get_json(f"{self._base_url}/tokens/{token_address}/counters")
        if isinstance(data, Failure):
            return None
        holders = to_int(data.get("token_holders_count")) if isinstance(data, dict) else None
        logger.info("explorer_holder_count", token=token_address, holders=holders or 0)
        return holders or 0

    async def token_holders(self, token_address: str) -> int | None:
        """Holder count from the token info endpoint, None when not reported."""
        data = await self._http.get_json(f"{self._base_url}/tokens/{token_address}")
        if isinstance(data, Failure) or not isinstance(data, dict):
            return None
        holders = to_int(data.get("holders"))
        logger.debug("explorer_token_holders", token=token_address, holders=holders)
        return holders
