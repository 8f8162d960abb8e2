"""DexScreener pair aggregation for a token."""

from dataclasses import dataclass
from typing import Any

from pulsefeed.http.client import JsonHttpClient
from pulsefeed.http.retry import Failure
from pulsefeed.logging import get_logger
from pulsefeed.pipeline.normalize import to_float

logger = get_logger(__name__)


@dataclass(frozen=True)
class PairAggregate:
    """Totals across every pair that trades a token.

    Price and market cap come from the deepest pair; liquidity, volume
    and tokens-in-LP are summed over all pairs.
    """

    price: float
    mcap: float
    volume24h: float
    liquidity: float
    tokens_in_lp: float
    liq_mcap_ratio: float
    pair_count: int


def _nested(pair: dict[str, Any], outer: str, inner: str) -> float:
    block = pair.get(outer)
    return to_float(block.get(inner)) if isinstance(block, dict) else 0.0


def tokens_in_pair(pair: dict[str, Any], token_address: str) -> float:
    """Amount of ``token_address`` held by the pair's reserves."""
    base = pair.get("baseToken")
    base_address = str(base.get("address") or "") if isinstance(base, dict) else ""
    side = "base" if base_address.lower() == token_address.lower() else "quote"
    return _nested(pair, "liquidity", side)


def aggregate_pairs(pairs: list[dict[str, Any]], token_address: str) -> PairAggregate | None:
    if not pairs:
        return None
    ranked = sorted(pairs, key=lambda p: _nested(p, "liquidity", "usd"), reverse=True)
    liquidity = sum(_nested(p, "liquidity", "usd") for p in ranked)
    volume = sum(_nested(p, "volume", "h24") for p in ranked)
    tokens_in_lp = sum(tokens_in_pair(p, token_address) for p in ranked)

    main = ranked[0]
    mcap = to_float(main.get("marketCap")) or to_float(main.get("fdv"))
    ratio = liquidity / mcap * 100 if mcap > 0 else 0.0
    return PairAggregate(
        price=to_float(main.get("priceUsd")),
        mcap=mcap,
        volume24h=volume,
        liquidity=liquidity,
        tokens_in_lp=tokens_in_lp,
        liq_mcap_ratio=round(ratio, 2),
        pair_count=len(ranked),
    )


class DexScreenerClient:
    def __init__(self, http: JsonHttpClient, base_url: str) -> None:
        self._http = http
        self._base_url = base_url.rstrip("/")

    async def token_pairs(self, token_address: str) -> list[dict[str, Any]] | None:
        """Raw pair objects for a token; None on request failure."""
        data = await self._http.get_json(f"{self._base_url}/tokens/{token_address}")
        if isinstance(data, Failure):
            return None
        pairs = data.get("pairs") if isinstance(data, dict) else None
        if not isinstance(pairs, list):
            return []
        return [p for p in pairs if isinstance(p, dict)]

    async def aggregate(self, token_address: str) -> PairAggregate | None:
        pairs = await self.token_pairs(token_address)
        if not pairs:
            logger.warning("dexscreener_no_pairs", token=token_address)
            return None
        return aggregate_pairs(pairs, token_address)

    async def tokens_in_lp(self, token_address: str) -> float | None:
        pairs = await self.token_pairs(token_address)
        if pairs is None:
            return None
        total = sum(tokens_in_pair(p, token_address) for p in pairs)
        logger.info("dexscreener_tokens_in_lp", token=token_address, tokens_in_lp=total)
        return total
