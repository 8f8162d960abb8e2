"""Upstream API clients -- explorer, GeckoTerminal/CoinGecko, DexScreener, Moralis."""

from pulsefeed.providers.coingecko import CoinGeckoClient
from pulsefeed.providers.dexscreener import DexScreenerClient, PairAggregate
from pulsefeed.providers.explorer import ExplorerClient
from pulsefeed.providers.geckoterminal import Candle, GeckoTerminalClient, PoolInfo, PoolRef, Trade
from pulsefeed.providers.moralis import MoralisClient

__all__ = [
    "Candle",
    "CoinGeckoClient",
    "DexScreenerClient",
    "ExplorerClient",
    "GeckoTerminalClient",
    "MoralisClient",
    "PairAggregate",
    "PoolInfo",
    "PoolRef",
    "Trade",
]
