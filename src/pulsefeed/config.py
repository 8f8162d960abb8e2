"""Configuration system using pydantic-settings with environment variable loading.

Addresses, decimals and base URLs live here and are passed explicitly into
every client and job, so tests can substitute fake endpoints.
"""

from dataclasses import dataclass

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from pulsefeed.exceptions import MissingCredentialError

BURN_ADDRESS = "0x0000000000000000000000000000000000000369"


@dataclass(frozen=True)
class TokenConfig:
    """A tracked token and its main liquidity pair."""

    symbol: str
    address: str
    lp_pair: str
    decimals: int = 18
    total_supply: int = 0


@dataclass(frozen=True)
class WalletConfig:
    """A treasury wallet tracked by the ledger job."""

    key: str  # file prefix, e.g. "wallet1"
    address: str
    name: str


@dataclass(frozen=True)
class KnownToken:
    symbol: str
    name: str
    decimals: int


DEFAULT_TOKENS: tuple[TokenConfig, ...] = (
    TokenConfig(
        symbol="PTGC",
        address="0x94534EeEe131840b1c0F61847c572228bdfDDE93",
        lp_pair="0xf5a89a6487d62df5308cdda89c566c5b5ef94c11",  # PTGC/WPLS
        decimals=18,
        total_supply=333_333_333_333,
    ),
    TokenConfig(
        symbol="UFO",
        address="0x456548A9B56eFBbD89Ca0309edd17a9E20b04018",
        lp_pair="0xbea0e55b82eb975280041f3b49c4d0bd937b72d5",  # UFO/PLS
        decimals=18,
        total_supply=999_999_999_051,
    ),
)

DEFAULT_WALLETS: tuple[WalletConfig, ...] = (
    WalletConfig("wallet1", "0xeeac1da7f930078ab757ad8a64cf7c5e17b931e1", "Main Treasury"),
    WalletConfig("wallet2", "0x440773B5104a102c00EF26979a5c897155336A34", "Secondary"),
)

RH_CORE_TOKENS: dict[str, str] = {
    "WPLS": "0xa1077a294dde1b09bb078844df40758a5d0f9a27",
    "PLSX": "0x95b303987a60c71504d99aa1b13b4da07b0790ab",
    "INC": "0x2fa878ab3f87cc1c9737fc071108f904c0b0c95d",
    "HEX": "0x2b591e99afe9f32eaa6214f7b7629768c40eeb39",
    "EHEX": "0x57fde0a71132198bbec939b98976993d8d89d225",
}

# Lowercase contract address -> label used by the treasury ledger
KNOWN_TOKENS: dict[str, KnownToken] = {
    "0xa1077a294dde1b09bb078844df40758a5d0f9a27": KnownToken("WPLS", "Wrapped PLS", 18),
    "0x02dcdd04e3f455d838cd1249292c58f3b79e3c3c": KnownToken("WETH", "Wrapped ETH", 18),
    "0x94534eeee131840b1c0f61847c572228bdfdde93": KnownToken("PTGC", "PTGC", 18),
    "0x456548a9b56efbbd89ca0309edd17a9e20b04018": KnownToken("UFO", "UFO", 18),
    "0x95b303987a60c71504d99aa1b13b4da07b0790ab": KnownToken("PLSX", "PulseX", 18),
    "0x2fa878ab3f87cc1c9737fc071108f904c0b0c95d": KnownToken("INC", "Incentive", 18),
    "0x2b591e99afe9f32eaa6214f7b7629768c40eeb39": KnownToken("HEX", "HEX", 8),
    "0x57fde0a71132198bbec939b98976993d8d89d225": KnownToken("EHEX", "eHEX", 8),
    "0x0d86eb9f43c57f6ff3bc9e23d8f9d82503f0e84b": KnownToken("USDC", "USD Coin", 6),
    "0xefaeee334f0fd1712f9a8cc375f427d9cdd40d73": KnownToken("USDT", "Tether", 6),
    "0x6b175474e89094c44da98b954eedeac495271d0f": KnownToken("DAI", "DAI", 18),
}


class ApiSettings(BaseSettings):
    """Upstream API endpoints and credentials."""

    model_config = SettingsConfigDict(env_prefix="PULSEFEED_API_", populate_by_name=True)

    explorer_url: str = "https://api.scan.pulsechain.com/api/v2"
    geckoterminal_url: str = "https://api.geckoterminal.com/api/v2"
    coingecko_url: str = "https://pro-api.coingecko.com/api/v3"
    dexscreener_url: str = "https://api.dexscreener.com/latest/dex"
    moralis_url: str = "https://deep-index.moralis.io/api/v2.2"

    moralis_api_key: SecretStr = Field(
        default=SecretStr(""),
        validation_alias=AliasChoices("MORALIS_API_KEY", "PULSEFEED_API_MORALIS_API_KEY"),
    )
    coingecko_api_key: SecretStr = Field(
        default=SecretStr(""),
        validation_alias=AliasChoices("COINGECKO_API_KEY", "PULSEFEED_API_COINGECKO_API_KEY"),
    )

    network: str = "pulsechain"
    moralis_chain: str = "0x171"  # PulseChain mainnet (369)
    request_timeout: float = 30.0


class RetrySettings(BaseSettings):
    """Per-request retry policy."""

    model_config = SettingsConfigDict(env_prefix="PULSEFEED_RETRY_")

    max_attempts: int = 3
    rate_limit_delay: float = 60.0  # fixed wait after HTTP 429
    backoff_step: float = 2.0  # linear: step * attempt


class PaginationSettings(BaseSettings):
    """Cursor pagination pacing."""

    model_config = SettingsConfigDict(env_prefix="PULSEFEED_PAGINATION_")

    page_delay: float = 0.3
    error_delay: float = 3.0
    max_consecutive_errors: int = 5
    moralis_page_size: int = 100
    call_delay: float = 1.0  # courtesy gap between top-level calls


class RetentionSettings(BaseSettings):
    """Bounds on the persisted history arrays."""

    model_config = SettingsConfigDict(env_prefix="PULSEFEED_RETENTION_")

    max_fine_snapshots: int = 96  # 48h of 30-min data
    max_hourly_snapshots: int = 168  # 7 days
    max_daily_snapshots: int = 90
    fine_retention_hours: int = 48
    hourly_retention_days: int = 7
    daily_snapshot_days: int = 30
    history_cap: int = 500
    holder_history_cap: int = 90
    max_retained_burns: int = 100_000
    top_token_balances: int = 20
    max_pools: int = 15


class StorageSettings(BaseSettings):
    """Output location."""

    model_config = SettingsConfigDict(env_prefix="PULSEFEED_STORAGE_")

    data_dir: str = "data"


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    log_level: str = "INFO"
    api: ApiSettings = ApiSettings()
    retry: RetrySettings = RetrySettings()
    pagination: PaginationSettings = PaginationSettings()
    retention: RetentionSettings = RetentionSettings()
    storage: StorageSettings = StorageSettings()
    tokens: tuple[TokenConfig, ...] = DEFAULT_TOKENS
    wallets: tuple[WalletConfig, ...] = DEFAULT_WALLETS
    rh_cores: dict[str, str] = Field(default_factory=lambda: dict(RH_CORE_TOKENS))


def require_secret(secret: SecretStr, variable: str) -> str:
    """Return the secret's value, or raise if it is empty."""
    value = secret.get_secret_value().strip()
    if not value:
        raise MissingCredentialError(variable)
    return value
