"""Data models for burn history and period aggregates.

Burn amounts use Decimal: raw on-chain integers are scaled by the token's
decimals exactly, and only become floats when written out as JSON.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any

HOUR_MS = 3_600_000
DAY_MS = 24 * HOUR_MS


class Window(str, Enum):
    """Lookback windows, valued by their dashboard key."""

    H12 = "h12"
    H24 = "h24"
    D7 = "d7"
    D30 = "d30"
    D90 = "d90"

    @property
    def duration_ms(self) -> int:
        return _WINDOW_MS[self]


_WINDOW_MS: dict[Window, int] = {
    Window.H12: 12 * HOUR_MS,
    Window.H24: 24 * HOUR_MS,
    Window.D7: 7 * DAY_MS,
    Window.D30: 30 * DAY_MS,
    Window.D90: 90 * DAY_MS,
}

DEFAULT_WINDOWS: tuple[Window, ...] = (Window.H12, Window.H24, Window.D7, Window.D30)
EXTENDED_WINDOWS: tuple[Window, ...] = DEFAULT_WINDOWS + (Window.D90,)


@dataclass(frozen=True)
class BurnRecord:
    """One transfer of a token to the burn address."""

    timestamp_ms: int
    amount: Decimal
    counterparty: str = ""  # lowercase sender address, "" when unknown
    tx_hash: str | None = None  # absent on records saved before hashes were kept

    def to_compact(self, include_hash: bool = False) -> dict[str, Any]:
        """Dashboard shape: {"t", "a", "f"} plus "h" for the archive."""
        data: dict[str, Any] = {
            "t": self.timestamp_ms,
            "a": float(self.amount),
            "f": self.counterparty,
        }
        if include_hash and self.tx_hash:
            data["h"] = self.tx_hash
        return data

    @classmethod
    def from_compact(cls, data: dict[str, Any]) -> "BurnRecord":
        """Inverse of to_compact; tolerates the legacy {"t", "a"} shape."""
        return cls(
            timestamp_ms=int(data.get("t") or 0),
            amount=Decimal(str(data.get("a") or 0)),
            counterparty=str(data.get("f") or "").lower(),
            tx_hash=data.get("h") or None,
        )


@dataclass
class PeriodBucket:
    """Count and summed amount of burns inside one lookback window."""

    count: int = 0
    amount: Decimal = Decimal("0")

    def to_dict(self) -> dict[str, Any]:
        return {"count": self.count, "amount": float(self.amount)}


def now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def to_iso(timestamp_ms: int) -> str:
    """Epoch ms -> "YYYY-MM-DDTHH:MM:SS.mmmZ"."""
    dt = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def parse_iso_ms(value: str | None) -> int | None:
    """ISO-8601 string (with "Z" or offset) -> epoch ms, None if unparseable."""
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)
