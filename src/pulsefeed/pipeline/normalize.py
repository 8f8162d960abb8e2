"""Map provider-specific records into fixed internal shapes.

Every parser here fails closed: a missing or malformed field becomes a
zero/empty default, and only a record with no usable timestamp is
dropped. Business logic downstream never inspects raw provider dicts.
"""

from decimal import Decimal, InvalidOperation
from typing import Any

from pulsefeed.config import KNOWN_TOKENS, KnownToken
from pulsefeed.pipeline.models import BurnRecord, parse_iso_ms


def to_float(value: Any, default: float = 0.0) -> float:
    """Lenient float parse for provider numbers that arrive as strings."""
    if value is None or isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def to_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def scale_amount(raw_value: Any, decimals: int) -> Decimal:
    """Integer token units -> Decimal token amount."""
    if raw_value in (None, ""):
        return Decimal("0")
    try:
        units = Decimal(int(str(raw_value)))
    except (TypeError, ValueError, InvalidOperation):
        return Decimal("0")
    return units.scaleb(-decimals)


def counterparty_of(raw: dict[str, Any]) -> str:
    """Sender address of an explorer transfer, lowercased.

    The explorer has shipped "from" as an object with "hash", as an object
    with "address", and as a plain string.
    """
    sender = raw.get("from")
    if isinstance(sender, dict):
        address = sender.get("hash") or sender.get("address") or ""
        return str(address).lower()
    if isinstance(sender, str):
        return sender.lower()
    return ""


def normalize_explorer_transfer(raw: Any, decimals: int) -> BurnRecord | None:
    """Explorer token transfer -> BurnRecord, or None without a timestamp."""
    if not isinstance(raw, dict):
        return None
    timestamp = parse_iso_ms(raw.get("timestamp"))
    if timestamp is None:
        return None

    total = raw.get("total")
    value = total.get("value") if isinstance(total, dict) else None
    tx_hash = raw.get("transaction_hash") or raw.get("tx_hash")

    return BurnRecord(
        timestamp_ms=timestamp,
        amount=scale_amount(value, decimals),
        counterparty=counterparty_of(raw),
        tx_hash=str(tx_hash) if tx_hash else None,
    )


def _seconds(iso_timestamp: Any) -> str:
    ms = parse_iso_ms(iso_timestamp if isinstance(iso_timestamp, str) else None)
    return str((ms or 0) // 1000)


def normalize_wallet_transaction(raw: dict[str, Any]) -> dict[str, Any]:
    """Moralis wallet transaction -> explorer-compatible ledger row."""
    succeeded = str(raw.get("receipt_status")) == "1"
    return {
        "hash": raw.get("hash") or "",
        "block_number": raw.get("block_number") or "0",
        "timeStamp": _seconds(raw.get("block_timestamp")),
        "from": raw.get("from_address") or "",
        "to": raw.get("to_address") or "",
        "value": raw.get("value") or "0",
        "gas": raw.get("gas") or "0",
        "gasPrice": raw.get("gas_price") or "0",
        "gasUsed": raw.get("receipt_gas_used") or "0",
        "input": raw.get("input") or "0x",
        "txreceipt_status": "1" if succeeded else "0",
        "isError": "0" if succeeded else "1",
        "method_label": raw.get("method_label") or "",
        "internal_transactions": raw.get("internal_transactions") or [],
    }


def normalize_token_transfer(
    raw: dict[str, Any],
    known_tokens: dict[str, KnownToken] = KNOWN_TOKENS,
) -> dict[str, Any]:
    """Moralis ERC-20 transfer -> explorer-compatible ledger row."""
    contract = str(raw.get("address") or "")
    known = known_tokens.get(contract.lower())
    decimals = known.decimals if known else (to_int(raw.get("token_decimals")) or 18)
    return {
        "hash": raw.get("transaction_hash") or "",
        "blockNumber": raw.get("block_number") or "0",
        "timeStamp": _seconds(raw.get("block_timestamp")),
        "from": raw.get("from_address") or "",
        "to": raw.get("to_address") or "",
        "value": raw.get("value") or "0",
        "contractAddress": contract,
        "tokenName": known.name if known else (raw.get("token_name") or ""),
        "tokenSymbol": known.symbol if known else (raw.get("token_symbol") or ""),
        "tokenDecimal": str(decimals),
        "possible_spam": bool(raw.get("possible_spam", False)),
        "verified_contract": bool(raw.get("verified_contract", False)),
    }


def normalize_token_balance(
    raw: dict[str, Any],
    known_tokens: dict[str, KnownToken] = KNOWN_TOKENS,
) -> dict[str, Any]:
    """Moralis ERC-20 balance -> labelled balance row."""
    address = str(raw.get("token_address") or "")
    known = known_tokens.get(address.lower())
    decimals = known.decimals if known else (to_int(raw.get("decimals")) or 18)
    return {
        "address": address,
        "symbol": known.symbol if known else (raw.get("symbol") or "Unknown"),
        "name": known.name if known else (raw.get("name") or ""),
        "balance": float(scale_amount(raw.get("balance"), decimals)),
        "decimals": decimals,
        "possible_spam": bool(raw.get("possible_spam", False)),
        "verified_contract": bool(raw.get("verified_contract", False)),
    }
