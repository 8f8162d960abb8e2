"""Tests for provider record normalization."""

from decimal import Decimal

import pytest

from pulsefeed.pipeline.normalize import (
    counterparty_of,
    normalize_explorer_transfer,
    normalize_token_balance,
    normalize_token_transfer,
    normalize_wallet_transaction,
    scale_amount,
    to_float,
)


class TestScalars:
    def test_scale_amount_is_exact(self) -> None:
        assert scale_amount("1234500000000000000", 18) == Decimal("1.2345")
        assert scale_amount(150000000, 8) == Decimal("1.5")

    @pytest.mark.parametrize("raw", [None, "", "abc", "1.5"])
    def test_scale_amount_bad_input_is_zero(self, raw: object) -> None:
        assert scale_amount(raw, 18) == Decimal("0")

    def test_to_float_lenient(self) -> None:
        assert to_float("2.5") == 2.5
        assert to_float(None) == 0.0
        assert to_float("n/a", default=-1.0) == -1.0
        assert to_float(True) == 0.0


class TestCounterparty:
    @pytest.mark.parametrize(
        "raw",
        [
            {"from": {"hash": "0xABC"}},
            {"from": {"address": "0xAbc"}},
            {"from": "0xabC"},
        ],
    )
    def test_all_sender_shapes(self, raw: dict) -> None:
        assert counterparty_of(raw) == "0xabc"

    def test_missing_sender(self) -> None:
        assert counterparty_of({}) == ""
        assert counterparty_of({"from": {"name": "x"}}) == ""


class TestExplorerTransfer:
    def test_full_record(self) -> None:
        record = normalize_explorer_transfer(
            {
                "timestamp": "2024-05-01T12:00:00.000000Z",
                "total": {"value": "2500000000000000000", "decimals": "18"},
                "from": {"hash": "0xLP"},
                "transaction_hash": "0xdead",
            },
            18,
        )

        assert record is not None
        assert record.timestamp_ms == 1714564800000
        assert record.amount == Decimal("2.5")
        assert record.counterparty == "0xlp"
        assert record.tx_hash == "0xdead"

    def test_without_timestamp_is_dropped(self) -> None:
        assert normalize_explorer_transfer({"total": {"value": "1"}}, 18) is None
        assert normalize_explorer_transfer({"timestamp": "garbage"}, 18) is None
        assert normalize_explorer_transfer("not a dict", 18) is None

    def test_missing_total_is_zero(self) -> None:
        record = normalize_explorer_transfer({"timestamp": "2024-05-01T12:00:00Z"}, 18)

        assert record is not None
        assert record.amount == Decimal("0")
        assert record.tx_hash is None


class TestLedgerRows:
    def test_wallet_transaction_shape(self) -> None:
        row = normalize_wallet_transaction(
            {
                "hash": "0x1",
                "block_number": "123",
                "block_timestamp": "2024-01-01T00:00:10.000Z",
                "from_address": "0xa",
                "to_address": "0xb",
                "value": "1000",
                "receipt_status": "1",
                "receipt_gas_used": "21000",
            }
        )

        assert row["timeStamp"] == "1704067210"
        assert row["block_number"] == "123"
        assert row["txreceipt_status"] == "1"
        assert row["isError"] == "0"
        assert row["gasUsed"] == "21000"
        assert row["internal_transactions"] == []

    def test_failed_transaction(self) -> None:
        row = normalize_wallet_transaction({"hash": "0x1", "receipt_status": "0"})

        assert row["isError"] == "1"
        assert row["timeStamp"] == "0"

    def test_known_token_transfer_uses_label(self) -> None:
        row = normalize_token_transfer(
            {
                "transaction_hash": "0x2",
                "block_number": "77",
                "block_timestamp": "2024-01-01T00:00:00Z",
                "address": "0x2B591e99afE9f32eAA6214f7B7629768c40Eeb39",
                "token_symbol": "WRONG",
                "token_decimals": "18",
                "value": "100000000",
            }
        )

        assert row["tokenSymbol"] == "HEX"
        assert row["tokenDecimal"] == "8"
        assert row["blockNumber"] == "77"
        assert row["possible_spam"] is False

    def test_unknown_token_transfer_keeps_provider_fields(self) -> None:
        row = normalize_token_transfer({"address": "0xnew", "token_symbol": "NEW", "token_decimals": "9"})

        assert row["tokenSymbol"] == "NEW"
        assert row["tokenDecimal"] == "9"

    def test_token_balance_scaled(self) -> None:
        row = normalize_token_balance(
            {"token_address": "0x0d86eb9f43c57f6ff3bc9e23d8f9d82503f0e84b", "balance": "2500000", "possible_spam": False}
        )

        assert row["symbol"] == "USDC"
        assert row["balance"] == 2.5
        assert row["decimals"] == 6

    def test_unknown_balance_defaults(self) -> None:
        row = normalize_token_balance({"token_address": "0xnew", "balance": "1000000000000000000"})

        assert row["symbol"] == "Unknown"
        assert row["balance"] == 1.0
