"""Treasury ledger job (Moralis) -- wallet history, balances and summary.

Native transactions and ERC-20 transfers are fetched incrementally from
the block after the highest one already stored, converted to the
explorer-compatible row shape the ledger page reads, merged and written
back as half-year shards.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from pulsefeed.config import AppSettings, WalletConfig
from pulsefeed.http.retry import Failure
from pulsefeed.logging import get_logger
from pulsefeed.pipeline.merge import merge_by_key
from pulsefeed.pipeline.models import now_ms, to_iso
from pulsefeed.pipeline.normalize import to_int
from pulsefeed.pipeline.paginate import Page, fetch_all
from pulsefeed.providers.moralis import MoralisClient
from pulsefeed.storage.files import JsonFileStore
from pulsefeed.storage.shards import ShardedArchive

logger = get_logger(__name__)

SUMMARY_FILE = "treasury-summary.json"

Row = dict[str, Any]
FetchWalletPage = Callable[[str, dict[str, Any]], Awaitable[Page[Row] | Failure]]


def transaction_key(tx: Row) -> str:
    return str(tx.get("hash") or "")


def transfer_key(tx: Row) -> str:
    """One tx can move several tokens; hash alone is not unique."""
    return "-".join(str(tx.get(name) or "") for name in ("hash", "contractAddress", "from", "to", "value"))


def timestamp_seconds(tx: Row) -> int:
    return to_int(tx.get("timeStamp")) or 0


def highest_block(rows: list[Row], field: str) -> int:
    return max((to_int(row.get(field)) or 0 for row in rows), default=0)


class LedgerStream:
    """One sharded, incrementally fetched row stream of a wallet.

    Args:
        kind: File-name part, "txns" or "tokens".
        records_key: Array name inside each shard ("transactions"/"transfers").
        block_field: Row field holding the block number.
        key: Dedup key for merging.
    """

    def __init__(self, kind: str, records_key: str, block_field: str, key: Callable[[Row], str]) -> None:
        self.kind = kind
        self.records_key = records_key
        self.block_field = block_field
        self.key = key

    def archive(self, store: JsonFileStore, wallet: WalletConfig) -> ShardedArchive:
        return ShardedArchive(store, f"treasury/{wallet.key}-{self.kind}", records_key=self.records_key)

    def legacy_file(self, wallet: WalletConfig) -> str:
        return f"treasury-{wallet.key}-{self.kind}.json"


TRANSACTIONS = LedgerStream("txns", "transactions", "block_number", transaction_key)
TRANSFERS = LedgerStream("tokens", "transfers", "blockNumber", transfer_key)


class TreasuryLedgerJob:
    def __init__(
        self,
        moralis: MoralisClient,
        store: JsonFileStore,
        settings: AppSettings,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._moralis = moralis
        self._store = store
        self._settings = settings
        self._clock = clock

    def load_rows(self, stream: LedgerStream, wallet: WalletConfig) -> list[Row]:
        """Stored rows from shards, else from the pre-sharding single file."""
        rows = stream.archive(self._store, wallet).load_all()
        if rows:
            return rows
        legacy = self._store.load(stream.legacy_file(wallet)) or {}
        items = legacy.get(stream.records_key)
        return [row for row in items if isinstance(row, dict)] if isinstance(items, list) else []

    async def update_stream(
        self,
        stream: LedgerStream,
        wallet: WalletConfig,
        fetch_page: FetchWalletPage,
        updated: str,
    ) -> tuple[list[Row], list[str]]:
        """Fetch, merge and persist one stream; returns (rows, shard names)."""
        existing = self.load_rows(stream, wallet)
        last_block = highest_block(existing, stream.block_field)
        params: dict[str, Any] = {"limit": self._settings.pagination.moralis_page_size}
        if last_block:
            params["from_block"] = last_block + 1
        logger.info(
            "ledger_fetch_started",
            wallet=wallet.key,
            stream=stream.kind,
            mode="incremental" if last_block else "full",
            from_block=params.get("from_block"),
            existing=len(existing),
        )

        async def page(cursor_params: dict[str, Any]) -> Page[Row] | Failure:
            return await fetch_page(wallet.address, cursor_params)

        result = await fetch_all(
            page,
            self._settings.pagination,
            initial_params=params,
            label=f"{wallet.key}-{stream.kind}",
        )

        if result.complete:
            rows = merge_by_key(result.records, existing, key=stream.key, sort_key=timestamp_seconds)
        else:
            # a partial fetch must not advance the stored block height
            logger.warning(
                "ledger_fetch_incomplete",
                wallet=wallet.key,
                stream=stream.kind,
                discarded=len(result.records),
            )
            rows = existing

        logger.info(
            "ledger_fetch_complete",
            wallet=wallet.key,
            stream=stream.kind,
            fetched=len(result.records),
            total=len(rows),
        )
        shards = stream.archive(self._store, wallet).save_all(
            rows,
            timestamp_of=lambda row: timestamp_seconds(row) * 1000,
            extra={"wallet": wallet.address, "lastUpdated": updated},
        )
        return rows, shards

    async def collect_wallet(self, wallet: WalletConfig, updated: str) -> tuple[dict[str, Any], dict[str, list[str]]]:
        delay = self._settings.pagination.call_delay

        txns, txn_files = await self.update_stream(
            TRANSACTIONS, wallet, self._moralis.wallet_transactions_page, updated
        )
        await asyncio.sleep(delay)
        transfers, transfer_files = await self.update_stream(
            TRANSFERS, wallet, self._moralis.token_transfers_page, updated
        )
        await asyncio.sleep(delay)
        balances = await self._moralis.token_balances(wallet.address)
        await asyncio.sleep(delay)
        native = await self._moralis.native_balance(wallet.address)

        summary = {
            "address": wallet.address,
            "name": wallet.name,
            "transactionCount": len(txns),
            "tokenTransferCount": len(transfers),
            "nativeBalance": native,
            "tokenBalances": balances[: self._settings.retention.top_token_balances],
            "oldestTx": txns[-1].get("timeStamp") if txns else None,
            "newestTx": txns[0].get("timeStamp") if txns else None,
        }
        files = {f"{wallet.key}Txns": txn_files, f"{wallet.key}Tokens": transfer_files}
        return summary, files

    async def run(self) -> dict[str, Any]:
        updated = to_iso(self._clock())
        document: dict[str, Any] = {"lastUpdated": updated, "dataSource": "Moralis"}
        files: dict[str, list[str]] = {}
        totals = {"transactionCount": 0, "tokenTransferCount": 0, "totalPLSBalance": 0.0}

        for wallet in self._settings.wallets:
            summary, wallet_files = await self.collect_wallet(wallet, updated)
            document[wallet.key] = summary
            files.update(wallet_files)
            totals["transactionCount"] += summary["transactionCount"]
            totals["tokenTransferCount"] += summary["tokenTransferCount"]
            totals["totalPLSBalance"] += summary["nativeBalance"]
            logger.info(
                "wallet_summary",
                wallet=wallet.key,
                transactions=summary["transactionCount"],
                token_transfers=summary["tokenTransferCount"],
                native_balance=summary["nativeBalance"],
                tokens=len(summary["tokenBalances"]),
            )
            await asyncio.sleep(self._settings.pagination.call_delay)

        document["totals"] = totals
        document["files"] = files
        self._store.save(SUMMARY_FILE, document)
        return document
