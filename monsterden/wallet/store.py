from __future__ import annotations

"""Persistence for wallet ledgers.

Every backend guarantees the two properties the ledger relies on: a wallet is
created at most once per owner, and a debit checks and writes the balance in
one atomic step. ``MemoryWalletStore`` gets this from a lock held for a single
record mutation, ``DynamoWalletStore`` from conditional writes.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

from botocore.exceptions import BotoCoreError, ClientError

from monsterden.common.dynamo import (
    as_int,
    dynamodb_table,
    is_conditional_failure,
    raise_storage_error,
)
from monsterden.common.errors import InsufficientFunds
from monsterden.common.storage import JSONStorage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WalletSnapshot:
    owner_id: str
    balance: int
    total_earned: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner_id": self.owner_id,
            "balance": self.balance,
            "total_earned": self.total_earned,
        }


class WalletStore(Protocol):
    def get_or_create(self, owner_id: str) -> WalletSnapshot:
        """Return the wallet, creating it at the starting balance if absent."""

    def apply_credit(self, owner_id: str, amount: int) -> WalletSnapshot:
        """Add ``amount`` to ``balance`` and ``total_earned``."""

    def apply_debit(self, owner_id: str, amount: int) -> WalletSnapshot:
        """Subtract ``amount`` or raise :class:`InsufficientFunds` untouched."""


class MemoryWalletStore:
    """Thread-safe in-process wallets with optional JSON snapshots."""

    def __init__(self, starting_balance: int, storage: Optional[JSONStorage] = None) -> None:
        self.starting_balance = starting_balance
        self._storage = storage
        self._lock = threading.Lock()
        self._records: Dict[str, Dict[str, int]] = {}
        if storage is not None:
            for owner_id, raw in storage.load().items():
                if isinstance(raw, dict):
                    self._records[owner_id] = {
                        "balance": int(raw.get("balance", starting_balance)),
                        "total_earned": int(raw.get("total_earned", 0)),
                    }

    def _commit(self, owner_id: str, record: Dict[str, int]) -> WalletSnapshot:
        # persist before publishing in memory so a failed save changes nothing
        if self._storage is not None:
            data = {key: dict(value) for key, value in self._records.items()}
            data[owner_id] = record
            self._storage.save(data)
        self._records[owner_id] = record
        return WalletSnapshot(owner_id, record["balance"], record["total_earned"])

    def _current(self, owner_id: str) -> Dict[str, int]:
        record = self._records.get(owner_id)
        if record is None:
            return {"balance": self.starting_balance, "total_earned": 0}
        return dict(record)

    def get_or_create(self, owner_id: str) -> WalletSnapshot:
        with self._lock:
            if owner_id in self._records:
                record = self._records[owner_id]
                return WalletSnapshot(owner_id, record["balance"], record["total_earned"])
            logger.info("Creating wallet for %s with %d coins", owner_id, self.starting_balance)
            return self._commit(owner_id, self._current(owner_id))

    def apply_credit(self, owner_id: str, amount: int) -> WalletSnapshot:
        with self._lock:
            record = self._current(owner_id)
            record["balance"] += amount
            record["total_earned"] += amount
            return self._commit(owner_id, record)

    def apply_debit(self, owner_id: str, amount: int) -> WalletSnapshot:
        with self._lock:
            record = self._current(owner_id)
            if record["balance"] - amount < 0:
                raise InsufficientFunds(record["balance"], amount)
            record["balance"] -= amount
            return self._commit(owner_id, record)


class DynamoWalletStore:
    """Wallets in a DynamoDB table keyed by ``owner_id``."""

    def __init__(self, table_name: str, starting_balance: int, table: Any | None = None) -> None:
        self.table_name = table_name
        self.starting_balance = starting_balance
        self.table = table

    def _table(self):
        if self.table is None:
            self.table = dynamodb_table(self.table_name)
        return self.table

    @staticmethod
    def _snapshot(item: Dict[str, Any]) -> WalletSnapshot:
        return WalletSnapshot(
            owner_id=str(item["owner_id"]),
            balance=as_int(item.get("balance")),
            total_earned=as_int(item.get("total_earned")),
        )

    def _read(self, owner_id: str) -> Optional[WalletSnapshot]:
        try:
            resp = self._table().get_item(Key={"owner_id": owner_id}, ConsistentRead=True)
        except (ClientError, BotoCoreError) as exc:
            raise_storage_error(exc)
        item = resp.get("Item")
        return self._snapshot(item) if item else None

    def get_or_create(self, owner_id: str) -> WalletSnapshot:
        existing = self._read(owner_id)
        if existing is not None:
            return existing
        item = {"owner_id": owner_id, "balance": self.starting_balance, "total_earned": 0}
        try:
            self._table().put_item(
                Item=item, ConditionExpression="attribute_not_exists(owner_id)"
            )
        except (ClientError, BotoCoreError) as exc:
            if not is_conditional_failure(exc):
                raise_storage_error(exc)
            # another request created it first
            created = self._read(owner_id)
            if created is not None:
                return created
            raise_storage_error(exc)
        logger.info("Creating wallet for %s with %d coins", owner_id, self.starting_balance)
        return self._snapshot(item)

    def apply_credit(self, owner_id: str, amount: int) -> WalletSnapshot:
        try:
            resp = self._table().update_item(
                Key={"owner_id": owner_id},
                UpdateExpression=(
                    "SET balance = if_not_exists(balance, :start) + :amount, "
                    "total_earned = if_not_exists(total_earned, :zero) + :amount"
                ),
                ExpressionAttributeValues={
                    ":amount": amount,
                    ":start": self.starting_balance,
                    ":zero": 0,
                },
                ReturnValues="ALL_NEW",
            )
        except (ClientError, BotoCoreError) as exc:
            raise_storage_error(exc)
        return self._snapshot(resp["Attributes"])

    def apply_debit(self, owner_id: str, amount: int) -> WalletSnapshot:
        self.get_or_create(owner_id)
        try:
            resp = self._table().update_item(
                Key={"owner_id": owner_id},
                UpdateExpression="SET balance = balance - :amount",
                ConditionExpression="balance >= :amount",
                ExpressionAttributeValues={":amount": amount},
                ReturnValues="ALL_NEW",
            )
        except (ClientError, BotoCoreError) as exc:
            if is_conditional_failure(exc):
                current = self._read(owner_id)
                balance = current.balance if current is not None else 0
                raise InsufficientFunds(balance, amount) from exc
            raise_storage_error(exc)
        return self._snapshot(resp["Attributes"])


__all__ = ["WalletSnapshot", "WalletStore", "MemoryWalletStore", "DynamoWalletStore"]
