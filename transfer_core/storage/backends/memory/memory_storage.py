"""
In-memory storage implementation for collection records.

Records live in per-collection ordered dictionaries keyed by the id field.
Transactions stage their creates privately and apply them on commit, which
makes this backend suitable for tests and for embedding the transfer engine
in a process that owns its data.
"""

import asyncio
import copy
import logging
import uuid
from collections import OrderedDict
from typing import Dict, Any, List, Optional

from transfer_core.storage.filters import apply_filter
from transfer_core.storage.interfaces.collection_storage_interface import (
    CollectionStorage,
    StorageError,
    TransactionContext,
)


class MemoryTransaction(TransactionContext):
    """Transaction that buffers creates until commit."""

    def __init__(self, storage: "InMemoryStorage"):
        super().__init__()
        self.storage = storage
        self.pending: Dict[str, "OrderedDict[Any, Dict[str, Any]]"] = {}

    def stage(self, collection: str, record_id: Any, record: Dict[str, Any]):
        self._ensure_active()
        staged = self.pending.setdefault(collection, OrderedDict())
        if record_id in staged:
            raise StorageError(
                f"Duplicate id {record_id!r} in collection '{collection}' within transaction"
            )
        staged[record_id] = record

    async def commit(self) -> None:
        self._ensure_active()
        self.active = False
        pending, self.pending = self.pending, {}
        await self.storage._apply(pending)

    async def rollback(self) -> None:
        self._ensure_active()
        discarded = sum(len(records) for records in self.pending.values())
        self.pending = {}
        self.active = False
        self.storage.logger.debug(f"Rolled back transaction, discarded {discarded} records")


class InMemoryStorage(CollectionStorage):
    """
    Dictionary-backed implementation of the CollectionStorage interface.

    Uniqueness of the id field is enforced per collection, both against
    committed records and against records staged in the same transaction.
    """

    def __init__(self, id_field: str = "id", fail_transactions: bool = False):
        """
        Initialize InMemoryStorage.

        Args:
            id_field: Name of the identifier field of every record
            fail_transactions: Refuse to open transactions, for backends
                embedded in environments without transaction support
        """
        self.id_field = id_field
        self.fail_transactions = fail_transactions
        self.logger = logging.getLogger(__name__)

        self._collections: Dict[str, "OrderedDict[Any, Dict[str, Any]]"] = {}
        self._commit_lock = asyncio.Lock()
        self._connected = False

    # Connection Management
    async def connect(self) -> None:
        if self._connected:
            return
        self._connected = True
        self.logger.info("Connected to in-memory storage")

    async def close(self) -> None:
        if not self._connected:
            return
        self._connected = False
        self.logger.info("Disconnected from in-memory storage")

    # Record Operations
    async def find(
        self,
        collection: str,
        where: Optional[Dict[str, Any]] = None,
        sort=None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        records = list(self._collections.get(collection, {}).values())
        try:
            matched = apply_filter(records, where, sort, limit)
        except ValueError as e:
            raise StorageError(f"Invalid query on collection '{collection}': {e}") from e
        return copy.deepcopy(matched)

    async def create(
        self,
        collection: str,
        records: List[Dict[str, Any]],
        tx: Optional[TransactionContext] = None,
    ) -> int:
        prepared = [self._prepare(collection, record) for record in records]

        if tx is None:
            await self._apply({collection: OrderedDict(prepared)})
        else:
            if not isinstance(tx, MemoryTransaction) or tx.storage is not self:
                raise StorageError("Transaction does not belong to this storage")
            committed = self._collections.get(collection, {})
            for record_id, record in prepared:
                if record_id in committed:
                    raise StorageError(
                        f"Duplicate id {record_id!r} in collection '{collection}'"
                    )
                tx.stage(collection, record_id, record)

        self.logger.debug(f"Created {len(prepared)} records in '{collection}'")
        return len(prepared)

    async def begin_transaction(self) -> MemoryTransaction:
        if self.fail_transactions:
            raise StorageError("Transactions are not supported by this storage")
        return MemoryTransaction(self)

    def _prepare(self, collection: str, record: Dict[str, Any]) -> tuple:
        if not isinstance(record, dict):
            raise StorageError(
                f"Records of '{collection}' must be objects, got {type(record).__name__}"
            )
        record = copy.deepcopy(record)
        if record.get(self.id_field) is None:
            record[self.id_field] = str(uuid.uuid4())
        record_id = record[self.id_field]
        try:
            hash(record_id)
        except TypeError as e:
            raise StorageError(f"Unusable id {record_id!r} in collection '{collection}'") from e
        return record_id, record

    async def _apply(self, pending: Dict[str, "OrderedDict[Any, Dict[str, Any]]"]):
        async with self._commit_lock:
            for collection, staged in pending.items():
                committed = self._collections.get(collection, {})
                duplicates = [record_id for record_id in staged if record_id in committed]
                if duplicates:
                    raise StorageError(
                        f"Duplicate ids {duplicates!r} in collection '{collection}'"
                    )
            for collection, staged in pending.items():
                self._collections.setdefault(collection, OrderedDict()).update(staged)

    def count(self, collection: str) -> int:
        """Number of committed records in a collection."""
        return len(self._collections.get(collection, {}))

    def clear(self) -> None:
        self._collections.clear()
