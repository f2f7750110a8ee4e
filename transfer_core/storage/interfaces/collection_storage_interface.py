"""
Abstract interface for collection storage backends.

This module defines the contract that every storage implementation must
follow so that the transfer engine can read and write records the same way
regardless of where they live.
"""

from abc import ABC, abstractmethod
from typing import Dict, Any, List, Optional, Union


class StorageError(Exception):
    """Raised when a storage backend fails to read or write records."""

    pass


class TransactionContext(ABC):
    """
    Handle for one unit of work opened by ``begin_transaction``.

    Writes performed under the context are invisible to other readers until
    ``commit`` and are discarded by ``rollback``. A context is terminated
    exactly once; afterwards ``active`` is False.
    """

    def __init__(self):
        self.active = True

    @abstractmethod
    async def commit(self) -> None:
        """Make every write performed under this context visible."""
        pass

    @abstractmethod
    async def rollback(self) -> None:
        """Discard every write performed under this context."""
        pass

    def _ensure_active(self):
        if not self.active:
            raise StorageError("Transaction is no longer active")


class CollectionStorage(ABC):
    """
    Abstract base class for collection storage backends.

    Records are plain dictionaries grouped by collection name.
    """

    # Connection Management
    @abstractmethod
    async def connect(self) -> None:
        """Establish connection to the storage backend."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close connection to the storage backend."""
        pass

    # Record Operations
    @abstractmethod
    async def find(
        self,
        collection: str,
        where: Optional[Dict[str, Any]] = None,
        sort: Union[str, List[str], Dict[str, int], None] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Query committed records of a collection.

        Args:
            collection: Collection name
            where: Where clause (see ``transfer_core.storage.filters``)
            sort: Sort specification
            limit: Maximum number of records to return

        Returns:
            Matching records, copies safe for the caller to mutate
        """
        pass

    @abstractmethod
    async def create(
        self,
        collection: str,
        records: List[Dict[str, Any]],
        tx: Optional[TransactionContext] = None,
    ) -> int:
        """
        Create records in a collection.

        Args:
            collection: Collection name
            records: Records to create
            tx: Transaction to stage the writes in; writes are applied
                immediately when None

        Returns:
            Number of records created

        Raises:
            StorageError: If a record cannot be stored
        """
        pass

    @abstractmethod
    async def begin_transaction(self) -> TransactionContext:
        """
        Open a new transaction.

        Raises:
            StorageError: If the backend cannot open a transaction
        """
        pass
