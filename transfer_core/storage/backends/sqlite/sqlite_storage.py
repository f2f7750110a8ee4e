"""
SQLite storage implementation for collection records.

All collections share one ``records`` table keyed by ``(collection,
record_id)``; the record body is stored as JSON. Where clauses are evaluated
in Python after loading a collection, which keeps the query semantics
identical to the in-memory backend.

A transaction is a dedicated connection in autocommit mode with an explicit
``BEGIN``, so its writes stay invisible to the main connection until commit.
The database therefore has to be a file; ``:memory:`` databases are private
to one connection.
"""

import json
import logging
import sqlite3
import uuid
from pathlib import Path
from typing import Dict, Any, List, Optional

import aiosqlite

from transfer_core.storage.filters import apply_filter
from transfer_core.storage.interfaces.collection_storage_interface import (
    CollectionStorage,
    StorageError,
    TransactionContext,
)


class SqliteTransaction(TransactionContext):
    """Transaction bound to its own aiosqlite connection."""

    def __init__(self, storage: "SqliteStorage", connection: aiosqlite.Connection):
        super().__init__()
        self.storage = storage
        self.connection = connection

    async def commit(self) -> None:
        self._ensure_active()
        # Writers arriving from here on must fail rather than autocommit.
        self.active = False
        try:
            await self.connection.execute("COMMIT")
        except sqlite3.Error as e:
            raise StorageError(f"Failed to commit transaction: {e}") from e
        finally:
            await self.connection.close()

    async def rollback(self) -> None:
        self._ensure_active()
        self.active = False
        try:
            await self.connection.execute("ROLLBACK")
        except sqlite3.Error as e:
            raise StorageError(f"Failed to roll back transaction: {e}") from e
        finally:
            await self.connection.close()


class SqliteStorage(CollectionStorage):
    """
    SQLite-based implementation of the CollectionStorage interface.
    """

    def __init__(self, database_path: str = "./data/transfer.db", id_field: str = "id"):
        """
        Initialize SqliteStorage with database path.

        Args:
            database_path: Path to the SQLite database file
            id_field: Name of the identifier field of every record
        """
        self.database_path = Path(database_path)
        self.id_field = id_field
        self.logger = logging.getLogger(__name__)

        # Connection state
        self._connected = False
        self._db_connection: Optional[aiosqlite.Connection] = None

    # Connection Management
    async def connect(self) -> None:
        """Establish connection to the SQLite database."""
        if self._connected:
            return

        try:
            self.database_path.parent.mkdir(parents=True, exist_ok=True)
            self._db_connection = await aiosqlite.connect(str(self.database_path))
            await self._create_tables()
        except sqlite3.Error as e:
            self.logger.error(f"Failed to connect to SQLite database: {e}")
            raise StorageError(f"Failed to connect to SQLite database: {e}") from e

        self._connected = True
        self.logger.info(f"Connected to SQLite database at {self.database_path}")

    async def close(self) -> None:
        """Close connection to the SQLite database."""
        if not self._connected:
            return

        if self._db_connection:
            await self._db_connection.close()
            self._db_connection = None

        self._connected = False
        self.logger.info("Disconnected from SQLite database")

    # Record Operations
    async def find(
        self,
        collection: str,
        where: Optional[Dict[str, Any]] = None,
        sort=None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        await self.connect()

        try:
            cursor = await self._db_connection.execute(
                "SELECT body FROM records WHERE collection = ? ORDER BY seq",
                (collection,),
            )
            rows = await cursor.fetchall()
            await cursor.close()
        except sqlite3.Error as e:
            raise StorageError(f"Error reading collection '{collection}': {e}") from e

        records = [json.loads(row[0]) for row in rows]
        try:
            return apply_filter(records, where, sort, limit)
        except ValueError as e:
            raise StorageError(f"Invalid query on collection '{collection}': {e}") from e

    async def create(
        self,
        collection: str,
        records: List[Dict[str, Any]],
        tx: Optional[TransactionContext] = None,
    ) -> int:
        await self.connect()

        rows = [self._to_row(collection, record) for record in records]

        if tx is not None:
            if not isinstance(tx, SqliteTransaction) or tx.storage is not self:
                raise StorageError("Transaction does not belong to this storage")
            tx._ensure_active()
            connection = tx.connection
        else:
            connection = self._db_connection

        try:
            await connection.executemany(
                "INSERT INTO records (collection, record_id, body) VALUES (?, ?, ?)",
                rows,
            )
            if tx is None:
                await connection.commit()
        except sqlite3.IntegrityError as e:
            if tx is None:
                await connection.rollback()
            raise StorageError(f"Duplicate id in collection '{collection}': {e}") from e
        except sqlite3.Error as e:
            if tx is None:
                await connection.rollback()
            raise StorageError(f"Error creating records in '{collection}': {e}") from e

        self.logger.debug(f"Created {len(rows)} records in '{collection}'")
        return len(rows)

    async def begin_transaction(self) -> SqliteTransaction:
        await self.connect()

        try:
            connection = await aiosqlite.connect(str(self.database_path), isolation_level=None)
            await connection.execute("BEGIN")
        except sqlite3.Error as e:
            raise StorageError(f"Failed to begin transaction: {e}") from e

        return SqliteTransaction(self, connection)

    async def count(self, collection: str) -> int:
        """Number of committed records in a collection."""
        await self.connect()
        cursor = await self._db_connection.execute(
            "SELECT COUNT(*) FROM records WHERE collection = ?", (collection,)
        )
        row = await cursor.fetchone()
        await cursor.close()
        return row[0]

    async def clear_all_data(self) -> None:
        """Remove every record from every collection."""
        await self.connect()
        await self._db_connection.execute("DELETE FROM records")
        await self._db_connection.commit()

    def _to_row(self, collection: str, record: Dict[str, Any]) -> tuple:
        if not isinstance(record, dict):
            raise StorageError(
                f"Records of '{collection}' must be objects, got {type(record).__name__}"
            )
        if record.get(self.id_field) is None:
            record = dict(record)
            record[self.id_field] = str(uuid.uuid4())
        try:
            body = json.dumps(record)
            record_id = json.dumps(record[self.id_field])
        except (TypeError, ValueError) as e:
            raise StorageError(f"Record of '{collection}' is not JSON serializable: {e}") from e
        return collection, record_id, body

    async def _create_tables(self):
        """Create database tables if they don't exist."""
        await self._db_connection.execute(
            """
            CREATE TABLE IF NOT EXISTS records (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                collection TEXT NOT NULL,
                record_id TEXT NOT NULL,  -- JSON-encoded id value
                body TEXT NOT NULL,  -- JSON record
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                UNIQUE (collection, record_id)
            )
        """
        )

        await self._db_connection.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_records_collection ON records (collection)
        """
        )

        await self._db_connection.commit()
