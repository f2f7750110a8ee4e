"""
Cascading import of an exported payload back into its collections.

The importer never commits or rolls back: the transaction it receives is
owned by the caller that opened it.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional

from transfer_core.monitoring.structured_logger import get_logger
from transfer_core.storage.interfaces.collection_storage_interface import (
    StorageError,
    TransactionContext,
)
from transfer_core.transfer.archive import Archive, ArchiveEntry, is_hidden_entry
from transfer_core.transfer.codecs import CodecRegistry
from transfer_core.transfer.collection import CapabilityKind, Collection
from transfer_core.transfer.exceptions import CreateError, ParseError, TransferError
from transfer_core.transfer.registry import CollectionRegistry


@dataclass
class ImportStats:
    entries_imported: int = 0
    entries_skipped: int = 0
    records_created: int = 0


class CascadeImporter:
    """
    Replays a payload produced by ``CascadeExporter``.

    Archive entries of one level are imported concurrently. Once all of
    them have settled, the first failure in entry order propagates and
    leaves the rollback to the transaction owner.
    """

    def __init__(self, registry: CollectionRegistry, codecs: Optional[CodecRegistry] = None):
        self.registry = registry
        self.codecs = codecs or CodecRegistry()
        self.logger = get_logger(__name__, "CascadeImporter")

    async def import_cascade(
        self,
        collection: Collection,
        data: bytes,
        tx: Optional[TransactionContext] = None,
        stats: Optional[ImportStats] = None,
    ) -> ImportStats:
        stats = stats if stats is not None else ImportStats()

        if not collection.has_relations:
            await self._import_payload(collection, data, collection.record_format, tx, stats)
            return stats

        try:
            archive = Archive.from_bytes(data)
        except TransferError as e:
            e.collection = e.collection or collection.name
            raise

        entries = []
        for entry in archive.list_entries():
            if is_hidden_entry(entry.name):
                stats.entries_skipped += 1
                self.logger.debug("Skipping hidden archive entry", entry=entry.name)
                continue
            entries.append(entry)

        # Every sibling settles before a failure propagates, so no write can
        # reach the transaction after the caller has rolled it back.
        results = await asyncio.gather(
            *(self._import_entry(collection, entry, tx, stats) for entry in entries),
            return_exceptions=True,
        )
        failures = [result for result in results if isinstance(result, BaseException)]
        if failures:
            if len(failures) > 1:
                self.logger.debug(
                    "Sibling entries failed",
                    collection=collection.name,
                    errors=[type(failure).__name__ for failure in failures[1:]],
                )
            raise failures[0]
        return stats

    async def _import_entry(
        self,
        parent: Collection,
        entry: ArchiveEntry,
        tx: Optional[TransactionContext],
        stats: ImportStats,
    ):
        target = parent if entry.target == parent.name else self.registry.lookup(entry.target)

        if target.importer.kind is CapabilityKind.CUSTOM or entry.extension != "zip":
            await self._import_payload(target, entry.payload, entry.extension, tx, stats)
        else:
            await self.import_cascade(target, entry.payload, tx, stats)

    async def _import_payload(
        self,
        collection: Collection,
        data: bytes,
        extension: str,
        tx: Optional[TransactionContext],
        stats: ImportStats,
    ):
        if collection.importer.kind is CapabilityKind.CUSTOM:
            created = await collection.importer.func(collection, data, tx)
            stats.entries_imported += 1
            if isinstance(created, int):
                stats.records_created += created
            return

        created = await self._default_import(collection, data, extension, tx)
        stats.entries_imported += 1
        stats.records_created += created

    async def _default_import(
        self,
        collection: Collection,
        data: bytes,
        extension: str,
        tx: Optional[TransactionContext],
    ) -> int:
        try:
            parsed = self.codecs.deserialize(extension, data)
        except TransferError as e:
            e.collection = e.collection or collection.name
            raise

        if isinstance(parsed, dict):
            records = [parsed]
        elif isinstance(parsed, list):
            records = parsed
        else:
            raise ParseError(
                f"Expected a list of records, got {type(parsed).__name__}",
                collection=collection.name,
                phase="parse",
            )

        if not records:
            return 0

        try:
            created = await collection.create(records, tx)
        except StorageError as e:
            raise CreateError(
                f"Failed to create {len(records)} records: {e}",
                collection=collection.name,
                phase="create",
            ) from e

        self.logger.debug("Created records", collection=collection.name, count=created)
        return created
