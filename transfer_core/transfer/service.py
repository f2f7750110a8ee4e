"""
Entry points of the transfer engine.

``TransferService.export_proxy`` runs an export cascade and annotates the
result with download metadata. ``TransferService.import_proxy`` buffers an
input source, opens the one transaction of the import, runs the import
cascade under it and commits or rolls back exactly once.
"""

import time
from dataclasses import dataclass, field
from email.utils import formatdate
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from transfer_core.monitoring.structured_logger import LoggingContext, OperationLogger, get_logger
from transfer_core.storage.interfaces.collection_storage_interface import (
    CollectionStorage,
    StorageError,
    TransactionContext,
)
from transfer_core.transfer.codecs import CodecRegistry
from transfer_core.transfer.collection import Collection
from transfer_core.transfer.exporter import CascadeExporter
from transfer_core.transfer.importer import CascadeImporter
from transfer_core.transfer.registry import CollectionRegistry

CACHE_CONTROL = "max-age=0, no-cache, must-revalidate, proxy-revalidate"


@dataclass
class TransferMetadata:
    filename: str
    content_type: str
    content_length: int
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass
class ExportResponse:
    data: bytes
    metadata: TransferMetadata


@dataclass
class ImportResult:
    """
    Outcome of an import.

    ``transactional`` is False when no transaction could be opened and the
    records were written directly; ``warnings`` then explains why.
    """

    collection: str
    entries_imported: int = 0
    records_created: int = 0
    transactional: bool = True
    warnings: List[str] = field(default_factory=list)
    duration: float = 0.0


class TransferService:
    """Export and import entry points over a registry of collections."""

    def __init__(
        self,
        registry: CollectionRegistry,
        codecs: Optional[CodecRegistry] = None,
        compression: str = "deflated",
    ):
        self.registry = registry
        self.codecs = codecs or CodecRegistry()
        self.exporter = CascadeExporter(registry, self.codecs, compression)
        self.importer = CascadeImporter(registry, self.codecs)
        self.logger = get_logger(__name__, "TransferService")

    @classmethod
    def from_config(cls, config, storage: CollectionStorage) -> "TransferService":
        """
        Build a service for the collections declared in ``config``.

        Args:
            config: ``AppConfig`` instance
            storage: Backend shared by the declared collections
        """
        return cls(
            CollectionRegistry.from_config(config, storage),
            CodecRegistry.from_config(config.transfer),
            config.transfer.archive_compression.value,
        )

    def _collection(self, collection: Union[Collection, str]) -> Collection:
        if isinstance(collection, Collection):
            return collection
        return self.registry.lookup(collection)

    async def export_proxy(
        self,
        collection: Union[Collection, str],
        filter: Optional[Dict[str, Any]] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> ExportResponse:
        """
        Export a collection and its relations.

        Args:
            collection: Collection or registered collection name
            filter: ``{"where", "sort", "limit"}`` applied to the root
            context: Request metadata bound into the logging context

        Returns:
            Payload bytes plus download metadata
        """
        with LoggingContext.from_mapping(context):
            collection = self._collection(collection)
            with OperationLogger(self.logger, "export") as operation:
                operation.context["collection"] = collection.name
                payload = await self.exporter.export_cascade(collection, filter)

            metadata = self.describe(collection.name, payload.format, payload.data)
            return ExportResponse(payload.data, metadata)

    def describe(self, name: str, format: str, data: bytes) -> TransferMetadata:
        """Download metadata for a payload of ``format``."""
        filename = f"{name}.{format}"
        content_type = self.codecs.content_type_for(format)
        headers = {
            "Cache-Control": CACHE_CONTROL,
            "Last-Modified": formatdate(usegmt=True),
            "Content-Disposition": f"attachment; filename={filename}",
            "Content-Type": content_type,
            "Content-Length": str(len(data)),
        }
        if self.codecs.is_binary(format):
            headers["Content-Transfer-Encoding"] = "binary"
        return TransferMetadata(filename, content_type, len(data), headers)

    async def import_proxy(
        self,
        collection: Union[Collection, str],
        source: Any,
        context: Optional[Dict[str, Any]] = None,
    ) -> ImportResult:
        """
        Import a payload produced by ``export_proxy`` as one unit.

        Args:
            collection: Root collection of the payload
            source: bytes, a file path, a binary file object or an async
                iterator of byte chunks; read completely before importing
            context: Request metadata bound into the logging context

        Returns:
            Counters and the transactional mode of the import
        """
        started = time.time()
        with LoggingContext.from_mapping(context):
            collection = self._collection(collection)
            data = await read_source(source)
            result = ImportResult(collection=collection.name)

            tx: Optional[TransactionContext] = None
            try:
                tx = await collection.storage.begin_transaction()
            except (StorageError, NotImplementedError) as e:
                warning = f"Import of '{collection.name}' runs without a transaction: {e}"
                self.logger.warning(warning, collection=collection.name)
                result.transactional = False
                result.warnings.append(warning)

            with OperationLogger(self.logger, "import") as operation:
                operation.context["collection"] = collection.name
                try:
                    stats = await self.importer.import_cascade(collection, data, tx)
                    if tx is not None:
                        await tx.commit()
                except Exception:
                    if tx is not None and tx.active:
                        await self._rollback(tx, collection.name)
                    raise

            result.entries_imported = stats.entries_imported
            result.records_created = stats.records_created
            result.duration = time.time() - started
            return result

    async def _rollback(self, tx: TransactionContext, name: str):
        try:
            await tx.rollback()
        except StorageError as e:
            self.logger.error("Rollback failed", error=e, collection=name)


async def read_source(source: Any) -> bytes:
    """Read an import source completely into memory."""
    if isinstance(source, (bytes, bytearray, memoryview)):
        return bytes(source)
    if isinstance(source, (str, Path)):
        with open(source, "rb") as f:
            return f.read()
    if hasattr(source, "__aiter__"):
        chunks = []
        async for chunk in source:
            chunks.append(bytes(chunk))
        return b"".join(chunks)
    if hasattr(source, "read"):
        data = source.read()
        if isinstance(data, str):
            data = data.encode("utf-8")
        return bytes(data)
    raise TypeError(f"Unsupported import source: {type(source).__name__}")
