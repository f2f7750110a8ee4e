"""
Cascading export of a collection and its relations.

A collection without relations exports to a single serialized payload. A
collection with relations exports to an archive holding its own records as
``<name>.<format>`` plus one entry per relation, produced by recursing into
the related collection with a filter derived from the parent records.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from transfer_core.monitoring.structured_logger import get_logger
from transfer_core.storage.interfaces.collection_storage_interface import StorageError
from transfer_core.transfer.archive import Archive
from transfer_core.transfer.codecs import CodecRegistry
from transfer_core.transfer.collection import CapabilityKind, Collection
from transfer_core.transfer.exceptions import ExportError, TransferError
from transfer_core.transfer.registry import CollectionRegistry
from transfer_core.transfer.relations import resolve


@dataclass
class ExportPayload:
    """Result of one level of the export cascade."""

    data: bytes
    format: str


class CascadeExporter:
    """
    Walks the relation graph from a root collection and builds the payload.

    Sibling relations are exported concurrently. The first failure aborts the
    whole export; no partial output is ever returned.
    """

    def __init__(
        self,
        registry: CollectionRegistry,
        codecs: Optional[CodecRegistry] = None,
        compression: str = "deflated",
    ):
        self.registry = registry
        self.codecs = codecs or CodecRegistry()
        self.compression = compression
        self.logger = get_logger(__name__, "CascadeExporter")

    async def export_cascade(
        self, collection: Collection, filter: Optional[Dict[str, Any]] = None
    ) -> ExportPayload:
        filter = filter or {}
        log = self.logger.with_context(collection=collection.name)
        log.debug("Exporting collection", relations=len(collection.export_with))

        records = await self._fetch(collection, filter)
        record_format = collection.record_format

        try:
            data = self.codecs.serialize(record_format, records)
        except (TypeError, ValueError) as e:
            raise ExportError(
                f"Failed to serialize records as {record_format}: {e}",
                collection=collection.name,
                phase="serialize",
            ) from e

        if not collection.has_relations:
            log.debug("Exported leaf collection", format=record_format, size=len(data))
            return ExportPayload(data, record_format)

        if isinstance(records, (bytes, bytearray)):
            raise ExportError(
                "Custom export returned bytes; related collections cannot be resolved",
                collection=collection.name,
                phase="resolve",
            )

        archive = Archive(self.compression)
        archive.add_entry(f"{collection.name}.{record_format}", data)

        children = []
        for descriptor in collection.export_with:
            child = self.registry.lookup(descriptor.target_collection)
            try:
                where = resolve(records, descriptor, collection.id_field, child.id_field)
            except TransferError as e:
                e.collection = e.collection or collection.name
                e.phase = e.phase or "resolve"
                raise
            children.append((child, where))

        payloads = await asyncio.gather(
            *(self.export_cascade(child, {"where": where}) for child, where in children)
        )

        for (child, _), payload in zip(children, payloads):
            archive.add_entry(f"{child.name}.{payload.format}", payload.data)

        data = archive.seal().to_bytes()
        log.debug(
            "Exported collection with relations",
            entries=archive.names(),
            records=len(records),
            size=len(data),
        )
        return ExportPayload(data, "zip")

    async def _fetch(
        self, collection: Collection, filter: Dict[str, Any]
    ) -> Union[List[Dict[str, Any]], bytes]:
        try:
            if collection.exporter.kind is CapabilityKind.CUSTOM:
                return await collection.exporter.func(collection, filter)
            return await collection.query_raw(filter)
        except TransferError:
            raise
        except StorageError as e:
            raise ExportError(
                f"Failed to fetch records: {e}", collection=collection.name, phase="fetch"
            ) from e
        except Exception as e:
            raise ExportError(
                f"Export of records failed: {e}", collection=collection.name, phase="fetch"
            ) from e
