"""
Collection adapter: the unit the export and import cascades walk over.

A collection binds a name to a storage backend and declares its relations,
its export format and how it exports and imports. Custom behaviour is
expressed as tagged capability variants rather than optional attributes.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union

from transfer_core.storage.interfaces.collection_storage_interface import (
    CollectionStorage,
    TransactionContext,
)
from transfer_core.transfer.relations import RelationDescriptor

Record = Dict[str, Any]
ReadHook = Callable[[Record], Optional[Record]]
ExportFunc = Callable[["Collection", Dict[str, Any]], Awaitable[Union[List[Record], bytes]]]
ImportFunc = Callable[["Collection", bytes, Optional[TransactionContext]], Awaitable[Any]]


class CapabilityKind(Enum):
    DEFAULT = "default"
    CUSTOM = "custom"


@dataclass(frozen=True)
class DefaultExport:
    """Query storage directly with the filter, bypassing read hooks."""

    kind: CapabilityKind = CapabilityKind.DEFAULT


@dataclass(frozen=True)
class CustomExport:
    """Delegate record fetching to ``func(collection, filter)``."""

    func: ExportFunc
    kind: CapabilityKind = CapabilityKind.CUSTOM


@dataclass(frozen=True)
class DefaultImport:
    """Decode the payload by its extension and create the records."""

    kind: CapabilityKind = CapabilityKind.DEFAULT


@dataclass(frozen=True)
class CustomImport:
    """Delegate the whole import of a payload to ``func(collection, data, tx)``."""

    func: ImportFunc
    kind: CapabilityKind = CapabilityKind.CUSTOM


ExportCapability = Union[DefaultExport, CustomExport]
ImportCapability = Union[DefaultImport, CustomImport]

DEFAULT_EXPORT = DefaultExport()
DEFAULT_IMPORT = DefaultImport()


class Collection:
    """
    A named store of records taking part in transfers.

    Args:
        name: Collection name, also the archive entry stem
        storage: Backend holding the records
        export_with: Relations cascaded on export and import
        export_format: Format of this collection's own records; ``zip``
            means cascade and serializes the own records as json
        id_field: Identifier field of the records
        exporter: Export capability
        importer: Import capability
        read_hooks: Transformations applied by ``find`` only
    """

    def __init__(
        self,
        name: str,
        storage: CollectionStorage,
        export_with: Sequence[RelationDescriptor] = (),
        export_format: str = "json",
        id_field: str = "id",
        exporter: ExportCapability = DEFAULT_EXPORT,
        importer: ImportCapability = DEFAULT_IMPORT,
        read_hooks: Sequence[ReadHook] = (),
    ):
        self.name = name
        self.storage = storage
        self.export_with = tuple(export_with)
        self.export_format = (export_format or "json").lower()
        self.id_field = id_field
        self.exporter = exporter
        self.importer = importer
        self.read_hooks = tuple(read_hooks)

    @property
    def has_relations(self) -> bool:
        return bool(self.export_with)

    @property
    def record_format(self) -> str:
        """Format of the collection's own records inside an export."""
        if self.export_format == "zip":
            return "json"
        return self.export_format

    async def find(self, filter: Optional[Dict[str, Any]] = None) -> List[Record]:
        """Normal read path; read hooks may rewrite or drop records."""
        records = await self.query_raw(filter)
        for hook in self.read_hooks:
            records = [result for result in (hook(record) for record in records) if result is not None]
        return records

    async def query_raw(self, filter: Optional[Dict[str, Any]] = None) -> List[Record]:
        """Query storage with a ``{"where", "sort", "limit"}`` filter."""
        filter = filter or {}
        return await self.storage.find(
            self.name,
            where=filter.get("where"),
            sort=filter.get("sort"),
            limit=filter.get("limit"),
        )

    async def create(self, records: List[Record], tx: Optional[TransactionContext] = None) -> int:
        return await self.storage.create(self.name, records, tx)

    def __repr__(self):
        return f"Collection(name={self.name!r}, relations={len(self.export_with)})"
