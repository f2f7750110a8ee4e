"""
Export and import cascades over related collections.

This module provides:
- Codec and archive handling for exported payloads
- Relation descriptors and child filter resolution
- The export and import orchestrators
- The ``TransferService`` entry points
"""

from .archive import Archive, ArchiveEntry, is_hidden_entry
from .codecs import CodecRegistry
from .collection import (
    CapabilityKind,
    Collection,
    CustomExport,
    CustomImport,
    DefaultExport,
    DefaultImport,
)
from .exceptions import (
    CorruptArchive,
    CreateError,
    DuplicateEntry,
    ExportError,
    InvalidDescriptor,
    ParseError,
    TransferError,
    UnknownCollection,
    UnsupportedImportFormat,
)
from .exporter import CascadeExporter, ExportPayload
from .importer import CascadeImporter, ImportStats
from .registry import CollectionRegistry
from .relations import RelationDescriptor, resolve
from .service import ExportResponse, ImportResult, TransferMetadata, TransferService

__all__ = [
    'Archive',
    'ArchiveEntry',
    'is_hidden_entry',
    'CodecRegistry',
    'CapabilityKind',
    'Collection',
    'CustomExport',
    'CustomImport',
    'DefaultExport',
    'DefaultImport',
    'CorruptArchive',
    'CreateError',
    'DuplicateEntry',
    'ExportError',
    'InvalidDescriptor',
    'ParseError',
    'TransferError',
    'UnknownCollection',
    'UnsupportedImportFormat',
    'CascadeExporter',
    'ExportPayload',
    'CascadeImporter',
    'ImportStats',
    'CollectionRegistry',
    'RelationDescriptor',
    'resolve',
    'ExportResponse',
    'ImportResult',
    'TransferMetadata',
    'TransferService',
]
