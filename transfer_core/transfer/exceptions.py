"""
Error kinds raised by the transfer engine.

Every failure of an export or import surfaces as a subclass of
``TransferError``. Wrapping errors keep the underlying exception as
``__cause__``.
"""

from typing import Optional


class TransferError(Exception):
    """
    Base class for transfer failures.

    Args:
        message: Human readable description
        collection: Name of the collection being processed, when known
        phase: Step that failed (``fetch``, ``serialize``, ``archive``,
            ``parse``, ``create``, ...)
    """

    def __init__(self, message: str, collection: Optional[str] = None, phase: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.collection = collection
        self.phase = phase

    def __str__(self):
        if self.collection:
            return f"[{self.collection}] {self.message}"
        return self.message


class InvalidDescriptor(TransferError):
    """A relation descriptor sets neither, or both, of its fields."""


class CorruptArchive(TransferError):
    """Import data expected to be an archive could not be read as one."""


class ParseError(TransferError):
    """An entry payload could not be decoded into records."""


class CreateError(TransferError):
    """Storage rejected the records of an imported entry."""


class DuplicateEntry(TransferError):
    """An archive already holds an entry with the given name."""


class UnsupportedImportFormat(TransferError):
    """The entry format has no deserializer, e.g. csv."""


class UnknownCollection(TransferError):
    """No collection is registered under the given name."""


class ExportError(TransferError):
    """Fetching the records of a collection failed during export."""
