"""
Storage layer for the transfer engine.

This module provides the abstract collection storage interface and the
reference backends the transfer engine reads from and writes to.
"""

from .interfaces.collection_storage_interface import (
    CollectionStorage,
    StorageError,
    TransactionContext,
)
from .factory import create_storage, list_available_backends, is_backend_available

__all__ = [
    "CollectionStorage",
    "StorageError",
    "TransactionContext",
    "create_storage",
    "list_available_backends",
    "is_backend_available",
]
