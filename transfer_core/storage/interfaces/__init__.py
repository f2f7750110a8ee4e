"""
Storage interfaces for the transfer engine.

This module defines abstract base classes that all storage implementations
must implement to ensure consistent behavior across different backends.
"""

from .collection_storage_interface import CollectionStorage, StorageError, TransactionContext

__all__ = ['CollectionStorage', 'StorageError', 'TransactionContext']
