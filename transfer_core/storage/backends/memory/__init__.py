"""
In-memory storage backend implementation.
"""

from .memory_storage import InMemoryStorage, MemoryTransaction

__all__ = ["InMemoryStorage", "MemoryTransaction"]
