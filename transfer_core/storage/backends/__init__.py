"""
Storage backend implementations for the transfer engine.

This module contains concrete implementations of storage backends
that implement the abstract storage interfaces.
"""

from .memory import InMemoryStorage
from .sqlite import SqliteStorage

__all__ = ['InMemoryStorage', 'SqliteStorage']
