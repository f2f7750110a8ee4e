"""
SQLite storage backend implementation.

This module provides a SQLite-based implementation of the
collection storage interface for single-process deployments.
"""

from .sqlite_storage import SqliteStorage, SqliteTransaction

__all__ = ["SqliteStorage", "SqliteTransaction"]
