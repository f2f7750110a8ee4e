"""
Storage factory for creating collection storage backend instances.

This module provides a factory function to instantiate the appropriate
storage backend based on configuration settings.
"""

import logging
from typing import Dict, Any, Optional, List

from transfer_core.config import get_config
from transfer_core.storage.backends.memory import InMemoryStorage
from transfer_core.storage.backends.sqlite import SqliteStorage
from transfer_core.storage.interfaces.collection_storage_interface import CollectionStorage


class StorageFactory:
    """
    Factory class for creating collection storage backend instances.

    This factory creates and configures storage backends based on the
    application configuration, providing a unified way to instantiate
    different storage implementations.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self._backends = {
            "memory": InMemoryStorage,
            "sqlite": SqliteStorage,
        }

    def create_storage(
        self, backend_type: Optional[str] = None, config_override: Optional[Dict[str, Any]] = None
    ) -> CollectionStorage:
        """
        Create a storage backend instance.

        Args:
            backend_type: Type of backend to create ('memory', 'sqlite').
                         If None, uses configuration setting.
            config_override: Optional configuration override for the backend.

        Returns:
            Configured storage backend instance

        Raises:
            ValueError: If the backend type is not supported
        """
        config = get_config()

        if backend_type is None:
            backend_type = config.config.storage.backend.value

        if backend_type not in self._backends:
            available_backends = list(self._backends.keys())
            raise ValueError(
                f"Unsupported backend type '{backend_type}'. "
                f"Available backends: {available_backends}"
            )

        backend_config = self._get_backend_config(backend_type, config, config_override)
        id_field = backend_config.get("id_field", config.config.transfer.id_field)

        if backend_type == "sqlite":
            storage = SqliteStorage(
                database_path=backend_config.get("database_path", "./data/transfer.db"),
                id_field=id_field,
            )
        else:
            storage = InMemoryStorage(id_field=id_field)

        self.logger.info(f"Created {backend_type} storage backend")
        return storage

    def _get_backend_config(
        self, backend_type: str, config: Any, config_override: Optional[Dict[str, Any]]
    ) -> Dict[str, Any]:
        """Get configuration for a specific backend."""
        backend_config = {}

        backend_specific_config = getattr(config.config.storage, backend_type, None)
        if backend_specific_config is not None:
            backend_config = dict(vars(backend_specific_config))

        if config_override:
            backend_config.update(config_override)

        return backend_config

    def list_available_backends(self) -> List[str]:
        """
        List all available storage backends.

        Returns:
            List of backend type names
        """
        return list(self._backends.keys())

    def is_backend_available(self, backend_type: str) -> bool:
        return backend_type in self._backends


# Global factory instance
_storage_factory = StorageFactory()


def create_storage(
    backend_type: Optional[str] = None, config_override: Optional[Dict[str, Any]] = None
) -> CollectionStorage:
    """
    Create a storage backend instance using the global factory.

    Args:
        backend_type: Type of backend to create ('memory', 'sqlite').
                     If None, uses configuration setting.
        config_override: Optional configuration override for the backend.

    Returns:
        Configured storage backend instance

    Raises:
        ValueError: If the backend type is not supported
    """
    return _storage_factory.create_storage(backend_type, config_override)


def list_available_backends() -> List[str]:
    return _storage_factory.list_available_backends()


def is_backend_available(backend_type: str) -> bool:
    return _storage_factory.is_backend_available(backend_type)
