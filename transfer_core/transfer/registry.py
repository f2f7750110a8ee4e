"""
Registry resolving collection names to collections.
"""

import logging
from typing import Dict, List, Optional

from transfer_core.storage.interfaces.collection_storage_interface import CollectionStorage
from transfer_core.transfer.collection import Collection
from transfer_core.transfer.exceptions import UnknownCollection
from transfer_core.transfer.relations import RelationDescriptor

logger = logging.getLogger(__name__)


class CollectionRegistry:
    """Name to collection lookup injected into the orchestrators."""

    def __init__(self, collections: Optional[List[Collection]] = None):
        self._collections: Dict[str, Collection] = {}
        for collection in collections or []:
            self.register(collection)

    def register(self, collection: Collection) -> Collection:
        if collection.name in self._collections:
            logger.warning(f"Replacing registered collection '{collection.name}'")
        self._collections[collection.name] = collection
        return collection

    def lookup(self, name: str) -> Collection:
        try:
            return self._collections[name]
        except KeyError:
            raise UnknownCollection(f"No collection registered as '{name}'", collection=name) from None

    def names(self) -> List[str]:
        return list(self._collections)

    def __contains__(self, name: str) -> bool:
        return name in self._collections

    def __len__(self):
        return len(self._collections)

    @classmethod
    def from_config(cls, config, storage: CollectionStorage) -> "CollectionRegistry":
        """
        Build collections declared in configuration against one storage.

        Args:
            config: ``AppConfig`` instance
            storage: Backend shared by every declared collection
        """
        registry = cls()
        for declared in config.collections:
            registry.register(
                Collection(
                    name=declared.name,
                    storage=storage,
                    export_with=[
                        RelationDescriptor(
                            target_collection=relation.target_collection,
                            foreign_field=relation.foreign_field,
                            local_field=relation.local_field,
                        )
                        for relation in declared.export_with
                    ],
                    export_format=declared.format or config.transfer.default_format,
                    id_field=declared.id_field or config.transfer.id_field,
                )
            )
        logger.info(f"Registered {len(registry)} collections from configuration")
        return registry
