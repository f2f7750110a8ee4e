"""
Relation descriptors and child filter resolution.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence

from transfer_core.transfer.exceptions import InvalidDescriptor


@dataclass(frozen=True)
class RelationDescriptor:
    """
    How the records of ``target_collection`` hang off a parent collection.

    ``foreign_field`` names the child field holding the parent id.
    ``local_field`` names the parent field holding child ids (scalar or list).
    Exactly one of the two must be set.
    """

    target_collection: str
    foreign_field: Optional[str] = None
    local_field: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "RelationDescriptor":
        """Build a descriptor from snake_case or camelCase keys."""
        target = (
            data.get("target_collection")
            or data.get("targetCollection")
            or data.get("model")
        )
        if not target:
            raise InvalidDescriptor(f"Relation descriptor without target collection: {dict(data)}")
        return cls(
            target_collection=target,
            foreign_field=data.get("foreign_field") or data.get("foreignField"),
            local_field=data.get("local_field") or data.get("localField"),
        )


def resolve(
    parent_records: Sequence[Dict[str, Any]],
    descriptor: RelationDescriptor,
    id_field: str = "id",
    child_id_field: Optional[str] = None,
) -> Dict[str, Dict[str, List[Any]]]:
    """
    Compute the where clause selecting the children of ``parent_records``.

    Args:
        parent_records: Records fetched for the parent collection
        descriptor: Relation from the parent to the child collection
        id_field: Identifier field of the parent records
        child_id_field: Identifier field of the child records, defaults
            to ``id_field``

    Returns:
        ``{field: {"in": [...]}}``; an empty list matches no child.

    Raises:
        InvalidDescriptor: neither or both fields are set
    """
    if descriptor.foreign_field and descriptor.local_field:
        raise InvalidDescriptor(
            f"Relation to '{descriptor.target_collection}' sets both foreign_field and local_field"
        )

    if descriptor.foreign_field:
        parent_ids = [record.get(id_field) for record in parent_records]
        return {descriptor.foreign_field: {"in": parent_ids}}

    if descriptor.local_field:
        child_ids: List[Any] = []
        for record in parent_records:
            value = record.get(descriptor.local_field)
            if value is None:
                continue
            if isinstance(value, (list, tuple)):
                child_ids.extend(item for item in value if item is not None)
            else:
                child_ids.append(value)
        return {child_id_field or id_field: {"in": child_ids}}

    raise InvalidDescriptor(
        f"Relation to '{descriptor.target_collection}' needs foreign_field or local_field"
    )
