"""
Map layer-local ids back to the conceptual identities they replicate.

Canonical anchors are keyed by these identities, so the same edge edited
from any layer resolves to one anchor. An origin that no longer exists
falls back to the layer-local id.
"""

from typing import Optional

from layersync.domain.exceptions import EntityNotFoundError
from layersync.domain.ports.repositories import ModelingStorage
from layersync.domain.value_objects import RelationshipLevel, determine_relationship_level


async def global_object_id(storage: ModelingStorage, object_id: int) -> int:
    data_object = await storage.get_data_object(object_id)
    if data_object is None or data_object.provenance is None:
        return object_id
    origin = await storage.get_data_object(data_object.provenance.origin_object_id)
    return origin.id if origin is not None else object_id


async def global_attribute_id(
    storage: ModelingStorage, attribute_id: Optional[int]
) -> Optional[int]:
    if attribute_id is None:
        return None
    attribute = await storage.get_attribute(attribute_id)
    if attribute is None or attribute.origin_attribute_id is None:
        return attribute_id
    origin = await storage.get_attribute(attribute.origin_attribute_id)
    return origin.id if origin is not None else attribute_id


async def global_level(storage: ModelingStorage, level: RelationshipLevel) -> RelationshipLevel:
    return determine_relationship_level(
        await global_attribute_id(storage, level.source_attribute_id),
        await global_attribute_id(storage, level.target_attribute_id),
    )


async def require_attributes(storage: ModelingStorage, *attribute_ids: Optional[int]) -> None:
    """Raise EntityNotFoundError for any given id with no stored attribute."""
    for attribute_id in attribute_ids:
        if attribute_id is not None and await storage.get_attribute(attribute_id) is None:
            raise EntityNotFoundError(f"Attribute with id {attribute_id} not found")
