"""
Relationship Entities.

LayerRelationship - per-layer row. Conceptual rows are object-level,
logical/physical rows are attribute-level.
CanonicalRelationship - layer-independent deduplication anchor.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from layersync.domain.value_objects.model_layer import ModelLayer
from layersync.domain.value_objects.relationship_level import (
    OBJECT_LEVEL,
    RelationshipLevel,
)


@dataclass
class LayerRelationship:
    model_id: int
    layer: ModelLayer
    source_object_id: int
    target_object_id: int
    type: str = "1:N"
    level: RelationshipLevel = OBJECT_LEVEL
    source_handle: Optional[str] = None
    target_handle: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    id: Optional[int] = None

    @property
    def source_attribute_id(self) -> Optional[int]:
        return self.level.source_attribute_id

    @property
    def target_attribute_id(self) -> Optional[int]:
        return self.level.target_attribute_id

    def touches_object(self, object_id: int) -> bool:
        return object_id in (self.source_object_id, self.target_object_id)

    def connects(self, source_object_id: int, target_object_id: int, level: RelationshipLevel) -> bool:
        return (
            self.source_object_id == source_object_id
            and self.target_object_id == target_object_id
            and self.level == level
        )


@dataclass
class CanonicalRelationship:
    source_object_id: int
    target_object_id: int
    type: str = "1:N"
    level: RelationshipLevel = OBJECT_LEVEL
    source_handle: Optional[str] = None
    target_handle: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)
    id: Optional[int] = None

    def touches_object(self, object_id: int) -> bool:
        return object_id in (self.source_object_id, self.target_object_id)

    def matches(self, source_object_id: int, target_object_id: int, level: RelationshipLevel) -> bool:
        """Same edge in either orientation. Reversed attribute-level edges swap attribute ids."""
        if (
            self.source_object_id == source_object_id
            and self.target_object_id == target_object_id
        ):
            return self.level == level
        if (
            self.source_object_id == target_object_id
            and self.target_object_id == source_object_id
        ):
            return (
                self.level.source_attribute_id == level.target_attribute_id
                and self.level.target_attribute_id == level.source_attribute_id
                and self.level.kind == level.kind
            )
        return False
