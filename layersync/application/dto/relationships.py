"""Relationship synchronization DTOs."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from layersync.domain.entities import LayerRelationship
from layersync.domain.value_objects import OBJECT_LEVEL, RelationshipLevel


@dataclass(frozen=True)
class RelationshipSyncRequest:
    """One relationship edit, expressed with ids from any layer of the family."""

    source_object_id: int
    target_object_id: int
    type: str = "1:N"
    level: RelationshipLevel = OBJECT_LEVEL
    source_handle: Optional[str] = None
    target_handle: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None


class UpsertOutcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


@dataclass
class LayerUpsert:
    relationship: LayerRelationship
    outcome: UpsertOutcome


@dataclass
class RelationshipSyncResult:
    relationship: Optional[LayerRelationship]
    canonical_relationship_id: Optional[int]
    relationships_by_model: dict[int, LayerRelationship] = field(default_factory=dict)

    @property
    def synced_model_ids(self) -> list[int]:
        return sorted(self.relationships_by_model)


@dataclass
class RelationshipRemovalResult:
    relationship_id: int
    removed_by_model: dict[int, int] = field(default_factory=dict)
    canonical_relationships_removed: int = 0
