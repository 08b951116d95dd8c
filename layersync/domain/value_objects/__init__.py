"""
VALUE OBJECTS - Immutable domain types

Each value object:
- Has no identity (compared by value, not by ID)
- Is immutable (frozen dataclass or str enum)
- Validates itself on creation
- Pure Python (no framework dependencies)
"""

from layersync.domain.value_objects.model_layer import ModelLayer
from layersync.domain.value_objects.provenance import Provenance
from layersync.domain.value_objects.relationship_level import (
    OBJECT_LEVEL,
    AttributeLevel,
    ObjectLevel,
    RelationshipLevel,
    determine_relationship_level,
)

__all__ = [
    "ModelLayer",
    "Provenance",
    "RelationshipLevel",
    "ObjectLevel",
    "AttributeLevel",
    "OBJECT_LEVEL",
    "determine_relationship_level",
]
