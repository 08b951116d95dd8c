"""
ENTITIES - Business objects with identity

Each entity:
- Has a storage-assigned identifier (None until persisted)
- Is a plain Python dataclass (no ORM, no Pydantic)
"""

from layersync.domain.entities.data_model import DataModel
from layersync.domain.entities.data_object import DataObject
from layersync.domain.entities.model_object import ModelObject
from layersync.domain.entities.attribute import Attribute
from layersync.domain.entities.relationship import (
    CanonicalRelationship,
    LayerRelationship,
)
from layersync.domain.entities.model_family import ModelFamily

__all__ = [
    "DataModel",
    "DataObject",
    "ModelObject",
    "Attribute",
    "LayerRelationship",
    "CanonicalRelationship",
    "ModelFamily",
]
