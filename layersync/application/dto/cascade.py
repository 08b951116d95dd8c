"""Cascade DTOs: object creation inputs and cascade results."""

from dataclasses import dataclass, field
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from layersync.domain.entities import (
    Attribute,
    CanonicalRelationship,
    DataModel,
    DataObject,
    LayerRelationship,
    ModelObject,
)
from layersync.domain.value_objects import ModelLayer


class ObjectPayload(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    name: str = Field(min_length=1)
    model_id: int
    description: Optional[str] = None
    domain_id: Optional[int] = None
    data_area_id: Optional[int] = None
    target_system_id: Optional[int] = None
    position: Optional[dict[str, float]] = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class AttributeInput(BaseModel):
    name: str = Field(min_length=1)
    conceptual_type: Optional[str] = None
    logical_type: Optional[str] = None
    physical_type: Optional[str] = None
    data_type: Optional[str] = None
    length: Optional[int] = None
    precision: Optional[int] = None
    scale: Optional[int] = None
    nullable: bool = True
    is_primary_key: bool = False
    is_foreign_key: bool = False
    order_index: Optional[int] = None
    description: Optional[str] = None


class RelationshipInput(BaseModel):
    """Relationship supplied alongside a new object; the new object is the source."""

    target_object_id: int
    type: Optional[str] = None
    source_attribute_name: Optional[str] = None
    target_attribute_name: Optional[str] = None
    source_handle: Optional[str] = None
    target_handle: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None


class ModelObjectConfig(BaseModel):
    """Placement overrides. None keeps the base value."""

    position: Optional[dict[str, float]] = None
    target_system_id: Optional[int] = None
    is_visible: Optional[bool] = None
    metadata: Optional[dict[str, Any]] = None
    layer_specific_config: Optional[dict[str, Any]] = None


class LayerConfigs(BaseModel):
    conceptual: Optional[ModelObjectConfig] = None
    logical: Optional[ModelObjectConfig] = None
    physical: Optional[ModelObjectConfig] = None

    def for_layer(self, layer: ModelLayer) -> Optional[ModelObjectConfig]:
        return getattr(self, layer.value)


class CreateObjectRequest(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    object: ObjectPayload
    attributes: list[AttributeInput] = Field(default_factory=list)
    relationships: list[RelationshipInput] = Field(default_factory=list)
    cascade: bool = True
    model_object_config: Optional[ModelObjectConfig] = None
    layer_configs: LayerConfigs = Field(default_factory=LayerConfigs)


@dataclass
class LayerCreationResult:
    layer: ModelLayer
    model: DataModel
    object: DataObject
    model_object: ModelObject
    attributes: list[Attribute] = field(default_factory=list)


@dataclass
class CascadeRelationshipResult:
    canonical: CanonicalRelationship
    relationships_by_model: dict[int, LayerRelationship] = field(default_factory=dict)


@dataclass
class CreateObjectResult:
    primary_object: DataObject
    cascade_performed: bool
    layers: dict[ModelLayer, LayerCreationResult] = field(default_factory=dict)
    relationships: list[CascadeRelationshipResult] = field(default_factory=list)


@dataclass
class DeleteObjectResult:
    object_id: int
    model_objects_removed: int = 0
    canonical_relationships_removed: int = 0
    relationships_removed: int = 0
    attributes_removed: int = 0
