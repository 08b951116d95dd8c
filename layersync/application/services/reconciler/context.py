"""Snapshot of a model family as seen by the reconciler."""

from dataclasses import dataclass, field
from typing import Optional

from layersync.application.services.family_resolver import FamilyResolver
from layersync.application.services.naming import normalize_name
from layersync.domain.entities import (
    Attribute,
    DataModel,
    DataObject,
    LayerRelationship,
    ModelObject,
)
from layersync.domain.exceptions import DomainValidationError
from layersync.domain.ports.repositories import ModelingStorage
from layersync.domain.value_objects import ModelLayer


@dataclass
class LayerEntity:
    object: DataObject
    model_object: Optional[ModelObject] = None
    attributes: list[Attribute] = field(default_factory=list)


@dataclass
class LayerContext:
    model: DataModel
    entities: list[LayerEntity] = field(default_factory=list)
    relationships: list[LayerRelationship] = field(default_factory=list)

    def entity_named(self, name: str) -> Optional[LayerEntity]:
        wanted = normalize_name(name)
        for entity in self.entities:
            if normalize_name(entity.object.name) == wanted:
                return entity
        return None

    def name_of(self, object_id: int) -> str:
        for entity in self.entities:
            if entity.object.id == object_id:
                return entity.object.name
        return f"object_{object_id}"

    def object_level_relationships(self) -> list[LayerRelationship]:
        return [row for row in self.relationships if not row.level.is_attribute_level]


@dataclass
class ModelingContext:
    root_model_id: int
    conceptual: Optional[LayerContext] = None
    logical: Optional[LayerContext] = None
    physical: Optional[LayerContext] = None

    def layer(self, layer: ModelLayer) -> Optional[LayerContext]:
        return getattr(self, layer.value)


async def build_layer_context(storage: ModelingStorage, model: DataModel) -> LayerContext:
    objects = await storage.get_data_objects_by_model(model.id)
    placements = {
        row.object_id: row for row in await storage.get_data_model_objects_by_model(model.id)
    }
    entities = [
        LayerEntity(
            object=data_object,
            model_object=placements.get(data_object.id),
            attributes=await storage.get_attributes_by_object(data_object.id),
        )
        for data_object in objects
    ]
    return LayerContext(
        model=model,
        entities=entities,
        relationships=await storage.get_relationships_by_model(model.id),
    )


async def build_modeling_context(
    storage: ModelingStorage, resolver: FamilyResolver, root_model_id: int
) -> ModelingContext:
    family = await resolver.resolve_by_id(root_model_id)
    if not family.conceptual.is_conceptual:
        raise DomainValidationError("Conceptual model is required for AI data modeling agent")

    context = ModelingContext(root_model_id=family.root_id)
    for layer in ModelLayer.ordered():
        member = family.member_for(layer)
        if member is not None:
            setattr(context, layer.value, await build_layer_context(storage, member))
    return context
