"""
In-Memory Modeling Storage Implementation.

- Implements ModelingStorage port for tests and local runs
- Each table is a dict keyed by id; ids come from one counter per table
- Entities are deep-copied on the way in and out, so callers never share
  mutable state with the store
"""

import copy
import itertools
from dataclasses import replace
from typing import Any, Optional, TypeVar

from layersync.domain.entities import (
    Attribute,
    CanonicalRelationship,
    DataModel,
    DataObject,
    LayerRelationship,
    ModelObject,
)
from layersync.domain.exceptions import EntityNotFoundError
from layersync.domain.ports.repositories import ModelingStorage


E = TypeVar("E")


class _Table:
    """One id-keyed table."""

    def __init__(self, name: str):
        self.name = name
        self.rows: dict[int, Any] = {}
        self._ids = itertools.count(1)

    def insert(self, entity: E) -> E:
        stored = replace(copy.deepcopy(entity), id=next(self._ids))
        self.rows[stored.id] = stored
        return copy.deepcopy(stored)

    def get(self, entity_id: int) -> Optional[Any]:
        row = self.rows.get(entity_id)
        return copy.deepcopy(row) if row is not None else None

    def select(self, predicate) -> list[Any]:
        return [copy.deepcopy(row) for row in self.rows.values() if predicate(row)]

    def update(self, entity_id: int, changes: dict[str, Any]) -> Any:
        row = self.rows.get(entity_id)
        if row is None:
            raise EntityNotFoundError(f"{self.name} {entity_id} not found")
        changes = {key: value for key, value in changes.items() if key != "id"}
        updated = replace(row, **copy.deepcopy(changes))
        self.rows[entity_id] = updated
        return copy.deepcopy(updated)

    def delete(self, entity_id: int) -> bool:
        return self.rows.pop(entity_id, None) is not None

    def delete_where(self, predicate) -> int:
        doomed = [row_id for row_id, row in self.rows.items() if predicate(row)]
        for row_id in doomed:
            del self.rows[row_id]
        return len(doomed)


class InMemoryModelingStorage(ModelingStorage):
    def __init__(self):
        self._models = _Table("DataModel")
        self._objects = _Table("DataObject")
        self._model_objects = _Table("ModelObject")
        self._attributes = _Table("Attribute")
        self._relationships = _Table("Relationship")
        self._canonical = _Table("CanonicalRelationship")

    def row_counts(self) -> dict[str, int]:
        """Number of rows per table."""
        tables = (
            self._models,
            self._objects,
            self._model_objects,
            self._attributes,
            self._relationships,
            self._canonical,
        )
        return {table.name: len(table.rows) for table in tables}

    # ==================== MODELS ====================
    async def get_data_models(self) -> list[DataModel]:
        return self._models.select(lambda row: True)

    async def get_data_model(self, model_id: int) -> Optional[DataModel]:
        return self._models.get(model_id)

    async def create_data_model(self, model: DataModel) -> DataModel:
        return self._models.insert(model)

    async def update_data_model(self, model_id: int, changes: dict[str, Any]) -> DataModel:
        return self._models.update(model_id, changes)

    async def delete_data_model(self, model_id: int) -> bool:
        return self._models.delete(model_id)

    # ==================== OBJECTS ====================
    async def get_data_object(self, object_id: int) -> Optional[DataObject]:
        return self._objects.get(object_id)

    async def get_data_objects_by_model(self, model_id: int) -> list[DataObject]:
        return self._objects.select(lambda row: row.model_id == model_id)

    async def create_data_object(self, data_object: DataObject) -> DataObject:
        return self._objects.insert(data_object)

    async def create_data_objects_batch(
        self, data_objects: list[DataObject]
    ) -> list[DataObject]:
        return [self._objects.insert(data_object) for data_object in data_objects]

    async def update_data_object(
        self, object_id: int, changes: dict[str, Any]
    ) -> DataObject:
        return self._objects.update(object_id, changes)

    async def delete_data_object(self, object_id: int) -> bool:
        return self._objects.delete(object_id)

    # ==================== MODEL OBJECTS ====================
    async def get_data_model_objects_by_model(self, model_id: int) -> list[ModelObject]:
        return self._model_objects.select(lambda row: row.model_id == model_id)

    async def get_data_model_objects_by_object(self, object_id: int) -> list[ModelObject]:
        return self._model_objects.select(lambda row: row.object_id == object_id)

    async def create_data_model_object(self, model_object: ModelObject) -> ModelObject:
        return self._model_objects.insert(model_object)

    async def create_data_model_objects_batch(
        self, model_objects: list[ModelObject]
    ) -> list[ModelObject]:
        return [self._model_objects.insert(row) for row in model_objects]

    async def delete_data_model_object(self, model_object_id: int) -> bool:
        return self._model_objects.delete(model_object_id)

    async def delete_data_model_objects_by_object(self, object_id: int) -> int:
        return self._model_objects.delete_where(lambda row: row.object_id == object_id)

    # ==================== ATTRIBUTES ====================
    async def get_attribute(self, attribute_id: int) -> Optional[Attribute]:
        return self._attributes.get(attribute_id)

    async def get_attributes_by_object(self, object_id: int) -> list[Attribute]:
        attributes = self._attributes.select(lambda row: row.object_id == object_id)
        return sorted(attributes, key=lambda attribute: (attribute.order_index, attribute.id))

    async def create_attribute(self, attribute: Attribute) -> Attribute:
        return self._attributes.insert(attribute)

    async def create_attributes_batch(self, attributes: list[Attribute]) -> list[Attribute]:
        return [self._attributes.insert(attribute) for attribute in attributes]

    async def update_attribute(self, attribute_id: int, changes: dict[str, Any]) -> Attribute:
        return self._attributes.update(attribute_id, changes)

    async def delete_attribute(self, attribute_id: int) -> bool:
        return self._attributes.delete(attribute_id)

    async def delete_attributes_by_object(self, object_id: int) -> int:
        return self._attributes.delete_where(lambda row: row.object_id == object_id)

    # ==================== LAYER RELATIONSHIPS ====================
    async def get_relationship(self, relationship_id: int) -> Optional[LayerRelationship]:
        return self._relationships.get(relationship_id)

    async def get_relationships_by_model(self, model_id: int) -> list[LayerRelationship]:
        return self._relationships.select(lambda row: row.model_id == model_id)

    async def create_relationship(self, relationship: LayerRelationship) -> LayerRelationship:
        return self._relationships.insert(relationship)

    async def create_relationships_batch(
        self, relationships: list[LayerRelationship]
    ) -> list[LayerRelationship]:
        return [self._relationships.insert(row) for row in relationships]

    async def update_relationship(
        self, relationship_id: int, changes: dict[str, Any]
    ) -> LayerRelationship:
        return self._relationships.update(relationship_id, changes)

    async def delete_relationship(self, relationship_id: int) -> bool:
        return self._relationships.delete(relationship_id)

    async def delete_relationships_by_object(self, object_id: int) -> int:
        return self._relationships.delete_where(lambda row: row.touches_object(object_id))

    # ==================== CANONICAL RELATIONSHIPS ====================
    async def get_canonical_relationships_by_object(
        self, object_id: int
    ) -> list[CanonicalRelationship]:
        return self._canonical.select(lambda row: row.touches_object(object_id))

    async def create_canonical_relationship(
        self, relationship: CanonicalRelationship
    ) -> CanonicalRelationship:
        return self._canonical.insert(relationship)

    async def update_canonical_relationship(
        self, relationship_id: int, changes: dict[str, Any]
    ) -> CanonicalRelationship:
        return self._canonical.update(relationship_id, changes)

    async def delete_canonical_relationship(self, relationship_id: int) -> bool:
        return self._canonical.delete(relationship_id)

    async def delete_canonical_relationships_by_object(self, object_id: int) -> int:
        return self._canonical.delete_where(lambda row: row.touches_object(object_id))
