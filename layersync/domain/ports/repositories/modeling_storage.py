"""
Modeling Storage Port - Interface for model, object, attribute and relationship persistence.
Implementations:
  layersync/infrastructure/persistence/in_memory_modeling_storage.py
  layersync/infrastructure/persistence/prisma_modeling_storage.py

`update_*` methods take a dict of changed fields and raise EntityNotFoundError
for unknown ids. `delete_*_by_object` methods return the number of removed rows.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from layersync.domain.entities import (
    Attribute,
    CanonicalRelationship,
    DataModel,
    DataObject,
    LayerRelationship,
    ModelObject,
)


class ModelingStorage(ABC):
    # ==================== MODELS ====================
    @abstractmethod
    async def get_data_models(self) -> list[DataModel]: ...

    @abstractmethod
    async def get_data_model(self, model_id: int) -> Optional[DataModel]: ...

    @abstractmethod
    async def create_data_model(self, model: DataModel) -> DataModel: ...

    @abstractmethod
    async def update_data_model(
        self, model_id: int, changes: dict[str, Any]
    ) -> DataModel: ...

    @abstractmethod
    async def delete_data_model(self, model_id: int) -> bool: ...

    # ==================== OBJECTS ====================
    @abstractmethod
    async def get_data_object(self, object_id: int) -> Optional[DataObject]: ...

    @abstractmethod
    async def get_data_objects_by_model(self, model_id: int) -> list[DataObject]: ...

    @abstractmethod
    async def create_data_object(self, data_object: DataObject) -> DataObject: ...

    @abstractmethod
    async def create_data_objects_batch(
        self, data_objects: list[DataObject]
    ) -> list[DataObject]: ...

    @abstractmethod
    async def update_data_object(
        self, object_id: int, changes: dict[str, Any]
    ) -> DataObject: ...

    @abstractmethod
    async def delete_data_object(self, object_id: int) -> bool: ...

    # ==================== MODEL OBJECTS ====================
    @abstractmethod
    async def get_data_model_objects_by_model(
        self, model_id: int
    ) -> list[ModelObject]: ...

    @abstractmethod
    async def get_data_model_objects_by_object(
        self, object_id: int
    ) -> list[ModelObject]: ...

    @abstractmethod
    async def create_data_model_object(self, model_object: ModelObject) -> ModelObject: ...

    @abstractmethod
    async def create_data_model_objects_batch(
        self, model_objects: list[ModelObject]
    ) -> list[ModelObject]: ...

    @abstractmethod
    async def delete_data_model_object(self, model_object_id: int) -> bool: ...

    @abstractmethod
    async def delete_data_model_objects_by_object(self, object_id: int) -> int: ...

    # ==================== ATTRIBUTES ====================
    @abstractmethod
    async def get_attribute(self, attribute_id: int) -> Optional[Attribute]: ...

    @abstractmethod
    async def get_attributes_by_object(self, object_id: int) -> list[Attribute]: ...

    @abstractmethod
    async def create_attribute(self, attribute: Attribute) -> Attribute: ...

    @abstractmethod
    async def create_attributes_batch(
        self, attributes: list[Attribute]
    ) -> list[Attribute]: ...

    @abstractmethod
    async def update_attribute(
        self, attribute_id: int, changes: dict[str, Any]
    ) -> Attribute: ...

    @abstractmethod
    async def delete_attribute(self, attribute_id: int) -> bool: ...

    @abstractmethod
    async def delete_attributes_by_object(self, object_id: int) -> int: ...

    # ==================== LAYER RELATIONSHIPS ====================
    @abstractmethod
    async def get_relationship(
        self, relationship_id: int
    ) -> Optional[LayerRelationship]: ...

    @abstractmethod
    async def get_relationships_by_model(
        self, model_id: int
    ) -> list[LayerRelationship]: ...

    @abstractmethod
    async def create_relationship(
        self, relationship: LayerRelationship
    ) -> LayerRelationship: ...

    @abstractmethod
    async def create_relationships_batch(
        self, relationships: list[LayerRelationship]
    ) -> list[LayerRelationship]: ...

    @abstractmethod
    async def update_relationship(
        self, relationship_id: int, changes: dict[str, Any]
    ) -> LayerRelationship: ...

    @abstractmethod
    async def delete_relationship(self, relationship_id: int) -> bool: ...

    @abstractmethod
    async def delete_relationships_by_object(self, object_id: int) -> int: ...

    # ==================== CANONICAL RELATIONSHIPS ====================
    @abstractmethod
    async def get_canonical_relationships_by_object(
        self, object_id: int
    ) -> list[CanonicalRelationship]: ...

    @abstractmethod
    async def create_canonical_relationship(
        self, relationship: CanonicalRelationship
    ) -> CanonicalRelationship: ...

    @abstractmethod
    async def update_canonical_relationship(
        self, relationship_id: int, changes: dict[str, Any]
    ) -> CanonicalRelationship: ...

    @abstractmethod
    async def delete_canonical_relationship(self, relationship_id: int) -> bool: ...

    @abstractmethod
    async def delete_canonical_relationships_by_object(self, object_id: int) -> int: ...
