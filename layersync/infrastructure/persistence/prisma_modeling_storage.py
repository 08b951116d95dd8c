"""
Prisma Modeling Storage Implementation.

- Implements the ModelingStorage port against the schema in prisma/schema.prisma
- Maps between Prisma records and domain entities
- Json columns are wrapped with prisma.Json on write
- Provenance lives in DataObject.metadata and is rebuilt on read
- Relationship levels are stored as nullable source/target attribute ids

The generated client is imported lazily so the in-memory backend never needs
`prisma generate` to have run.
"""

from typing import TYPE_CHECKING, Any, Optional

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
from layersync.domain.value_objects import (
    ModelLayer,
    Provenance,
    RelationshipLevel,
    determine_relationship_level,
)

if TYPE_CHECKING:
    from prisma import Prisma


ATTRIBUTE_FIELDS = (
    "name",
    "object_id",
    "conceptual_type",
    "logical_type",
    "physical_type",
    "data_type",
    "length",
    "precision",
    "scale",
    "nullable",
    "is_primary_key",
    "is_foreign_key",
    "order_index",
    "description",
    "origin_attribute_id",
)
RELATIONSHIP_FIELDS = (
    "source_object_id",
    "target_object_id",
    "type",
    "source_handle",
    "target_handle",
    "name",
    "description",
)


def _json(value: Any) -> Any:
    from prisma import Json

    return Json(value)


def _level_columns(level: RelationshipLevel) -> dict[str, Optional[int]]:
    return {
        "source_attribute_id": level.source_attribute_id,
        "target_attribute_id": level.target_attribute_id,
    }


def _touching(object_id: int) -> dict[str, Any]:
    return {"OR": [{"source_object_id": object_id}, {"target_object_id": object_id}]}


class PrismaModelingStorage(ModelingStorage):
    _prisma: "Prisma"

    def __init__(self, prisma: "Prisma"):
        self._prisma = prisma

    # ==================== MAPPERS ====================
    @staticmethod
    def _to_model(record) -> DataModel:
        return DataModel(
            id=record.id,
            name=record.name,
            layer=ModelLayer(record.layer),
            parent_model_id=record.parent_model_id,
            domain_id=record.domain_id,
            data_area_id=record.data_area_id,
            target_system_id=record.target_system_id,
        )

    @staticmethod
    def _to_object(record) -> DataObject:
        metadata = dict(record.metadata or {})
        return DataObject(
            id=record.id,
            name=record.name,
            model_id=record.model_id,
            description=record.description,
            domain_id=record.domain_id,
            data_area_id=record.data_area_id,
            target_system_id=record.target_system_id,
            position=record.position,
            metadata=metadata,
            provenance=Provenance.from_metadata(metadata),
            is_new=record.is_new,
        )

    @staticmethod
    def _to_model_object(record) -> ModelObject:
        return ModelObject(
            id=record.id,
            model_id=record.model_id,
            object_id=record.object_id,
            position=record.position,
            target_system_id=record.target_system_id,
            is_visible=record.is_visible,
            metadata=dict(record.metadata or {}),
            layer_specific_config=dict(record.layer_specific_config or {}),
        )

    @staticmethod
    def _to_attribute(record) -> Attribute:
        return Attribute(id=record.id, **{name: getattr(record, name) for name in ATTRIBUTE_FIELDS})

    @staticmethod
    def _to_relationship(record) -> LayerRelationship:
        return LayerRelationship(
            id=record.id,
            model_id=record.model_id,
            layer=ModelLayer(record.layer),
            level=determine_relationship_level(
                record.source_attribute_id, record.target_attribute_id
            ),
            **{name: getattr(record, name) for name in RELATIONSHIP_FIELDS},
        )

    @staticmethod
    def _to_canonical(record) -> CanonicalRelationship:
        return CanonicalRelationship(
            id=record.id,
            level=determine_relationship_level(
                record.source_attribute_id, record.target_attribute_id
            ),
            metadata=dict(record.metadata or {}),
            **{name: getattr(record, name) for name in RELATIONSHIP_FIELDS},
        )

    # ==================== WRITE PAYLOADS ====================
    @staticmethod
    def _model_data(changes: dict[str, Any]) -> dict[str, Any]:
        data = {key: value for key, value in changes.items() if key != "id"}
        if "layer" in data:
            data["layer"] = ModelLayer(data["layer"]).value
        return data

    @staticmethod
    def _object_data(changes: dict[str, Any]) -> dict[str, Any]:
        data = {key: value for key, value in changes.items() if key not in ("id", "provenance")}
        if "provenance" in changes:
            metadata = dict(data.get("metadata", {}))
            if changes["provenance"] is not None:
                metadata.update(changes["provenance"].to_metadata())
            data["metadata"] = metadata
        if "metadata" in data:
            data["metadata"] = _json(data["metadata"])
        if data.get("position") is not None:
            data["position"] = _json(data["position"])
        else:
            data.pop("position", None)
        return data

    @staticmethod
    def _relationship_data(changes: dict[str, Any]) -> dict[str, Any]:
        data = {key: value for key, value in changes.items() if key not in ("id", "level")}
        if "level" in changes:
            data.update(_level_columns(changes["level"]))
        if "layer" in data:
            data["layer"] = ModelLayer(data["layer"]).value
        if "metadata" in data:
            data["metadata"] = _json(data["metadata"])
        return data

    def _object_create(self, data_object: DataObject) -> dict[str, Any]:
        metadata = dict(data_object.metadata)
        if data_object.provenance is not None:
            metadata.update(data_object.provenance.to_metadata())
        return self._object_data(
            {
                "name": data_object.name,
                "model_id": data_object.model_id,
                "description": data_object.description,
                "domain_id": data_object.domain_id,
                "data_area_id": data_object.data_area_id,
                "target_system_id": data_object.target_system_id,
                "position": data_object.position,
                "metadata": metadata,
                "is_new": data_object.is_new,
            }
        )

    @staticmethod
    def _model_object_create(model_object: ModelObject) -> dict[str, Any]:
        data = {
            "model_id": model_object.model_id,
            "object_id": model_object.object_id,
            "target_system_id": model_object.target_system_id,
            "is_visible": model_object.is_visible,
            "metadata": _json(model_object.metadata),
            "layer_specific_config": _json(model_object.layer_specific_config),
        }
        if model_object.position is not None:
            data["position"] = _json(model_object.position)
        return data

    @staticmethod
    def _attribute_create(attribute: Attribute) -> dict[str, Any]:
        return {name: getattr(attribute, name) for name in ATTRIBUTE_FIELDS}

    def _relationship_create(self, relationship: LayerRelationship) -> dict[str, Any]:
        data = {name: getattr(relationship, name) for name in RELATIONSHIP_FIELDS}
        data.update(model_id=relationship.model_id, layer=relationship.layer, level=relationship.level)
        return self._relationship_data(data)

    def _canonical_create(self, relationship: CanonicalRelationship) -> dict[str, Any]:
        data = {name: getattr(relationship, name) for name in RELATIONSHIP_FIELDS}
        data.update(level=relationship.level, metadata=relationship.metadata)
        return self._relationship_data(data)

    @staticmethod
    def _require(record, table: str, entity_id: int):
        if record is None:
            raise EntityNotFoundError(f"{table} with id {entity_id} not found")
        return record

    # ==================== MODELS ====================
    async def get_data_models(self) -> list[DataModel]:
        records = await self._prisma.datamodel.find_many(order={"id": "asc"})
        return [self._to_model(record) for record in records]

    async def get_data_model(self, model_id: int) -> Optional[DataModel]:
        record = await self._prisma.datamodel.find_unique(where={"id": model_id})
        return self._to_model(record) if record else None

    async def create_data_model(self, model: DataModel) -> DataModel:
        record = await self._prisma.datamodel.create(
            data=self._model_data(
                {
                    "name": model.name,
                    "layer": model.layer,
                    "parent_model_id": model.parent_model_id,
                    "domain_id": model.domain_id,
                    "data_area_id": model.data_area_id,
                    "target_system_id": model.target_system_id,
                }
            )
        )
        return self._to_model(record)

    async def update_data_model(self, model_id: int, changes: dict[str, Any]) -> DataModel:
        record = await self._prisma.datamodel.update(
            where={"id": model_id}, data=self._model_data(changes)
        )
        return self._to_model(self._require(record, "DataModel", model_id))

    async def delete_data_model(self, model_id: int) -> bool:
        record = await self._prisma.datamodel.delete(where={"id": model_id})
        return record is not None

    # ==================== OBJECTS ====================
    async def get_data_object(self, object_id: int) -> Optional[DataObject]:
        record = await self._prisma.dataobject.find_unique(where={"id": object_id})
        return self._to_object(record) if record else None

    async def get_data_objects_by_model(self, model_id: int) -> list[DataObject]:
        records = await self._prisma.dataobject.find_many(
            where={"model_id": model_id}, order={"id": "asc"}
        )
        return [self._to_object(record) for record in records]

    async def create_data_object(self, data_object: DataObject) -> DataObject:
        record = await self._prisma.dataobject.create(data=self._object_create(data_object))
        return self._to_object(record)

    async def create_data_objects_batch(
        self, data_objects: list[DataObject]
    ) -> list[DataObject]:
        async with self._prisma.tx() as tx:
            records = [
                await tx.dataobject.create(data=self._object_create(data_object))
                for data_object in data_objects
            ]
        return [self._to_object(record) for record in records]

    async def update_data_object(
        self, object_id: int, changes: dict[str, Any]
    ) -> DataObject:
        record = await self._prisma.dataobject.update(
            where={"id": object_id}, data=self._object_data(changes)
        )
        return self._to_object(self._require(record, "DataObject", object_id))

    async def delete_data_object(self, object_id: int) -> bool:
        record = await self._prisma.dataobject.delete(where={"id": object_id})
        return record is not None

    # ==================== MODEL OBJECTS ====================
    async def get_data_model_objects_by_model(self, model_id: int) -> list[ModelObject]:
        records = await self._prisma.datamodelobject.find_many(
            where={"model_id": model_id}, order={"id": "asc"}
        )
        return [self._to_model_object(record) for record in records]

    async def get_data_model_objects_by_object(self, object_id: int) -> list[ModelObject]:
        records = await self._prisma.datamodelobject.find_many(
            where={"object_id": object_id}, order={"id": "asc"}
        )
        return [self._to_model_object(record) for record in records]

    async def create_data_model_object(self, model_object: ModelObject) -> ModelObject:
        record = await self._prisma.datamodelobject.create(
            data=self._model_object_create(model_object)
        )
        return self._to_model_object(record)

    async def create_data_model_objects_batch(
        self, model_objects: list[ModelObject]
    ) -> list[ModelObject]:
        async with self._prisma.tx() as tx:
            records = [
                await tx.datamodelobject.create(data=self._model_object_create(row))
                for row in model_objects
            ]
        return [self._to_model_object(record) for record in records]

    async def delete_data_model_object(self, model_object_id: int) -> bool:
        record = await self._prisma.datamodelobject.delete(where={"id": model_object_id})
        return record is not None

    async def delete_data_model_objects_by_object(self, object_id: int) -> int:
        return await self._prisma.datamodelobject.delete_many(where={"object_id": object_id})

    # ==================== ATTRIBUTES ====================
    async def get_attribute(self, attribute_id: int) -> Optional[Attribute]:
        record = await self._prisma.attribute.find_unique(where={"id": attribute_id})
        return self._to_attribute(record) if record else None

    async def get_attributes_by_object(self, object_id: int) -> list[Attribute]:
        records = await self._prisma.attribute.find_many(
            where={"object_id": object_id},
            order=[{"order_index": "asc"}, {"id": "asc"}],
        )
        return [self._to_attribute(record) for record in records]

    async def create_attribute(self, attribute: Attribute) -> Attribute:
        record = await self._prisma.attribute.create(data=self._attribute_create(attribute))
        return self._to_attribute(record)

    async def create_attributes_batch(self, attributes: list[Attribute]) -> list[Attribute]:
        async with self._prisma.tx() as tx:
            records = [
                await tx.attribute.create(data=self._attribute_create(attribute))
                for attribute in attributes
            ]
        return [self._to_attribute(record) for record in records]

    async def update_attribute(self, attribute_id: int, changes: dict[str, Any]) -> Attribute:
        data = {key: value for key, value in changes.items() if key != "id"}
        record = await self._prisma.attribute.update(where={"id": attribute_id}, data=data)
        return self._to_attribute(self._require(record, "Attribute", attribute_id))

    async def delete_attribute(self, attribute_id: int) -> bool:
        record = await self._prisma.attribute.delete(where={"id": attribute_id})
        return record is not None

    async def delete_attributes_by_object(self, object_id: int) -> int:
        return await self._prisma.attribute.delete_many(where={"object_id": object_id})

    # ==================== LAYER RELATIONSHIPS ====================
    async def get_relationship(self, relationship_id: int) -> Optional[LayerRelationship]:
        record = await self._prisma.relationship.find_unique(where={"id": relationship_id})
        return self._to_relationship(record) if record else None

    async def get_relationships_by_model(self, model_id: int) -> list[LayerRelationship]:
        records = await self._prisma.relationship.find_many(
            where={"model_id": model_id}, order={"id": "asc"}
        )
        return [self._to_relationship(record) for record in records]

    async def create_relationship(self, relationship: LayerRelationship) -> LayerRelationship:
        record = await self._prisma.relationship.create(
            data=self._relationship_create(relationship)
        )
        return self._to_relationship(record)

    async def create_relationships_batch(
        self, relationships: list[LayerRelationship]
    ) -> list[LayerRelationship]:
        async with self._prisma.tx() as tx:
            records = [
                await tx.relationship.create(data=self._relationship_create(row))
                for row in relationships
            ]
        return [self._to_relationship(record) for record in records]

    async def update_relationship(
        self, relationship_id: int, changes: dict[str, Any]
    ) -> LayerRelationship:
        record = await self._prisma.relationship.update(
            where={"id": relationship_id}, data=self._relationship_data(changes)
        )
        return self._to_relationship(self._require(record, "Relationship", relationship_id))

    async def delete_relationship(self, relationship_id: int) -> bool:
        record = await self._prisma.relationship.delete(where={"id": relationship_id})
        return record is not None

    async def delete_relationships_by_object(self, object_id: int) -> int:
        return await self._prisma.relationship.delete_many(where=_touching(object_id))

    # ==================== CANONICAL RELATIONSHIPS ====================
    async def get_canonical_relationships_by_object(
        self, object_id: int
    ) -> list[CanonicalRelationship]:
        records = await self._prisma.canonicalrelationship.find_many(
            where=_touching(object_id), order={"id": "asc"}
        )
        return [self._to_canonical(record) for record in records]

    async def create_canonical_relationship(
        self, relationship: CanonicalRelationship
    ) -> CanonicalRelationship:
        record = await self._prisma.canonicalrelationship.create(
            data=self._canonical_create(relationship)
        )
        return self._to_canonical(record)

    async def update_canonical_relationship(
        self, relationship_id: int, changes: dict[str, Any]
    ) -> CanonicalRelationship:
        record = await self._prisma.canonicalrelationship.update(
            where={"id": relationship_id}, data=self._relationship_data(changes)
        )
        return self._to_canonical(
            self._require(record, "CanonicalRelationship", relationship_id)
        )

    async def delete_canonical_relationship(self, relationship_id: int) -> bool:
        record = await self._prisma.canonicalrelationship.delete(where={"id": relationship_id})
        return record is not None

    async def delete_canonical_relationships_by_object(self, object_id: int) -> int:
        return await self._prisma.canonicalrelationship.delete_many(where=_touching(object_id))
