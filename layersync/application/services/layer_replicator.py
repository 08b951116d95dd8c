"""
Layer Replicator.

Clones one conceptual object and its attributes into a logical or physical
model. The replica carries a Provenance back to the conceptual object, which
is also mirrored into its metadata. Type projections follow one fallback
chain per projection (`resolve_type_projections`); the first non-null value
wins.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from layersync.application.dto.cascade import (
    AttributeInput,
    LayerCreationResult,
    ModelObjectConfig,
    ObjectPayload,
)
from layersync.application.services.sync_context import JournalKind, SyncContext
from layersync.domain.entities import Attribute, DataModel, DataObject, ModelObject
from layersync.domain.ports.repositories import ModelingStorage
from layersync.domain.value_objects import ModelLayer, Provenance

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TypeProjections:
    conceptual_type: Optional[str]
    logical_type: Optional[str]
    physical_type: Optional[str]


def _first_non_null(*values: Optional[str]) -> Optional[str]:
    for value in values:
        if value is not None:
            return value
    return None


def resolve_type_projections(
    conceptual_type: Optional[str],
    logical_type: Optional[str],
    physical_type: Optional[str],
    data_type: Optional[str],
) -> TypeProjections:
    return TypeProjections(
        conceptual_type=_first_non_null(conceptual_type, logical_type, physical_type, data_type),
        logical_type=_first_non_null(logical_type, conceptual_type, physical_type, data_type),
        physical_type=_first_non_null(physical_type, logical_type, conceptual_type, data_type),
    )


def merge_layer_config(
    base: ModelObjectConfig, override: Optional[ModelObjectConfig]
) -> ModelObjectConfig:
    """Right-biased merge: every non-None override field replaces the base field."""
    if override is None:
        return base
    overrides = {
        name: value
        for name, value in override.model_dump().items()
        if value is not None
    }
    return base.model_copy(update=overrides)


def build_attribute(
    attribute_input: AttributeInput,
    object_id: int,
    order_index: int,
    origin_attribute_id: Optional[int] = None,
) -> Attribute:
    """Attribute row for `object_id` with resolved projections and key constraints applied."""
    projections = resolve_type_projections(
        attribute_input.conceptual_type,
        attribute_input.logical_type,
        attribute_input.physical_type,
        attribute_input.data_type,
    )
    attribute = Attribute(
        name=attribute_input.name,
        object_id=object_id,
        conceptual_type=projections.conceptual_type,
        logical_type=projections.logical_type,
        physical_type=projections.physical_type,
        data_type=attribute_input.data_type,
        length=attribute_input.length,
        precision=attribute_input.precision,
        scale=attribute_input.scale,
        nullable=attribute_input.nullable,
        is_primary_key=attribute_input.is_primary_key,
        is_foreign_key=attribute_input.is_foreign_key,
        order_index=(
            attribute_input.order_index
            if attribute_input.order_index is not None
            else order_index
        ),
        description=attribute_input.description,
        origin_attribute_id=origin_attribute_id,
    )
    return attribute.enforce_key_constraints()


def build_model_object(
    model: DataModel, data_object: DataObject, config: ModelObjectConfig, layer: ModelLayer
) -> ModelObject:
    layer_specific = {"layer": layer.value}
    layer_specific.update(config.layer_specific_config or {})
    return ModelObject(
        model_id=model.id,
        object_id=data_object.id,
        position=config.position,
        target_system_id=config.target_system_id,
        is_visible=True if config.is_visible is None else config.is_visible,
        metadata=dict(config.metadata or {}),
        layer_specific_config=layer_specific,
    )


class LayerReplicator:
    def __init__(self, storage: ModelingStorage):
        self._storage = storage

    async def replicate(
        self,
        layer: ModelLayer,
        conceptual_model: DataModel,
        conceptual_object: DataObject,
        target_model: DataModel,
        object_payload: ObjectPayload,
        attribute_inputs: list[AttributeInput],
        layer_config: Optional[ModelObjectConfig],
        context: SyncContext,
    ) -> LayerCreationResult:
        provenance = Provenance(
            origin_object_id=conceptual_object.id,
            origin_model_id=conceptual_model.id,
            layer=layer,
        )

        base_config = ModelObjectConfig(
            position=object_payload.position,
            target_system_id=target_model.target_system_id
            if target_model.target_system_id is not None
            else object_payload.target_system_id,
            is_visible=True,
            metadata=self._replica_metadata(object_payload.metadata, provenance),
        )
        config = merge_layer_config(base_config, layer_config)

        replica = await self._storage.create_data_object(
            DataObject(
                name=object_payload.name,
                model_id=target_model.id,
                description=object_payload.description,
                domain_id=object_payload.domain_id,
                data_area_id=object_payload.data_area_id,
                target_system_id=config.target_system_id,
                position=config.position,
                metadata=self._replica_metadata(object_payload.metadata, provenance),
                provenance=provenance,
            )
        )
        context.remember_object(replica)
        context.record_created(JournalKind.DATA_OBJECT, replica.id, f"{layer.value}:{replica.name}")

        model_object = await self._storage.create_data_model_object(
            build_model_object(target_model, replica, config, layer)
        )
        context.record_created(
            JournalKind.MODEL_OBJECT, model_object.id, f"{layer.value}:{replica.name}"
        )

        conceptual_attributes = await context.attributes_of(self._storage, conceptual_object.id)
        origin_by_name = {attribute.name: attribute.id for attribute in conceptual_attributes}

        attributes: list[Attribute] = []
        if attribute_inputs:
            attributes = await self._storage.create_attributes_batch(
                [
                    build_attribute(
                        attribute_input,
                        replica.id,
                        index,
                        origin_attribute_id=origin_by_name.get(attribute_input.name),
                    )
                    for index, attribute_input in enumerate(attribute_inputs)
                ]
            )
        for attribute in attributes:
            context.remember_attribute(attribute)
            context.record_created(
                JournalKind.ATTRIBUTE, attribute.id, f"{replica.name}.{attribute.name}"
            )

        context.mark_step(f"replicate:{layer.value}:{replica.name}")
        logger.info(
            f"[Replicator] {conceptual_object.name} -> {layer.value} model {target_model.id} "
            f"(object {replica.id}, {len(attributes)} attributes)"
        )
        return LayerCreationResult(
            layer=layer,
            model=target_model,
            object=replica,
            model_object=model_object,
            attributes=attributes,
        )

    @staticmethod
    def _replica_metadata(
        base: Optional[dict[str, Any]], provenance: Provenance
    ) -> dict[str, Any]:
        metadata = dict(base or {})
        metadata.update(provenance.to_metadata())
        return metadata
