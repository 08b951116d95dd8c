"""
Batch population of a new model family from existing objects.

Stages run strictly in order: objects, model-object rows, attributes,
relationships. Inside a stage the conceptual batch is written first whenever
the other layers point back at it through provenance; the logical and
physical batches then run concurrently.
"""

import asyncio
import logging
from dataclasses import replace
from typing import Optional

from layersync.application.dto.models import PopulationResult
from layersync.application.services.canonical_relationships import (
    ensure_canonical_relationship,
)
from layersync.application.services.sync_context import JournalKind, SyncContext
from layersync.domain.entities import (
    Attribute,
    CanonicalRelationship,
    DataModel,
    DataObject,
    LayerRelationship,
    ModelFamily,
    ModelObject,
)
from layersync.domain.exceptions import DomainValidationError, EntityNotFoundError
from layersync.domain.ports.repositories import ModelingStorage
from layersync.domain.value_objects import (
    OBJECT_LEVEL,
    AttributeLevel,
    ModelLayer,
    Provenance,
)
from layersync.domain.value_objects.provenance import PROVENANCE_KEYS

logger = logging.getLogger(__name__)

REPLICA_LAYERS = (ModelLayer.LOGICAL, ModelLayer.PHYSICAL)


class BatchPopulationService:
    def __init__(self, storage: ModelingStorage):
        self._storage = storage

    async def populate(
        self,
        family: ModelFamily,
        selected_object_ids: list[int],
        context: Optional[SyncContext] = None,
    ) -> PopulationResult:
        if not family.conceptual.is_conceptual:
            raise DomainValidationError(
                f"Model {family.conceptual.id} has no conceptual root to populate"
            )
        context = context or SyncContext()
        if not selected_object_ids:
            return PopulationResult()

        sources = await self._load_sources(selected_object_ids)
        source_attributes = {
            source.id: await self._storage.get_attributes_by_object(source.id)
            for source in sources
        }
        members = {layer: family.member_for(layer) for layer in ModelLayer.ordered()}
        replica_layers = [layer for layer in REPLICA_LAYERS if members[layer] is not None]

        # Stage 1: objects
        conceptual_objects = await self._copy_objects(
            sources, members[ModelLayer.CONCEPTUAL], None, context
        )
        replica_objects = await asyncio.gather(
            *(
                self._copy_objects(conceptual_objects, members[layer], family.conceptual, context)
                for layer in replica_layers
            )
        )
        objects_by_layer = {ModelLayer.CONCEPTUAL: conceptual_objects}
        objects_by_layer.update(zip(replica_layers, replica_objects))
        context.mark_step(f"populate:objects:{sum(len(v) for v in objects_by_layer.values())}")

        # Stage 2: model-object rows
        await asyncio.gather(
            *(
                self._place_objects(members[layer], objects, context)
                for layer, objects in objects_by_layer.items()
            )
        )
        context.mark_step("populate:model_objects")

        # Stage 3: attributes, keyed by source attribute id per layer
        conceptual_attribute_map = await self._copy_attributes(
            sources, conceptual_objects, source_attributes, None, context
        )
        replica_attribute_maps = await asyncio.gather(
            *(
                self._copy_attributes(
                    sources,
                    objects_by_layer[layer],
                    source_attributes,
                    conceptual_attribute_map,
                    context,
                )
                for layer in replica_layers
            )
        )
        attribute_maps = {ModelLayer.CONCEPTUAL: conceptual_attribute_map}
        attribute_maps.update(zip(replica_layers, replica_attribute_maps))
        context.mark_step("populate:attributes")

        # Stage 4: relationships from the canonical anchors between selected objects
        anchors = await self._anchors_between(selected_object_ids)
        object_maps = {
            layer: {source.id: copy for source, copy in zip(sources, objects)}
            for layer, objects in objects_by_layer.items()
        }
        created_anchors = await self._copy_anchors(
            anchors, object_maps[ModelLayer.CONCEPTUAL], conceptual_attribute_map, context
        )
        relationship_batches = await asyncio.gather(
            *(
                self._copy_relationships(
                    members[layer], anchors, object_maps[layer], attribute_maps[layer], context
                )
                for layer in objects_by_layer
            )
        )
        context.mark_step("populate:relationships")

        result = PopulationResult(
            objects_by_layer=objects_by_layer,
            attributes_created=sum(len(mapping) for mapping in attribute_maps.values()),
            relationships_created=sum(len(batch) for batch in relationship_batches),
            canonical_relationships_created=created_anchors,
        )
        logger.info(
            f"[Population] Family {family.root_id}: {result.objects_created} objects, "
            f"{result.attributes_created} attributes, {result.relationships_created} relationships"
        )
        return result

    # ==================== STAGES ====================
    async def _load_sources(self, object_ids: list[int]) -> list[DataObject]:
        sources = []
        for object_id in dict.fromkeys(object_ids):
            source = await self._storage.get_data_object(object_id)
            if source is None:
                raise EntityNotFoundError(f"Data object with id {object_id} not found")
            sources.append(source)
        return sources

    async def _copy_objects(
        self,
        originals: list[DataObject],
        model: DataModel,
        conceptual_model: Optional[DataModel],
        context: SyncContext,
    ) -> list[DataObject]:
        """Copies of `originals` in `model`. With a conceptual model, each copy points back at its original."""
        copies = []
        for original in originals:
            provenance = None
            metadata = {
                key: value
                for key, value in original.metadata.items()
                if key not in PROVENANCE_KEYS
            }
            if conceptual_model is not None:
                provenance = Provenance(original.id, conceptual_model.id, model.layer)
                metadata.update(provenance.to_metadata())
            copies.append(
                replace(
                    original,
                    id=None,
                    model_id=model.id,
                    target_system_id=model.target_system_id
                    if model.target_system_id is not None
                    else original.target_system_id,
                    metadata=metadata,
                    provenance=provenance,
                    is_new=True,
                )
            )
        created = await self._storage.create_data_objects_batch(copies)
        for data_object in created:
            context.remember_object(data_object)
            context.record_created(
                JournalKind.DATA_OBJECT, data_object.id, f"{model.layer.value}:{data_object.name}"
            )
        return created

    async def _place_objects(
        self, model: DataModel, objects: list[DataObject], context: SyncContext
    ) -> None:
        rows = await self._storage.create_data_model_objects_batch(
            [
                ModelObject(
                    model_id=model.id,
                    object_id=data_object.id,
                    position=data_object.position,
                    target_system_id=data_object.target_system_id,
                    layer_specific_config={"layer": model.layer.value},
                )
                for data_object in objects
            ]
        )
        for row in rows:
            context.record_created(JournalKind.MODEL_OBJECT, row.id, f"{model.layer.value}:{row.object_id}")

    async def _copy_attributes(
        self,
        sources: list[DataObject],
        copies: list[DataObject],
        source_attributes: dict[int, list[Attribute]],
        conceptual_map: Optional[dict[int, Attribute]],
        context: SyncContext,
    ) -> dict[int, Attribute]:
        pending: list[tuple[int, Attribute]] = []
        for source, copy in zip(sources, copies):
            for attribute in source_attributes.get(source.id, []):
                origin = conceptual_map[attribute.id].id if conceptual_map else None
                pending.append(
                    (
                        attribute.id,
                        replace(
                            attribute, id=None, object_id=copy.id, origin_attribute_id=origin
                        ).enforce_key_constraints(),
                    )
                )
        if not pending:
            return {}

        created = await self._storage.create_attributes_batch([row for _, row in pending])
        mapping = {}
        for (source_attribute_id, _), attribute in zip(pending, created):
            mapping[source_attribute_id] = attribute
            context.remember_attribute(attribute)
            context.record_created(JournalKind.ATTRIBUTE, attribute.id, attribute.name)
        return mapping

    async def _anchors_between(self, object_ids: list[int]) -> list[CanonicalRelationship]:
        selected = set(object_ids)
        anchors: dict[int, CanonicalRelationship] = {}
        for object_id in selected:
            for anchor in await self._storage.get_canonical_relationships_by_object(object_id):
                if anchor.source_object_id in selected and anchor.target_object_id in selected:
                    anchors[anchor.id] = anchor
        return [anchors[anchor_id] for anchor_id in sorted(anchors)]

    async def _copy_anchors(
        self,
        anchors: list[CanonicalRelationship],
        conceptual_objects: dict[int, DataObject],
        conceptual_attributes: dict[int, Attribute],
        context: SyncContext,
    ) -> int:
        created = 0
        for anchor in anchors:
            level = self._mapped_level(anchor, conceptual_attributes) or OBJECT_LEVEL
            before = len(context.journal)
            await ensure_canonical_relationship(
                self._storage,
                conceptual_objects[anchor.source_object_id].id,
                conceptual_objects[anchor.target_object_id].id,
                level,
                anchor.type,
                context=context,
                source_handle=anchor.source_handle,
                target_handle=anchor.target_handle,
                name=anchor.name,
                description=anchor.description,
                metadata=anchor.metadata,
            )
            if len(context.journal) > before:
                created += 1
        return created

    async def _copy_relationships(
        self,
        model: DataModel,
        anchors: list[CanonicalRelationship],
        objects: dict[int, DataObject],
        attributes: dict[int, Attribute],
        context: SyncContext,
    ) -> list[LayerRelationship]:
        rows = []
        for anchor in anchors:
            if model.layer.allows_object_level_relationships:
                level = OBJECT_LEVEL
            else:
                level = self._mapped_level(anchor, attributes)
                if level is None:
                    continue
            rows.append(
                LayerRelationship(
                    model_id=model.id,
                    layer=model.layer,
                    source_object_id=objects[anchor.source_object_id].id,
                    target_object_id=objects[anchor.target_object_id].id,
                    type=anchor.type,
                    level=level,
                    source_handle=anchor.source_handle,
                    target_handle=anchor.target_handle,
                    name=anchor.name,
                    description=anchor.description,
                )
            )
        if not rows:
            return []
        created = await self._storage.create_relationships_batch(rows)
        for row in created:
            context.record_created(
                JournalKind.RELATIONSHIP,
                row.id,
                f"{model.layer.value}:{row.source_object_id}->{row.target_object_id}",
            )
        return created

    @staticmethod
    def _mapped_level(
        anchor: CanonicalRelationship, attributes: dict[int, Attribute]
    ) -> Optional[AttributeLevel]:
        """Attribute-level anchor translated into copied attribute ids, None when it does not map."""
        if not isinstance(anchor.level, AttributeLevel):
            return None
        source = attributes.get(anchor.level.source_attribute_id)
        target = attributes.get(anchor.level.target_attribute_id)
        if source is None or target is None:
            return None
        return AttributeLevel(source.id, target.id)
