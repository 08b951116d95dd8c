"""
Cascade Orchestrator.

Top-level entry points that write into a whole model family:

- create_object_with_cascade: create an object in its home model and, when
  the home model is conceptual, replicate it into the logical and physical
  descendants, then synchronize the relationships supplied with it.
- delete_object_cascade: remove an object together with everything that
  hangs off it.

Each call owns one SyncContext and runs under the family lock. A failure
after the first write rolls the journal back newest first and raises
PartialCascadeError with a report of what was and was not undone.
"""

import logging
import time
from typing import Optional

from layersync.application.dto.cascade import (
    CascadeRelationshipResult,
    CreateObjectRequest,
    CreateObjectResult,
    DeleteObjectResult,
    LayerCreationResult,
    ModelObjectConfig,
    RelationshipInput,
)
from layersync.application.dto.relationships import RelationshipSyncRequest
from layersync.application.services.canonical_relationships import (
    ensure_canonical_relationship,
)
from layersync.application.services.family_locks import FamilyLockRegistry
from layersync.application.services.family_resolver import FamilyResolver
from layersync.application.services.layer_replicator import (
    LayerReplicator,
    build_attribute,
    build_model_object,
    merge_layer_config,
)
from layersync.application.services.relationship_identity import (
    global_level,
    global_object_id,
)
from layersync.application.services.relationship_synchronizer import (
    RelationshipSynchronizer,
)
from layersync.application.services.sync_context import (
    JournalKind,
    SyncContext,
    compensate,
)
from layersync.config.settings import Config
from layersync.domain.entities import Attribute, DataModel, DataObject
from layersync.domain.exceptions import EntityNotFoundError
from layersync.domain.ports.repositories import ModelingStorage
from layersync.domain.value_objects import ModelLayer, determine_relationship_level
from layersync.observability.metrics import observe_sync_latency, record_cascade

logger = logging.getLogger(__name__)


async def purge_object(storage: ModelingStorage, object_id: int) -> DeleteObjectResult:
    """Delete an object and its dependents. Caller holds the family lock."""
    model_objects = await storage.delete_data_model_objects_by_object(object_id)
    canonical = await storage.delete_canonical_relationships_by_object(object_id)
    relationships = await storage.delete_relationships_by_object(object_id)
    attributes = await storage.delete_attributes_by_object(object_id)
    await storage.delete_data_object(object_id)
    return DeleteObjectResult(
        object_id=object_id,
        model_objects_removed=model_objects,
        canonical_relationships_removed=canonical,
        relationships_removed=relationships,
        attributes_removed=attributes,
    )


class CascadeOrchestrator:
    def __init__(
        self,
        storage: ModelingStorage,
        resolver: FamilyResolver,
        replicator: LayerReplicator,
        synchronizer: RelationshipSynchronizer,
        locks: FamilyLockRegistry,
        rollback_on_failure: Optional[bool] = None,
    ):
        self._storage = storage
        self._resolver = resolver
        self._replicator = replicator
        self._synchronizer = synchronizer
        self._locks = locks
        self._rollback_on_failure = (
            Config.CASCADE_ROLLBACK_ON_FAILURE
            if rollback_on_failure is None
            else rollback_on_failure
        )

    # ==================== CREATE ====================
    async def create_object_with_cascade(
        self, request: CreateObjectRequest
    ) -> CreateObjectResult:
        start = time.perf_counter()
        home_model = await self._storage.get_data_model(request.object.model_id)
        if home_model is None:
            raise EntityNotFoundError(f"Model with id {request.object.model_id} not found")

        context = SyncContext()
        family = await self._resolver.resolve(home_model, context)

        async with self._locks.hold(family.root_id):
            try:
                result = await self._create(request, home_model, context)
            except Exception as e:
                await self._fail("create_object", context, e)
                raise

        record_cascade("create_object", "success")
        observe_sync_latency("create_object", time.perf_counter() - start)
        return result

    async def _create(
        self, request: CreateObjectRequest, home_model: DataModel, context: SyncContext
    ) -> CreateObjectResult:
        payload = request.object
        home_layer = home_model.layer

        base_config = ModelObjectConfig(
            position=payload.position,
            target_system_id=payload.target_system_id
            if payload.target_system_id is not None
            else home_model.target_system_id,
            is_visible=True,
            metadata={},
        )
        config = merge_layer_config(
            merge_layer_config(base_config, request.model_object_config),
            request.layer_configs.for_layer(home_layer),
        )

        # Context caches for the home model must exist before the new object is remembered
        await context.objects_in_model(self._storage, home_model.id)
        primary = await self._storage.create_data_object(
            DataObject(
                name=payload.name,
                model_id=home_model.id,
                description=payload.description,
                domain_id=payload.domain_id,
                data_area_id=payload.data_area_id,
                target_system_id=config.target_system_id,
                position=config.position,
                metadata=dict(payload.metadata),
            )
        )
        context.remember_object(primary)
        context.record_created(JournalKind.DATA_OBJECT, primary.id, f"{home_layer.value}:{primary.name}")

        model_object = await self._storage.create_data_model_object(
            build_model_object(home_model, primary, config, home_layer)
        )
        context.record_created(JournalKind.MODEL_OBJECT, model_object.id, f"{home_layer.value}:{primary.name}")

        attributes: list[Attribute] = []
        if request.attributes:
            attributes = await self._storage.create_attributes_batch(
                [
                    build_attribute(attribute_input, primary.id, index)
                    for index, attribute_input in enumerate(request.attributes)
                ]
            )
        for attribute in attributes:
            context.remember_attribute(attribute)
            context.record_created(JournalKind.ATTRIBUTE, attribute.id, f"{primary.name}.{attribute.name}")
        context.mark_step(f"create:{home_layer.value}:{primary.name}")

        layers = {
            home_layer: LayerCreationResult(
                layer=home_layer,
                model=home_model,
                object=primary,
                model_object=model_object,
                attributes=attributes,
            )
        }

        cascade_performed = False
        if request.cascade and home_model.is_conceptual:
            for layer in (ModelLayer.LOGICAL, ModelLayer.PHYSICAL):
                target_model = await self._resolver.find_descendant(home_model, layer, context)
                if target_model is None:
                    logger.info(
                        f"[Cascade] No {layer.value} model under {home_model.name} ({home_model.id}), skipping layer"
                    )
                    continue
                await context.objects_in_model(self._storage, target_model.id)
                layers[layer] = await self._replicator.replicate(
                    layer,
                    home_model,
                    primary,
                    target_model,
                    payload,
                    request.attributes,
                    request.layer_configs.for_layer(layer),
                    context,
                )
                cascade_performed = True

        relationships: list[CascadeRelationshipResult] = []
        layer_model_ids = [created.model.id for created in layers.values()]
        for relationship_input in request.relationships:
            synced = await self._cascade_relationship(
                relationship_input, home_model, primary, attributes, layer_model_ids, context
            )
            if synced is not None:
                relationships.append(synced)

        logger.info(
            f"[Cascade] Created {primary.name} ({primary.id}) in {len(layers)} layer(s), "
            f"{len(relationships)} relationship(s)"
        )
        return CreateObjectResult(
            primary_object=primary,
            cascade_performed=cascade_performed,
            layers=layers,
            relationships=relationships,
        )

    async def _cascade_relationship(
        self,
        relationship_input: RelationshipInput,
        home_model: DataModel,
        primary: DataObject,
        primary_attributes: list[Attribute],
        layer_model_ids: list[int],
        context: SyncContext,
    ) -> Optional[CascadeRelationshipResult]:
        target = await self._storage.get_data_object(relationship_input.target_object_id)
        if target is None:
            logger.warning(
                f"[Cascade] Relationship target {relationship_input.target_object_id} not found, skipping"
            )
            return None

        source_attribute_id = None
        if relationship_input.source_attribute_name:
            source_attribute_id = next(
                (a.id for a in primary_attributes if a.name == relationship_input.source_attribute_name),
                None,
            )
        target_attribute_id = None
        if relationship_input.target_attribute_name:
            target_attributes = await context.attributes_of(self._storage, target.id)
            target_attribute_id = next(
                (a.id for a in target_attributes if a.name == relationship_input.target_attribute_name),
                None,
            )

        level = determine_relationship_level(source_attribute_id, target_attribute_id)
        relationship_type = relationship_input.type or Config.DEFAULT_RELATIONSHIP_TYPE

        # Anchors are keyed by conceptual identities whichever layer the target lives in
        canonical = await ensure_canonical_relationship(
            self._storage,
            await global_object_id(self._storage, primary.id),
            await global_object_id(self._storage, target.id),
            await global_level(self._storage, level),
            relationship_type,
            context=context,
            source_handle=relationship_input.source_handle,
            target_handle=relationship_input.target_handle,
            name=relationship_input.name,
            description=relationship_input.description,
        )
        synced = await self._synchronizer.synchronize(
            RelationshipSyncRequest(
                source_object_id=primary.id,
                target_object_id=target.id,
                type=relationship_type,
                level=level,
                source_handle=relationship_input.source_handle,
                target_handle=relationship_input.target_handle,
                name=relationship_input.name,
                description=relationship_input.description,
            ),
            home_model,
            context,
            only_model_ids=layer_model_ids,
        )
        return CascadeRelationshipResult(canonical=canonical, relationships_by_model=synced)

    # ==================== DELETE ====================
    async def delete_object_cascade(self, object_id: int) -> DeleteObjectResult:
        start = time.perf_counter()
        data_object = await self._storage.get_data_object(object_id)
        if data_object is None:
            raise EntityNotFoundError(f"Data object with id {object_id} not found")

        model = await self._storage.get_data_model(data_object.model_id)
        lock_key = data_object.model_id
        if model is not None:
            family = await self._resolver.resolve(model)
            lock_key = family.root_id

        async with self._locks.hold(lock_key):
            result = await purge_object(self._storage, object_id)

        record_cascade("delete_object", "success")
        observe_sync_latency("delete_object", time.perf_counter() - start)
        logger.info(
            f"[Cascade] Deleted object {object_id}: {result.model_objects_removed} placements, "
            f"{result.canonical_relationships_removed} anchors, {result.relationships_removed} relationships, "
            f"{result.attributes_removed} attributes"
        )
        return result

    # ==================== FAILURE ====================
    async def _fail(self, operation: str, context: SyncContext, error: Exception) -> None:
        await compensate(self._storage, operation, context, error, self._rollback_on_failure)
