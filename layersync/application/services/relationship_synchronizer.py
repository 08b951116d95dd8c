"""
Relationship Synchronizer.

Applies one relationship edit to every layer of the family:

1. Resolve the family of the model the edit was made in.
2. Per member model, locate the layer objects for source and target by
   provenance identity, falling back to normalized name. Missing either
   object skips the layer.
3. Conceptual layer: always object-level. Logical/physical layers: only
   attribute-level. Layer-local attributes are resolved by origin identity
   then name; a missing one is copied from the global attribute. If either
   attribute still cannot be resolved the layer is skipped and no row is
   written.
4. Upsert: a row with the same source, target and level is updated only when
   a mutable field differs; otherwise a new row is created.

Skipped layers are logged and counted, never raised. The returned map only
holds the layers that were written.
"""

import logging
from typing import Iterable, Optional

from layersync.application.dto.relationships import (
    LayerUpsert,
    RelationshipSyncRequest,
    UpsertOutcome,
)
from layersync.application.services.family_resolver import FamilyResolver
from layersync.application.services.naming import normalize_name
from layersync.application.services.sync_context import JournalKind, SyncContext
from layersync.domain.entities import Attribute, DataModel, DataObject, LayerRelationship
from layersync.domain.exceptions import EntityNotFoundError
from layersync.domain.ports.repositories import ModelingStorage
from layersync.domain.value_objects import (
    OBJECT_LEVEL,
    AttributeLevel,
    RelationshipLevel,
    determine_relationship_level,
)
from layersync.observability.metrics import SyncOutcome, record_relationship_sync

logger = logging.getLogger(__name__)

MUTABLE_FIELDS = ("type", "source_handle", "target_handle", "name", "description")


class RelationshipSynchronizer:
    def __init__(self, storage: ModelingStorage, resolver: FamilyResolver):
        self._storage = storage
        self._resolver = resolver

    # ==================== SYNCHRONIZE ====================
    async def synchronize(
        self,
        request: RelationshipSyncRequest,
        base_model: DataModel,
        context: Optional[SyncContext] = None,
        only_model_ids: Optional[Iterable[int]] = None,
    ) -> dict[int, LayerRelationship]:
        """Create or update the relationship in every family layer. Returns model id -> row."""
        context = context or SyncContext()
        allowed = set(only_model_ids) if only_model_ids is not None else None
        family = await self._resolver.resolve(base_model, context)

        source_global = await self._require_object(request.source_object_id)
        target_global = await self._require_object(request.target_object_id)
        source_attribute, target_attribute = await self._global_attributes(request.level)

        results: dict[int, LayerRelationship] = {}
        for member in family.ordered_members():
            if allowed is not None and member.id not in allowed:
                continue
            upsert = await self._sync_layer(
                member,
                request,
                source_global,
                target_global,
                source_attribute,
                target_attribute,
                context,
            )
            if upsert is not None:
                results[member.id] = upsert.relationship

        context.mark_step(
            f"sync_relationship:{request.source_object_id}->{request.target_object_id}"
        )
        return results

    async def _sync_layer(
        self,
        member: DataModel,
        request: RelationshipSyncRequest,
        source_global: DataObject,
        target_global: DataObject,
        source_attribute: Optional[Attribute],
        target_attribute: Optional[Attribute],
        context: SyncContext,
    ) -> Optional[LayerUpsert]:
        layer = member.layer
        source_object = await self.locate_layer_object(member, source_global, context)
        target_object = await self.locate_layer_object(member, target_global, context)
        if source_object is None or target_object is None:
            logger.info(
                f"[RelSync] Skip {layer.value} model {member.id}: "
                f"object not present (source={source_object is not None}, target={target_object is not None})"
            )
            record_relationship_sync(layer.value, SyncOutcome.SKIPPED_MISSING_OBJECT)
            return None

        level = await self._layer_level(
            member, request, source_object, target_object, source_attribute, target_attribute, context
        )
        if level is None:
            return None

        return await self.upsert_layer_relationship(
            member,
            source_object.id,
            target_object.id,
            level,
            relationship_type=request.type,
            source_handle=request.source_handle,
            target_handle=request.target_handle,
            name=request.name,
            description=request.description,
            context=context,
        )

    async def _layer_level(
        self,
        member: DataModel,
        request: RelationshipSyncRequest,
        source_object: DataObject,
        target_object: DataObject,
        source_attribute: Optional[Attribute],
        target_attribute: Optional[Attribute],
        context: SyncContext,
        create_missing: bool = True,
    ) -> Optional[RelationshipLevel]:
        """Level to store in this layer, or None when the layer must be skipped."""
        layer = member.layer
        if layer.allows_object_level_relationships:
            return OBJECT_LEVEL

        if not isinstance(request.level, AttributeLevel):
            logger.info(
                f"[RelSync] Skip {layer.value} model {member.id}: object-level edit has no attribute-level form"
            )
            record_relationship_sync(layer.value, SyncOutcome.SKIPPED_OBJECT_LEVEL)
            return None

        layer_source = await self.resolve_layer_attribute(
            source_object, source_attribute, context, create_missing
        )
        layer_target = await self.resolve_layer_attribute(
            target_object, target_attribute, context, create_missing
        )
        level = determine_relationship_level(
            layer_source.id if layer_source else None,
            layer_target.id if layer_target else None,
        )
        if not isinstance(level, AttributeLevel):
            logger.warning(
                f"[RelSync] Skip {layer.value} model {member.id}: attributes unresolved "
                f"({source_object.name} -> {target_object.name})"
            )
            record_relationship_sync(layer.value, SyncOutcome.SKIPPED_UNRESOLVED_ATTRIBUTE)
            return None
        return level

    # ==================== UPSERT (single layer) ====================
    async def upsert_layer_relationship(
        self,
        member: DataModel,
        source_object_id: int,
        target_object_id: int,
        level: RelationshipLevel,
        relationship_type: str = "1:N",
        source_handle: Optional[str] = None,
        target_handle: Optional[str] = None,
        name: Optional[str] = None,
        description: Optional[str] = None,
        context: Optional[SyncContext] = None,
    ) -> LayerUpsert:
        desired = {
            "type": relationship_type,
            "source_handle": source_handle,
            "target_handle": target_handle,
            "name": name,
            "description": description,
        }
        existing = await self._storage.get_relationships_by_model(member.id)
        match = next(
            (row for row in existing if row.connects(source_object_id, target_object_id, level)),
            None,
        )

        if match is not None:
            changes = {
                field_name: desired[field_name]
                for field_name in MUTABLE_FIELDS
                if getattr(match, field_name) != desired[field_name]
            }
            if not changes:
                record_relationship_sync(member.layer.value, SyncOutcome.UNCHANGED)
                return LayerUpsert(match, UpsertOutcome.UNCHANGED)
            updated = await self._storage.update_relationship(match.id, changes)
            record_relationship_sync(member.layer.value, SyncOutcome.UPDATED)
            logger.debug(
                f"[RelSync] Updated relationship {match.id} in {member.layer.value}: {sorted(changes)}"
            )
            return LayerUpsert(updated, UpsertOutcome.UPDATED)

        created = await self._storage.create_relationship(
            LayerRelationship(
                model_id=member.id,
                layer=member.layer,
                source_object_id=source_object_id,
                target_object_id=target_object_id,
                level=level,
                **desired,
            )
        )
        if context is not None:
            context.record_created(
                JournalKind.RELATIONSHIP,
                created.id,
                f"{member.layer.value}:{source_object_id}->{target_object_id}",
            )
        record_relationship_sync(member.layer.value, SyncOutcome.CREATED)
        logger.info(
            f"[RelSync] Created {level.kind}-level relationship {created.id} in {member.layer.value} model {member.id}"
        )
        return LayerUpsert(created, UpsertOutcome.CREATED)

    # ==================== REMOVE ====================
    async def remove(
        self,
        request: RelationshipSyncRequest,
        base_model: DataModel,
        context: Optional[SyncContext] = None,
    ) -> dict[int, int]:
        """Delete every matching row per layer. Returns model id -> rows removed."""
        context = context or SyncContext()
        family = await self._resolver.resolve(base_model, context)
        source_global = await self._require_object(request.source_object_id)
        target_global = await self._require_object(request.target_object_id)
        source_attribute, target_attribute = await self._global_attributes(request.level)

        removed: dict[int, int] = {}
        for member in family.ordered_members():
            source_object = await self.locate_layer_object(member, source_global, context)
            target_object = await self.locate_layer_object(member, target_global, context)
            if source_object is None or target_object is None:
                continue
            level = await self._layer_level(
                member,
                request,
                source_object,
                target_object,
                source_attribute,
                target_attribute,
                context,
                create_missing=False,
            )
            if level is None:
                continue
            rows = await self._storage.get_relationships_by_model(member.id)
            count = 0
            for row in rows:
                if row.connects(source_object.id, target_object.id, level):
                    await self._storage.delete_relationship(row.id)
                    count += 1
            if count:
                removed[member.id] = count
                record_relationship_sync(member.layer.value, SyncOutcome.REMOVED)
                logger.info(
                    f"[RelSync] Removed {count} relationship(s) from {member.layer.value} model {member.id}"
                )
        return removed

    # ==================== LOOKUPS ====================
    async def locate_layer_object(
        self, member: DataModel, global_object: DataObject, context: SyncContext
    ) -> Optional[DataObject]:
        """The object in `member` that represents `global_object`: provenance first, then name."""
        if global_object.model_id == member.id:
            return global_object

        candidates = await context.objects_in_model(self._storage, member.id)
        identity = global_object.origin_identity
        for candidate in candidates:
            if candidate.origin_identity == identity:
                return candidate

        wanted = normalize_name(global_object.name)
        for candidate in candidates:
            if normalize_name(candidate.name) == wanted:
                return candidate
        return None

    async def resolve_layer_attribute(
        self,
        layer_object: DataObject,
        global_attribute: Optional[Attribute],
        context: SyncContext,
        create_missing: bool = True,
    ) -> Optional[Attribute]:
        if global_attribute is None:
            return None
        if global_attribute.object_id == layer_object.id:
            return global_attribute

        attributes = await context.attributes_of(self._storage, layer_object.id)
        identity = global_attribute.origin_identity
        for attribute in attributes:
            if attribute.origin_identity == identity:
                return attribute
        wanted = normalize_name(global_attribute.name)
        for attribute in attributes:
            if normalize_name(attribute.name) == wanted:
                return attribute

        if not create_missing:
            return None

        created = await self._storage.create_attribute(
            Attribute(
                name=global_attribute.name,
                object_id=layer_object.id,
                conceptual_type=global_attribute.conceptual_type,
                logical_type=global_attribute.logical_type,
                physical_type=global_attribute.physical_type,
                data_type=global_attribute.data_type,
                length=global_attribute.length,
                precision=global_attribute.precision,
                scale=global_attribute.scale,
                nullable=global_attribute.nullable,
                is_primary_key=global_attribute.is_primary_key,
                is_foreign_key=global_attribute.is_foreign_key,
                order_index=len(attributes),
                description=global_attribute.description,
                origin_attribute_id=identity,
            ).enforce_key_constraints()
        )
        context.remember_attribute(created)
        context.record_created(
            JournalKind.ATTRIBUTE, created.id, f"{layer_object.name}.{created.name}"
        )
        logger.info(
            f"[RelSync] Created missing attribute {layer_object.name}.{created.name} (id {created.id})"
        )
        return created

    async def _require_object(self, object_id: int) -> DataObject:
        data_object = await self._storage.get_data_object(object_id)
        if data_object is None:
            raise EntityNotFoundError(f"Data object with id {object_id} not found")
        return data_object

    async def _global_attributes(
        self, level: RelationshipLevel
    ) -> tuple[Optional[Attribute], Optional[Attribute]]:
        if not isinstance(level, AttributeLevel):
            return None, None
        return (
            await self._storage.get_attribute(level.source_attribute_id),
            await self._storage.get_attribute(level.target_attribute_id),
        )

