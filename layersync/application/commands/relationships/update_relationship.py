"""
UpdateRelationship Command - Edit a layer relationship and re-sync the family.

Fields left as None keep their current value; `clear_attributes` turns an
attribute-level relationship back into an object-level one. When the
attribute pair changes, the rows for the previous pair are removed from every
layer before the new pair is synchronized.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from layersync.application.common.interfaces import Command, CommandHandler
from layersync.application.dto.relationships import (
    RelationshipSyncRequest,
    RelationshipSyncResult,
)
from layersync.application.services.canonical_relationships import (
    ensure_canonical_relationship,
    find_canonical_relationships,
)
from layersync.application.services.family_locks import FamilyLockRegistry
from layersync.application.services.family_resolver import FamilyResolver
from layersync.application.services.relationship_identity import (
    global_attribute_id,
    global_level,
    global_object_id,
    require_attributes,
)
from layersync.application.services.relationship_synchronizer import (
    RelationshipSynchronizer,
)
from layersync.application.services.sync_context import SyncContext, compensate
from layersync.config.settings import Config
from layersync.domain.entities import CanonicalRelationship, DataModel, LayerRelationship
from layersync.domain.exceptions import EntityNotFoundError
from layersync.domain.ports.repositories import ModelingStorage
from layersync.domain.value_objects import RelationshipLevel, determine_relationship_level

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UpdateRelationshipCommand(Command[RelationshipSyncResult]):
    relationship_id: int
    type: Optional[str] = None
    source_attribute_id: Optional[int] = None
    target_attribute_id: Optional[int] = None
    clear_attributes: bool = False
    source_handle: Optional[str] = None
    target_handle: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None


class UpdateRelationshipHandler(CommandHandler[RelationshipSyncResult]):
    def __init__(
        self,
        storage: ModelingStorage,
        resolver: FamilyResolver,
        synchronizer: RelationshipSynchronizer,
        locks: FamilyLockRegistry,
    ):
        self._storage = storage
        self._resolver = resolver
        self._synchronizer = synchronizer
        self._locks = locks

    async def execute(self, command: UpdateRelationshipCommand) -> RelationshipSyncResult:
        existing = await self._storage.get_relationship(command.relationship_id)
        if existing is None:
            raise EntityNotFoundError(f"Relationship with id {command.relationship_id} not found")
        model = await self._storage.get_data_model(existing.model_id)
        if model is None:
            raise EntityNotFoundError(f"Model with id {existing.model_id} not found")

        if not command.clear_attributes:
            await require_attributes(
                self._storage, command.source_attribute_id, command.target_attribute_id
            )

        context = SyncContext()
        family = await self._resolver.resolve(model, context)

        previous_level = await global_level(self._storage, existing.level)
        if command.clear_attributes:
            final_level = determine_relationship_level(None, None)
        else:
            final_level = determine_relationship_level(
                await global_attribute_id(self._storage, command.source_attribute_id)
                if command.source_attribute_id is not None
                else previous_level.source_attribute_id,
                await global_attribute_id(self._storage, command.target_attribute_id)
                if command.target_attribute_id is not None
                else previous_level.target_attribute_id,
            )

        final_type = command.type if command.type is not None else existing.type
        final_name = command.name if command.name is not None else existing.name
        final_description = (
            command.description if command.description is not None else existing.description
        )

        request = RelationshipSyncRequest(
            source_object_id=existing.source_object_id,
            target_object_id=existing.target_object_id,
            type=final_type,
            level=final_level,
            source_handle=command.source_handle
            if command.source_handle is not None
            else existing.source_handle,
            target_handle=command.target_handle
            if command.target_handle is not None
            else existing.target_handle,
            name=final_name,
            description=final_description,
        )

        async with self._locks.hold(family.root_id):
            try:
                anchor, synced = await self._apply(
                    existing, model, previous_level, request, context
                )
            except Exception as e:
                await compensate(
                    self._storage,
                    "update_relationship",
                    context,
                    e,
                    Config.CASCADE_ROLLBACK_ON_FAILURE,
                )
                raise

        return RelationshipSyncResult(
            relationship=synced.get(model.id) or await self._storage.get_relationship(existing.id),
            canonical_relationship_id=anchor.id,
            relationships_by_model=synced,
        )

    async def _apply(
        self,
        existing: LayerRelationship,
        model: DataModel,
        previous_level: RelationshipLevel,
        request: RelationshipSyncRequest,
        context: SyncContext,
    ) -> tuple[CanonicalRelationship, dict[int, LayerRelationship]]:
        if request.level != previous_level:
            removed = await self._synchronizer.remove(
                RelationshipSyncRequest(
                    existing.source_object_id,
                    existing.target_object_id,
                    type=existing.type,
                    level=previous_level,
                ),
                model,
                context,
            )
            logger.info(
                f"[Relationship] Level change on {existing.id}: removed previous rows {removed}"
            )

        source_global = await global_object_id(self._storage, existing.source_object_id)
        target_global = await global_object_id(self._storage, existing.target_object_id)
        anchors = await find_canonical_relationships(
            self._storage, source_global, target_global, previous_level
        )
        if anchors:
            anchor = await self._storage.update_canonical_relationship(
                anchors[0].id,
                {
                    "type": request.type,
                    "level": request.level,
                    "name": request.name,
                    "description": request.description,
                },
            )
        else:
            anchor = await ensure_canonical_relationship(
                self._storage,
                source_global,
                target_global,
                request.level,
                request.type,
                context=context,
                name=request.name,
                description=request.description,
            )

        synced = await self._synchronizer.synchronize(request, model, context)
        return anchor, synced
