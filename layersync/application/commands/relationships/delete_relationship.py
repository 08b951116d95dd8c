"""Delete Relationship Command - Remove a relationship from every family layer and its anchor."""

import logging
from dataclasses import dataclass

from layersync.application.common.interfaces import Command, CommandHandler
from layersync.application.dto.relationships import (
    RelationshipRemovalResult,
    RelationshipSyncRequest,
)
from layersync.application.services.canonical_relationships import (
    find_canonical_relationships,
)
from layersync.application.services.family_locks import FamilyLockRegistry
from layersync.application.services.family_resolver import FamilyResolver
from layersync.application.services.relationship_identity import (
    global_level,
    global_object_id,
)
from layersync.application.services.relationship_synchronizer import (
    RelationshipSynchronizer,
)
from layersync.application.services.sync_context import SyncContext
from layersync.domain.exceptions import EntityNotFoundError
from layersync.domain.ports.repositories import ModelingStorage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeleteRelationshipCommand(Command[RelationshipRemovalResult]):
    relationship_id: int


class DeleteRelationshipHandler(CommandHandler[RelationshipRemovalResult]):
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

    async def execute(self, command: DeleteRelationshipCommand) -> RelationshipRemovalResult:
        existing = await self._storage.get_relationship(command.relationship_id)
        if existing is None:
            raise EntityNotFoundError(f"Relationship with id {command.relationship_id} not found")
        model = await self._storage.get_data_model(existing.model_id)
        if model is None:
            raise EntityNotFoundError(f"Model with id {existing.model_id} not found")

        context = SyncContext()
        family = await self._resolver.resolve(model, context)
        level = await global_level(self._storage, existing.level)

        async with self._locks.hold(family.root_id):
            removed = await self._synchronizer.remove(
                RelationshipSyncRequest(
                    existing.source_object_id,
                    existing.target_object_id,
                    type=existing.type,
                    level=level,
                ),
                model,
                context,
            )
            # The row itself may not match the re-derived level
            if await self._storage.get_relationship(existing.id) is not None:
                await self._storage.delete_relationship(existing.id)
                removed[model.id] = removed.get(model.id, 0) + 1

            anchors = await find_canonical_relationships(
                self._storage,
                await global_object_id(self._storage, existing.source_object_id),
                await global_object_id(self._storage, existing.target_object_id),
                level,
            )
            for anchor in anchors:
                await self._storage.delete_canonical_relationship(anchor.id)

        logger.info(
            f"[Relationship] Deleted {existing.id}: rows {removed}, {len(anchors)} anchor(s)"
        )
        return RelationshipRemovalResult(
            relationship_id=existing.id,
            removed_by_model=removed,
            canonical_relationships_removed=len(anchors),
        )
