"""
CreateRelationship Command - Create a relationship and propagate it to every family layer.

The edge is anchored once in the canonical relationships, then the
synchronizer writes one row per layer that can represent it. The result
lists the models that received a row.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from layersync.application.common.interfaces import Command, CommandHandler
from layersync.application.dto.relationships import (
    RelationshipSyncRequest,
    RelationshipSyncResult,
)
from layersync.application.services.canonical_relationships import (
    ensure_canonical_relationship,
)
from layersync.application.services.family_locks import FamilyLockRegistry
from layersync.application.services.family_resolver import FamilyResolver
from layersync.application.services.relationship_identity import (
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
from layersync.domain.exceptions import DomainValidationError, EntityNotFoundError
from layersync.domain.ports.repositories import ModelingStorage
from layersync.domain.value_objects import RelationshipLevel, determine_relationship_level

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CreateRelationshipCommand(Command[RelationshipSyncResult]):
    model_id: int
    source_object_id: int
    target_object_id: int
    type: str = "1:N"
    source_attribute_id: Optional[int] = None
    target_attribute_id: Optional[int] = None
    source_handle: Optional[str] = None
    target_handle: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    metadata: Optional[dict[str, Any]] = field(default=None, hash=False)


class CreateRelationshipHandler(CommandHandler[RelationshipSyncResult]):
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

    async def execute(self, command: CreateRelationshipCommand) -> RelationshipSyncResult:
        if command.source_object_id == command.target_object_id:
            raise DomainValidationError("Source and target objects must be different")

        model = await self._storage.get_data_model(command.model_id)
        if model is None:
            raise EntityNotFoundError(f"Model with id {command.model_id} not found")

        await require_attributes(
            self._storage, command.source_attribute_id, command.target_attribute_id
        )

        context = SyncContext()
        family = await self._resolver.resolve(model, context)
        level = determine_relationship_level(
            command.source_attribute_id, command.target_attribute_id
        )

        async with self._locks.hold(family.root_id):
            try:
                anchor, synced = await self._apply(command, model, level, context)
            except Exception as e:
                await compensate(
                    self._storage,
                    "create_relationship",
                    context,
                    e,
                    Config.CASCADE_ROLLBACK_ON_FAILURE,
                )
                raise

        logger.info(
            f"[Relationship] {command.source_object_id}->{command.target_object_id} "
            f"({level.kind}) synced to models {sorted(synced)}"
        )
        return RelationshipSyncResult(
            relationship=synced.get(model.id),
            canonical_relationship_id=anchor.id,
            relationships_by_model=synced,
        )

    async def _apply(
        self,
        command: CreateRelationshipCommand,
        model: DataModel,
        level: RelationshipLevel,
        context: SyncContext,
    ) -> tuple[CanonicalRelationship, dict[int, LayerRelationship]]:
        anchor = await ensure_canonical_relationship(
            self._storage,
            await global_object_id(self._storage, command.source_object_id),
            await global_object_id(self._storage, command.target_object_id),
            await global_level(self._storage, level),
            command.type,
            context=context,
            name=command.name,
            description=command.description,
            metadata=command.metadata,
        )
        changes = {
            field_name: value
            for field_name, value in (
                ("type", command.type),
                ("name", command.name),
                ("description", command.description),
            )
            if getattr(anchor, field_name) != value
        }
        if command.metadata is not None and anchor.metadata != command.metadata:
            changes["metadata"] = dict(command.metadata)
        if changes:
            anchor = await self._storage.update_canonical_relationship(anchor.id, changes)

        synced = await self._synchronizer.synchronize(
            RelationshipSyncRequest(
                source_object_id=command.source_object_id,
                target_object_id=command.target_object_id,
                type=command.type,
                level=level,
                source_handle=command.source_handle,
                target_handle=command.target_handle,
                name=command.name,
                description=command.description,
            ),
            model,
            context,
        )
        return anchor, synced
