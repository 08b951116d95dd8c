"""
Canonical relationship anchors.

One anchor per logical edge, independent of layer. Looked up in either
orientation so repeated synchronization of the same edge never creates a
second anchor.
"""

import logging
from typing import Any, Optional

from layersync.application.services.sync_context import JournalKind, SyncContext
from layersync.domain.entities import CanonicalRelationship
from layersync.domain.ports.repositories import ModelingStorage
from layersync.domain.value_objects import RelationshipLevel

logger = logging.getLogger(__name__)


async def find_canonical_relationships(
    storage: ModelingStorage,
    source_object_id: int,
    target_object_id: int,
    level: RelationshipLevel,
) -> list[CanonicalRelationship]:
    anchors = await storage.get_canonical_relationships_by_object(source_object_id)
    return [
        anchor
        for anchor in anchors
        if anchor.matches(source_object_id, target_object_id, level)
    ]


async def ensure_canonical_relationship(
    storage: ModelingStorage,
    source_object_id: int,
    target_object_id: int,
    level: RelationshipLevel,
    relationship_type: str,
    context: Optional[SyncContext] = None,
    source_handle: Optional[str] = None,
    target_handle: Optional[str] = None,
    name: Optional[str] = None,
    description: Optional[str] = None,
    metadata: Optional[dict[str, Any]] = None,
) -> CanonicalRelationship:
    """Return the existing anchor for the edge, creating it when absent."""
    existing = await find_canonical_relationships(
        storage, source_object_id, target_object_id, level
    )
    if existing:
        return existing[0]

    anchor = await storage.create_canonical_relationship(
        CanonicalRelationship(
            source_object_id=source_object_id,
            target_object_id=target_object_id,
            type=relationship_type,
            level=level,
            source_handle=source_handle,
            target_handle=target_handle,
            name=name,
            description=description,
            metadata=dict(metadata or {}),
        )
    )
    if context is not None:
        context.record_created(
            JournalKind.CANONICAL_RELATIONSHIP,
            anchor.id,
            f"{source_object_id}->{target_object_id}",
        )
    logger.debug(
        f"[Canonical] Anchor {anchor.id} for {source_object_id}->{target_object_id} ({level.kind})"
    )
    return anchor
