"""
SyncContext - per-call state for one top-level synchronization.

Owned by the entry point (cascade, relationship command, batch population),
passed by reference through the replicator and synchronizer, and discarded
when the call returns. Holds:
- read-through caches of objects per model and attributes per object
- the model catalog, loaded once
- a journal of every row created, used to compensate on failure
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from layersync.domain.entities import Attribute, DataModel, DataObject
from layersync.domain.exceptions import PartialCascadeError, PartialFailureReport
from layersync.domain.ports.repositories import ModelingStorage
from layersync.observability.metrics import (
    MetricsErrorType,
    increment_error,
    record_cascade,
)

logger = logging.getLogger(__name__)


class JournalKind:
    """Row kinds recorded in the compensation journal."""

    DATA_OBJECT = "data_object"
    MODEL_OBJECT = "model_object"
    ATTRIBUTE = "attribute"
    RELATIONSHIP = "relationship"
    CANONICAL_RELATIONSHIP = "canonical_relationship"


@dataclass(frozen=True)
class JournalEntry:
    kind: str
    entity_id: int
    label: str

    def __str__(self) -> str:
        return f"{self.kind}#{self.entity_id} ({self.label})"


@dataclass
class SyncContext:
    objects_by_model: dict[int, list[DataObject]] = field(default_factory=dict)
    attributes_by_object: dict[int, list[Attribute]] = field(default_factory=dict)
    models: Optional[list[DataModel]] = None
    journal: list[JournalEntry] = field(default_factory=list)
    completed_steps: list[str] = field(default_factory=list)

    # ==================== CACHES ====================
    async def catalog(self, storage: ModelingStorage) -> list[DataModel]:
        if self.models is None:
            self.models = await storage.get_data_models()
        return self.models

    async def objects_in_model(
        self, storage: ModelingStorage, model_id: int
    ) -> list[DataObject]:
        if model_id not in self.objects_by_model:
            self.objects_by_model[model_id] = await storage.get_data_objects_by_model(
                model_id
            )
        return self.objects_by_model[model_id]

    async def attributes_of(
        self, storage: ModelingStorage, object_id: int
    ) -> list[Attribute]:
        if object_id not in self.attributes_by_object:
            self.attributes_by_object[object_id] = (
                await storage.get_attributes_by_object(object_id)
            )
        return self.attributes_by_object[object_id]

    def remember_object(self, data_object: DataObject) -> None:
        cached = self.objects_by_model.get(data_object.model_id)
        if cached is not None:
            cached.append(data_object)
        # A freshly created object has no attributes yet
        self.attributes_by_object.setdefault(data_object.id, [])

    def remember_attribute(self, attribute: Attribute) -> None:
        cached = self.attributes_by_object.get(attribute.object_id)
        if cached is not None:
            cached.append(attribute)

    # ==================== JOURNAL ====================
    def record_created(self, kind: str, entity_id: int, label: str) -> None:
        self.journal.append(JournalEntry(kind, entity_id, label))

    def mark_step(self, step: str) -> None:
        self.completed_steps.append(step)

    async def rollback(self, storage: ModelingStorage) -> tuple[list[str], list[str]]:
        """Delete journaled rows newest first.

        Returns (rolled_back, unrecovered) as printable entries. A row whose
        delete fails stays in `unrecovered` and the rest still run.
        """
        deleters = {
            JournalKind.DATA_OBJECT: storage.delete_data_object,
            JournalKind.MODEL_OBJECT: storage.delete_data_model_object,
            JournalKind.ATTRIBUTE: storage.delete_attribute,
            JournalKind.RELATIONSHIP: storage.delete_relationship,
            JournalKind.CANONICAL_RELATIONSHIP: storage.delete_canonical_relationship,
        }
        rolled_back: list[str] = []
        unrecovered: list[str] = []
        for entry in reversed(self.journal):
            try:
                await deleters[entry.kind](entry.entity_id)
                rolled_back.append(str(entry))
            except Exception as e:
                logger.error(f"[SyncContext] Rollback of {entry} failed: {e}")
                unrecovered.append(str(entry))
        self.journal.clear()
        return rolled_back, unrecovered

    def pending_rows(self) -> list[str]:
        return [str(entry) for entry in self.journal]


async def compensate(
    storage: ModelingStorage,
    operation: str,
    context: SyncContext,
    error: Exception,
    rollback: bool = True,
) -> None:
    """Undo the rows a failed top-level call created.

    Returns when nothing was written so the caller re-raises the original
    error. Otherwise raises PartialCascadeError. Updates and deletes are not
    journaled and stay applied.
    """
    increment_error(MetricsErrorType.CASCADE_FAILED)
    if not context.journal:
        record_cascade(operation, "failed")
        return

    logger.error(f"[SyncContext] {operation} failed after {len(context.journal)} write(s): {error}")
    if rollback:
        rolled_back, unrecovered = await context.rollback(storage)
    else:
        rolled_back, unrecovered = [], context.pending_rows()

    if unrecovered:
        increment_error(MetricsErrorType.ROLLBACK_INCOMPLETE)
    record_cascade(operation, "rolled_back" if not unrecovered else "partial")

    report = PartialFailureReport(
        operation=operation,
        completed_steps=list(context.completed_steps),
        rolled_back=rolled_back,
        unrecovered=unrecovered,
        cause=str(error),
    )
    raise PartialCascadeError(
        f"{operation} failed: {error} ({len(rolled_back)} rolled back, {len(unrecovered)} left)",
        report,
    ) from error
