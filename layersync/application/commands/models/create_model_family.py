"""
CreateModelFamily Command - Create a conceptual/logical/physical triad, optionally
seeded with copies of existing objects.

Usage:
    handler: FromDishka[CreateModelFamilyHandler]
    result = await handler.execute(
        CreateModelFamilyCommand(name="Sales", selected_object_ids=[12, 15])
    )
    result.family.physical          # new physical model
    result.population.objects_created  # 6 (2 objects x 3 layers)

Copies are journaled; a failure part way through population rolls back the
copied rows and the three models, then raises PartialCascadeError.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from layersync.application.common.interfaces import Command, CommandHandler
from layersync.application.dto.models import CreateModelFamilyResult
from layersync.application.services.batch_population import BatchPopulationService
from layersync.application.services.family_locks import FamilyLockRegistry
from layersync.application.services.sync_context import SyncContext
from layersync.domain.entities import DataModel, ModelFamily
from layersync.domain.exceptions import (
    DomainValidationError,
    PartialCascadeError,
    PartialFailureReport,
)
from layersync.domain.ports.repositories import ModelingStorage
from layersync.domain.value_objects import ModelLayer
from layersync.observability.metrics import (
    MetricsErrorType,
    increment_error,
    record_cascade,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CreateModelFamilyCommand(Command[CreateModelFamilyResult]):
    name: str
    domain_id: Optional[int] = None
    data_area_id: Optional[int] = None
    target_system_id: Optional[int] = None
    selected_object_ids: tuple[int, ...] = field(default_factory=tuple)


class CreateModelFamilyHandler(CommandHandler[CreateModelFamilyResult]):
    def __init__(
        self,
        storage: ModelingStorage,
        population: BatchPopulationService,
        locks: FamilyLockRegistry,
    ):
        self._storage = storage
        self._population = population
        self._locks = locks

    async def execute(self, command: CreateModelFamilyCommand) -> CreateModelFamilyResult:
        if not command.name or not command.name.strip():
            raise DomainValidationError("Model name is required")

        conceptual = await self._storage.create_data_model(
            DataModel(
                name=command.name,
                layer=ModelLayer.CONCEPTUAL,
                domain_id=command.domain_id,
                data_area_id=command.data_area_id,
                target_system_id=command.target_system_id,
            )
        )
        logical = await self._storage.create_data_model(conceptual.child(ModelLayer.LOGICAL))
        physical = await self._storage.create_data_model(conceptual.child(ModelLayer.PHYSICAL))
        family = ModelFamily(
            conceptual=conceptual,
            logical=logical,
            physical=physical,
            members=[conceptual, logical, physical],
        )
        logger.info(f"[ModelFamily] Created '{command.name}' (root {conceptual.id})")

        context = SyncContext()
        async with self._locks.hold(conceptual.id):
            try:
                population = await self._population.populate(
                    family, list(command.selected_object_ids), context
                )
            except Exception as e:
                await self._abort(family, context, e)
                raise

        record_cascade("create_model_family", "success")
        return CreateModelFamilyResult(family=family, population=population)

    async def _abort(self, family: ModelFamily, context: SyncContext, error: Exception) -> None:
        increment_error(MetricsErrorType.CASCADE_FAILED)
        rolled_back, unrecovered = await context.rollback(self._storage)
        for model in reversed(family.ordered_members()):
            await self._storage.delete_data_model(model.id)
            rolled_back.append(f"data_model#{model.id} ({model.layer.value})")
        if unrecovered:
            increment_error(MetricsErrorType.ROLLBACK_INCOMPLETE)
        record_cascade("create_model_family", "rolled_back" if not unrecovered else "partial")
        raise PartialCascadeError(
            f"create_model_family failed: {error}",
            PartialFailureReport(
                operation="create_model_family",
                completed_steps=list(context.completed_steps),
                rolled_back=rolled_back,
                unrecovered=unrecovered,
                cause=str(error),
            ),
        ) from error
