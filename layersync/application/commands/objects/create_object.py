"""
CreateObjectWithCascade Command - Create an object and replicate it through the family.

Usage:
    handler: FromDishka[CreateObjectWithCascadeHandler]
    command = CreateObjectWithCascadeCommand(
        request=CreateObjectRequest(
            object=ObjectPayload(name="Customer", model_id=conceptual_id),
            attributes=[AttributeInput(name="id", conceptual_type="Number", is_primary_key=True)],
        )
    )
    result = await handler.execute(command)
    result.layers[ModelLayer.PHYSICAL].object  # replica in the physical model
"""

from dataclasses import dataclass

from layersync.application.common.interfaces import Command, CommandHandler
from layersync.application.dto.cascade import CreateObjectRequest, CreateObjectResult
from layersync.application.services.cascade_orchestrator import CascadeOrchestrator


@dataclass(frozen=True)
class CreateObjectWithCascadeCommand(Command[CreateObjectResult]):
    request: CreateObjectRequest


class CreateObjectWithCascadeHandler(CommandHandler[CreateObjectResult]):
    def __init__(self, orchestrator: CascadeOrchestrator):
        self._orchestrator = orchestrator

    async def execute(self, command: CreateObjectWithCascadeCommand) -> CreateObjectResult:
        return await self._orchestrator.create_object_with_cascade(command.request)
