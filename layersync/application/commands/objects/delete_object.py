"""Delete Object Cascade Command."""

from dataclasses import dataclass

from layersync.application.common.interfaces import Command, CommandHandler
from layersync.application.dto.cascade import DeleteObjectResult
from layersync.application.services.cascade_orchestrator import CascadeOrchestrator


@dataclass(frozen=True)
class DeleteObjectCascadeCommand(Command[DeleteObjectResult]):
    object_id: int


class DeleteObjectCascadeHandler(CommandHandler[DeleteObjectResult]):
    def __init__(self, orchestrator: CascadeOrchestrator):
        self._orchestrator = orchestrator

    async def execute(self, command: DeleteObjectCascadeCommand) -> DeleteObjectResult:
        return await self._orchestrator.delete_object_cascade(command.object_id)
