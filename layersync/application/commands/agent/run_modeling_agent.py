"""
RunModelingAgent Command - Reconcile a model family against an AI-generated desired state.

Usage:
    handler: FromDishka[RunModelingAgentHandler]
    command = RunModelingAgentCommand(
        request=ModelingAgentRequest(
            root_model_id=1,
            business_description="Retail orders",
            instructions="Add a Shipment entity",
            allow_drop=False,
        )
    )
    result = await handler.execute(command)
    for entry in result.diff:
        print(entry.action, entry.layer, entry.target, entry.status)

Each run is logged under its own correlation id.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from layersync.application.common.interfaces import Command, CommandHandler
from layersync.application.dto.modeling_agent import (
    ModelingAgentRequest,
    ModelingAgentResult,
)
from layersync.application.services.reconciler import DesiredStateReconciler
from layersync.config.logging_config import bind_correlation_id, reset_correlation_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunModelingAgentCommand(Command[ModelingAgentResult]):
    request: ModelingAgentRequest
    correlation_id: Optional[str] = None


class RunModelingAgentHandler(CommandHandler[ModelingAgentResult]):
    def __init__(self, reconciler: DesiredStateReconciler):
        self._reconciler = reconciler

    async def execute(self, command: RunModelingAgentCommand) -> ModelingAgentResult:
        token = bind_correlation_id(command.correlation_id or uuid.uuid4().hex[:12])
        try:
            target = command.request.root_model_id or command.request.model_name
            logger.info(f"[ModelingAgent] Run for {target} (allow_drop={command.request.allow_drop})")
            return await self._reconciler.run(command.request)
        finally:
            reset_correlation_id(token)
