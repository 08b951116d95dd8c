"""Modeling agent commands."""

from .run_modeling_agent import RunModelingAgentCommand, RunModelingAgentHandler

__all__ = [
    "RunModelingAgentCommand",
    "RunModelingAgentHandler",
]
