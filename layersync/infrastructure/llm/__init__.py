"""
LLM Layer - DesiredStateGenerator implementations.
"""

from layersync.infrastructure.llm.openai_desired_state_generator import (
    OpenAIDesiredStateGenerator,
)

__all__ = ["OpenAIDesiredStateGenerator"]
