"""
Desired State Generator Port - Interface for the generative modeling call.
Implementation: layersync/infrastructure/llm/openai_desired_state_generator.py
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class DesiredStatePrompt:
    system_prompt: str
    business_description: str
    instructions: str
    allow_drop: bool = False
    target_database: Optional[str] = None
    serialized_context: dict[str, Any] = field(default_factory=dict)


class DesiredStateGenerator(ABC):
    @abstractmethod
    async def generate(self, prompt: DesiredStatePrompt) -> str:
        """Return the raw structured response text. Validation happens in the caller."""
        ...
