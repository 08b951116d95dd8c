"""
OpenAI Desired State Generator.

Implements DesiredStateGenerator with a structured-output chat completion.
The raw response text is returned untouched; parsing and validation belong
to the reconciler.
"""

import logging
from typing import Optional

from openai import AsyncOpenAI

from layersync.application.dto.desired_state import desired_state_json_schema
from layersync.config.settings import Config
from layersync.domain.ports.desired_state_generator import (
    DesiredStateGenerator,
    DesiredStatePrompt,
)
from layersync.prompts import ModelingPrompts
from layersync.services.llm_client import chat_completion_structured, get_content

logger = logging.getLogger(__name__)


class OpenAIDesiredStateGenerator(DesiredStateGenerator):
    def __init__(
        self,
        client: Optional[AsyncOpenAI],
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ):
        self._client = client
        self._model = model or Config.OPENAI_MODEL
        self._temperature = (
            Config.OPENAI_TEMPERATURE if temperature is None else temperature
        )
        self._max_tokens = max_tokens or Config.AGENT_MAX_TOKENS

    async def generate(self, prompt: DesiredStatePrompt) -> str:
        if self._client is None:
            raise RuntimeError(
                "OpenAI client is not configured; set OPENAI_API_KEY to use the modeling agent"
            )
        messages = [
            {"role": "system", "content": prompt.system_prompt},
            {"role": "user", "content": ModelingPrompts.user_prompt(prompt)},
        ]
        logger.debug(f"[Generator] Requesting desired state from {self._model}")
        response = await chat_completion_structured(
            client=self._client,
            messages=messages,
            schema=desired_state_json_schema(),
            model=self._model,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )
        return get_content(response) or "{}"
