"""
Tests for the LLM circuit breaker and the OpenAI desired-state generator.

Run with: pytest tests/test_llm_client.py -v
"""

from types import SimpleNamespace

import httpx
import pytest
from openai import APIConnectionError

from layersync.domain.ports.desired_state_generator import DesiredStatePrompt
from layersync.infrastructure.llm import OpenAIDesiredStateGenerator
from layersync.services.llm_client import AsyncCircuitBreaker, CircuitOpenError, get_content


def _connection_error() -> APIConnectionError:
    return APIConnectionError(request=httpx.Request("POST", "https://api.example.test/v1"))


def _response(content):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(prompt_tokens=120, completion_tokens=40),
    )


class FakeCompletions:
    def __init__(self, content):
        self.content = content
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        return _response(self.content)


class FakeClient:
    """Minimal stand-in for AsyncOpenAI exposing chat.completions.create."""

    def __init__(self, content='{"summary": "ok"}'):
        self.completions = FakeCompletions(content)
        self.chat = SimpleNamespace(completions=self.completions)


def _prompt() -> DesiredStatePrompt:
    return DesiredStatePrompt(
        system_prompt="system",
        business_description="Library loans",
        instructions="Add Member",
        target_database="postgres",
    )


class TestCircuitBreaker:
    @pytest.mark.asyncio
    async def test_opens_after_threshold(self):
        """Retryable failures open the circuit; others are ignored."""
        breaker = AsyncCircuitBreaker(threshold=2, recovery=60)

        await breaker.record_failure(ValueError("bad request"))
        await breaker.record_failure(_connection_error())
        assert breaker.state == "closed"
        await breaker.record_failure(_connection_error())

        assert breaker.state == "open"
        with pytest.raises(CircuitOpenError):
            await breaker.check()

    @pytest.mark.asyncio
    async def test_half_open_allows_one_call(self):
        """After the cooldown one call passes; success closes the circuit."""
        breaker = AsyncCircuitBreaker(threshold=1, recovery=0)
        await breaker.record_failure(_connection_error())

        await breaker.check()
        assert breaker.state == "half_open"
        with pytest.raises(CircuitOpenError):
            await breaker.check()

        await breaker.record_success()
        assert breaker.state == "closed"

    @pytest.mark.asyncio
    async def test_failed_half_open_call_reopens(self):
        """Any failure during the half-open call reopens the circuit."""
        breaker = AsyncCircuitBreaker(threshold=1, recovery=0)
        await breaker.record_failure(_connection_error())
        await breaker.check()

        await breaker.record_failure(ValueError("still broken"))
        assert breaker.state == "open"


class TestOpenAIDesiredStateGenerator:
    @pytest.mark.asyncio
    async def test_structured_request(self):
        """One structured-output call carrying both prompts."""
        client = FakeClient()
        generator = OpenAIDesiredStateGenerator(client, model="gpt-test", temperature=0.0, max_tokens=900)

        raw = await generator.generate(_prompt())

        assert raw == '{"summary": "ok"}'
        [call] = client.completions.calls
        assert call["model"] == "gpt-test"
        assert call["temperature"] == 0.0
        assert call["max_completion_tokens"] == 900
        assert call["response_format"]["type"] == "json_schema"
        system, user = call["messages"]
        assert system == {"role": "system", "content": "system"}
        assert '"targetDatabase": "postgres"' in user["content"]

    @pytest.mark.asyncio
    async def test_empty_content_becomes_empty_object(self):
        """A response without content is handed on as '{}'."""
        generator = OpenAIDesiredStateGenerator(FakeClient(content=None))
        assert await generator.generate(_prompt()) == "{}"

    @pytest.mark.asyncio
    async def test_missing_client(self):
        """Without an API key the generator fails at call time."""
        with pytest.raises(RuntimeError, match="OPENAI_API_KEY"):
            await OpenAIDesiredStateGenerator(None).generate(_prompt())


def test_get_content_without_choices():
    assert get_content(SimpleNamespace(choices=[])) is None
