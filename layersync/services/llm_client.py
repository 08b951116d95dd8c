"""
Async LLM client wrapper used by the desired-state generator.

Calls go through a process-wide circuit breaker. When the primary provider
fails with a retryable error (or the breaker is open) and a fallback
endpoint is configured, the request is replayed once against it.

Usage:
    from layersync.services.llm_client import chat_completion_structured, get_content

    response = await chat_completion_structured(
        client=openai_client,
        messages=[{"role": "user", "content": "..."}],
        schema=desired_state_json_schema(),
        model="gpt-4o",
    )
    raw = get_content(response)
"""

import asyncio
import logging
import time
from typing import Any, Optional

from httpx import Timeout
from langsmith import traceable
from openai import (
    AsyncOpenAI,
    APIConnectionError,
    APITimeoutError,
    InternalServerError,
    RateLimitError,
)

from layersync.config.settings import Config
from layersync.observability.metrics import observe_llm_tokens

logger = logging.getLogger(__name__)

_RETRYABLE = (APIConnectionError, APITimeoutError, InternalServerError, RateLimitError)


class CircuitOpenError(Exception):
    """LLM provider is considered down; calls fail fast."""

    pass


class AsyncCircuitBreaker:
    """CLOSED -> (N failures) -> OPEN -> (cooldown) -> HALF_OPEN -> (1 probe) -> CLOSED."""

    def __init__(self, threshold: int = 5, recovery: int = 30):
        self._threshold = threshold
        self._recovery = recovery
        self._failures = 0
        self._opened_at: float = 0.0
        self._state = "closed"
        self._lock = asyncio.Lock()

    @property
    def state(self) -> str:
        return self._state

    async def check(self) -> None:
        async with self._lock:
            if self._state == "closed":
                return
            if self._state == "open":
                if time.monotonic() - self._opened_at >= self._recovery:
                    self._state = "half_open"
                    logger.info("[CircuitBreaker] OPEN -> HALF_OPEN (allowing one probe)")
                    return
                raise CircuitOpenError(f"LLM circuit open ({self._failures} failures)")
            raise CircuitOpenError("LLM circuit half-open, probe in progress")

    async def record_success(self) -> None:
        async with self._lock:
            if self._state == "half_open":
                logger.info("[CircuitBreaker] HALF_OPEN -> CLOSED")
            self._failures = 0
            self._state = "closed"

    async def record_failure(self, error: Exception) -> None:
        async with self._lock:
            # A failed probe reopens regardless of error type
            if self._state == "half_open":
                self._state = "open"
                self._opened_at = time.monotonic()
                logger.warning(
                    "[CircuitBreaker] HALF_OPEN -> OPEN (probe failed: %s)",
                    type(error).__name__,
                )
                return
            if not isinstance(error, _RETRYABLE):
                return
            self._failures += 1
            if self._failures >= self._threshold:
                self._state = "open"
                self._opened_at = time.monotonic()
                logger.warning("[CircuitBreaker] -> OPEN (%d failures)", self._failures)


_cb: Optional[AsyncCircuitBreaker] = None


def _get_cb() -> AsyncCircuitBreaker:
    global _cb
    if _cb is None:
        _cb = AsyncCircuitBreaker(
            Config.LLM_CB_FAILURE_THRESHOLD, Config.LLM_CB_RECOVERY_TIMEOUT
        )
    return _cb


def default_timeout() -> Timeout:
    return Timeout(Config.LLM_TIMEOUT, connect=Config.LLM_CONNECT_TIMEOUT)


_fallback_client: Optional[AsyncOpenAI] = None


def _get_fallback_client() -> Optional[tuple[AsyncOpenAI, str]]:
    """Lazy-init cross-provider fallback client. Returns (client, model) or None."""
    global _fallback_client
    if not (
        Config.LLM_FALLBACK_BASE_URL
        and Config.LLM_FALLBACK_API_KEY
        and Config.LLM_FALLBACK_MODEL
    ):
        return None
    if _fallback_client is None:
        _fallback_client = AsyncOpenAI(
            api_key=Config.LLM_FALLBACK_API_KEY,
            base_url=Config.LLM_FALLBACK_BASE_URL,
            max_retries=Config.LLM_MAX_RETRIES,
            timeout=default_timeout(),
        )
        logger.info(
            "[LLM] Fallback client ready -> %s (%s)",
            Config.LLM_FALLBACK_MODEL,
            Config.LLM_FALLBACK_BASE_URL,
        )
    return (_fallback_client, Config.LLM_FALLBACK_MODEL)


def _observe_usage(model: str, response: Any) -> None:
    usage = getattr(response, "usage", None)
    if usage:
        observe_llm_tokens("input", model, usage.prompt_tokens)
        observe_llm_tokens("output", model, usage.completion_tokens)


async def _try_fallback(
    primary_model: str, error: Exception, create_kwargs: dict
) -> Any:
    if not isinstance(error, (*_RETRYABLE, CircuitOpenError)):
        return None
    fallback = _get_fallback_client()
    if fallback is None:
        return None
    fb_client, fb_model = fallback
    logger.warning(
        "[LLM] %s on %s -> fallback to %s @ %s",
        type(error).__name__,
        primary_model,
        fb_model,
        fb_client.base_url,
    )
    try:
        response = await fb_client.chat.completions.create(
            model=fb_model, **create_kwargs
        )
        _observe_usage(fb_model, response)
        return response
    except Exception as fb_err:
        logger.warning(
            "[LLM] Fallback also failed (%s -> %s): %s",
            primary_model,
            fb_model,
            fb_err,
        )
        return None


async def _create(client, model: str, create_kwargs: dict) -> Any:
    cb = _get_cb()
    try:
        await cb.check()
        response = await client.chat.completions.create(model=model, **create_kwargs)
        _observe_usage(model, response)
        await cb.record_success()
        return response
    except Exception as e:
        if not isinstance(e, CircuitOpenError):
            await cb.record_failure(e)
        fallback_resp = await _try_fallback(model, e, create_kwargs)
        if fallback_resp is not None:
            return fallback_resp
        raise


@traceable(run_type="llm", name="chat_completion_structured")
async def chat_completion_structured(
    client,
    messages: list[dict],
    schema: dict,
    model: str,
    temperature: float = 0.1,
    max_tokens: int = 4096,
    timeout: Optional[Timeout] = None,
) -> Any:
    """Chat completion with structured output (JSON schema).

    Args:
        client: AsyncOpenAI client instance
        messages: List of message dicts
        schema: Full response_format dict, e.g.
                {"type": "json_schema", "json_schema": {"name": "...", "schema": {...}}}
        model: Model name
        temperature: Sampling temperature
        max_tokens: Max tokens to generate
        timeout: Request timeout (default from LLM_TIMEOUT / LLM_CONNECT_TIMEOUT)

    Returns:
        OpenAI ChatCompletion response matching schema
    """
    return await _create(
        client,
        model,
        dict(
            messages=messages,
            temperature=temperature,
            max_completion_tokens=max_tokens,
            response_format=schema,
            timeout=timeout or default_timeout(),
        ),
    )


# ============ Helper functions ============


def get_content(response) -> Optional[str]:
    """Extract text content from response."""
    if response.choices and response.choices[0].message:
        return response.choices[0].message.content
    return None
