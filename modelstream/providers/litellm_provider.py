"""Universal LiteLLM adapter implementing the TextStreamingModel interface.

Routes streaming completion requests to any LLM provider via LiteLLM's
unified API and turns the chunk stream into full-delta snapshots. Handles
prompt construction, abort checks, and retry with exponential backoff
while the stream is being opened.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import AsyncIterator
from typing import Any

import litellm
from pydantic import BaseModel, ConfigDict, Field

# Suppress LiteLLM's "Give Feedback / Get Help" and "Provider List" banners
litellm.suppress_debug_info = True

from modelstream.errors import AbortError, ApiCallError
from modelstream.providers.base import TextStreamingModel
from modelstream.schemas.registry import ModelConfig
from modelstream.schemas.settings import (
    CallContext,
    ModelInformation,
    TextStreamingModelSettings,
)

logger = logging.getLogger(__name__)

# A plain string, or a conversation in OpenAI message format
LiteLLMPrompt = str | list[dict[str, str]]

# Max retries for transient failures
_MAX_RETRIES = 3
_BASE_BACKOFF = 1.0  # seconds

_RETRYABLE_ERRORS = (
    litellm.RateLimitError,
    litellm.ServiceUnavailableError,
    litellm.InternalServerError,
    litellm.APIConnectionError,
)


def _short_error_reason(error: Exception) -> str:
    """Extract a short, user-friendly reason from a LiteLLM error."""
    error_str = str(error).lower()
    if "rate" in error_str or "429" in error_str:
        return "rate limit"
    if "overloaded" in error_str or "529" in error_str:
        return "overloaded"
    if "timeout" in error_str or isinstance(error, TimeoutError):
        return "timeout"
    if "503" in error_str or "unavailable" in error_str:
        return "service unavailable"
    if "500" in error_str or "internal" in error_str:
        return "server error"
    if "connection" in error_str:
        return "connection error"
    return str(error)[:80]


class LiteLLMFullDelta(BaseModel):
    """Snapshot of a LiteLLM stream after one chunk."""

    model_config = ConfigDict(frozen=True)

    content: str = Field(description="Full text accumulated so far")
    delta: str = Field(default="", description="Text added by this chunk")
    finish_reason: str | None = Field(default=None, description="Set on the last chunk")
    usage: dict[str, int] | None = Field(
        default=None, description="Token usage when the provider reports it"
    )


def _usage_dict(usage: Any) -> dict[str, int] | None:
    if usage is None:
        return None
    fields = ("prompt_tokens", "completion_tokens", "total_tokens")
    counts = {name: getattr(usage, name, None) for name in fields}
    return {name: value for name, value in counts.items() if isinstance(value, int)} or None


class LiteLLMTextStreamingModel(TextStreamingModel[LiteLLMPrompt, LiteLLMFullDelta]):
    """Streams text from any provider through litellm.acompletion()."""

    def __init__(
        self,
        config: ModelConfig,
        settings: TextStreamingModelSettings | None = None,
    ) -> None:
        super().__init__(settings)
        self._config = config
        # Resolve API key from environment
        self._api_key = os.environ.get(config.api_key_env, "")

    @property
    def config(self) -> ModelConfig:
        """The full ModelConfig backing this model."""
        return self._config

    @property
    def model_information(self) -> ModelInformation:
        return ModelInformation(provider=self._config.provider, model_name=self._config.model)

    def extract_text_delta(self, full_delta: LiteLLMFullDelta) -> str | None:
        return full_delta.content

    async def generate_delta_stream_response(
        self, prompt: LiteLLMPrompt, context: CallContext
    ) -> AsyncIterator[LiteLLMFullDelta]:
        """Stream the completion, yielding one snapshot per chunk.

        Raises:
            AbortError: If the call's abort signal is set.
            ApiCallError: If the provider rejects or drops the request.
            TimeoutError: If every attempt to open the stream timed out.
        """
        messages = self._build_messages(prompt, context.settings)
        kwargs = self._build_completion_kwargs(messages, context.settings)
        response = await self._call_streaming_with_retry(kwargs, context)

        accumulated = ""
        try:
            async for chunk in response:
                if context.aborted:
                    raise AbortError()

                delta = ""
                finish_reason = None
                if chunk.choices:
                    choice = chunk.choices[0]
                    if choice.delta:
                        delta = choice.delta.content or ""
                    finish_reason = getattr(choice, "finish_reason", None)

                accumulated += delta
                yield LiteLLMFullDelta(
                    content=accumulated,
                    delta=delta,
                    finish_reason=finish_reason,
                    usage=_usage_dict(getattr(chunk, "usage", None)),
                )
        except (*_RETRYABLE_ERRORS, litellm.APIError) as e:
            raise ApiCallError.from_litellm(e, self._config.model) from e

    def _build_messages(
        self, prompt: LiteLLMPrompt, settings: TextStreamingModelSettings
    ) -> list[dict[str, str]]:
        """Build OpenAI-format messages, prepending the system prompt if set."""
        if isinstance(prompt, str):
            messages = [{"role": "user", "content": prompt}]
        else:
            messages = list(prompt)

        if settings.system and not any(m.get("role") == "system" for m in messages):
            messages.insert(0, {"role": "system", "content": settings.system})
        return messages

    def _build_completion_kwargs(
        self,
        messages: list[dict[str, str]],
        settings: TextStreamingModelSettings,
    ) -> dict:
        """Build the kwargs dict for litellm.acompletion."""
        kwargs: dict = {
            "model": self._config.model,
            "messages": messages,
            "timeout": float(settings.timeout),
            "stream": True,
        }

        # Set API key if available
        if self._api_key:
            kwargs["api_key"] = self._api_key

        # Set custom API base if configured
        if self._config.api_base:
            kwargs["api_base"] = self._config.api_base

        if settings.max_tokens is not None:
            kwargs["max_tokens"] = settings.max_tokens
        if settings.temperature is not None:
            kwargs["temperature"] = settings.temperature
        if settings.stop:
            kwargs["stop"] = list(settings.stop)

        return kwargs

    async def _call_streaming_with_retry(self, kwargs: dict, context: CallContext):
        """Call litellm.acompletion with stream=True and retry on failure.

        Retries on transient errors (rate limits, server errors, timeouts).
        Non-retryable errors (auth, invalid request) are raised immediately.

        Raises:
            AbortError: If the abort signal is set between attempts.
            TimeoutError: If all retries time out.
            ApiCallError: If the request is rejected or all retries fail.
        """
        last_error: Exception | None = None

        for attempt in range(_MAX_RETRIES):
            if context.aborted:
                raise AbortError()
            try:
                return await litellm.acompletion(**kwargs)
            except TimeoutError:
                last_error = TimeoutError(
                    f"Streaming call timed out after {kwargs.get('timeout')}s "
                    f"(attempt {attempt + 1}/{_MAX_RETRIES})"
                )
            except litellm.AuthenticationError as e:
                raise ApiCallError(
                    f"Authentication failed for {self._config.model}. "
                    f"Check that {self._config.api_key_env} is set correctly.",
                    status_code=getattr(e, "status_code", None),
                ) from None
            except litellm.BadRequestError as e:
                raise ApiCallError.from_litellm(e, self._config.model) from e
            except _RETRYABLE_ERRORS as e:
                last_error = e

            if attempt < _MAX_RETRIES - 1:
                backoff = _BASE_BACKOFF * (2**attempt)
                logger.warning(
                    "Streaming retry %d/%d for %s (%s, backoff: %.1fs)",
                    attempt + 1, _MAX_RETRIES, self._config.display_name,
                    _short_error_reason(last_error), backoff,
                )
                await asyncio.sleep(backoff)

        if isinstance(last_error, TimeoutError):
            raise last_error
        raise ApiCallError(
            f"Streaming call to {self._config.model} failed after "
            f"{_MAX_RETRIES} retries: {last_error}",
            is_retryable=True,
            cause=last_error,
        ) from last_error
