"""Settings, run context, and per-call option schemas.

A model carries a ``TextStreamingModelSettings``; a caller may override it
per call through ``FunctionOptions.settings``. The optional ``Run`` groups
calls that belong together and contributes its own observers. It is always
passed explicitly; there is no implicit current run.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from modelstream.events.observer import ModelCallObserver

# Receives exceptions raised by observers during notification
ErrorHandler = Callable[[BaseException], Any]


class ModelInformation(BaseModel):
    """Identity of the provider/model pair behind a call."""

    model_config = ConfigDict(frozen=True, protected_namespaces=())

    provider: str = Field(description="Provider identifier (e.g. 'openai')")
    model_name: str = Field(description="Provider-specific model name")


class TextStreamingModelSettings(BaseModel):
    """Settings shared by every call made through one model instance.

    Observers must subclass ``ModelCallObserver``; override only the
    methods you need, the base class supplies no-op defaults.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    observers: list[ModelCallObserver] = Field(
        default_factory=list,
        description="Observers notified on every call (ModelCallObserver subclasses)",
    )
    error_handler: ErrorHandler | None = Field(
        default=None, description="Receives observer failures (default: log them)"
    )
    system: str = Field(default="", description="System prompt prepended to string prompts")
    max_tokens: int | None = Field(default=None, gt=0, description="Output token limit")
    temperature: float | None = Field(
        default=None, ge=0.0, le=2.0, description="Sampling temperature"
    )
    stop: list[str] = Field(default_factory=list, description="Stop sequences")
    timeout: int = Field(default=120, gt=0, description="Transport timeout in seconds")

    def merge(self, override: TextStreamingModelSettings) -> TextStreamingModelSettings:
        """Return a copy with the fields explicitly set on ``override`` applied."""
        update = {name: getattr(override, name) for name in override.model_fields_set}
        return self.model_copy(update=update)


class Run(BaseModel):
    """Explicit context shared by a group of related calls.

    Its observers, like the settings' ones, must subclass
    ``ModelCallObserver``.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    run_id: str = Field(default_factory=lambda: f"run-{uuid4().hex}")
    session_id: str | None = None
    user_id: str | None = None
    observers: list[ModelCallObserver] = Field(default_factory=list)
    error_handler: ErrorHandler | None = None


class FunctionOptions(BaseModel):
    """Per-call options accepted by ``stream_text`` and ``stream_structure``."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    function_id: str | None = Field(default=None, description="Caller-chosen label for the call")
    run: Run | None = None
    settings: TextStreamingModelSettings | None = Field(
        default=None, description="Settings override for this call only"
    )
    abort_signal: asyncio.Event | None = Field(
        default=None, description="Set it to abort the call"
    )


class CallContext(BaseModel):
    """What the orchestrator hands to the provider for one call."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    function_id: str | None = None
    settings: TextStreamingModelSettings
    run: Run | None = None
    abort_signal: asyncio.Event | None = None

    @property
    def aborted(self) -> bool:
        return self.abort_signal is not None and self.abort_signal.is_set()
