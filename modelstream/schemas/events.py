"""Lifecycle event schemas for model calls.

Every call produces exactly one ``ModelCallStartedEvent`` followed by
exactly one finished event. Finished events are a closed union
discriminated by ``status``, so observers can match on it without checking
fields that do not apply.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from modelstream.schemas.settings import ModelInformation, TextStreamingModelSettings


class CallMetadata(BaseModel):
    """Identifies one generation call."""

    model_config = ConfigDict(frozen=True)

    call_id: str = Field(description="Unique id for the call (process lifetime)")
    run_id: str | None = None
    session_id: str | None = None
    user_id: str | None = None
    function_id: str | None = None
    model: ModelInformation
    start_epoch_seconds: float = Field(description="Unix time the call started")
    duration_in_ms: int | None = Field(
        default=None, ge=0, description="Set on finished events only"
    )


class _ModelCallEvent(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    metadata: CallMetadata
    settings: TextStreamingModelSettings
    prompt: Any


class ModelCallStartedEvent(_ModelCallEvent):
    """Sent once before the provider stream is opened."""

    type: Literal["text-streaming-started"] = "text-streaming-started"


class SuccessFinishedEvent(_ModelCallEvent):
    """The provider stream ended normally."""

    type: Literal["text-streaming-finished"] = "text-streaming-finished"
    status: Literal["success"] = "success"
    response: Any = Field(default=None, description="Last full delta seen")
    generated_text: str


class AbortFinishedEvent(_ModelCallEvent):
    """The call was cancelled by the caller or a deadline."""

    type: Literal["text-streaming-finished"] = "text-streaming-finished"
    status: Literal["abort"] = "abort"


class FailureFinishedEvent(_ModelCallEvent):
    """The provider stream raised an error."""

    type: Literal["text-streaming-finished"] = "text-streaming-finished"
    status: Literal["failure"] = "failure"
    error: BaseException


ModelCallFinishedEvent = Annotated[
    SuccessFinishedEvent | AbortFinishedEvent | FailureFinishedEvent,
    Field(discriminator="status"),
]

ModelCallEvent = ModelCallStartedEvent | SuccessFinishedEvent | AbortFinishedEvent | FailureFinishedEvent
