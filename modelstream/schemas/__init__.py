"""Pydantic schemas shared across modelstream."""

from modelstream.schemas.events import (
    AbortFinishedEvent,
    CallMetadata,
    FailureFinishedEvent,
    ModelCallEvent,
    ModelCallFinishedEvent,
    ModelCallStartedEvent,
    SuccessFinishedEvent,
)
from modelstream.schemas.registry import ModelConfig
from modelstream.schemas.settings import (
    CallContext,
    ErrorHandler,
    FunctionOptions,
    ModelInformation,
    Run,
    TextStreamingModelSettings,
)
from modelstream.schemas.streaming import StructureStreamPart

__all__ = [
    "AbortFinishedEvent",
    "CallContext",
    "CallMetadata",
    "ErrorHandler",
    "FailureFinishedEvent",
    "FunctionOptions",
    "ModelCallEvent",
    "ModelCallFinishedEvent",
    "ModelCallStartedEvent",
    "ModelConfig",
    "ModelInformation",
    "Run",
    "StructureStreamPart",
    "SuccessFinishedEvent",
    "TextStreamingModelSettings",
]
