"""modelstream: consume LLM output while it is being generated.

Streams text fragments as they arrive, and streams JSON values as a
sequence of always-valid partial snapshots by repairing the truncated text
the model has produced so far.
"""

__version__ = "0.1.0"

from modelstream.errors import (
    AbortError,
    ApiCallError,
    ModelStreamError,
    StructureParseError,
    StructureValidationError,
)
from modelstream.events import ModelCallEventSource, ModelCallObserver
from modelstream.partial_json import container_stack, parse_partial_json, repair_json
from modelstream.providers import LiteLLMTextStreamingModel, TextStreamingModel
from modelstream.schemas import (
    FunctionOptions,
    ModelInformation,
    Run,
    StructureStreamPart,
    TextStreamingModelSettings,
)
from modelstream.streaming import extract_text_deltas, stream_structure, stream_text

__all__ = [
    "AbortError",
    "ApiCallError",
    "FunctionOptions",
    "LiteLLMTextStreamingModel",
    "ModelCallEventSource",
    "ModelCallObserver",
    "ModelInformation",
    "ModelStreamError",
    "Run",
    "StructureParseError",
    "StructureStreamPart",
    "StructureValidationError",
    "TextStreamingModel",
    "TextStreamingModelSettings",
    "container_stack",
    "extract_text_deltas",
    "parse_partial_json",
    "repair_json",
    "stream_structure",
    "stream_text",
]
