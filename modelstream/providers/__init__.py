"""modelstream provider layer.

Streaming functions talk to models only through the TextStreamingModel
interface. LiteLLMTextStreamingModel covers every provider LiteLLM
supports.
"""

from modelstream.providers.base import TextStreamingModel
from modelstream.providers.litellm_provider import (
    LiteLLMFullDelta,
    LiteLLMTextStreamingModel,
)
from modelstream.providers.registry import get_model_config, load_models

__all__ = [
    "LiteLLMFullDelta",
    "LiteLLMTextStreamingModel",
    "TextStreamingModel",
    "get_model_config",
    "load_models",
]
