"""Model registry entry schema."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ModelConfig(BaseModel):
    """Configuration for a single LLM model in the registry.

    Loaded from models.toml. Each entry provides the LiteLLM routing
    information, capability flags, and cost data.
    """

    provider: str = Field(description="Provider identifier (e.g. 'anthropic', 'openai')")
    model: str = Field(description="LiteLLM model identifier (e.g. 'openai/gpt-4o-mini')")
    display_name: str = Field(description="Human-friendly model name for CLI output")
    api_key_env: str = Field(description="Environment variable name holding the API key")
    api_base: str = Field(default="", description="Custom API base URL (empty = provider default)")
    context_window: int = Field(gt=0, description="Maximum context window size in tokens")
    supports_structured: bool = Field(
        default=False, description="Whether the model supports JSON output mode"
    )
    cost_input: float = Field(default=0.0, ge=0.0, description="Cost per 1M input tokens in USD")
    cost_output: float = Field(default=0.0, ge=0.0, description="Cost per 1M output tokens in USD")
