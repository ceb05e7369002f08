"""Schemas for structured-value streaming."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class StructureStreamPart(BaseModel):
    """One snapshot of a JSON value while it is being generated."""

    model_config = ConfigDict(frozen=True)

    value: Any = Field(description="Best-effort value parsed from the text so far")
    is_complete: bool = Field(default=False, description="True on the final part only")
