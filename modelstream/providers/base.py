"""Abstract base class for text streaming models.

Defines the TextStreamingModel interface that every provider adapter must
implement. The streaming functions interact exclusively through this
interface; they never call provider SDKs directly.
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Generic, Self, TypeVar

from modelstream.schemas.settings import (
    CallContext,
    ModelInformation,
    TextStreamingModelSettings,
)

PromptT = TypeVar("PromptT")
FullDeltaT = TypeVar("FullDeltaT")


class TextStreamingModel(ABC, Generic[PromptT, FullDeltaT]):
    """A provider/model pairing that can stream generated text.

    Providers report progress as "full delta" snapshots: each one carries
    everything generated so far. ``extract_text_delta`` reads the text out
    of a snapshot; the pipeline derives the incremental fragments.
    """

    def __init__(self, settings: TextStreamingModelSettings | None = None) -> None:
        self._settings = settings or TextStreamingModelSettings()

    # ── Identity ──────────────────────────────────────────────

    @property
    def settings(self) -> TextStreamingModelSettings:
        """Settings applied to every call made through this instance."""
        return self._settings

    @property
    @abstractmethod
    def model_information(self) -> ModelInformation:
        """Provider and model name, copied into call metadata."""

    def with_settings(self, settings: TextStreamingModelSettings) -> Self:
        """Return a copy whose settings have ``settings`` merged on top.

        Only the fields explicitly set on ``settings`` override. This
        instance is left unchanged.
        """
        rebound = copy.copy(self)
        rebound._settings = self._settings.merge(settings)
        return rebound

    # ── Core interface ────────────────────────────────────────

    @abstractmethod
    def generate_delta_stream_response(
        self, prompt: PromptT, context: CallContext
    ) -> AsyncIterator[FullDeltaT]:
        """Open the provider stream and yield full-delta snapshots.

        Implementations are async generators. They should stop with
        :class:`~modelstream.errors.AbortError` once ``context.aborted`` is
        true, and raise transport failures as they happen.

        Args:
            prompt: Provider-specific prompt.
            context: Resolved settings, run context, and abort signal for
                this call.
        """

    @abstractmethod
    def extract_text_delta(self, full_delta: FullDeltaT) -> str | None:
        """Return the accumulated text carried by ``full_delta``."""
