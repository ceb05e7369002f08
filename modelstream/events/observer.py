"""Observer interface for model call lifecycle events."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from modelstream.schemas.events import ModelCallFinishedEvent, ModelCallStartedEvent


class ModelCallObserver:
    """Receives lifecycle events for generation calls.

    Override either method. Both may be plain functions or coroutines; the
    event source awaits coroutine results under a deadline. Events are
    frozen and shared between observers, so observers must not try to
    change them.
    """

    def on_model_call_started(self, event: ModelCallStartedEvent) -> Any:
        """Called once when a call starts."""

    def on_model_call_finished(self, event: ModelCallFinishedEvent) -> Any:
        """Called once when a call succeeds, is aborted, or fails."""
