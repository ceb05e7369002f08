"""Per-call publisher of model call lifecycle events.

Each call builds its own ``ModelCallEventSource`` from the observers on the
model settings and on the run. Observer failures are handed to the error
handler and never reach the generation call.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from modelstream.events.observer import ModelCallObserver

if TYPE_CHECKING:
    from modelstream.schemas.events import ModelCallFinishedEvent, ModelCallStartedEvent
    from modelstream.schemas.settings import ErrorHandler

logger = logging.getLogger(__name__)

# Deadline for a single async observer method
DEFAULT_OBSERVER_TIMEOUT = 5.0


def log_observer_error(error: BaseException) -> None:
    """Default error handler: log the observer failure with its traceback."""
    logger.error("Model call observer failed: %s", error, exc_info=error)


class ModelCallEventSource:
    """Dispatches lifecycle events to a fixed list of observers.

    Observer methods may be sync or async. Async results are awaited with
    ``observer_timeout`` so a slow observer cannot stall the stream; hitting
    the deadline counts as an observer failure.
    """

    def __init__(
        self,
        observers: Iterable[ModelCallObserver] = (),
        error_handler: ErrorHandler | None = None,
        *,
        observer_timeout: float = DEFAULT_OBSERVER_TIMEOUT,
    ) -> None:
        self._observers: tuple[ModelCallObserver, ...] = tuple(observers)
        self._error_handler = error_handler or log_observer_error
        self._observer_timeout = observer_timeout

    @property
    def observers(self) -> tuple[ModelCallObserver, ...]:
        return self._observers

    async def notify_model_call_started(self, event: ModelCallStartedEvent) -> None:
        """Send a started event to every observer."""
        await self._notify("on_model_call_started", event)

    async def notify_model_call_finished(self, event: ModelCallFinishedEvent) -> None:
        """Send a finished event (success, abort, or failure) to every observer."""
        await self._notify("on_model_call_finished", event)

    async def _notify(self, method_name: str, event: Any) -> None:
        for observer in self._observers:
            method = getattr(observer, method_name, None)
            if method is None:
                continue
            try:
                result = method(event)
                if inspect.isawaitable(result):
                    await asyncio.wait_for(result, timeout=self._observer_timeout)
            except Exception as error:
                self._handle_error(error)

    def _handle_error(self, error: Exception) -> None:
        try:
            self._error_handler(error)
        except Exception:
            logger.exception("Observer error handler failed while handling %r", error)
