"""Lifecycle notifications for model calls."""

from modelstream.events.observer import ModelCallObserver
from modelstream.events.source import (
    DEFAULT_OBSERVER_TIMEOUT,
    ModelCallEventSource,
    log_observer_error,
)

__all__ = [
    "DEFAULT_OBSERVER_TIMEOUT",
    "ModelCallEventSource",
    "ModelCallObserver",
    "log_observer_error",
]
