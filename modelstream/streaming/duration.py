"""Wall-clock measurement for a single call."""

from __future__ import annotations

import time


class DurationMeasurement:
    """Started on construction; read ``duration_in_ms`` at any time."""

    def __init__(self) -> None:
        self.start_epoch_seconds = time.time()
        self._start = time.perf_counter()

    @property
    def duration_in_ms(self) -> int:
        return round((time.perf_counter() - self._start) * 1000)


def start_duration_measurement() -> DurationMeasurement:
    return DurationMeasurement()
