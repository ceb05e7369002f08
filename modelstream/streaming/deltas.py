"""Turn a stream of full-delta snapshots into incremental text fragments.

Providers report progress as snapshots that carry everything generated so
far. ``extract_text_deltas`` pulls the comparable text out of each snapshot
and yields only what was added since the previous one.
"""

from __future__ import annotations

import inspect
import logging
import os
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

FullDeltaT = TypeVar("FullDeltaT")

DoneCallback = Callable[[str, Any], Awaitable[None] | None]
ErrorCallback = Callable[[BaseException], Awaitable[None] | None]


async def _invoke(callback: Callable[..., Any], *args: Any) -> None:
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


def text_growth(previous: str, current: str) -> str:
    """Return the text ``current`` adds on top of ``previous``.

    A snapshot that rewrites earlier text cannot be expressed as an append;
    the part after the common prefix is returned instead.
    """
    if current.startswith(previous):
        return current[len(previous):]

    common = os.path.commonprefix([previous, current])
    logger.warning(
        "Snapshot rewrote generated text at offset %d (had %d chars, now %d)",
        len(common), len(previous), len(current),
    )
    return current[len(common):]


async def extract_text_deltas(
    delta_iterable: AsyncIterable[FullDeltaT],
    extract_delta: Callable[[FullDeltaT], str | None],
    on_done: DoneCallback,
    on_error: ErrorCallback,
) -> AsyncIterator[str]:
    """Yield the non-empty text fragments between consecutive snapshots.

    Args:
        delta_iterable: Provider snapshots, consumed once in arrival order.
        extract_delta: Returns the accumulated text of a snapshot, or
            ``None`` when the snapshot carries no text.
        on_done: Called with the full text and the last snapshot once the
            input is exhausted.
        on_error: Called with the exception when the input fails, the task
            is cancelled, or the consumer closes this generator early.

    Exactly one of ``on_done`` and ``on_error`` runs, exactly once. Both
    may be coroutine functions.
    """
    accumulated = ""
    last_full_delta: FullDeltaT | None = None

    try:
        async for full_delta in delta_iterable:
            last_full_delta = full_delta
            text = extract_delta(full_delta)
            if not text:
                continue

            fragment = text_growth(accumulated, text)
            accumulated = text
            if fragment:
                yield fragment
    except BaseException as error:
        await _invoke(on_error, error)
        raise
    finally:
        aclose = getattr(delta_iterable, "aclose", None)
        if aclose is not None:
            await aclose()

    await _invoke(on_done, accumulated, last_full_delta)
