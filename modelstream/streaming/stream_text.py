"""Streaming text generation with lifecycle notifications.

``stream_text`` is the single entry point for streaming a model's text
output. It wraps the provider's snapshot stream, reports the call to
observers (one started event, then exactly one of success, abort or
failure), and hands the caller a lazy, single-pass sequence of fragments.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import aclosing
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from modelstream.errors import AbortError
from modelstream.events.source import ModelCallEventSource
from modelstream.schemas.events import (
    AbortFinishedEvent,
    CallMetadata,
    FailureFinishedEvent,
    ModelCallStartedEvent,
    SuccessFinishedEvent,
)
from modelstream.schemas.settings import CallContext, FunctionOptions
from modelstream.streaming.deltas import extract_text_deltas
from modelstream.streaming.duration import start_duration_measurement

if TYPE_CHECKING:
    from modelstream.providers.base import TextStreamingModel

logger = logging.getLogger(__name__)


def is_abort(error: BaseException) -> bool:
    """Whether ``error`` means the call was stopped on purpose.

    Covers the abort signal, task cancellation (including ``asyncio.timeout``
    deadlines) and the caller closing the stream before it ended.
    """
    return isinstance(error, (AbortError, asyncio.CancelledError, GeneratorExit))


async def _cancel_when_set(abort_signal: asyncio.Event, task: asyncio.Task[Any]) -> bool:
    await abort_signal.wait()
    task.cancel()
    return True


def _fired(watcher: asyncio.Future[bool]) -> bool:
    return watcher.done() and not watcher.cancelled()


async def _next_or_abort(
    iterator: AsyncIterator[Any], abort_signal: asyncio.Event | None
) -> Any:
    """Await the next provider item, giving up as soon as the signal is set.

    The pull runs on the consuming task so the provider keeps one context
    (context variables, timeout scopes) for the whole call. A watcher task
    cancels the consumer when the signal fires; that cancellation is turned
    back into an ``AbortError`` here.
    """
    if abort_signal is None:
        return await anext(iterator)
    if abort_signal.is_set():
        raise AbortError()

    task = asyncio.current_task()
    watcher = asyncio.ensure_future(_cancel_when_set(abort_signal, task))
    try:
        item = await anext(iterator)
    except asyncio.CancelledError:
        # Cancellation from anyone else still wins
        if not _fired(watcher) or task.uncancel() > 0:
            raise
        raise AbortError() from None
    finally:
        watcher.cancel()

    if _fired(watcher):
        # The provider swallowed the cancellation and produced an item anyway
        task.uncancel()
        raise AbortError()
    return item


async def _provider_deltas(
    model: TextStreamingModel[Any, Any], prompt: Any, context: CallContext
) -> AsyncIterator[Any]:
    """Open the provider stream and relay it until exhausted or aborted."""
    iterator = aiter(model.generate_delta_stream_response(prompt, context))
    try:
        while True:
            try:
                full_delta = await _next_or_abort(iterator, context.abort_signal)
            except StopAsyncIteration:
                return
            yield full_delta
    finally:
        aclose = getattr(iterator, "aclose", None)
        if aclose is not None:
            await aclose()


async def stream_text(
    model: TextStreamingModel[Any, Any],
    prompt: Any,
    options: FunctionOptions | None = None,
) -> AsyncIterator[str]:
    """Stream the text a model generates for ``prompt``.

    Iterating the result drives the provider call. Fragments arrive in
    order, each one as soon as the provider reports it.

    Args:
        model: The model to call.
        prompt: Provider-specific prompt, passed through unchanged.
        options: Function id, run context, per-call settings override and
            abort signal.

    Raises:
        AbortError: The abort signal was set.
        asyncio.CancelledError: The consuming task was cancelled.
        Exception: Whatever the provider raised. Observers have already
            received a failure event by then.
    """
    if options is not None and options.settings is not None:
        rebound = model.with_settings(options.settings)
        resolved = options.model_copy(update={"settings": None})
        async with aclosing(stream_text(rebound, prompt, resolved)) as fragments:
            async for fragment in fragments:
                yield fragment
        return

    run = options.run if options is not None else None
    function_id = options.function_id if options is not None else None
    abort_signal = options.abort_signal if options is not None else None
    settings = model.settings

    event_source = ModelCallEventSource(
        observers=[*settings.observers, *(run.observers if run is not None else [])],
        error_handler=(run.error_handler if run is not None else None)
        or settings.error_handler,
    )

    duration = start_duration_measurement()
    start_metadata = CallMetadata(
        call_id=f"call-{uuid4().hex}",
        run_id=run.run_id if run is not None else None,
        session_id=run.session_id if run is not None else None,
        user_id=run.user_id if run is not None else None,
        function_id=function_id,
        model=model.model_information,
        start_epoch_seconds=duration.start_epoch_seconds,
    )

    def finish_metadata() -> CallMetadata:
        return start_metadata.model_copy(update={"duration_in_ms": duration.duration_in_ms})

    async def on_done(generated_text: str, last_full_delta: Any) -> None:
        metadata = finish_metadata()
        logger.debug("Call %s finished in %d ms", metadata.call_id, metadata.duration_in_ms)
        await event_source.notify_model_call_finished(
            SuccessFinishedEvent(
                metadata=metadata,
                settings=settings,
                prompt=prompt,
                response=last_full_delta,
                generated_text=generated_text,
            )
        )

    async def on_error(error: BaseException) -> None:
        metadata = finish_metadata()
        if is_abort(error):
            logger.debug("Call %s aborted after %d ms", metadata.call_id, metadata.duration_in_ms)
            event = AbortFinishedEvent(metadata=metadata, settings=settings, prompt=prompt)
        else:
            logger.debug("Call %s failed: %r", metadata.call_id, error)
            event = FailureFinishedEvent(
                metadata=metadata, settings=settings, prompt=prompt, error=error
            )
        await event_source.notify_model_call_finished(event)

    logger.debug(
        "Call %s started (%s/%s)",
        start_metadata.call_id,
        start_metadata.model.provider,
        start_metadata.model.model_name,
    )
    try:
        await event_source.notify_model_call_started(
            ModelCallStartedEvent(metadata=start_metadata, settings=settings, prompt=prompt)
        )
    except BaseException as error:
        await on_error(error)
        raise

    context = CallContext(
        function_id=function_id,
        settings=settings,
        run=run,
        abort_signal=abort_signal,
    )
    fragments = extract_text_deltas(
        _provider_deltas(model, prompt, context),
        model.extract_text_delta,
        on_done,
        on_error,
    )
    async with aclosing(fragments):
        async for fragment in fragments:
            yield fragment
