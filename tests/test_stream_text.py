"""Tests for modelstream.streaming.stream_text — the call orchestrator.

A scripted FakeModel stands in for a provider so every lifecycle path
(success, failure, abort signal, cancellation, early close) can be driven
deterministically.
"""

from __future__ import annotations

import asyncio
from contextlib import aclosing
from contextvars import ContextVar

import pytest

from modelstream.errors import AbortError, ApiCallError
from modelstream.events import ModelCallObserver
from modelstream.providers.base import TextStreamingModel
from modelstream.schemas import (
    AbortFinishedEvent,
    FailureFinishedEvent,
    FunctionOptions,
    ModelCallStartedEvent,
    ModelInformation,
    Run,
    SuccessFinishedEvent,
    TextStreamingModelSettings,
)
from modelstream.streaming import is_abort, stream_text


class FakeModel(TextStreamingModel[object, dict]):
    """Yields scripted text snapshots, optionally failing or blocking."""

    def __init__(
        self,
        snapshots=("Hel", "Hello", "Hello, world"),
        *,
        error: BaseException | None = None,
        block_after: int | None = None,
        settings: TextStreamingModelSettings | None = None,
    ) -> None:
        super().__init__(settings)
        self.snapshots = snapshots
        self.error = error
        self.block_after = block_after
        self.blocked = asyncio.Event()
        self.prompts: list = []
        self.contexts: list = []
        self.pulled: list = []
        self.closed: list = []

    @property
    def model_information(self) -> ModelInformation:
        return ModelInformation(provider="fake", model_name="fake-1")

    async def generate_delta_stream_response(self, prompt, context):
        self.prompts.append(prompt)
        self.contexts.append(context)
        try:
            for index, text in enumerate(self.snapshots):
                if index == self.block_after:
                    self.blocked.set()
                    await asyncio.Event().wait()
                self.pulled.append(text)
                yield {"text": text}
            if self.error is not None:
                raise self.error
        finally:
            self.closed.append(True)

    def extract_text_delta(self, full_delta):
        return full_delta["text"]


class RecordingObserver(ModelCallObserver):
    def __init__(self) -> None:
        self.events = []

    def on_model_call_started(self, event):
        self.events.append(event)

    def on_model_call_finished(self, event):
        self.events.append(event)

    @property
    def statuses(self) -> list[str]:
        return [getattr(e, "status", "started") for e in self.events]


class FailingObserver(ModelCallObserver):
    def on_model_call_started(self, event):
        raise RuntimeError("started broke")

    async def on_model_call_finished(self, event):
        raise RuntimeError("finished broke")


_opened: ContextVar[str] = ContextVar("opened", default="unset")


class ContextModel(TextStreamingModel[object, dict]):
    """Sets a context variable when opened and reports it on the next snapshot."""

    @property
    def model_information(self) -> ModelInformation:
        return ModelInformation(provider="fake", model_name="context-1")

    async def generate_delta_stream_response(self, prompt, context):
        _opened.set("opened")
        yield {"text": "a"}
        await asyncio.sleep(0)
        yield {"text": "a" + _opened.get()}

    def extract_text_delta(self, full_delta):
        return full_delta["text"]


def _observed_model(**kwargs) -> tuple[FakeModel, RecordingObserver]:
    observer = RecordingObserver()
    model = FakeModel(settings=TextStreamingModelSettings(observers=[observer]), **kwargs)
    return model, observer


async def _collect(iterator) -> list[str]:
    return [fragment async for fragment in iterator]


# ══════════════════════════════════════════════════════════════════
# Success
# ══════════════════════════════════════════════════════════════════


class TestSuccess:
    @pytest.mark.asyncio
    async def test_fragments_concatenate_to_full_text(self):
        model, _ = _observed_model()
        fragments = await _collect(stream_text(model, "Say hello"))
        assert fragments == ["Hel", "lo", ", world"]

    @pytest.mark.asyncio
    async def test_started_then_success(self):
        model, observer = _observed_model()
        await _collect(stream_text(model, "Say hello"))

        started, finished = observer.events
        assert isinstance(started, ModelCallStartedEvent)
        assert isinstance(finished, SuccessFinishedEvent)
        assert finished.generated_text == "Hello, world"
        assert finished.response == {"text": "Hello, world"}
        assert finished.prompt == "Say hello"

    @pytest.mark.asyncio
    async def test_metadata(self):
        model, observer = _observed_model()
        await _collect(stream_text(model, "Say hello"))

        started, finished = observer.events
        assert started.metadata.call_id == finished.metadata.call_id
        assert started.metadata.call_id.startswith("call-")
        assert started.metadata.model == ModelInformation(provider="fake", model_name="fake-1")
        assert started.metadata.duration_in_ms is None
        assert finished.metadata.duration_in_ms >= 0
        assert finished.metadata.start_epoch_seconds == started.metadata.start_epoch_seconds
        assert started.metadata.run_id is None

    @pytest.mark.asyncio
    async def test_empty_output(self):
        model, observer = _observed_model(snapshots=())
        assert await _collect(stream_text(model, "...")) == []
        assert observer.events[-1].generated_text == ""
        assert observer.events[-1].response is None

    @pytest.mark.asyncio
    async def test_lazy_until_iterated(self):
        model, observer = _observed_model()
        fragments = stream_text(model, "Say hello")
        assert observer.events == []
        assert model.prompts == []
        await _collect(fragments)
        assert model.prompts == ["Say hello"]

    @pytest.mark.asyncio
    async def test_prompt_passed_through_unchanged(self):
        model, observer = _observed_model()
        prompt = [{"role": "user", "content": "hi"}]
        await _collect(stream_text(model, prompt))
        assert model.prompts[0] is prompt
        assert observer.events[0].prompt is prompt

    @pytest.mark.asyncio
    async def test_call_ids_unique_per_call(self):
        model, observer = _observed_model()
        await _collect(stream_text(model, "one"))
        await _collect(stream_text(model, "two"))
        ids = {event.metadata.call_id for event in observer.events}
        assert len(ids) == 2

    @pytest.mark.asyncio
    async def test_provider_closed_after_completion(self):
        model, _ = _observed_model()
        await _collect(stream_text(model, "x"))
        assert model.closed == [True]


# ══════════════════════════════════════════════════════════════════
# Failure
# ══════════════════════════════════════════════════════════════════


class TestFailure:
    @pytest.mark.asyncio
    async def test_error_reraised_after_failure_event(self):
        boom = ApiCallError("upstream 500", status_code=500, is_retryable=True)
        model, observer = _observed_model(snapshots=("par",), error=boom)
        received = []

        with pytest.raises(ApiCallError, match="upstream 500") as exc_info:
            async for fragment in stream_text(model, "x"):
                received.append(fragment)

        assert exc_info.value is boom
        assert received == ["par"]
        assert observer.statuses == ["started", "failure"]
        failure = observer.events[-1]
        assert isinstance(failure, FailureFinishedEvent)
        assert failure.error is boom
        assert failure.metadata.duration_in_ms >= 0

    @pytest.mark.asyncio
    async def test_failure_before_first_snapshot(self):
        model, observer = _observed_model(snapshots=(), error=ConnectionError("refused"))
        with pytest.raises(ConnectionError):
            await _collect(stream_text(model, "x"))
        assert observer.statuses == ["started", "failure"]


# ══════════════════════════════════════════════════════════════════
# Abort and cancellation
# ══════════════════════════════════════════════════════════════════


class TestAbort:
    @pytest.mark.asyncio
    async def test_signal_set_before_start(self):
        model, observer = _observed_model()
        signal = asyncio.Event()
        signal.set()

        with pytest.raises(AbortError):
            await _collect(stream_text(model, "x", FunctionOptions(abort_signal=signal)))

        assert model.pulled == []
        assert observer.statuses == ["started", "abort"]
        assert isinstance(observer.events[-1], AbortFinishedEvent)

    @pytest.mark.asyncio
    async def test_signal_set_while_provider_blocked(self):
        model, observer = _observed_model(snapshots=("a", "ab", "abc"), block_after=1)
        signal = asyncio.Event()
        fragments = stream_text(model, "x", FunctionOptions(abort_signal=signal))

        assert await anext(fragments) == "a"

        async def abort_when_blocked():
            await model.blocked.wait()
            signal.set()

        aborter = asyncio.create_task(abort_when_blocked())
        with pytest.raises(AbortError):
            await anext(fragments)
        await aborter

        assert model.pulled == ["a"]
        assert model.closed == [True]
        assert observer.statuses == ["started", "abort"]

    @pytest.mark.asyncio
    async def test_signal_reaches_provider_context(self):
        model, _ = _observed_model()
        signal = asyncio.Event()
        await _collect(stream_text(model, "x", FunctionOptions(abort_signal=signal)))
        assert model.contexts[0].abort_signal is signal
        assert model.contexts[0].aborted is False

    @pytest.mark.asyncio
    async def test_task_cancellation_reported_as_abort(self):
        model, observer = _observed_model(block_after=1)

        async def consume():
            return await _collect(stream_text(model, "x"))

        task = asyncio.create_task(consume())
        await model.blocked.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert model.closed == [True]
        assert observer.statuses == ["started", "abort"]

    @pytest.mark.asyncio
    async def test_deadline_reported_as_abort(self):
        model, observer = _observed_model(block_after=2)
        received = []

        with pytest.raises(TimeoutError):
            async with asyncio.timeout(0.05):
                async for fragment in stream_text(model, "x"):
                    received.append(fragment)

        assert received == ["Hel", "lo"]
        assert observer.statuses == ["started", "abort"]

    @pytest.mark.asyncio
    async def test_early_close_reported_as_abort(self):
        model, observer = _observed_model()

        async with aclosing(stream_text(model, "x")) as fragments:
            async for fragment in fragments:
                assert fragment == "Hel"
                break

        assert model.pulled == ["Hel"]
        assert model.closed == [True]
        assert observer.statuses == ["started", "abort"]

    def test_is_abort_classification(self):
        assert is_abort(AbortError())
        assert is_abort(asyncio.CancelledError())
        assert is_abort(GeneratorExit())
        assert not is_abort(TimeoutError())
        assert not is_abort(ValueError())


# ══════════════════════════════════════════════════════════════════
# Options: settings override, run context, observers
# ══════════════════════════════════════════════════════════════════


class TestOptions:
    @pytest.mark.asyncio
    async def test_settings_override_for_one_call(self):
        observer = RecordingObserver()
        model = FakeModel(
            settings=TextStreamingModelSettings(
                observers=[observer], system="base", max_tokens=100
            )
        )
        options = FunctionOptions(settings=TextStreamingModelSettings(max_tokens=5))

        await _collect(stream_text(model, "x", options))

        used = model.contexts[0].settings
        assert used.max_tokens == 5
        assert used.system == "base"
        assert observer.events[0].settings.max_tokens == 5
        assert model.settings.max_tokens == 100
        assert observer.statuses == ["started", "success"]
        assert len(model.contexts) == 1

    @pytest.mark.asyncio
    async def test_run_context_in_metadata_and_observers(self):
        model, model_observer = _observed_model()
        run_observer = RecordingObserver()
        run = Run(run_id="run-1", session_id="s-1", user_id="u-1", observers=[run_observer])

        await _collect(
            stream_text(model, "x", FunctionOptions(function_id="summarize", run=run))
        )

        assert model_observer.statuses == ["started", "success"]
        assert run_observer.statuses == ["started", "success"]
        metadata = run_observer.events[-1].metadata
        assert metadata.run_id == "run-1"
        assert metadata.session_id == "s-1"
        assert metadata.user_id == "u-1"
        assert metadata.function_id == "summarize"
        assert model.contexts[0].run is run
        assert model.contexts[0].function_id == "summarize"

    @pytest.mark.asyncio
    async def test_observer_errors_do_not_break_the_call(self):
        errors = []
        model = FakeModel(
            settings=TextStreamingModelSettings(
                observers=[FailingObserver()], error_handler=errors.append
            )
        )

        fragments = await _collect(stream_text(model, "x"))

        assert "".join(fragments) == "Hello, world"
        assert [str(e) for e in errors] == ["started broke", "finished broke"]

    @pytest.mark.asyncio
    async def test_run_error_handler_preferred(self):
        settings_errors, run_errors = [], []
        model = FakeModel(
            settings=TextStreamingModelSettings(
                observers=[FailingObserver()], error_handler=settings_errors.append
            )
        )
        run = Run(error_handler=run_errors.append)

        await _collect(stream_text(model, "x", FunctionOptions(run=run)))

        assert settings_errors == []
        assert len(run_errors) == 2


# ══════════════════════════════════════════════════════════════════
# Provider execution context
# ══════════════════════════════════════════════════════════════════


class TestProviderContext:
    @pytest.mark.asyncio
    async def test_provider_keeps_context_without_signal(self):
        fragments = await _collect(stream_text(ContextModel(), "x"))
        assert fragments == ["a", "opened"]

    @pytest.mark.asyncio
    async def test_provider_keeps_context_with_signal(self):
        options = FunctionOptions(abort_signal=asyncio.Event())
        fragments = await _collect(stream_text(ContextModel(), "x", options))
        assert fragments == ["a", "opened"]

    @pytest.mark.asyncio
    async def test_provider_runs_on_consuming_task(self):
        tasks = []

        class TaskModel(ContextModel):
            async def generate_delta_stream_response(self, prompt, context):
                tasks.append(asyncio.current_task())
                yield {"text": "a"}
                tasks.append(asyncio.current_task())
                yield {"text": "ab"}

        consumer = asyncio.current_task()
        options = FunctionOptions(abort_signal=asyncio.Event())
        await _collect(stream_text(TaskModel(), "x", options))
        assert tasks == [consumer, consumer]

    @pytest.mark.asyncio
    async def test_task_cancel_with_signal_stays_cancellation(self):
        model, observer = _observed_model(block_after=1)
        signal = asyncio.Event()

        async def consume():
            return await _collect(stream_text(model, "x", FunctionOptions(abort_signal=signal)))

        task = asyncio.create_task(consume())
        await model.blocked.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert not signal.is_set()
        assert observer.statuses == ["started", "abort"]

    @pytest.mark.asyncio
    async def test_abort_leaves_consumer_uncancelled(self):
        model, _ = _observed_model(snapshots=("a", "ab"), block_after=1)
        signal = asyncio.Event()
        fragments = stream_text(model, "x", FunctionOptions(abort_signal=signal))
        assert await anext(fragments) == "a"

        async def abort_when_blocked():
            await model.blocked.wait()
            signal.set()

        aborter = asyncio.create_task(abort_when_blocked())
        with pytest.raises(AbortError):
            await anext(fragments)
        await aborter

        assert asyncio.current_task().cancelling() == 0
        await asyncio.sleep(0)
