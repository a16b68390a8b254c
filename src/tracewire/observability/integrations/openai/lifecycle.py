"""
Span lifecycle and the per-call recording shared by every instrumented method.

``wrap_call`` keeps the shape of the method it instruments: a coroutine
function stays a coroutine function, a plain method stays plain and records
its events through ``record_from_sync``.
"""
import asyncio
import inspect
import logging
import time
from functools import wraps
from typing import Any, Awaitable, Callable, Coroutine, Optional

from ...context import TraceContext
from ...span import SpanToken
from .emitters import emit_failure_result
from .options import ResolvedOptions
from .proxy import call_original
from .results import to_error_message
from .tasks import record_from_sync

logger = logging.getLogger(__name__)


def elapsed_ms(start_time: float) -> int:
    """Wall-clock milliseconds since ``start_time`` (a ``time.time()`` value)."""
    return max(0, int(round((time.time() - start_time) * 1000)))


def begin_span(
    recorder: Any,
    opts: ResolvedOptions,
    operation: str,
    attrs: Optional[dict[str, Any]] = None,
) -> tuple[Optional[SpanToken], TraceContext]:
    """
    Open a span when span emission is enabled.

    Returns the span token (None when spans are disabled) and the context
    every event of the call must share.
    """
    if not opts.emit_span:
        return None, recorder.new_context()

    span_attrs = {"provider": opts.provider}
    span_attrs.update(attrs or {})
    token = recorder.span_start(operation, span_attrs)
    return token, token.ctx


async def finalize_span(
    recorder: Any,
    token: Optional[SpanToken],
    status: str,
    attrs: dict[str, Any],
) -> None:
    """Close the span if one was opened."""
    if token is None:
        return
    await recorder.span_end(token, status, attrs)


def is_async_callable(func: Any) -> bool:
    """True for coroutine functions, including ones behind ``functools.wraps`` decorators."""
    if inspect.iscoroutinefunction(func):
        return True
    try:
        return inspect.iscoroutinefunction(inspect.unwrap(func))
    except ValueError:
        return False


class CallRecording:
    """
    The events of one instrumented call, from span open to span close.

    Subclasses decide what is recorded before the request and what a
    successful result turns into. Failures are recorded the same way for
    every operation.
    """

    def __init__(
        self,
        recorder: Any,
        opts: ResolvedOptions,
        operation: str,
        model: Optional[str],
        attrs: Optional[dict[str, Any]] = None,
    ):
        self.recorder = recorder
        self.opts = opts
        self.operation = operation
        self.model = model
        self.start_time = time.time()
        span_attrs: dict[str, Any] = {"model": model}
        span_attrs.update(attrs or {})
        self.span_token, self.ctx = begin_span(recorder, opts, operation, span_attrs)
        self._tail: Optional[asyncio.Task] = None

    async def before(self) -> None:
        """Record whatever precedes the request."""

    async def record_result(self, result: Any) -> None:
        raise NotImplementedError

    async def complete(self, result: Any) -> Any:
        """Record an async call's result and return what the caller receives."""
        await self.record_result(result)
        return result

    def complete_sync(self, result: Any) -> Any:
        """Record a sync call's result and return what the caller receives."""
        self.run(self.record_result(result))
        return result

    async def fail(self, error: BaseException) -> None:
        latency_ms = elapsed_ms(self.start_time)
        logger.debug(f"[OpenAI] {self.operation} failed after {latency_ms}ms: {error}")
        await emit_failure_result(
            self.recorder, self.opts, error, self.ctx, latency_ms,
            model=self.model, tool=self.operation,
        )
        await finalize_span(self.recorder, self.span_token, "error", {
            "latency_ms": latency_ms,
            "model": self.model,
            "error": to_error_message(error),
        })

    def run(self, coro: Coroutine[Any, Any, Any]) -> None:
        """Record from synchronous code, after anything this call already scheduled."""
        self._tail = record_from_sync(coro, after=self._tail)

    async def settle(self) -> None:
        if self._tail is not None:
            await asyncio.gather(self._tail, return_exceptions=True)


async def _finish(
    recording: CallRecording,
    invoke: Callable[[], Awaitable[Any]],
    record_before: bool = True,
) -> Any:
    try:
        if record_before:
            await recording.before()
        else:
            await recording.settle()
        return await recording.complete(await invoke())
    except Exception as e:
        await recording.fail(e)
        raise


def wrap_call(original: Callable, start: Callable[[tuple, dict], CallRecording]) -> Callable:
    """
    Instrument ``original``. ``start`` builds the recording for each call
    from the caller's positional and keyword arguments.
    """
    if is_async_callable(original):

        @wraps(original)
        async def wrapped_async(*args: Any, **kwargs: Any) -> Any:
            recording = start(args, kwargs)
            return await _finish(recording, lambda: call_original(original, args, kwargs))

        return wrapped_async

    @wraps(original)
    def wrapped_sync(*args: Any, **kwargs: Any) -> Any:
        recording = start(args, kwargs)
        try:
            recording.run(recording.before())
            result = original(*args, **kwargs)
            if inspect.isawaitable(result):
                # async method hidden behind a plain wrapper
                return _finish(recording, lambda: result, record_before=False)
            return recording.complete_sync(result)
        except Exception as e:
            recording.run(recording.fail(e))
            raise

    return wrapped_sync
