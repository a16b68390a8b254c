"""
Deferred finalization for streaming results.

A streaming call hands the caller a stream right away. Its completion,
usage, tool_result and span-close events are recorded later.

Async streams are finalized from a background task that waits for the
stream's final payload; the caller does not need to consume the stream for
that to happen. Two async stream shapes are understood:

* streams exposing ``get_final_completion()`` (the OpenAI SDK's chat
  completion stream helpers); the accessor's result is the final payload;
* async-iterable streams exposing ``tee()``; one copy is consumed in the
  background and its chunks are folded into a chat completion, the other
  copy is returned to the caller. Streams without ``tee()`` (the SDK's
  ``AsyncStream``) are given one by ``ensure_teeable``.

Sync streams (the SDK's ``Stream``) are observed while the caller iterates
them and finalized once iteration ends, stops early, or the stream is closed.
"""
import asyncio
import inspect
import logging
from collections import deque
from typing import Any, Awaitable, Callable, Optional

from ...context import TraceContext
from ...span import SpanToken
from .completion import from_chat_completion, get_field
from .emitters import emit_completion_artifacts, emit_failure_result, emit_success_result
from .lifecycle import elapsed_ms, finalize_span
from .options import ResolvedOptions
from .results import to_error_message
from .tasks import record_from_sync, spawn

logger = logging.getLogger(__name__)

FINAL_ACCESSOR = "get_final_completion"


def _has_final_accessor(value: Any) -> bool:
    return callable(getattr(value, FINAL_ACCESSOR, None))


def _is_teeable(value: Any) -> bool:
    return callable(getattr(value, "tee", None)) and hasattr(value, "__aiter__")


def is_stream_like(value: Any) -> bool:
    """True for either supported streaming shape."""
    if value is None or isinstance(value, (dict, list, str, bytes)):
        return False
    return _has_final_accessor(value) or _is_teeable(value)


class _TeeSource:
    """Shared state behind the copies produced by ``TeeableStream.tee()``."""

    def __init__(self, source: Any, copies: int = 2):
        self._iterator = source.__aiter__()
        self._buffers = [deque() for _ in range(copies)]
        self._lock = asyncio.Lock()
        self._done = False
        self._error: Optional[BaseException] = None

    async def next_for(self, index: int) -> Any:
        buffer = self._buffers[index]
        while not buffer:
            async with self._lock:
                if buffer:
                    break
                if self._error is not None:
                    raise self._error
                if self._done:
                    raise StopAsyncIteration
                try:
                    item = await self._iterator.__anext__()
                except StopAsyncIteration:
                    self._done = True
                    raise
                except Exception as e:
                    self._error = e
                    raise
                for b in self._buffers:
                    b.append(item)
        return buffer.popleft()


class _TeeCopy:
    """One independent copy of a teed stream; other attributes come from the original."""

    def __init__(self, source: _TeeSource, index: int, original: Any):
        self._tw_source = source
        self._tw_index = index
        self._tw_original = original

    @property
    def __class__(self):
        return type(self._tw_original)

    def __aiter__(self):
        return self

    async def __anext__(self) -> Any:
        return await self._tw_source.next_for(self._tw_index)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        close = getattr(self._tw_original, "close", None)
        if close is not None:
            result = close()
            if inspect.isawaitable(result):
                await result

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_tw_"):
            raise AttributeError(name)
        return getattr(self._tw_original, name)


class TeeableStream:
    """
    Gives a plain async-iterable stream (the SDK's ``AsyncStream``) a ``tee()``.

    Items are buffered per copy, so each copy sees every chunk no matter how
    fast the other one is consumed.
    """

    def __init__(self, stream: Any):
        self._tw_stream = stream

    @property
    def __class__(self):
        return type(self._tw_stream)

    def __aiter__(self):
        return self._tw_stream.__aiter__()

    def tee(self) -> tuple[_TeeCopy, _TeeCopy]:
        source = _TeeSource(self._tw_stream)
        return _TeeCopy(source, 0, self._tw_stream), _TeeCopy(source, 1, self._tw_stream)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_tw_"):
            raise AttributeError(name)
        return getattr(self._tw_stream, name)


def ensure_teeable(result: Any, is_streaming: bool) -> Any:
    """Adapt an async-iterable streaming result that has no ``tee()`` of its own."""
    if not is_streaming or is_stream_like(result) or not hasattr(result, "__aiter__"):
        return result
    return TeeableStream(result)


def _usage_dict(usage: Any) -> Optional[dict[str, Any]]:
    if usage is None:
        return None
    return {
        "prompt_tokens": get_field(usage, "prompt_tokens", get_field(usage, "input_tokens")),
        "completion_tokens": get_field(usage, "completion_tokens", get_field(usage, "output_tokens")),
        "total_tokens": get_field(usage, "total_tokens"),
    }


class ChunkAccumulator:
    """
    Rebuilds a chat completion from its chunks.

    Content deltas are concatenated, tool call deltas are merged by index,
    and the last reported usage and finish reason win.
    """

    def __init__(self):
        self.completion_id = None
        self.model = None
        self.created = None
        self.role = None
        self.finish_reason = None
        self.usage = None
        self.content_parts: list[str] = []
        self.tool_calls_by_index: dict[int, dict[str, Any]] = {}
        self.chunk_count = 0

    def add(self, chunk: Any) -> None:
        self.chunk_count += 1
        self.completion_id = self.completion_id or get_field(chunk, "id")
        self.model = self.model or get_field(chunk, "model")
        self.created = self.created or get_field(chunk, "created")

        for choice in get_field(chunk, "choices") or ():
            delta = get_field(choice, "delta")
            self.role = self.role or get_field(delta, "role")
            content = get_field(delta, "content")
            if content:
                self.content_parts.append(content)

            for tool_call_delta in get_field(delta, "tool_calls") or ():
                self._add_tool_call_delta(tool_call_delta)

            self.finish_reason = get_field(choice, "finish_reason") or self.finish_reason

        chunk_usage = get_field(chunk, "usage")
        if chunk_usage:
            self.usage = chunk_usage

    def _add_tool_call_delta(self, tool_call_delta: Any) -> None:
        index = get_field(tool_call_delta, "index", 0) or 0
        entry = self.tool_calls_by_index.setdefault(index, {
            "id": None,
            "type": "function",
            "function": {"name": "", "arguments": ""},
        })
        entry["id"] = entry["id"] or get_field(tool_call_delta, "id")
        entry["type"] = get_field(tool_call_delta, "type") or entry["type"]
        function = get_field(tool_call_delta, "function")
        name = get_field(function, "name")
        if name:
            entry["function"]["name"] = name
        arguments = get_field(function, "arguments")
        if arguments:
            entry["function"]["arguments"] += arguments

    def build(self) -> dict[str, Any]:
        tool_calls = [self.tool_calls_by_index[i] for i in sorted(self.tool_calls_by_index)]
        return {
            "id": self.completion_id,
            "object": "chat.completion",
            "created": self.created,
            "model": self.model,
            "choices": [{
                "index": 0,
                "message": {
                    "role": self.role or "assistant",
                    "content": "".join(self.content_parts) or None,
                    "tool_calls": tool_calls or None,
                },
                "finish_reason": self.finish_reason,
            }],
            "usage": _usage_dict(self.usage),
        }


async def accumulate_chunks(stream: Any) -> dict[str, Any]:
    """Consume an async chat completion chunk stream and rebuild the final completion."""
    accumulator = ChunkAccumulator()
    async for chunk in stream:
        accumulator.add(chunk)
    logger.debug(f"[OpenAI] Stream observer finished after {accumulator.chunk_count} chunks")
    return accumulator.build()


def _attach_final_accessor(target: Any, accessor: Callable[[], Awaitable[Any]]) -> None:
    if _has_final_accessor(target):
        return
    try:
        setattr(target, FINAL_ACCESSOR, accessor)
    except (AttributeError, TypeError):
        logger.debug(f"[OpenAI] Could not attach {FINAL_ACCESSOR} to {type(target).__name__}")


class _StreamFinalizer:
    """Records the deferred events of one streaming call, at most once."""

    def __init__(
        self,
        recorder: Any,
        opts: ResolvedOptions,
        ctx: TraceContext,
        model: Optional[str],
        span_token: Optional[SpanToken],
        start_time: float,
        tool: Optional[str] = None,
    ):
        self.recorder = recorder
        self.opts = opts
        self.ctx = ctx
        self.model = model
        self.span_token = span_token
        self.start_time = start_time
        self.tool = tool
        self._finished = False

    @property
    def finished(self) -> bool:
        return self._finished

    async def run(self, resolution: Any) -> None:
        try:
            raw = await resolution if inspect.isawaitable(resolution) else resolution
        except Exception as exc:
            await self.fail(exc)
            return
        await self.succeed(raw)

    async def succeed(self, raw: Any) -> None:
        if self._finished:
            return
        self._finished = True
        try:
            completion = from_chat_completion(raw)
            await emit_completion_artifacts(self.recorder, self.opts, completion, self.ctx, self.model)
            latency_ms = elapsed_ms(self.start_time)
            await emit_success_result(
                self.recorder, self.opts, completion, self.ctx, latency_ms,
                model=self.model, tool=self.tool,
            )
            await finalize_span(self.recorder, self.span_token, "ok", {
                "latency_ms": latency_ms,
                "model": (completion.model if completion is not None else None) or self.model,
                "stream": True,
            })
        except Exception:
            logger.exception("[OpenAI] Failed to record streaming completion")

    async def fail(self, error: BaseException) -> None:
        if self._finished:
            return
        self._finished = True
        try:
            latency_ms = elapsed_ms(self.start_time)
            await emit_failure_result(
                self.recorder, self.opts, error, self.ctx, latency_ms,
                model=self.model, tool=self.tool,
            )
            await finalize_span(self.recorder, self.span_token, "error", {
                "latency_ms": latency_ms,
                "model": self.model,
                "stream": True,
                "error": to_error_message(error),
            })
        except Exception:
            logger.exception("[OpenAI] Failed to record streaming failure")


def handle_stream_result(
    stream: Any,
    recorder: Any,
    opts: ResolvedOptions,
    ctx: TraceContext,
    model: Optional[str],
    span_token: Optional[SpanToken],
    start_time: float,
    tool: Optional[str] = None,
) -> Any:
    """
    Arrange background finalization for ``stream`` and return the stream the
    caller should receive. Never raises; setup errors become a failed outcome.
    """
    finalizer = _StreamFinalizer(recorder, opts, ctx, model, span_token, start_time, tool)

    try:
        if _has_final_accessor(stream):
            resolution = getattr(stream, FINAL_ACCESSOR)()
            caller_stream = stream
        elif _is_teeable(stream):
            observer, caller_stream = stream.tee()
            accumulator = spawn(accumulate_chunks(observer))

            async def get_final_completion() -> dict[str, Any]:
                return await asyncio.shield(accumulator)

            _attach_final_accessor(observer, get_final_completion)
            _attach_final_accessor(caller_stream, get_final_completion)
            resolution = accumulator
        else:
            resolution = None
            caller_stream = stream
    except Exception as exc:
        logger.debug(f"[OpenAI] Could not set up stream finalization: {exc}")
        spawn(finalizer.fail(exc))
        return stream

    spawn(finalizer.run(resolution))
    return caller_stream


def is_sync_stream(value: Any) -> bool:
    """True for a synchronous chunk stream such as the SDK's ``Stream``."""
    if value is None or isinstance(value, (dict, list, tuple, str, bytes)):
        return False
    # pydantic models iterate over their fields
    if hasattr(value, "model_dump"):
        return False
    return callable(getattr(value, "__iter__", None)) and not hasattr(value, "__aiter__")


class ObservedStream:
    """
    Passes a synchronous chunk stream through to the caller while folding its
    chunks into a completion. The call is recorded when iteration ends,
    stops early, or the stream is closed.
    """

    def __init__(self, stream: Any, finalizer: _StreamFinalizer):
        self._tw_stream = stream
        self._tw_finalizer = finalizer
        self._tw_accumulator = ChunkAccumulator()
        self._tw_iterator = None

    @property
    def __class__(self):
        return type(self._tw_stream)

    def __iter__(self):
        try:
            for chunk in self._tw_stream:
                self._tw_accumulator.add(chunk)
                yield chunk
        except Exception as e:
            if not self._tw_finalizer.finished:
                record_from_sync(self._tw_finalizer.fail(e))
            raise
        finally:
            self._tw_finish()

    def __next__(self) -> Any:
        if self._tw_iterator is None:
            self._tw_iterator = iter(self)
        return next(self._tw_iterator)

    def _tw_finish(self) -> None:
        if self._tw_finalizer.finished:
            return
        logger.debug(f"[OpenAI] Sync stream finished after {self._tw_accumulator.chunk_count} chunks")
        record_from_sync(self._tw_finalizer.succeed(self._tw_accumulator.build()))

    def close(self) -> None:
        try:
            close = getattr(self._tw_stream, "close", None)
            if close is not None:
                close()
        finally:
            self._tw_finish()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_tw_"):
            raise AttributeError(name)
        return getattr(self._tw_stream, name)


def observe_sync_stream(
    stream: Any,
    recorder: Any,
    opts: ResolvedOptions,
    ctx: TraceContext,
    model: Optional[str],
    span_token: Optional[SpanToken],
    start_time: float,
    tool: Optional[str] = None,
) -> ObservedStream:
    finalizer = _StreamFinalizer(recorder, opts, ctx, model, span_token, start_time, tool)
    return ObservedStream(stream, finalizer)
