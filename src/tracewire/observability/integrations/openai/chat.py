import logging
from typing import Any, Callable

from .completion import from_chat_completion
from .emitters import emit_completion_artifacts, emit_prompt_messages, emit_success_result
from .lifecycle import CallRecording, elapsed_ms, finalize_span, wrap_call
from .options import ResolvedOptions
from .proxy import DelegatingProxy, request_params
from .stream import (
    ensure_teeable,
    handle_stream_result,
    is_stream_like,
    is_sync_stream,
    observe_sync_stream,
)

logger = logging.getLogger(__name__)


class ChatCallRecording(CallRecording):
    """Events of one ``chat.completions.create`` call."""

    def __init__(self, recorder: Any, opts: ResolvedOptions, params: dict[str, Any]):
        self.params = params
        self.is_streaming = bool(params.get("stream"))
        super().__init__(
            recorder, opts, opts.operation_name, params.get("model"), {"stream": self.is_streaming}
        )
        logger.debug(f"[OpenAI] chat.completions.create model={self.model} stream={self.is_streaming}")

    async def before(self) -> None:
        await emit_prompt_messages(self.recorder, self.opts, self.params.get("messages"), self.ctx, self.model)

    async def complete(self, result: Any) -> Any:
        result = ensure_teeable(result, self.is_streaming)
        if is_stream_like(result):
            return handle_stream_result(
                result, self.recorder, self.opts, self.ctx, self.model, self.span_token, self.start_time
            )
        return await super().complete(result)

    def complete_sync(self, result: Any) -> Any:
        if self.is_streaming and is_sync_stream(result):
            return observe_sync_stream(
                result, self.recorder, self.opts, self.ctx, self.model, self.span_token, self.start_time
            )
        return super().complete_sync(result)

    async def record_result(self, result: Any) -> None:
        completion = from_chat_completion(result)
        await emit_completion_artifacts(self.recorder, self.opts, completion, self.ctx, self.model)
        latency_ms = elapsed_ms(self.start_time)
        await emit_success_result(self.recorder, self.opts, completion, self.ctx, latency_ms, model=self.model)
        await finalize_span(self.recorder, self.span_token, "ok", {
            "latency_ms": latency_ms,
            "model": (completion.model if completion is not None else None) or self.model,
        })


def wrap_chat_create(original: Callable, recorder: Any, opts: ResolvedOptions) -> Callable:
    """Instrument ``chat.completions.create`` on a sync or async client."""
    return wrap_call(
        original,
        lambda args, kwargs: ChatCallRecording(recorder, opts, request_params(args, kwargs)),
    )


class CompletionsProxy(DelegatingProxy):
    def _tw_intercept(self, name: str, value: Any) -> Any:
        if name == "create" and callable(value):
            return wrap_chat_create(value, self._tw_recorder, self._tw_options)
        return value


class ChatProxy(DelegatingProxy):
    def _tw_intercept(self, name: str, value: Any) -> Any:
        if name == "completions":
            return CompletionsProxy(value, self._tw_recorder, self._tw_options)
        return value
