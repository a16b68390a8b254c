"""
Instrumentation for the non-chat OpenAI surfaces: responses, images, audio.

These operations emit only a ``tool_result`` and a span. Their payloads are
not broken down into message or usage events.
"""
import logging
from typing import Any, Callable, Optional

from .completion import CompletionLike, from_responses_result
from .emitters import emit_auxiliary_success
from .lifecycle import CallRecording, elapsed_ms, finalize_span, wrap_call
from .options import ResolvedOptions
from .proxy import DelegatingProxy, request_params

logger = logging.getLogger(__name__)

AUDIO_NAMESPACES = ("speech", "transcriptions", "translations")


class AuxiliaryCallRecording(CallRecording):
    def __init__(
        self,
        recorder: Any,
        opts: ResolvedOptions,
        operation: str,
        params: dict[str, Any],
        coerce: Optional[Callable[[Any], Optional[CompletionLike]]] = None,
    ):
        super().__init__(recorder, opts, operation, params.get("model"))
        self.coerce = coerce

    async def record_result(self, result: Any) -> None:
        completion = self.coerce(result) if self.coerce is not None else None
        latency_ms = elapsed_ms(self.start_time)
        await emit_auxiliary_success(
            self.recorder, self.opts, self.operation, self.ctx, latency_ms,
            model=self.model, completion=completion,
        )
        await finalize_span(self.recorder, self.span_token, "ok", {"latency_ms": latency_ms, "model": self.model})


def wrap_auxiliary(
    original: Callable,
    recorder: Any,
    opts: ResolvedOptions,
    operation: str,
    coerce: Optional[Callable[[Any], Optional[CompletionLike]]] = None,
) -> Callable:
    """Instrument a single-shot operation labelled ``operation``."""
    return wrap_call(
        original,
        lambda args, kwargs: AuxiliaryCallRecording(
            recorder, opts, operation, request_params(args, kwargs), coerce
        ),
    )


class ResponsesProxy(DelegatingProxy):
    def _tw_intercept(self, name: str, value: Any) -> Any:
        if name == "create" and callable(value):
            return wrap_auxiliary(
                value, self._tw_recorder, self._tw_options,
                "openai.responses.create", coerce=from_responses_result,
            )
        return value


class ImagesProxy(DelegatingProxy):
    def _tw_intercept(self, name: str, value: Any) -> Any:
        if name == "generate" and callable(value):
            return wrap_auxiliary(value, self._tw_recorder, self._tw_options, "openai.images.generate")
        return value


class AudioNamespaceProxy(DelegatingProxy):
    """One of ``audio.speech``, ``audio.transcriptions`` or ``audio.translations``."""

    def __init__(self, target: Any, recorder: Any, opts: ResolvedOptions, namespace: str):
        super().__init__(target, recorder, opts)
        object.__setattr__(self, "_tw_namespace", namespace)

    def _tw_intercept(self, name: str, value: Any) -> Any:
        if name == "create" and callable(value):
            return wrap_auxiliary(
                value, self._tw_recorder, self._tw_options,
                f"openai.audio.{self._tw_namespace}.create",
            )
        return value


class AudioProxy(DelegatingProxy):
    def _tw_intercept(self, name: str, value: Any) -> Any:
        if name in AUDIO_NAMESPACES:
            return AudioNamespaceProxy(value, self._tw_recorder, self._tw_options, name)
        return value
