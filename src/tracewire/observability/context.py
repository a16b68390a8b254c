import uuid
from dataclasses import dataclass
from typing import Any, Optional

from opentelemetry import trace as otel_trace


@dataclass(frozen=True)
class TraceContext:
    """Correlation identifiers shared by every event of one logical call."""
    trace_id: str
    span_id: str
    parent_span_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "trace_id": self.trace_id,
            "span_id": self.span_id,
            "parent_span_id": self.parent_span_id,
        }


def _new_span_id() -> str:
    return uuid.uuid4().hex[:16]


def new_trace_ctx() -> TraceContext:
    """
    Allocate a fresh trace context.

    If an OpenTelemetry span is recording in the current context its trace id
    is reused and its span id becomes the parent, so adapter events line up
    with the application's own traces. Otherwise a new trace id is minted.
    """
    current = otel_trace.get_current_span().get_span_context()
    if current.is_valid:
        return TraceContext(
            trace_id=format(current.trace_id, "032x"),
            span_id=_new_span_id(),
            parent_span_id=format(current.span_id, "016x"),
        )
    return TraceContext(trace_id=uuid.uuid4().hex, span_id=_new_span_id())
