# Observability package initialization
from .context import TraceContext, new_trace_ctx
from .span import SpanToken
from .tracer import EventRecorder, Tracer

__all__ = ["Tracer", "EventRecorder", "SpanToken", "TraceContext", "new_trace_ctx"]
