"""
tracewire - trace events for LLM client calls.

Main API:
    tracewire.init() - Configure logging and return a Tracer
    tracewire.instrument() - Wrap an OpenAI client so its calls are recorded
    tracewire.flush_pending() - Wait for background event recording
"""

from .core.init import init
from .errors import EventWriteError, TracewireError, UnknownOptionError
from .observability.context import TraceContext, new_trace_ctx
from .observability.integrations.openai import (
    ResolvedOptions,
    flush_pending,
    instrument,
)
from .observability.tracer import EventRecorder, Tracer
from .observability.writer import (
    ConsoleEventWriter,
    EventBackendWriter,
    EventWriter,
    MemoryEventWriter,
)

__all__ = [
    "init",
    "instrument",
    "flush_pending",
    "ResolvedOptions",
    "Tracer",
    "EventRecorder",
    "TraceContext",
    "new_trace_ctx",
    "EventWriter",
    "MemoryEventWriter",
    "ConsoleEventWriter",
    "EventBackendWriter",
    "TracewireError",
    "UnknownOptionError",
    "EventWriteError",
]
