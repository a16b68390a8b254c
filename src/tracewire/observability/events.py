"""
Event records appended to a writer by the ``Tracer``.

Every event is write-once: it is built, converted with ``to_dict`` and handed
to the writer. Nothing updates or retracts an event after that.
"""

import time
from dataclasses import dataclass, field
from typing import Any, ClassVar, Optional

from .context import TraceContext


@dataclass
class TraceEvent:
    type: ClassVar[str] = "event"

    ctx: TraceContext
    provider: str
    model: Optional[str] = None
    session_id: Optional[str] = None
    ts: float = field(default_factory=time.time)

    def _fields(self) -> dict[str, Any]:
        return {}

    def to_dict(self) -> dict[str, Any]:
        data = {
            "type": self.type,
            "ts": self.ts,
            "session_id": self.session_id,
            "ctx": self.ctx.to_dict(),
            "provider": self.provider,
            "model": self.model,
        }
        data.update(self._fields())
        return data


@dataclass
class MessageEvent(TraceEvent):
    type: ClassVar[str] = "message"

    role: str = "user"
    content: str = ""
    format: str = "text"
    request_id: Optional[str] = None
    ext: Optional[dict[str, Any]] = None

    def _fields(self) -> dict[str, Any]:
        return {
            "role": self.role,
            "content": self.content,
            "format": self.format,
            "request_id": self.request_id,
            "ext": self.ext,
        }


@dataclass
class ToolCallEvent(TraceEvent):
    type: ClassVar[str] = "tool_call"

    tool: str = ""
    input: Any = None
    request_id: Optional[str] = None
    ext: Optional[dict[str, Any]] = None

    def _fields(self) -> dict[str, Any]:
        return {
            "tool": self.tool,
            "input": self.input,
            "request_id": self.request_id,
            "ext": self.ext,
        }


@dataclass
class UsageEvent(TraceEvent):
    type: ClassVar[str] = "usage"

    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    request_id: Optional[str] = None
    ext: Optional[dict[str, Any]] = None

    def _fields(self) -> dict[str, Any]:
        return {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "request_id": self.request_id,
            "ext": self.ext,
        }


@dataclass
class ToolResultEvent(TraceEvent):
    type: ClassVar[str] = "tool_result"

    tool: str = ""
    ok: bool = True
    latency_ms: Optional[int] = None
    output: Any = None
    request_id: Optional[str] = None

    def _fields(self) -> dict[str, Any]:
        return {
            "tool": self.tool,
            "ok": self.ok,
            "latency_ms": self.latency_ms,
            "output": self.output,
            "request_id": self.request_id,
        }


@dataclass
class SpanEvent(TraceEvent):
    type: ClassVar[str] = "span"

    operation: str = ""
    duration_ms: Optional[float] = None
    status: str = "ok"
    attrs: dict[str, Any] = field(default_factory=dict)

    def _fields(self) -> dict[str, Any]:
        return {
            "operation": self.operation,
            "duration_ms": self.duration_ms,
            "status": self.status,
            "attrs": self.attrs,
        }
