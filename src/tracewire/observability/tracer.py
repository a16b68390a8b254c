import logging
import uuid
from typing import Any, Optional, Protocol, runtime_checkable

from .context import TraceContext, new_trace_ctx
from .events import (
    MessageEvent,
    SpanEvent,
    ToolCallEvent,
    ToolResultEvent,
    TraceEvent,
    UsageEvent,
)
from .span import SpanToken
from .utils import sanitize_for_json
from .writer import EventBackendWriter, EventWriter

logger = logging.getLogger(__name__)


@runtime_checkable
class EventRecorder(Protocol):
    """
    The narrow surface instrumentation code records through.

    ``Tracer`` implements it. Any object with the same methods works too.
    """

    def new_context(self) -> TraceContext: ...

    def span_start(self, operation: str, attrs: Optional[dict[str, Any]] = None) -> SpanToken: ...

    async def span_end(self, token: SpanToken, status: str, attrs: dict[str, Any]) -> None: ...

    async def message(self, **payload: Any) -> None: ...

    async def tool_call(self, **payload: Any) -> None: ...

    async def usage(self, **payload: Any) -> None: ...

    async def tool_result(self, **payload: Any) -> None: ...


class Tracer:
    """
    Records trace events for one session and hands them to a writer.

    Events are written as soon as they are recorded; the tracer keeps no
    buffer. Writer failures propagate to whoever awaited the record call.
    """

    def __init__(
        self,
        writer: Optional[EventWriter] = None,
        session_id: Optional[str] = None,
    ) -> None:
        self._writer: EventWriter = writer if writer is not None else EventBackendWriter()
        self.session_id = session_id or str(uuid.uuid4())
        self._shutdown_called = False
        logger.debug(f"Tracer created for session {self.session_id} with {type(self._writer).__name__}")

    @property
    def writer(self) -> EventWriter:
        return self._writer

    def new_context(self) -> TraceContext:
        return new_trace_ctx()

    def span_start(self, operation: str, attrs: Optional[dict[str, Any]] = None) -> SpanToken:
        token = SpanToken(operation=operation, ctx=self.new_context(), attrs=dict(attrs or {}))
        logger.debug(f"Span started: {operation} (trace_id={token.ctx.trace_id})")
        return token

    async def span_end(self, token: SpanToken, status: str = "ok", attrs: Optional[dict[str, Any]] = None) -> None:
        if not token.close(status, attrs):
            logger.warning(f"Span {token.operation} ({token.ctx.span_id}) was already closed; ignoring")
            return
        await self._emit(SpanEvent(
            ctx=token.ctx,
            provider=token.attrs.get("provider", ""),
            model=token.attrs.get("model"),
            operation=token.operation,
            duration_ms=token.duration_ms,
            status=status,
            attrs=dict(token.attrs),
        ))

    async def message(self, **payload: Any) -> None:
        await self._emit(MessageEvent(**payload))

    async def tool_call(self, **payload: Any) -> None:
        await self._emit(ToolCallEvent(**payload))

    async def usage(self, **payload: Any) -> None:
        await self._emit(UsageEvent(**payload))

    async def tool_result(self, **payload: Any) -> None:
        await self._emit(ToolResultEvent(**payload))

    async def _emit(self, event: TraceEvent) -> None:
        if self._shutdown_called:
            logger.debug(f"Tracer is shut down, dropping {event.type} event")
            return
        event.session_id = self.session_id
        await self._writer.write([sanitize_for_json(event.to_dict())])

    def is_shutting_down(self) -> bool:
        return self._shutdown_called

    def shutdown(self) -> None:
        """Stop accepting events. Later record calls are dropped."""
        if self._shutdown_called:
            return
        self._shutdown_called = True
        logger.info(f"Tracer for session {self.session_id} shut down")
