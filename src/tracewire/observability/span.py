import time
from dataclasses import dataclass, field
from typing import Any, Optional

from .context import TraceContext


@dataclass
class SpanToken:
    """
    Handle for an open timing span.

    Returned by ``Tracer.span_start`` and owned by the call that opened it.
    The span event itself is only written when the token is closed.
    """
    operation: str
    ctx: TraceContext
    attrs: dict[str, Any] = field(default_factory=dict)
    start_time: float = field(default_factory=time.time)
    end_time: Optional[float] = None
    status: Optional[str] = None

    @property
    def closed(self) -> bool:
        return self.end_time is not None

    @property
    def duration_ms(self) -> Optional[float]:
        """Get the span duration in milliseconds, if closed."""
        if self.end_time is None:
            return None
        return (self.end_time - self.start_time) * 1000

    def close(self, status: str, attrs: Optional[dict[str, Any]] = None) -> bool:
        """Mark the span closed. Returns False if it was already closed."""
        if self.end_time is not None:
            return False
        self.end_time = time.time()
        self.status = status
        if attrs:
            self.attrs.update(attrs)
        return True
