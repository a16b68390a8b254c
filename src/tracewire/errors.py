from __future__ import annotations

from typing import Optional


class TracewireError(Exception):
    """Base class for errors raised by tracewire itself."""


class UnknownOptionError(TracewireError, TypeError):
    def __init__(self, names: list[str]):
        self.names = sorted(names)
        super().__init__(f"Unknown instrumentation option(s): {', '.join(self.names)}")


class EventWriteError(TracewireError):
    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message)
