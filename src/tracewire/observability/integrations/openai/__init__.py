from .integration import InstrumentedClient, instrument
from .options import DEFAULT_OPTIONS, ResolvedOptions, resolve_options
from .stream import is_stream_like
from .tasks import flush_pending

__all__ = [
    "instrument",
    "InstrumentedClient",
    "ResolvedOptions",
    "DEFAULT_OPTIONS",
    "resolve_options",
    "flush_pending",
    "is_stream_like",
]
