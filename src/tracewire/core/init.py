import logging
import os
from typing import Optional, Union

from ..observability.tracer import Tracer
from ..observability.writer import (
    ConsoleEventWriter,
    EventBackendWriter,
    EventWriter,
    MemoryEventWriter,
)

WRITERS = {
    "backend": EventBackendWriter,
    "console": ConsoleEventWriter,
    "memory": MemoryEventWriter,
}


class ColoredFormatter(logging.Formatter):
    """A custom formatter to add colors to log levels."""

    grey = "\x1b[38;5;244m"
    blue = "\x1b[34;1m"
    green = "\x1b[32m"
    yellow = "\x1b[33m"
    red = "\x1b[31m"
    bold_red = "\x1b[31;1m"
    reset = "\x1b[0m"

    def __init__(self, datefmt=None):
        super().__init__(datefmt=datefmt)
        prefix = f"{self.grey}[%(asctime)s]{self.reset} {self.blue}[%(name)s]{self.reset}"
        level_colors = {
            logging.DEBUG: self.blue,
            logging.INFO: self.green,
            logging.WARNING: self.yellow,
            logging.ERROR: self.red,
            logging.CRITICAL: self.bold_red,
        }
        self.FORMATS = {
            level: f"{prefix} {color}[%(levelname)s]{self.reset} %(message)s"
            for level, color in level_colors.items()
        }

    def format(self, record):
        log_fmt = self.FORMATS.get(record.levelno)
        formatter = logging.Formatter(log_fmt, datefmt=self.datefmt)
        return formatter.format(record)


def _resolve_writer(writer: Union[EventWriter, str, None]) -> EventWriter:
    if isinstance(writer, EventWriter):
        return writer
    name = (writer or os.environ.get("TRACEWIRE_WRITER") or "backend").lower()
    if name not in WRITERS:
        raise ValueError(f"Unknown writer {name!r}; expected one of {sorted(WRITERS)}")
    return WRITERS[name]()


def init(
    api_key: Optional[str] = None,
    api_url: Optional[str] = None,
    session_id: Optional[str] = None,
    writer: Union[EventWriter, str, None] = None,
    debug: bool = False,
) -> Tracer:
    """
    Initialize tracewire and return a tracer to pass to ``instrument()``.

    Args:
        api_key (str, optional): API key for the event ingestion endpoint.
        api_url (str, optional): Base URL of the event ingestion endpoint.
        session_id (str, optional): Session id stamped on every event. A random
                                    one is generated when omitted.
        writer (EventWriter | str, optional): Writer instance, or one of
                                    "backend", "console", "memory". Defaults to
                                    the TRACEWIRE_WRITER env variable, then "backend".
        debug (bool, optional): If True, enables detailed logging for debugging.
                                Can also be enabled by setting the TRACEWIRE_DEBUG=true
                                environment variable.
    """
    # Only override environment variables if values are explicitly provided
    if api_key is not None:
        os.environ["TRACEWIRE_API_KEY"] = api_key
    if api_url is not None:
        os.environ["TRACEWIRE_API_URL"] = api_url

    logger = logging.getLogger("tracewire")
    is_debug_mode = debug or os.environ.get("TRACEWIRE_DEBUG", "false").lower() == "true"

    if is_debug_mode:
        os.environ["TRACEWIRE_DEBUG"] = "true"
        if not logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(ColoredFormatter(datefmt="%H:%M:%S"))
            logger.addHandler(handler)
        logger.setLevel(logging.DEBUG)
    else:
        if not logger.handlers:
            logger.addHandler(logging.NullHandler())
        logger.setLevel(logging.WARNING)

    event_writer = _resolve_writer(writer)
    tracer = Tracer(writer=event_writer, session_id=session_id)

    if is_debug_mode:
        key = os.environ.get("TRACEWIRE_API_KEY")
        masked_api_key = f"{key[:8]}..." if key and len(key) > 8 else "***" if key else "Not set"
        logger.debug("tracewire configuration:")
        logger.debug(f"  API Key: {masked_api_key}")
        logger.debug(f"  API URL: {os.environ.get('TRACEWIRE_API_URL', 'http://localhost:8787')}")
        logger.debug(f"  Writer: {type(event_writer).__name__}")
        logger.debug(f"  Session: {tracer.session_id}")
        logger.info("tracewire initialized in debug mode.")

    return tracer
