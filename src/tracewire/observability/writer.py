import asyncio
import logging
import os
from abc import ABC, abstractmethod
from typing import Any, Optional

import requests
from rich.console import Console
from rich.text import Text
from rich.theme import Theme

from ..errors import EventWriteError
from .utils import safe_json_dumps

logger = logging.getLogger(__name__)


class EventWriter(ABC):
    """Interface for writing trace events to different destinations."""

    @abstractmethod
    async def write(self, events: list[dict[str, Any]]) -> dict[str, Any]:
        """Write a batch of events to the destination.

        Returns:
            A dictionary with write result information.
        """
        pass


class MemoryEventWriter(EventWriter):
    """Keeps every written event in ``self.events``, in write order."""

    def __init__(self) -> None:
        self.events: list[dict[str, Any]] = []

    async def write(self, events: list[dict[str, Any]]) -> dict[str, Any]:
        self.events.extend(events)
        return {"success": True, "events_written": len(events)}

    def of_type(self, event_type: str) -> list[dict[str, Any]]:
        return [e for e in self.events if e.get("type") == event_type]

    def clear(self) -> None:
        self.events.clear()


THEME = Theme({
    "message": "cyan",
    "tool_call": "magenta",
    "usage": "blue",
    "tool_result": "green",
    "span": "yellow",
    "error": "red",
})


class ConsoleEventWriter(EventWriter):
    """Renders events as one line each on a rich console, for local debugging."""

    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console or Console(theme=THEME, stderr=True)

    def _describe(self, event: dict[str, Any]) -> str:
        kind = event.get("type")
        if kind == "message":
            return f"{event.get('role')}: {event.get('content')}"
        if kind == "tool_call":
            return f"{event.get('tool')}({safe_json_dumps(event.get('input'))})"
        if kind == "usage":
            return f"in={event.get('input_tokens')} out={event.get('output_tokens')}"
        if kind == "tool_result":
            outcome = "ok" if event.get("ok") else "failed"
            return f"{event.get('tool')} {outcome} in {event.get('latency_ms')}ms"
        if kind == "span":
            return f"{event.get('operation')} [{event.get('status')}] {event.get('attrs')}"
        return safe_json_dumps(event)

    async def write(self, events: list[dict[str, Any]]) -> dict[str, Any]:
        for event in events:
            kind = event.get("type", "event")
            style = "error" if event.get("status") == "error" or event.get("ok") is False else kind
            trace_id = (event.get("ctx") or {}).get("trace_id", "")
            line = Text.assemble(
                (f"{kind:<11}", style),
                (f" {trace_id[:8]} ", "dim"),
                self._describe(event),
            )
            self.console.print(line)
        return {"success": True, "events_written": len(events)}


class EventBackendWriter(EventWriter):
    """
    Sends events to an HTTP ingestion endpoint.

    The endpoint and API key are read from ``TRACEWIRE_API_URL`` and
    ``TRACEWIRE_API_KEY`` at write time, so ``tracewire.init()`` can set them
    after the writer was constructed. Failures raise ``EventWriteError``.
    """

    def __init__(self, timeout: float = 10.0) -> None:
        self._timeout = timeout

    def _get_api_url(self) -> str:
        return os.environ.get("TRACEWIRE_API_URL", "http://localhost:8787").rstrip("/")

    def _get_api_key(self) -> str:
        return os.environ.get("TRACEWIRE_API_KEY", "")

    def _post(self, events: list[dict[str, Any]]) -> dict[str, Any]:
        endpoint = f"{self._get_api_url()}/v1/events"
        api_key = self._get_api_key()
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"

        logger.info(f"Sending {len(events)} events to {endpoint}")
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Full request payload: {safe_json_dumps(events, indent=2)}")

        try:
            response = requests.post(
                endpoint,
                headers=headers,
                data=safe_json_dumps(events),
                timeout=self._timeout,
            )
            response.raise_for_status()
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            if status == 401:
                logger.error(
                    "Authorization error sending events. Check the API key set via "
                    "`tracewire.init(api_key=...)` or the `TRACEWIRE_API_KEY` env variable."
                )
            else:
                logger.error(f"Error posting events to {endpoint}: HTTP {status}")
            raise EventWriteError(f"Event ingestion failed with HTTP {status}", status=status) from e
        except requests.RequestException as e:
            logger.error(f"Error posting events to {endpoint}: {e}")
            raise EventWriteError(f"Event ingestion request failed: {e}") from e

        return {
            "success": True,
            "status_code": response.status_code,
            "events_written": len(events),
            "response_time": response.elapsed.total_seconds(),
        }

    async def write(self, events: list[dict[str, Any]]) -> dict[str, Any]:
        if not events:
            return {"success": True, "events_written": 0}
        return await asyncio.to_thread(self._post, events)
