"""
Background recording work and the bridge used by synchronous clients.

The recorder is async. Calls made through a synchronous client record their
events either on a fresh event loop (no loop running in this thread) or as
tasks on the running loop, which ``flush_pending`` waits for.
"""
import asyncio
import logging
from typing import Any, Coroutine, Optional

logger = logging.getLogger(__name__)

# strong references to background tasks until they finish
_pending: set[asyncio.Task] = set()


def spawn(coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
    task = asyncio.create_task(coro)
    _pending.add(task)
    task.add_done_callback(_pending.discard)
    return task


async def flush_pending() -> None:
    """Wait until every outstanding background recording has finished."""
    while _pending:
        await asyncio.gather(*list(_pending), return_exceptions=True)


async def _after(previous: Optional[asyncio.Task], coro: Coroutine[Any, Any, Any]) -> None:
    if previous is not None:
        await asyncio.gather(previous, return_exceptions=True)
    try:
        await coro
    except Exception:
        logger.exception("[OpenAI] Failed to record call events")


def record_from_sync(
    coro: Coroutine[Any, Any, Any],
    after: Optional[asyncio.Task] = None,
) -> Optional[asyncio.Task]:
    """
    Run a recording coroutine from synchronous code.

    Without a running event loop the coroutine runs to completion here and
    its errors propagate. Inside a running loop it cannot be waited on, so it
    is scheduled to run once ``after`` has finished and the task is returned;
    its errors are logged.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        asyncio.run(coro)
        return None
    return spawn(_after(after, coro))
