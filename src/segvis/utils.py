"""Background task helper for actors."""

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

_log = logging.getLogger(__name__)


def fire_and_forget(
    coro: Coroutine[Any, Any, Any],
    *,
    name: str | None = None,
    log: logging.Logger | None = None,
    tasks: set[asyncio.Task] | None = None,
) -> asyncio.Task:
    """Schedule ``coro`` on the running loop without awaiting it.

    The task is kept in ``tasks`` until it finishes, so the owner can cancel
    whatever is still running when it stops. A failure nobody handled is logged
    to ``log``.
    """
    task = asyncio.create_task(coro, name=name)
    if tasks is not None:
        tasks.add(task)
        task.add_done_callback(tasks.discard)
    task.add_done_callback(lambda t: _report(t, log or _log))
    return task


def _report(task: asyncio.Task, log: logging.Logger) -> None:
    if not task.cancelled() and (exc := task.exception()) is not None:
        log.error("Background task %s failed", task.get_name(), exc_info=exc)
