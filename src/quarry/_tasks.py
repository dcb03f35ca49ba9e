"""Background task helpers."""

from __future__ import annotations

import asyncio
import contextlib
import logging

logger = logging.getLogger(__name__)


def track_task(task: asyncio.Task[object], name: str) -> None:
    """Log an unexpected failure of *task* once it finishes."""

    def _finalise(completed: asyncio.Task[object]) -> None:
        if completed.cancelled():
            return
        exc = completed.exception()
        if exc is not None:
            logger.error("%s task failed", name, exc_info=exc)

    task.add_done_callback(_finalise)


async def cancel_task(task: asyncio.Task[object] | None) -> None:
    """Cancel *task* and wait for it to finish."""
    if task is None or task.done():
        return
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task
