"""
cairn.services.tasks — Fire-and-forget background task runner
==============================================================

Reward side effects (bonus points, notifications) must never block or
fail the primary response.  They are scheduled here as asyncio tasks;
any exception is caught and logged, never re-raised to the caller.

Delivery is best-effort: a task lost to a crash is not retried.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

logger = logging.getLogger(__name__)


class TaskRunner:
    """Holds strong references to in-flight tasks until they finish.

    - ``schedule()`` returns immediately; the coroutine runs on the
      current event loop.
    - ``drain()`` awaits everything still pending (shutdown, tests).
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def schedule(self, coro: Coroutine[Any, Any, Any], *, name: str = "background") -> asyncio.Task:
        """Run *coro* in the background, logging (not raising) any failure."""

        async def _guarded() -> None:
            try:
                await coro
            except asyncio.CancelledError:
                logger.warning("Background task '%s' cancelled", name)
                raise
            except Exception:
                logger.exception("Background task '%s' failed", name)

        task = asyncio.get_running_loop().create_task(_guarded(), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait until no task is pending, including ones scheduled meanwhile."""
        while True:
            live = [task for task in self._tasks if not task.done()]
            if not live:
                return
            await asyncio.gather(*live, return_exceptions=True)

    def cancel_all(self) -> None:
        for task in list(self._tasks):
            task.cancel()
