"""
Fire-and-forget tasks whose failures still reach the log.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Any, Awaitable, Deque, Set


logger = logging.getLogger(__name__)

MAX_KEPT_FAILURES = 100


class BackgroundTasks:
    """
    Keeps a reference to every spawned task until it finishes and logs any
    exception it raised. Callers never await these tasks on the request path.

    Only the latest ``max_failures`` exceptions are kept in ``failures``.
    """

    def __init__(self, max_failures: int = MAX_KEPT_FAILURES) -> None:
        self._tasks: Set[asyncio.Task] = set()
        self.failures: Deque[BaseException] = deque(maxlen=max_failures)

    def spawn(self, awaitable: Awaitable[Any], name: str) -> asyncio.Task:
        task = asyncio.ensure_future(awaitable)
        task.set_name(name)
        self._tasks.add(task)
        task.add_done_callback(self._finished)
        return task

    def _finished(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("Background task %s was cancelled", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            self.failures.append(exc)
            logger.error(
                "Background task %s failed",
                task.get_name(),
                exc_info=(type(exc), exc, exc.__traceback__),
            )

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every task spawned so far, including ones they spawn."""
        while True:
            pending = [task for task in self._tasks if not task.done()]
            if not pending:
                break
            await asyncio.gather(*pending, return_exceptions=True)
        # Let done callbacks scheduled by the last completions run.
        await asyncio.sleep(0)
