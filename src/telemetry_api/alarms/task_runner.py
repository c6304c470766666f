"""
Background Task Runner

Runs long operations as detached asyncio tasks so the caller does not wait for them.
"""

import asyncio
from typing import Coroutine
from typing import Set

from loguru import logger


class BackgroundTaskRunner:
    """Owns detached tasks until they finish."""

    def __init__(self):
        # The event loop keeps only weak references to tasks
        self._tasks: Set[asyncio.Task] = set()

    @property
    def running(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine, name: str) -> asyncio.Task:
        """
        Schedule coro on the running event loop and return immediately.

        Args:
            coro: Coroutine to run
            name: Task name, used in logs

        Returns:
            The scheduled task; callers may ignore it
        """
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        logger.debug("Background task started", task=name, running=len(self._tasks))
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("Background task cancelled", task=task.get_name())
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Background task crashed: {type(error).__name__}: {error}", task=task.get_name())
            return
        logger.debug("Background task finished", task=task.get_name(), running=len(self._tasks))

    async def shutdown(self) -> None:
        """Report tasks still running at shutdown; they are not awaited or cancelled."""
        if self._tasks:
            logger.warning(
                "Shutting down with background tasks still running",
                running=len(self._tasks),
                tasks=sorted(task.get_name() for task in self._tasks),
            )
