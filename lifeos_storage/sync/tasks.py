"""
Fire-and-forget background task queue.

Sync work triggered by ``save``/``delete``/``get_all`` runs here. Callers
never wait on these tasks; exceptions are logged and discarded at this
boundary.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

logger = logging.getLogger(__name__)


class BackgroundTaskQueue:
    """Tracks detached asyncio tasks until they finish."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()
        self._closed = False

    @property
    def pending(self) -> int:
        """Number of tasks still running."""
        return len(self._tasks)

    @property
    def closed(self) -> bool:
        return self._closed

    def spawn(self, coro: Coroutine[Any, Any, Any], description: str = "background task") -> bool:
        """Schedule ``coro`` without waiting for it.

        Returns:
            False if the queue is closed (the coroutine is discarded)
        """
        if self._closed:
            coro.close()
            logger.debug(f"Queue closed, dropping {description}")
            return False

        task = asyncio.get_running_loop().create_task(self._guard(coro, description))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return True

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for in-flight tasks, including ones they spawn."""
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        while self._tasks:
            remaining = None if deadline is None else max(0.0, deadline - loop.time())
            await asyncio.wait(set(self._tasks), timeout=remaining)
            if deadline is not None and loop.time() >= deadline and self._tasks:
                logger.warning(f"{len(self._tasks)} background task(s) still running after drain")
                return

    async def close(self, timeout: float | None = None) -> None:
        """Drain outstanding work and refuse new tasks."""
        await self.drain(timeout)
        self._closed = True
        for task in list(self._tasks):
            task.cancel()

    async def _guard(self, coro: Coroutine[Any, Any, Any], description: str) -> None:
        try:
            await coro
        except asyncio.CancelledError:
            logger.debug(f"{description} cancelled")
            raise
        except Exception as e:
            logger.warning(f"{description} failed: {e}")
