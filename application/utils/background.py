"""Tracked fire-and-forget execution.

`spawn()` schedules a coroutine without awaiting it; `drain()` waits until
every spawned task, including tasks spawned while draining, has finished.
The application lifespan drains before shutdown, and tests drain to observe
background effects deterministically.
"""
from __future__ import annotations

import asyncio
from typing import Any, Coroutine, Optional, Set

from core.logging_config import get_logger


logger = get_logger(__name__)


class BackgroundTaskGroup:
    def __init__(self, name: str = "background") -> None:
        self._name = name
        self._tasks: Set[asyncio.Task] = set()
        self._closed = False

    def __len__(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: Optional[str] = None) -> asyncio.Task:
        if self._closed:
            coro.close()
            raise RuntimeError(f"{self._name} task group is closed")
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "background_task_failed",
                group=self._name,
                task=task.get_name(),
                error=str(exc),
                error_type=type(exc).__name__,
            )

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for all tasks; tasks spawned by running tasks are awaited too."""
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        while self._tasks:
            pending = list(self._tasks)
            remaining = None if deadline is None else max(0.0, deadline - loop.time())
            done, not_done = await asyncio.wait(pending, timeout=remaining)
            if not_done and deadline is not None and loop.time() >= deadline:
                logger.warning("background_drain_timeout", group=self._name, pending=len(not_done))
                return

    async def aclose(self, timeout: Optional[float] = None) -> None:
        await self.drain(timeout)
        self._closed = True
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
