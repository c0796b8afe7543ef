# sshdeck/core/tasks.py
"""
Task helpers for the asyncio side of the cache.

``BackgroundTasks`` tracks fire-and-forget coroutines (auto-refresh loops,
intents dispatched by the view) so failures get logged and shutdown can
cancel or wait for them. ``KeyedLock`` serializes calls that touch the
same entity id.

Usage:
    tasks = BackgroundTasks()
    tasks.spawn(store.refresh(), name="refresh-sessions")
    await tasks.drain()

    locks = KeyedLock()
    async with locks.hold(("toggle", forward_id)):
        ...
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional, Set

from ..utils.logger import get_logger


class BackgroundTasks:
    """Owns every task a store or the view schedules without awaiting it."""

    def __init__(self):
        self.logger = get_logger("sshdeck.core.tasks")
        self._active: Set[asyncio.Task] = set()
        self._is_shutdown = False

    def spawn(self, coro: Awaitable[Any], name: Optional[str] = None) -> Optional[asyncio.Task]:
        """
        Schedule a coroutine on the running loop.

        Returns the task, or None if the manager is shut down (the coroutine
        is closed so it does not leak a "never awaited" warning).
        """
        if self._is_shutdown:
            self.logger.warning(f"Task '{name}' submitted after shutdown, ignoring")
            if hasattr(coro, "close"):
                coro.close()
            return None

        task = asyncio.ensure_future(coro)
        if name and hasattr(task, "set_name"):
            task.set_name(name)
        self._active.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._active.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.logger.error(
                f"Background task '{task.get_name()}' failed: {error}",
                exc_info=(type(error), error, error.__traceback__),
            )

    @property
    def pending(self) -> int:
        return sum(1 for t in self._active if not t.done())

    async def drain(self) -> None:
        """Wait until every tracked task (including ones spawned meanwhile) is done."""
        while self._active:
            await asyncio.gather(*list(self._active), return_exceptions=True)

    async def shutdown(self, wait: bool = False) -> None:
        """Stop accepting work; cancel or await what is in flight."""
        if self._is_shutdown:
            return
        self._is_shutdown = True
        self.logger.info(f"Shutting down background tasks (wait={wait})")

        if not wait:
            cancelled_count = 0
            for task in list(self._active):
                if task.cancel():
                    cancelled_count += 1
            if cancelled_count:
                self.logger.info(f"Cancelled {cancelled_count} pending tasks")
        if self._active:
            await asyncio.gather(*list(self._active), return_exceptions=True)

    @property
    def is_shutdown(self) -> bool:
        return self._is_shutdown


class KeyedLock:
    """
    One asyncio.Lock per key, created on demand and dropped once unused.

    Holders of the same key run one after another in arrival order; holders
    of different keys never wait on each other.
    """

    def __init__(self):
        self._locks: Dict[Hashable, asyncio.Lock] = {}
        self._waiters: Dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable):
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    def is_held(self, key: Hashable) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()


async def run_periodically(
    interval: float, fn: Callable[[], Awaitable[Any]], name: str = "periodic"
) -> None:
    """Await ``fn`` every ``interval`` seconds until cancelled."""
    logger = get_logger("sshdeck.core.tasks")
    logger.debug(f"Starting '{name}' every {interval}s")
    while True:
        await asyncio.sleep(interval)
        await fn()
