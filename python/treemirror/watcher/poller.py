"""
Interval-driven poll loop with a pause scope.

The poller owns two tasks: a timer task that ticks every ``interval``
seconds, and at most one cycle task. A tick is a no-op while a cycle is in
flight or while any operation holds the pause scope.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Optional

from .types import ChangeSet, WatcherState

logger = logging.getLogger(__name__)


class PollingWatcher:
    """
    Polls by repeatedly running ``cycle`` on a timer.

    Example Usage:
    --------------
    >>> watcher = PollingWatcher(differ.run_cycle, interval=1.0)
    >>> watcher.start()
    >>> async with watcher.paused():
    ...     ...  # no cycle runs in here
    >>> watcher.stop()
    """

    def __init__(self, cycle: Callable[[], Awaitable[ChangeSet]], interval: float = 1.0) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._cycle = cycle
        self.interval = interval
        self._timer_task: Optional[asyncio.Task] = None
        self._cycle_task: Optional[asyncio.Task] = None
        self._pause_depth = 0

    @property
    def state(self) -> WatcherState:
        if self._cycle_task is not None and not self._cycle_task.done():
            return WatcherState.CYCLE_IN_FLIGHT
        if self._pause_depth > 0:
            return WatcherState.PAUSED
        return WatcherState.IDLE

    def is_running(self) -> bool:
        return self._timer_task is not None and not self._timer_task.done()

    def start(self) -> None:
        """
        Start the timer.

        Raises:
        -------
        RuntimeError: If already running, or called without a running loop
        """
        if self.is_running():
            raise RuntimeError("Watcher is already running")
        loop = asyncio.get_running_loop()
        self._timer_task = loop.create_task(self._run())
        logger.debug(f"Polling every {self.interval}s")

    def stop(self) -> None:
        """Stop the timer. An in-flight cycle is left to finish."""
        if self._timer_task is not None:
            self._timer_task.cancel()
            self._timer_task = None
            logger.debug("Polling stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            self.tick()

    def tick(self) -> Optional[asyncio.Task]:
        """Begin a cycle unless paused or one is in flight."""
        if self._pause_depth > 0:
            return None
        if self._cycle_task is not None and not self._cycle_task.done():
            return None
        self._cycle_task = asyncio.get_running_loop().create_task(self._run_cycle())
        return self._cycle_task

    async def _run_cycle(self) -> Optional[ChangeSet]:
        try:
            return await self._cycle()
        except Exception as e:
            logger.error(f"Poll cycle failed: {e}", exc_info=True)
            return None
        finally:
            self._cycle_task = None

    async def poll_once(self) -> Optional[ChangeSet]:
        """Run one cycle now; ``None`` when the tick was a no-op or failed."""
        task = self.tick()
        if task is None:
            return None
        return await task

    async def wait_idle(self) -> None:
        """Wait for the in-flight cycle, if any."""
        task = self._cycle_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            await asyncio.wait([task])

    @asynccontextmanager
    async def paused(self) -> AsyncIterator[None]:
        """
        Hold off new cycles for the duration of the block.

        Entering waits for an in-flight cycle to finish (unless called from
        inside that cycle). Nested scopes compose.
        """
        self._pause_depth += 1
        try:
            await self.wait_idle()
            yield
        finally:
            self._pause_depth -= 1
