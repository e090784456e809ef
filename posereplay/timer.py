"""Cancellable periodic timer for the asyncio event loop."""

import asyncio
from typing import Callable, Optional

from posereplay.logger import get_logger

logger = get_logger(__name__)


class PeriodicTimer:
    """
    Calls `callback` every `interval` seconds until cancelled.

    Ticks are delivered one at a time in order, never batched. Each start()
    opens a new generation; a tick that wakes up after cancel() sees a stale
    generation and is dropped, so no callback runs after cancellation.

    Must be started from inside a running event loop.
    """

    def __init__(self, interval: float, callback: Callable[[], None]):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.interval = interval
        self._callback = callback
        self._generation = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def active(self) -> bool:
        return self._task is not None

    def start(self) -> None:
        if self._task is not None:
            raise RuntimeError("Timer already running")
        loop = asyncio.get_running_loop()
        self._generation += 1
        self._task = loop.create_task(self._run(self._generation))

    def cancel(self) -> None:
        """Stop ticking. Safe to call repeatedly."""
        self._generation += 1
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

    async def _run(self, generation: int) -> None:
        while True:
            await asyncio.sleep(self.interval)
            if generation != self._generation:
                return
            try:
                self._callback()
            except Exception:
                logger.exception("Timer callback failed; stopping timer")
                if generation == self._generation:
                    self.cancel()
                return
