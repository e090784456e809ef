"""
Background event loop for synchronous hosts.

The Dash server handles callbacks on its own threads, but the session, its
playback timer and the detector all live on one asyncio loop. BackgroundLoop
runs that loop in a daemon thread and marshals calls onto it.

run_to_completion() keeps a cancelled worker-thread call from outliving the
lock or resource guarding it.
"""

import asyncio
import concurrent.futures
import threading
from typing import Any, Awaitable, Callable, Optional, TypeVar

from posereplay.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class BackgroundLoop:
    """
    An asyncio event loop running in a daemon thread.

    Example:
        >>> loop = BackgroundLoop().start()
        >>> session = loop.call(PoseReplaySession, config)
        >>> loop.submit(session.process("jump.mp4"))   # returns a Future
        >>> loop.call(session.play)
        >>> loop.stop()
    """

    def __init__(self, name: str = "posereplay-loop"):
        self.name = name
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._ready = threading.Event()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            raise RuntimeError("Background loop not started")
        return self._loop

    def start(self) -> "BackgroundLoop":
        if self.running:
            return self
        self._loop = asyncio.new_event_loop()
        self._ready.clear()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        self._ready.wait()
        logger.debug(f"Background loop '{self.name}' started")
        return self

    def _run(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.call_soon(self._ready.set)
        try:
            self._loop.run_forever()
        finally:
            self._loop.run_until_complete(self._loop.shutdown_asyncgens())
            self._loop.close()

    def submit(self, coro: Awaitable[T]) -> "concurrent.futures.Future[T]":
        """Schedule a coroutine on the loop; returns a thread-safe future."""
        return asyncio.run_coroutine_threadsafe(coro, self.loop)

    def run(self, coro: Awaitable[T], timeout: Optional[float] = None) -> T:
        """Run a coroutine on the loop and block for its result."""
        return self.submit(coro).result(timeout)

    def call(self, fn: Callable[..., T], *args: Any, timeout: Optional[float] = None) -> T:
        """Run a plain callable on the loop thread and block for its result."""

        async def invoke() -> T:
            return fn(*args)

        return self.run(invoke(), timeout)

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        if not self.running:
            return
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout)
        self._thread = None
        logger.debug(f"Background loop '{self.name}' stopped")

    def __enter__(self) -> "BackgroundLoop":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()


async def run_to_completion(awaitable: Awaitable[T]) -> T:
    """
    Await `awaitable`, and if cancelled, wait for it to finish before re-raising.

    Cancelling an `asyncio.to_thread` call does not stop its worker thread.
    Callers that hold a lock or own a resource the thread is using go through
    here, so the lock is released (or the resource closed) only once the
    thread is done with it.
    """
    task = asyncio.ensure_future(awaitable)
    try:
        return await asyncio.shield(task)
    except asyncio.CancelledError:
        while not task.done():
            try:
                await asyncio.wait({task})
            except asyncio.CancelledError:
                continue
        if not task.cancelled() and task.exception() is not None:
            logger.debug(f"Discarded failure of cancelled call: {task.exception()!r}")
        raise
