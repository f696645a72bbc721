"""Background event loop for long-lived session tasks.

The host calls into sshinit from its own threads. Sessions are asyncio
tasks on one loop that runs in a dedicated daemon thread, so ``launch``
can return as soon as the task is scheduled.
"""

import asyncio
import logging
import threading
from collections.abc import Callable, Coroutine
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BackgroundLoop:
    """asyncio event loop running in its own thread."""

    def __init__(self, name: str = "sshinit-loop") -> None:
        self.name = name
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        """Whether the loop thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the loop thread if it is not running yet."""
        with self._lock:
            if self.running:
                return
            loop = asyncio.new_event_loop()
            ready = threading.Event()
            thread = threading.Thread(
                target=self._run, args=(loop, ready), name=self.name, daemon=True
            )
            thread.start()
            ready.wait()
            self._loop = loop
            self._thread = thread
        logger.debug("Background loop %s started", self.name)

    def _run(self, loop: asyncio.AbstractEventLoop, ready: threading.Event) -> None:
        asyncio.set_event_loop(loop)
        loop.call_soon(ready.set)
        loop.run_forever()

    def submit(self, coro: Coroutine[Any, Any, T]) -> "Future[T]":
        """Schedule a coroutine on the loop.

        Starts the loop on first use.

        Returns:
            Future completed with the coroutine's result
        """
        self.start()
        assert self._loop is not None
        return asyncio.run_coroutine_threadsafe(coro, self._loop)

    def call_soon(self, callback: Callable[..., Any], *args: Any) -> None:
        """Run a callback on the loop thread.

        Raises:
            RuntimeError: If the loop is not running
        """
        loop = self._loop
        if loop is None:
            raise RuntimeError(f"Background loop {self.name} is not running")
        loop.call_soon_threadsafe(callback, *args)

    def stop(self, timeout: float = 5.0) -> None:
        """Cancel pending tasks, stop the loop and join its thread.

        Args:
            timeout: Seconds to wait for cancelled tasks to finish
        """
        with self._lock:
            loop, thread = self._loop, self._thread
            self._loop = None
            self._thread = None

        if loop is None or thread is None:
            return

        if thread.is_alive():
            drained = asyncio.run_coroutine_threadsafe(self._cancel_tasks(), loop)
            try:
                drained.result(timeout=timeout)
            except FutureTimeoutError:
                logger.warning("Session tasks still running after %gs, stopping anyway", timeout)
            loop.call_soon_threadsafe(loop.stop)
            thread.join(timeout=timeout)

        if not thread.is_alive():
            loop.close()
        logger.debug("Background loop %s stopped", self.name)

    @staticmethod
    async def _cancel_tasks() -> None:
        current = asyncio.current_task()
        tasks = [task for task in asyncio.all_tasks() if task is not current]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("Cancelled %d running session(s)", len(tasks))
