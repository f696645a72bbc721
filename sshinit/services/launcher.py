"""Connection launcher.

Registers a session, schedules it on the background loop and hands back a
SessionHandle right away. The session coroutine owns the registry entry
from then on and always ends it.
"""

import asyncio
import logging
from collections.abc import Callable
from concurrent.futures import CancelledError as FutureCancelledError
from concurrent.futures import Future

from sshinit.errors import DuplicateConnection, TransportError
from sshinit.models import LaunchRequest, SessionKey, SessionState
from sshinit.protocols import Transport
from sshinit.services.registry import SessionRegistry
from sshinit.services.runner import BackgroundLoop

logger = logging.getLogger(__name__)


class SessionHandle:
    """Caller's view of one launched session.

    Everything that touches the session task runs on the background loop,
    so a close that arrives before the task started is still honoured.
    """

    def __init__(self, key: SessionKey, registry: SessionRegistry, runner: BackgroundLoop):
        self.key = key
        self._registry = registry
        self._runner = runner
        self._future: Future[int] | None = None
        self._task: asyncio.Task[int] | None = None
        self._close_requested = False

    def _attach(self, future: "Future[int]") -> None:
        self._future = future

    @property
    def future(self) -> "Future[int]":
        if self._future is None:
            raise RuntimeError(f"Session {self.key} was never scheduled")
        return self._future

    @property
    def state(self) -> SessionState:
        """Current state of the session."""
        if self.future.done():
            if not self.future.cancelled() and self.future.exception() is not None:
                return SessionState.FAILED
            return SessionState.CLOSED
        record = self._registry.get(self.key)
        if record is None:
            return SessionState.CLOSED
        return record.state

    def done(self) -> bool:
        return self.future.done()

    def wait(self, timeout: float | None = None) -> SessionState:
        """Block until the session ends.

        Returns:
            SessionState.CLOSED once the session ended cleanly

        Raises:
            TransportError: The error the session failed with
            concurrent.futures.TimeoutError: If it did not end in time
        """
        try:
            self.future.result(timeout=timeout)
        except FutureCancelledError:
            pass
        return SessionState.CLOSED

    def close(self) -> bool:
        """Ask the session to end.

        Returns:
            False if the session had already ended
        """
        if self.future.done():
            return False
        logger.info("Close requested for %s", self.key)
        self._runner.call_soon(self._cancel)
        return True

    def _cancel(self) -> None:
        if self._task is None:
            self._close_requested = True
        else:
            self._task.cancel()

    def add_done_callback(self, callback: Callable[["SessionHandle"], None]) -> None:
        """Call ``callback(handle)`` once the session has ended."""
        self.future.add_done_callback(lambda _: callback(self))

    def __repr__(self) -> str:
        return f"SessionHandle({self.key})"


class ConnectionLauncher:
    """Starts sessions for resolved launch requests."""

    def __init__(
        self,
        registry: SessionRegistry,
        transport: Transport,
        runner: BackgroundLoop,
    ) -> None:
        self._registry = registry
        self._transport = transport
        self._runner = runner

    def launch(self, request: LaunchRequest) -> SessionHandle:
        """Start a session without waiting for it to connect.

        Raises:
            DuplicateConnection: If a live session to the same target exists
        """
        key = request.intent.session_key
        if not self._registry.try_begin(key):
            raise DuplicateConnection(key)

        handle = SessionHandle(key, self._registry, self._runner)
        try:
            handle._attach(self._runner.submit(self._run_session(request, handle)))
        except BaseException:
            self._registry.end(key)
            raise

        logger.info(
            "Launching %s (credential=%s, elevation=%s)",
            key,
            request.credential.kind.value if request.credential else "none",
            request.elevation.method.value,
        )
        return handle

    async def _run_session(self, request: LaunchRequest, handle: SessionHandle) -> int:
        key = request.intent.session_key
        handle._task = asyncio.current_task()

        def on_connected() -> None:
            self._registry.transition(key, SessionState.ACTIVE)

        try:
            if handle._close_requested:
                raise asyncio.CancelledError()
            status = await self._transport.run(request, on_connected)
        except TransportError as e:
            self._registry.transition(key, SessionState.FAILED)
            logger.error("Session %s failed: %s", key, e)
            raise
        except asyncio.CancelledError:
            self._registry.transition(key, SessionState.CLOSED)
            logger.info("Session %s closed", key)
            raise
        except Exception:
            self._registry.transition(key, SessionState.FAILED)
            logger.exception("Session %s crashed", key)
            raise
        else:
            self._registry.transition(key, SessionState.CLOSED)
            return status
        finally:
            self._registry.end(key)
