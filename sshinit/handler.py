"""Host command handler.

The host terminal calls ``execute(line)`` for every command about to run.
Returning True means sshinit launched the session and the host must not
run the line itself; False hands the line back untouched.

Usage:
    handler = create_handler()
    if not handler.execute("ssh alice@db.internal -p 2222"):
        run_in_shell(line)
"""

import logging
import sys
import threading

from sshinit.config import Settings
from sshinit.dependencies import Dependencies
from sshinit.errors import CredentialNotFound, CredentialTimeout, DuplicateConnection
from sshinit.models import ConnectionIntent, Credential, LaunchRequest, SessionKey
from sshinit.services.launcher import SessionHandle
from sshinit.utils.console import ColorfulFormatter
from sshinit.utils.parser import parse_command

logger = logging.getLogger(__name__)

NOISY_LOGGERS = ("asyncssh", "keyring")


def configure_logging(settings: Settings) -> None:
    """Configure colorful stderr logging for the sshinit package.

    Safe to call more than once; the handler is only installed the first time.
    """
    use_colors = settings.log_colors and sys.stderr.isatty()

    package_logger = logging.getLogger("sshinit")
    package_logger.setLevel(getattr(logging, settings.log_level, logging.INFO))

    if not package_logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(ColorfulFormatter(use_colors=use_colors))
        package_logger.addHandler(handler)
        package_logger.propagate = False

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


class SSHCommandHandler:
    """Turns typed ssh lines into launched sessions."""

    def __init__(self, deps: Dependencies) -> None:
        self.deps = deps
        self._handles: dict[SessionKey, SessionHandle] = {}
        self._lock = threading.Lock()

    def execute(self, command: str) -> bool:
        """Handle one terminal command line.

        Args:
            command: The line exactly as typed

        Returns:
            True if a session was launched for the line
        """
        intent = parse_command(command, self.deps.config.settings.ssh_binaries)
        if intent is None:
            return False

        credential = self._resolve(intent)
        elevation = self.deps.planner.plan(intent, credential)
        request = LaunchRequest(intent=intent, credential=credential, elevation=elevation)

        try:
            handle = self.deps.launcher.launch(request)
        except DuplicateConnection as e:
            logger.info("%s, leaving the command to the terminal", e)
            return False

        with self._lock:
            self._handles[handle.key] = handle
        handle.add_done_callback(self._forget)
        return True

    __call__ = execute

    def _resolve(self, intent: ConnectionIntent) -> Credential | None:
        """Look up the login credential, degrading to interactive login."""
        try:
            return self.deps.resolver.resolve(intent.host, intent.username)
        except CredentialTimeout:
            logger.warning(
                "Credential store slow for %s, falling back to interactive login",
                intent.session_key,
            )
        except CredentialNotFound:
            logger.debug("No stored credential for %s", intent.session_key)
        return None

    def _forget(self, handle: SessionHandle) -> None:
        with self._lock:
            if self._handles.get(handle.key) is handle:
                del self._handles[handle.key]

    def session(self, key: SessionKey) -> SessionHandle | None:
        """Handle of a running session launched by this handler."""
        with self._lock:
            return self._handles.get(key)

    @property
    def sessions(self) -> list[SessionHandle]:
        with self._lock:
            return list(self._handles.values())

    def close_session(self, key: SessionKey) -> bool:
        """Close a session when the host closes its terminal.

        Returns:
            False if no running session has this key
        """
        handle = self.session(key)
        if handle is None:
            return False
        return handle.close()

    def shutdown(self) -> None:
        """Close every session and release resources."""
        self.deps.cleanup()
        with self._lock:
            self._handles.clear()


def create_handler(deps: Dependencies | None = None) -> SSHCommandHandler:
    """Create a handler with its own dependencies.

    Args:
        deps: Prebuilt dependencies (default: from the environment)
    """
    if deps is None:
        deps = Dependencies.create()
    configure_logging(deps.config.settings)
    return SSHCommandHandler(deps)
