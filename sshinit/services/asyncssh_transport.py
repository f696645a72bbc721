"""asyncssh library transport.

Connects in-process with asyncssh instead of running the ssh binary. The
login secret is dereferenced only around ``asyncssh.connect``.
"""

import logging
import os
import sys
from collections.abc import Callable
from typing import Any

import asyncssh

from sshinit.config import HostKeyVerifier
from sshinit.errors import TransportAuthRejected, TransportHandshakeFailed, TransportIOError
from sshinit.models import CredentialKind, LaunchRequest, RemoteInvocation, SessionKey
from sshinit.protocols import SecretStore
from sshinit.services.elevation import wrap_remote_command

logger = logging.getLogger(__name__)

DEFAULT_TERM = "xterm-256color"


class AsyncSSHTransport:
    """Launches sessions through asyncssh."""

    def __init__(
        self,
        store: SecretStore,
        host_keys: HostKeyVerifier,
        stdin: Any = None,
        stdout: Any = None,
        stderr: Any = None,
    ) -> None:
        """Initialize transport.

        Args:
            store: Store used to dereference secret handles
            host_keys: Host key policy
            stdin: Local input for the session (default: sys.stdin)
            stdout: Local output for the session (default: sys.stdout)
            stderr: Local error output for the session (default: sys.stderr)
        """
        self._store = store
        self._host_keys = host_keys
        self._stdin = stdin if stdin is not None else sys.stdin
        self._stdout = stdout if stdout is not None else sys.stdout
        self._stderr = stderr if stderr is not None else sys.stderr

    async def run(self, request: LaunchRequest, on_connected: Callable[[], None]) -> int:
        """Connect, run the remote command or shell and wait for it.

        Raises:
            TransportAuthRejected: If the server refused the credentials
            TransportHandshakeFailed: If connecting or the handshake failed
            TransportIOError: If the session broke after connecting
        """
        key = request.intent.session_key
        invocation = wrap_remote_command(request.intent, request.elevation)

        conn = await self._connect(request, key)
        try:
            on_connected()
            return await self._run_process(conn, request, invocation, key)
        except (asyncssh.Error, OSError) as e:
            raise TransportIOError(key, type(e).__name__) from e
        finally:
            conn.close()
            await conn.wait_closed()

    async def _connect(self, request: LaunchRequest, key: SessionKey) -> Any:
        try:
            try:
                return await self._open(request, self._host_keys.asyncssh_known_hosts())
            except asyncssh.HostKeyNotVerifiable:
                if self._host_keys.strict_checking:
                    raise
                logger.warning(
                    "Host key for %s not verifiable, connecting without verification",
                    key,
                )
                return await self._open(request, None)
        except asyncssh.PermissionDenied as e:
            raise TransportAuthRejected(key, "credentials not accepted") from e
        except asyncssh.HostKeyNotVerifiable as e:
            raise TransportHandshakeFailed(key, "host key not verifiable") from e
        except (asyncssh.Error, OSError) as e:
            raise TransportHandshakeFailed(key, type(e).__name__) from e

    async def _open(self, request: LaunchRequest, known_hosts: str | None) -> Any:
        intent = request.intent
        options: dict[str, Any] = {"port": intent.port, "known_hosts": known_hosts}
        if intent.username:
            options["username"] = intent.username
        options.update(self._client_options(intent.ssh_options, intent.session_key))

        credential = request.credential
        if credential is None or credential.secret_handle is None:
            return await asyncssh.connect(intent.host, **options)

        field = "password" if credential.kind is CredentialKind.PASSWORD else "passphrase"
        try:
            with self._store.acquire(credential.secret_handle) as secret:
                options[field] = secret.decode("utf-8")
                try:
                    return await asyncssh.connect(intent.host, **options)
                finally:
                    del options[field]
        except KeyError:
            logger.warning(
                "Stored secret for %s disappeared before use, connecting without it",
                intent.session_key,
            )
            return await asyncssh.connect(intent.host, **options)

    @staticmethod
    def _client_options(ssh_options: tuple[str, ...], key: SessionKey) -> dict[str, Any]:
        """Map the ssh options asyncssh understands."""
        options: dict[str, Any] = {}
        ignored = []
        i = 0
        while i < len(ssh_options):
            option = ssh_options[i]
            if option == "-i" and i + 1 < len(ssh_options):
                options.setdefault("client_keys", []).append(os.path.expanduser(ssh_options[i + 1]))
                i += 2
                continue
            if option == "-A":
                options["agent_forwarding"] = True
            else:
                ignored.append(option)
            i += 1

        if ignored:
            logger.debug("asyncssh transport ignores %d ssh option(s) for %s", len(ignored), key)
        return options

    async def _run_process(
        self,
        conn: Any,
        request: LaunchRequest,
        invocation: RemoteInvocation,
        key: SessionKey,
    ) -> int:
        feed = invocation.feed_elevation_secret
        term_type = None
        if invocation.force_tty or invocation.command is None:
            term_type = os.environ.get("TERM", DEFAULT_TERM)

        process = await conn.create_process(
            invocation.command,
            term_type=term_type,
            stdin=asyncssh.PIPE if feed else self._stdin,
            stdout=self._stdout,
            stderr=self._stderr,
            encoding=None,
        )

        handle = request.elevation.elevation_secret_handle
        if feed and handle is not None:
            try:
                with self._store.acquire(handle) as secret:
                    process.stdin.write(bytes(secret) + b"\n")
            except KeyError:
                logger.warning("Stored sudo secret for %s disappeared before use", key)
            process.stdin.write_eof()

        completed = await process.wait()
        status = completed.returncode if completed.returncode is not None else -1
        logger.info("Session %s exited with status %d", key, status)
        return status
