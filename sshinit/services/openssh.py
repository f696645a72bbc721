"""OpenSSH client transport.

Runs the user's ``ssh`` binary as a subprocess. Credentials reach it only
through the per-launch askpass broker; the elevation secret goes through
the process stdin pipe. Neither ever appears in argv or the environment.
"""

import asyncio
import logging
from collections.abc import Callable, Sequence

from sshinit.config import HostKeyVerifier
from sshinit.errors import TransportAuthRejected, TransportHandshakeFailed, TransportIOError
from sshinit.models import (
    DEFAULT_SSH_PORT,
    CredentialKind,
    LaunchRequest,
    RemoteInvocation,
    SecretHandle,
    SessionKey,
)
from sshinit.protocols import SecretStore
from sshinit.services.askpass import AskpassBroker
from sshinit.services.elevation import wrap_remote_command

logger = logging.getLogger(__name__)

# OpenSSH exits with 255 when the connection or authentication failed
SSH_ERROR_STATUS = 255


class OpenSSHTransport:
    """Launches sessions through the OpenSSH client."""

    def __init__(
        self,
        store: SecretStore,
        host_keys: HostKeyVerifier,
        ssh_binary: str = "ssh",
        terminate_grace: float = 2.0,
    ) -> None:
        """Initialize transport.

        Args:
            store: Store used to dereference secret handles
            host_keys: Host key policy rendered into ssh options
            ssh_binary: Client binary to run
            terminate_grace: Seconds between SIGTERM and SIGKILL on cancel
        """
        self._store = store
        self._host_keys = host_keys
        self.ssh_binary = ssh_binary
        self.terminate_grace = terminate_grace

    def build_argv(
        self,
        request: LaunchRequest,
        invocation: RemoteInvocation,
        local_command_options: Sequence[str] = (),
    ) -> list[str]:
        """Build the ssh argument vector.

        The result depends only on the arguments, never on secret content.
        """
        intent = request.intent
        argv = [self.ssh_binary]
        if intent.port != DEFAULT_SSH_PORT:
            argv += ["-p", str(intent.port)]
        argv += self._host_keys.ssh_options()
        argv += list(local_command_options)
        if request.login_secret is not None:
            argv += ["-o", "NumberOfPasswordPrompts=1"]
        if invocation.force_tty:
            argv.append("-t")
        argv += list(intent.ssh_options)
        argv.append(intent.destination)
        if invocation.command is not None:
            argv += ["--", invocation.command]
        return argv

    async def run(self, request: LaunchRequest, on_connected: Callable[[], None]) -> int:
        """Run ssh until it exits.

        Raises:
            TransportIOError: If ssh cannot be started or the connection drops
            TransportAuthRejected: If the injected credential was refused
            TransportHandshakeFailed: If ssh failed before authenticating
        """
        key = request.intent.session_key
        invocation = wrap_remote_command(request.intent, request.elevation)
        feed = invocation.feed_elevation_secret

        login_kind = request.credential.kind if request.credential else CredentialKind.PASSWORD
        async with AskpassBroker(
            self._store,
            request.login_secret,
            key,
            on_connected=on_connected,
            login_kind=login_kind,
        ) as broker:
            argv = self.build_argv(request, invocation, broker.local_command_options())
            try:
                process = await asyncio.create_subprocess_exec(
                    *argv,
                    stdin=asyncio.subprocess.PIPE if feed else None,
                    env=broker.environment(),
                )
            except OSError as e:
                raise TransportIOError(
                    key, f"cannot start {self.ssh_binary}: {e.strerror or type(e).__name__}"
                ) from e

            logger.info("Started %s for %s (pid %d)", self.ssh_binary, key, process.pid)
            try:
                if feed and request.elevation.elevation_secret_handle is not None:
                    await self._feed_secret(process, request.elevation.elevation_secret_handle, key)
                returncode = await process.wait()
            except asyncio.CancelledError:
                logger.info("Closing session %s", key)
                await self._terminate(process)
                raise

            return self._classify(key, returncode, broker)

    async def _feed_secret(
        self,
        process: asyncio.subprocess.Process,
        handle: SecretHandle,
        key: SessionKey,
    ) -> None:
        """Write the elevation secret to ssh's stdin and close it."""
        assert process.stdin is not None
        try:
            with self._store.acquire(handle) as secret:
                process.stdin.write(bytes(secret) + b"\n")
            await process.stdin.drain()
        except KeyError:
            logger.warning("Stored sudo secret for %s disappeared before use", key)
        except (BrokenPipeError, ConnectionResetError):
            logger.debug("ssh for %s exited before reading its input", key)
        finally:
            process.stdin.close()

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        """SIGTERM, wait for the grace period, then SIGKILL."""
        if process.returncode is not None:
            return
        try:
            process.terminate()
            try:
                await asyncio.wait_for(process.wait(), timeout=self.terminate_grace)
            except asyncio.TimeoutError:
                logger.warning(
                    "ssh (pid %d) ignored SIGTERM for %gs, killing",
                    process.pid,
                    self.terminate_grace,
                )
                process.kill()
                await process.wait()
        except ProcessLookupError:
            pass

    @staticmethod
    def _classify(key: SessionKey, returncode: int, broker: AskpassBroker) -> int:
        if returncode != SSH_ERROR_STATUS:
            logger.info("Session %s exited with status %d", key, returncode)
            return returncode
        if broker.connected:
            raise TransportIOError(key, "connection lost")
        if broker.secret_served:
            raise TransportAuthRejected(key, "stored credential was not accepted")
        raise TransportHandshakeFailed(key, f"ssh exited with status {returncode}")
