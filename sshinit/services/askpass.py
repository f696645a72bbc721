"""Per-launch askpass broker for the OpenSSH transport.

OpenSSH asks for passwords and key passphrases through the program named
in ``SSH_ASKPASS``. Each launch gets a private directory with a small shim
that runs ``python -m sshinit.askpass`` and a unix socket served by this
broker. The shim authenticates with a random token, the broker hands out
the login secret at most once, only to a prompt asking for that kind of
secret, and the secret only ever travels over the 0600 socket.

The same helper doubles as the ``LocalCommand`` OpenSSH runs once the
connection is up (``--connected``), which is how the transport learns a
session became active.
"""

import asyncio
import hmac
import json
import logging
import os
import secrets
import shlex
import shutil
import sys
import tempfile
from collections.abc import Callable, Mapping
from typing import Any

from sshinit.models import CredentialKind, SecretHandle, SessionKey
from sshinit.protocols import SecretStore

logger = logging.getLogger(__name__)

SOCKET_ENV = "SSHINIT_ASKPASS_SOCKET"
TOKEN_ENV = "SSHINIT_ASKPASS_TOKEN"
ASKPASS_VARS = ("SSH_ASKPASS", "SSH_ASKPASS_REQUIRE")

REPLY_OK = b"1"
REPLY_REFUSED = b"0\n"
READ_TIMEOUT = 5.0

# Directory holding the sshinit package, for the helper's PYTHONPATH
PACKAGE_ROOT = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def classify_prompt(prompt: str) -> CredentialKind | None:
    """Tell which kind of secret an OpenSSH prompt asks for.

    Returns:
        KEY_PASSPHRASE for "Enter passphrase for key ...", PASSWORD for
        "alice@host's password: " and keyboard-interactive "Password:",
        None for anything else (host key confirmations, OTP codes).
    """
    text = prompt.lower()
    if "passphrase" in text:
        return CredentialKind.KEY_PASSPHRASE
    if "password" in text:
        return CredentialKind.PASSWORD
    return None


class AskpassBroker:
    """Serves one launch's askpass and LocalCommand callbacks.

    Usage:
        async with AskpassBroker(store, handle, key) as broker:
            env = broker.environment()
            ...
            if broker.connected: ...
    """

    def __init__(
        self,
        store: SecretStore,
        login_secret: SecretHandle | None,
        key: SessionKey,
        on_connected: Callable[[], None] | None = None,
        python: str | None = None,
        login_kind: CredentialKind = CredentialKind.PASSWORD,
    ) -> None:
        """Initialize broker.

        Args:
            store: Store used to dereference the login secret
            login_secret: Handle to serve, or None to serve nothing
            key: Session the broker belongs to (for logging)
            on_connected: Called once when OpenSSH reports the connection
            python: Interpreter the helper shim runs
            login_kind: Kind of prompt the login secret answers
        """
        self._store = store
        self._login_secret = login_secret
        self._login_kind = login_kind
        self._on_connected = on_connected
        self.key = key
        self.python = python or sys.executable
        self.token = secrets.token_hex(16)

        self.connected = False
        self.secret_served = False

        self._dir: str | None = None
        self._server: asyncio.AbstractServer | None = None

    @property
    def socket_path(self) -> str:
        return os.path.join(self._require_dir(), "broker.sock")

    @property
    def helper_path(self) -> str:
        return os.path.join(self._require_dir(), "askpass")

    def _require_dir(self) -> str:
        if self._dir is None:
            raise RuntimeError("AskpassBroker is not started")
        return self._dir

    async def __aenter__(self) -> "AskpassBroker":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def start(self) -> None:
        """Create the private directory, the helper shim and the socket."""
        self._dir = tempfile.mkdtemp(prefix="sshinit-")
        try:
            os.chmod(self._dir, 0o700)
            self._write_helper()
            self._server = await asyncio.start_unix_server(
                self._handle_client, path=self.socket_path
            )
            os.chmod(self.socket_path, 0o600)
        except BaseException:
            await self.close()
            raise
        logger.debug("Askpass broker for %s listening", self.key)

    async def close(self) -> None:
        """Stop serving and remove the private directory."""
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
        if self._dir is not None:
            shutil.rmtree(self._dir, ignore_errors=True)
            self._dir = None

    def _write_helper(self) -> None:
        script = (
            "#!/bin/sh\n"
            f"PYTHONPATH={shlex.quote(PACKAGE_ROOT)}${{PYTHONPATH:+:$PYTHONPATH}}\n"
            "export PYTHONPATH\n"
            f"exec {shlex.quote(self.python)} -m sshinit.askpass \"$@\"\n"
        )
        fd = os.open(self.helper_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o700)
        with os.fdopen(fd, "w") as f:
            f.write(script)

    def environment(self, base: Mapping[str, str] | None = None) -> dict[str, str]:
        """Environment for the ssh process.

        Askpass variables are only set when there is a secret to serve;
        otherwise inherited ones are removed so OpenSSH prompts on the tty.
        """
        env = dict(os.environ if base is None else base)
        env[SOCKET_ENV] = self.socket_path
        env[TOKEN_ENV] = self.token
        if self._login_secret is not None:
            env["SSH_ASKPASS"] = self.helper_path
            env["SSH_ASKPASS_REQUIRE"] = "force"
        else:
            for name in ASKPASS_VARS:
                env.pop(name, None)
        return env

    def local_command_options(self) -> list[str]:
        """OpenSSH options that report the established connection back."""
        return [
            "-o", "PermitLocalCommand=yes",
            "-o", f"LocalCommand={shlex.quote(self.helper_path)} --connected",
        ]

    async def _handle_client(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        try:
            line = await asyncio.wait_for(reader.readline(), timeout=READ_TIMEOUT)
            await self._dispatch(line, writer)
            await writer.drain()
        except (asyncio.TimeoutError, ConnectionError) as e:
            logger.debug("Askpass client for %s dropped: %s", self.key, type(e).__name__)
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except ConnectionError:
                pass

    async def _dispatch(self, line: bytes, writer: asyncio.StreamWriter) -> None:
        try:
            message = json.loads(line)
        except ValueError:
            message = None
        if not isinstance(message, dict):
            logger.warning("Malformed askpass request for %s", self.key)
            writer.write(REPLY_REFUSED)
            return

        if not hmac.compare_digest(str(message.get("token", "")), self.token):
            logger.warning("Askpass request for %s with a bad token refused", self.key)
            writer.write(REPLY_REFUSED)
            return

        op = message.get("op")
        if op == "connected":
            writer.write(REPLY_OK + b"\n")
            if self.connected:
                return
            self.connected = True
            logger.debug("OpenSSH reported %s connected", self.key)
            if self._on_connected is not None:
                self._on_connected()
        elif op == "secret":
            prompt = message.get("prompt")
            self._write_secret(writer, prompt if isinstance(prompt, str) else "")
        else:
            logger.warning("Unknown askpass operation for %s", self.key)
            writer.write(REPLY_REFUSED)

    def _write_secret(self, writer: asyncio.StreamWriter, prompt: str) -> None:
        if self._login_secret is None or self.secret_served:
            logger.info("Refusing repeated secret request for %s", self.key)
            writer.write(REPLY_REFUSED)
            return

        # A mismatched prompt leaves the secret for the prompt it belongs to
        asked = classify_prompt(prompt)
        if asked is not self._login_kind:
            logger.info(
                "Not answering %s prompt for %s with the stored %s",
                asked.value if asked else "unrecognized",
                self.key,
                self._login_kind.value,
            )
            writer.write(REPLY_REFUSED)
            return

        try:
            with self._store.acquire(self._login_secret) as secret:
                # the transport may buffer what it is given, so hand it a copy
                writer.write(REPLY_OK + bytes(secret) + b"\n")
        except KeyError:
            logger.warning("Stored secret for %s disappeared before use", self.key)
            writer.write(REPLY_REFUSED)
            return
        self.secret_served = True
        logger.debug("Served login secret for %s", self.key)
