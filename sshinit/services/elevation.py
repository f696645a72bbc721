"""Privilege elevation planning.

Elevation is only ever requested by the user, through a leading marker
word in the remote command (``ssh web1 sudo systemctl restart app``).
The target identity (``root@...``) never implies it.
"""

import logging
import posixpath
import shlex

from sshinit.errors import CredentialNotFound, CredentialTimeout
from sshinit.models import (
    NO_ELEVATION,
    ConnectionIntent,
    Credential,
    CredentialKind,
    ElevationMethod,
    ElevationPlan,
    RemoteInvocation,
    SecretHandle,
)
from sshinit.services.resolver import CredentialResolver
from sshinit.utils.shell import quote_arg

logger = logging.getLogger(__name__)

SU_MARKER = "su"

# sudo options that open a shell instead of running a command
SUDO_SHELL_FLAGS = frozenset(["-s", "-i", "--shell", "--login"])
# sudo options that take a value
SUDO_VALUE_FLAGS = frozenset(["-u", "-g", "-h", "-p", "-C", "-D", "-r", "-t", "-T", "-U"])
SHELL_COMMANDS = frozenset(["su", "sh", "bash", "zsh", "ksh", "dash", "fish", "csh", "tcsh"])

# Reads the secret from stdin into a shell variable, validates it with sudo
# and then runs the real command with sudo's cached credentials. The command
# itself never sees the secret on its stdin, even when sudo does not ask.
SUDO_VALIDATE_SCRIPT = (
    "IFS= read -r p; "
    "printf '%s\\n' \"$p\" | sudo -S -p '' -v; s=$?; unset p; "
    '[ "$s" -eq 0 ] || exit "$s"; '
    "exec sudo -n {args}"
)


def _split_words(text: str) -> list[str]:
    try:
        return shlex.split(text)
    except ValueError:
        return text.split()


def _leading_word(command: str) -> tuple[str, str]:
    """Split a command into its first word and the verbatim rest."""
    parts = command.strip().split(None, 1)
    if not parts:
        return "", ""
    rest = parts[1] if len(parts) > 1 else ""
    return posixpath.basename(parts[0]), rest


def requests_shell(sudo_args: str) -> bool:
    """Check if sudo arguments ask for an interactive shell.

    Args:
        sudo_args: Everything after the ``sudo`` word

    Returns:
        True for ``sudo -s``, ``sudo -i``, ``sudo su -``, ``sudo bash`` and bare ``sudo``
    """
    words = _split_words(sudo_args)
    i = 0
    while i < len(words):
        word = words[i]
        if word in SUDO_SHELL_FLAGS:
            return True
        if word == "--":
            i += 1
            break
        if word.startswith("-"):
            if not word.startswith("--") and set(word[1:]) & {"s", "i"}:
                return True
            i += 2 if word in SUDO_VALUE_FLAGS else 1
            continue
        break

    if i >= len(words):
        return True
    return posixpath.basename(words[i]) in SHELL_COMMANDS


class ElevationPlanner:
    """Decides whether and how a launch elevates on the remote host."""

    def __init__(
        self,
        resolver: CredentialResolver,
        markers: tuple[str, ...] = ("sudo",),
        reuse_login_secret: bool = False,
    ) -> None:
        """Initialize planner.

        Args:
            resolver: Resolver used for the elevation-specific scope
            markers: Leading words that request sudo-style elevation
            reuse_login_secret: Fall back to the login password for sudo
        """
        self._resolver = resolver
        self.markers = frozenset(markers)
        self.reuse_login_secret = reuse_login_secret

    def plan(self, intent: ConnectionIntent, credential: Credential | None) -> ElevationPlan:
        """Build the elevation plan for an intent.

        Never raises for a missing or slow elevation secret: the plan then
        has ``required=True`` and no handle, and the remote side prompts.
        """
        if not intent.remote_command:
            return NO_ELEVATION

        marker, _ = _leading_word(intent.remote_command)
        if marker in self.markers:
            handle = self._elevation_secret(intent, credential)
            return ElevationPlan(
                required=True,
                method=ElevationMethod.SUDO_INLINE,
                elevation_secret_handle=handle,
            )
        if marker == SU_MARKER:
            logger.info("su requested on %s, password will be prompted remotely", intent.session_key)
            return ElevationPlan(required=True, method=ElevationMethod.SU_PROMPT)

        return NO_ELEVATION

    def _elevation_secret(
        self, intent: ConnectionIntent, credential: Credential | None
    ) -> SecretHandle | None:
        key = intent.session_key
        try:
            found = self._resolver.resolve_elevation(intent.host, intent.username)
            return found.secret_handle
        except CredentialTimeout:
            logger.warning("sudo secret lookup for %s timed out", key)
        except CredentialNotFound:
            pass

        if (
            self.reuse_login_secret
            and credential is not None
            and credential.kind is CredentialKind.PASSWORD
        ):
            logger.debug("Reusing login password for sudo on %s", key)
            return credential.secret_handle

        logger.info("No sudo secret for %s, sudo will prompt on the remote terminal", key)
        return None


def wrap_remote_command(intent: ConnectionIntent, plan: ElevationPlan) -> RemoteInvocation:
    """Apply the elevation plan to the remote command.

    Returns:
        The command to send, whether the elevation secret must be written
        to the session's stdin, and whether a remote tty must be forced.
    """
    command = intent.remote_command
    if command is None:
        return RemoteInvocation()
    if not plan.required:
        return RemoteInvocation(command=command)

    if plan.method is ElevationMethod.SUDO_INLINE and plan.elevation_secret_handle is not None:
        marker, sudo_args = _leading_word(command)
        if marker == "sudo" and not requests_shell(sudo_args):
            script = SUDO_VALIDATE_SCRIPT.format(args=sudo_args)
            return RemoteInvocation(
                command=f"sh -c {quote_arg(script)}",
                feed_elevation_secret=True,
            )

    # Interactive fallback: the remote prompt needs a terminal
    return RemoteInvocation(command=command, force_tty=True)
