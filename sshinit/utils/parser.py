"""ssh command line parsing.

Recognizes a typed line as an OpenSSH client invocation and decomposes it
into a ConnectionIntent. Anything that is not a plain ssh invocation maps to
None so the host can run it the usual way.
"""

import logging
import os
from dataclasses import dataclass, field

from sshinit.models import DEFAULT_SSH_PORT, ConnectionIntent
from sshinit.utils.shell import is_operator, needs_local_expansion, split_command
from sshinit.utils.validation import validate_host, validate_port, validate_username

logger = logging.getLogger(__name__)

# Options that take a value, attached (-p2222) or as the next word
VALUE_OPTIONS = frozenset("BbcDEeFIiJLlmOoPpQRSWw")

# Options that make ssh report or control something locally instead of connecting
NON_CONNECTING_OPTIONS = frozenset("GVOQ")

URI_SCHEME = "ssh://"


@dataclass
class _ParsedArgs:
    """Mutable accumulator used while walking the argument list."""

    options: list[str] = field(default_factory=list)
    port: int | None = None
    login: str | None = None
    config_port: int | None = None
    config_user: str | None = None

    def apply(self, flag: str, value: str) -> None:
        if flag == "p":
            self.port = validate_port(value)
        elif flag == "l":
            self.login = validate_username(value)
        elif flag == "o" and self._apply_config_option(value):
            return
        else:
            self.options.extend([f"-{flag}", value])

    def _apply_config_option(self, value: str) -> bool:
        """Absorb -o Port=/User= so the target is known. Returns True if absorbed."""
        if "=" in value:
            name, _, setting = value.partition("=")
        else:
            name, _, setting = value.partition(" ")
        name = name.strip().lower()
        setting = setting.strip()
        if name == "port":
            self.config_port = validate_port(setting)
            return True
        if name == "user":
            self.config_user = validate_username(setting)
            return True
        return False


def parse_command(
    line: str, ssh_binaries: tuple[str, ...] = ("ssh",)
) -> ConnectionIntent | None:
    """Parse a typed command line into a connection intent.

    Formats:
        - "ssh host"
        - "ssh -p 2222 user@host"
        - "ssh user@host -p 2222 'remote command'"
        - "ssh ssh://user@host:2222"

    Args:
        line: Command line exactly as typed
        ssh_binaries: Command names recognized as the ssh client

    Returns:
        ConnectionIntent, or None when the line is not an ssh invocation.
    """
    if not line or not line.strip():
        return None

    try:
        tokens = split_command(line)
    except ValueError:
        return None

    if not tokens or os.path.basename(tokens[0]) not in ssh_binaries:
        return None

    # Pipelines and lines that rely on local expansion stay with the host shell
    if any(is_operator(token) for token in tokens) or needs_local_expansion(line):
        logger.debug("ssh line uses shell syntax, leaving it to the host")
        return None

    try:
        return _build_intent(line, tokens[1:])
    except ValueError as e:
        # The line itself may carry sensitive arguments, log only the reason
        logger.debug("Not a recognizable ssh invocation: %s", e)
        return None


def _build_intent(line: str, args: list[str]) -> ConnectionIntent:
    parsed = _ParsedArgs()
    destination: str | None = None
    remote: list[str] = []

    i = 0
    while i < len(args):
        arg = args[i]
        if arg == "--":
            i += 1
            if destination is None:
                if i >= len(args):
                    raise ValueError("missing destination")
                destination = args[i]
                i += 1
            remote = args[i:]
            break
        if arg.startswith("-") and len(arg) > 1:
            i = _consume_option(args, i, parsed)
            continue
        if destination is None:
            destination = arg
            i += 1
            continue
        remote = args[i:]
        break

    if destination is None:
        raise ValueError("missing destination")

    user, host, target_port = _split_destination(destination)

    username = user or parsed.login or parsed.config_user
    port = parsed.port or target_port or parsed.config_port or DEFAULT_SSH_PORT
    remote_command = " ".join(remote) or None

    return ConnectionIntent(
        raw_command=line,
        host=host,
        username=username,
        port=port,
        remote_command=remote_command,
        ssh_options=tuple(parsed.options),
    )


def _consume_option(args: list[str], index: int, parsed: _ParsedArgs) -> int:
    """Consume one option word (possibly a cluster like -tt or -vp22).

    Returns:
        Index of the next unconsumed word.
    """
    arg = args[index]
    for pos in range(1, len(arg)):
        flag = arg[pos]
        if flag in NON_CONNECTING_OPTIONS:
            raise ValueError(f"-{flag} does not open a connection")
        if flag in VALUE_OPTIONS:
            value = arg[pos + 1 :]
            if not value:
                index += 1
                if index >= len(args):
                    raise ValueError(f"option -{flag} requires a value")
                value = args[index]
            parsed.apply(flag, value)
            return index + 1
        parsed.options.append(f"-{flag}")
    return index + 1


def _split_destination(destination: str) -> tuple[str | None, str, int | None]:
    """Split [user@]host[:port], [v6]:port and ssh:// URIs.

    Raises:
        ValueError: If any component is empty or malformed
    """
    if destination.startswith(URI_SCHEME):
        destination = destination[len(URI_SCHEME) :].rstrip("/")

    user: str | None = None
    if "@" in destination:
        user, _, destination = destination.rpartition("@")
        validate_username(user)

    port: int | None = None
    if destination.startswith("["):
        close = destination.find("]")
        if close == -1:
            raise ValueError("unterminated IPv6 address")
        host = destination[1:close]
        rest = destination[close + 1 :]
        if rest:
            if not rest.startswith(":"):
                raise ValueError("unexpected text after IPv6 address")
            port = validate_port(rest[1:])
    elif destination.count(":") == 1:
        host, _, port_text = destination.partition(":")
        port = validate_port(port_text)
    else:
        host = destination

    return user, validate_host(host), port
