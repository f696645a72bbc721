"""Input validation utilities for ssh targets."""

import re
from typing import Final

# Characters that would let a typed target smuggle shell syntax
SUSPICIOUS_CHARS: Final[tuple[str, ...]] = (
    "/", "\\", ";", "&", "|", "$", "`", "'", '"', "<", ">", "(", ")",
    " ", "\t", "\n", "\r", "\x00",
)

USERNAME_PATTERN: Final = re.compile(r"^[A-Za-z0-9._][A-Za-z0-9._@\-\\$]*$")


def validate_host(host: str) -> str:
    """Validate a host name or address.

    Args:
        host: The host name to validate

    Returns:
        Validated host name

    Raises:
        ValueError: If host name is invalid
    """
    if not host:
        raise ValueError("Host cannot be empty")

    # Basic hostname validation
    if len(host) > 253:
        raise ValueError(f"Host name too long: {len(host)} chars")

    if host.startswith("-"):
        raise ValueError(f"Host cannot start with '-': {host!r}")

    for char in SUSPICIOUS_CHARS:
        if char in host:
            raise ValueError(f"Host contains invalid characters: {host!r}")

    return host


def validate_username(username: str) -> str:
    """Validate a login name.

    Raises:
        ValueError: If the login name is empty or malformed
    """
    if not username:
        raise ValueError("Username cannot be empty")
    if len(username) > 255:
        raise ValueError(f"Username too long: {len(username)} chars")
    if not USERNAME_PATTERN.match(username):
        raise ValueError(f"Username contains invalid characters: {username!r}")
    return username


def validate_port(value: str | int) -> int:
    """Validate a TCP port.

    Raises:
        ValueError: If value is not an integer in [1, 65535]
    """
    if isinstance(value, str):
        if not value.isdigit():
            raise ValueError(f"Port is not a number: {value!r}")
        value = int(value)
    if not 1 <= value <= 65535:
        raise ValueError(f"Port out of range: {value}")
    return value
