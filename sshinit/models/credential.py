"""Credential models.

Credentials never carry secret material. They reference an entry in the
secret store through an opaque SecretHandle that only the store can
dereference.
"""

from dataclasses import dataclass, field
from enum import Enum


class CredentialKind(Enum):
    """What kind of secret a credential unlocks."""

    PASSWORD = "password"
    KEY_PASSPHRASE = "key_passphrase"
    NONE = "none"


@dataclass(frozen=True)
class CredentialScope:
    """The (host, username) pair a stored secret belongs to.

    A username of None is the "any username" scope for the host.
    """

    host: str
    username: str | None = None

    def __str__(self) -> str:
        return f"{self.username or '*'}@{self.host}"


@dataclass(frozen=True)
class SecretHandle:
    """Opaque reference to one secret store entry."""

    service: str
    entry: str = field(repr=False)
    label: str = ""

    def __repr__(self) -> str:
        return f"SecretHandle({self.label or 'secret'})"

    __str__ = __repr__


@dataclass(frozen=True)
class Credential:
    """A stored credential matched to a scope."""

    scope: CredentialScope
    kind: CredentialKind
    secret_handle: SecretHandle | None = field(default=None, repr=False)
