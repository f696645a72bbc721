"""Keyring-backed secret store.

Entries live in the system keyring under one service name. Entry names
encode the purpose and the scope, e.g. ``password:alice@db.internal``,
``key_password:*@web1`` or ``sudo_password:bob@web1``.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager

import keyring
from keyring.errors import PasswordDeleteError

from sshinit.models import CredentialKind, CredentialScope, SecretHandle

logger = logging.getLogger(__name__)

ENTRY_PREFIXES = {
    CredentialKind.PASSWORD: "password:",
    CredentialKind.KEY_PASSPHRASE: "key_password:",
}
ELEVATION_PREFIX = "sudo_password:"


class KeyringSecretStore:
    """Secret store on top of the ``keyring`` library."""

    def __init__(self, service: str = "sshinit") -> None:
        self.service = service

    @staticmethod
    def entry_name(
        scope: CredentialScope, kind: CredentialKind, elevation: bool = False
    ) -> str:
        """Keyring entry name for a scope and purpose."""
        prefix = ELEVATION_PREFIX if elevation else ENTRY_PREFIXES[kind]
        return f"{prefix}{scope}"

    def lookup(
        self,
        scope: CredentialScope,
        kind: CredentialKind,
        elevation: bool = False,
    ) -> SecretHandle | None:
        """Find the entry for a scope without keeping its value.

        Raises:
            keyring.errors.KeyringError: If the backend fails
        """
        if kind is CredentialKind.NONE:
            return None

        entry = self.entry_name(scope, kind, elevation)
        if keyring.get_password(self.service, entry) is None:
            return None

        purpose = "sudo" if elevation else kind.value
        return SecretHandle(service=self.service, entry=entry, label=f"{purpose} {scope}")

    @contextmanager
    def acquire(self, handle: SecretHandle) -> Iterator[bytearray]:
        """Yield the secret bytes, wiping the buffer afterwards."""
        value = keyring.get_password(handle.service, handle.entry)
        if value is None:
            raise KeyError(f"secret for {handle} is no longer stored")

        secret = bytearray(value.encode("utf-8"))
        del value
        try:
            yield secret
        finally:
            secret[:] = bytes(len(secret))

    def store_secret(
        self,
        scope: CredentialScope,
        kind: CredentialKind,
        secret: str,
        elevation: bool = False,
    ) -> SecretHandle:
        """Save a secret for a scope, replacing any previous value."""
        entry = self.entry_name(scope, kind, elevation)
        keyring.set_password(self.service, entry, secret)
        logger.info("Stored %s secret for %s", "sudo" if elevation else kind.value, scope)
        purpose = "sudo" if elevation else kind.value
        return SecretHandle(service=self.service, entry=entry, label=f"{purpose} {scope}")

    def forget(self, scope: CredentialScope) -> int:
        """Delete every secret stored for a scope.

        Returns:
            Number of entries removed
        """
        entries = [self.entry_name(scope, kind) for kind in ENTRY_PREFIXES]
        entries.append(self.entry_name(scope, CredentialKind.PASSWORD, elevation=True))

        removed = 0
        for entry in entries:
            try:
                keyring.delete_password(self.service, entry)
            except PasswordDeleteError:
                continue
            removed += 1

        logger.info("Forgot %d secret(s) for %s", removed, scope)
        return removed
