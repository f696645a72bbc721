"""Shared fixtures for sshinit tests."""

from collections.abc import Iterator
from pathlib import Path

import keyring
import pytest
from keyring.backend import KeyringBackend
from keyring.errors import PasswordDeleteError

from sshinit.config import Config, HostKeyVerifier, Settings
from sshinit.models import ConnectionIntent, CredentialKind, CredentialScope
from sshinit.services.store import KeyringSecretStore


class MemoryKeyring(KeyringBackend):
    """In-memory keyring backend for tests."""

    priority = 1

    def __init__(self) -> None:
        super().__init__()
        self.entries: dict[tuple[str, str], str] = {}
        self.reads = 0

    def get_password(self, service: str, username: str) -> str | None:
        self.reads += 1
        return self.entries.get((service, username))

    def set_password(self, service: str, username: str, password: str) -> None:
        self.entries[(service, username)] = password

    def delete_password(self, service: str, username: str) -> None:
        try:
            del self.entries[(service, username)]
        except KeyError:
            raise PasswordDeleteError(username) from None


@pytest.fixture
def memory_keyring() -> Iterator[MemoryKeyring]:
    """Install an in-memory keyring for the duration of a test."""
    previous = keyring.get_keyring()
    backend = MemoryKeyring()
    keyring.set_keyring(backend)
    try:
        yield backend
    finally:
        keyring.set_keyring(previous)


@pytest.fixture
def store(memory_keyring: MemoryKeyring) -> KeyringSecretStore:
    """Keyring secret store backed by the in-memory keyring."""
    return KeyringSecretStore(service="sshinit-test")


@pytest.fixture
def stored_password(store: KeyringSecretStore):
    """Helper to save a login password for a target."""

    def _store(host: str, username: str | None, secret: str = "hunter2", elevation: bool = False):
        return store.store_secret(
            CredentialScope(host, username),
            CredentialKind.PASSWORD,
            secret,
            elevation=elevation,
        )

    return _store


@pytest.fixture
def known_hosts(tmp_path: Path) -> Path:
    """Empty known_hosts file."""
    path = tmp_path / "known_hosts"
    path.touch()
    return path


@pytest.fixture
def host_keys(known_hosts: Path) -> HostKeyVerifier:
    return HostKeyVerifier(known_hosts_path=str(known_hosts))


@pytest.fixture
def config(host_keys: HostKeyVerifier) -> Config:
    """Config with defaults and a temporary known_hosts file."""
    return Config(settings=Settings(credential_timeout=2.0), host_keys=host_keys)


@pytest.fixture
def intent():
    """Factory for connection intents."""

    def _intent(
        host: str = "web1",
        username: str | None = "bob",
        port: int = 22,
        remote_command: str | None = None,
        ssh_options: tuple[str, ...] = (),
    ) -> ConnectionIntent:
        return ConnectionIntent(
            raw_command=f"ssh {host}",
            host=host,
            username=username,
            port=port,
            remote_command=remote_command,
            ssh_options=ssh_options,
        )

    return _intent
