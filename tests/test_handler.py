"""End-to-end tests for the host command handler."""

import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import patch

import pytest

from sshinit.dependencies import Dependencies
from sshinit.errors import CredentialTimeout, TransportAuthRejected
from sshinit.handler import SSHCommandHandler, configure_logging, create_handler
from sshinit.models import (
    CredentialKind,
    CredentialScope,
    ElevationMethod,
    RemoteInvocation,
    SessionKey,
    SessionState,
)
from sshinit.services.elevation import wrap_remote_command
from sshinit.services.openssh import OpenSSHTransport


class RecordingTransport:
    """Transport that records requests and keeps sessions open until released."""

    def __init__(self, connect: bool = True, error_for: SessionKey | None = None) -> None:
        self.connect = connect
        self.error_for = error_for
        self.requests = []
        self.connected = threading.Event()
        self.release = threading.Event()

    async def run(self, request, on_connected) -> int:
        self.requests.append(request)
        if self.connect:
            on_connected()
            self.connected.set()
        while not self.release.is_set():
            await asyncio.sleep(0.01)
        key = request.intent.session_key
        if key == self.error_for:
            raise TransportAuthRejected(key, "stored credential was not accepted")
        return 0


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def handler(config, store, transport):
    deps = Dependencies.from_config(config, store=store, transport=transport)
    handler = SSHCommandHandler(deps)
    yield handler
    transport.release.set()
    handler.shutdown()


def test_non_ssh_line_not_handled(handler: SSHCommandHandler, transport) -> None:
    assert handler.execute("ls -la") is False
    assert handler.execute("ssh web1 | grep x") is False
    assert transport.requests == []


def test_scenario_a_stored_credential(handler: SSHCommandHandler, transport, stored_password) -> None:
    """ssh alice@db.internal -p 2222 with a stored credential."""
    stored_password("db.internal", "alice")

    assert handler.execute("ssh alice@db.internal -p 2222") is True
    assert transport.connected.wait(5)

    request = transport.requests[0]
    assert request.intent.port == 2222
    assert request.intent.username == "alice"
    assert request.credential is not None
    assert request.credential.kind is CredentialKind.PASSWORD
    assert request.elevation.required is False

    key = SessionKey("db.internal", "alice", 2222)
    assert handler.deps.registry.get(key).state is SessionState.ACTIVE
    assert handler.session(key).state is SessionState.ACTIVE


def test_scenario_a_without_credential_still_launches(handler: SSHCommandHandler, transport) -> None:
    assert handler("ssh alice@db.internal -p 2222") is True
    assert transport.connected.wait(5)

    assert transport.requests[0].credential is None


def test_scenario_b_sudo_without_elevation_secret(
    handler: SSHCommandHandler, transport, stored_password
) -> None:
    """sudo with no stored sudo secret falls back to the interactive prompt."""
    stored_password("web1", "bob")

    assert handler.execute('ssh bob@web1 "sudo systemctl restart app"') is True
    assert transport.connected.wait(5)

    plan = transport.requests[0].elevation
    assert plan.required is True
    assert plan.method is ElevationMethod.SUDO_INLINE
    assert plan.elevation_secret_handle is None
    invocation = wrap_remote_command(transport.requests[0].intent, plan)
    assert invocation == RemoteInvocation(command="sudo systemctl restart app", force_tty=True)


def test_scenario_b_sudo_with_elevation_secret(
    handler: SSHCommandHandler, transport, stored_password
) -> None:
    stored_password("web1", "bob", "sudopass", elevation=True)

    assert handler.execute('ssh bob@web1 "sudo systemctl restart app"') is True
    assert transport.connected.wait(5)

    plan = transport.requests[0].elevation
    assert plan.elevation_secret_handle is not None
    assert wrap_remote_command(transport.requests[0].intent, plan).feed_elevation_secret


def test_scenario_c_concurrent_tabs(handler: SSHCommandHandler, transport) -> None:
    """Two tabs racing on the same target: one launches, one is handed back."""
    barrier = threading.Barrier(2)

    def tab() -> bool:
        barrier.wait()
        return handler.execute("ssh charlie@host1")

    with ThreadPoolExecutor(max_workers=2) as pool:
        results = list(pool.map(lambda _: tab(), range(2)))

    assert sorted(results) == [False, True]
    assert transport.connected.wait(5)
    assert len(transport.requests) == 1
    assert handler.deps.registry.get(SessionKey("host1", "charlie", 22)).state is SessionState.ACTIVE


def test_session_reusable_after_close(handler: SSHCommandHandler, transport) -> None:
    key = SessionKey("host1", "charlie", 22)
    assert handler.execute("ssh charlie@host1")
    assert transport.connected.wait(5)

    handle = handler.session(key)
    assert handler.close_session(key)
    assert handle.wait(timeout=5) is SessionState.CLOSED

    assert handler.execute("ssh charlie@host1")


def test_close_unknown_session(handler: SSHCommandHandler) -> None:
    assert handler.close_session(SessionKey("nowhere", None, 22)) is False


def test_credential_timeout_degrades(handler: SSHCommandHandler, transport) -> None:
    with patch.object(
        handler.deps.resolver,
        "resolve",
        side_effect=CredentialTimeout(CredentialScope("web1", None), 10),
    ):
        assert handler.execute("ssh web1") is True

    assert transport.connected.wait(5)
    assert transport.requests[0].credential is None


def test_no_secret_in_argv_records_or_errors(
    config, store, stored_password, caplog: pytest.LogCaptureFixture
) -> None:
    """Secrets never reach argv, session records, log lines or error messages."""
    caplog.set_level("DEBUG", logger="sshinit")
    stored_password("db.internal", "alice", "login-s3cret")
    stored_password("db.internal", "alice", "sudo-s3cret", elevation=True)
    key = SessionKey("db.internal", "alice", 22)
    transport = RecordingTransport(error_for=key)
    deps = Dependencies.from_config(config, store=store, transport=transport)
    handler = SSHCommandHandler(deps)
    try:
        assert handler.execute("ssh alice@db.internal 'sudo cat /etc/shadow'")
        assert transport.connected.wait(5)
        handle = handler.session(key)
        record = deps.registry.get(key)
        transport.release.set()
        with pytest.raises(TransportAuthRejected) as exc_info:
            handle.wait(timeout=5)
    finally:
        handler.shutdown()

    request = transport.requests[0]
    invocation = wrap_remote_command(request.intent, request.elevation)
    argv = OpenSSHTransport(store, config.host_keys).build_argv(request, invocation)

    for secret in ("login-s3cret", "sudo-s3cret"):
        assert not any(secret in arg for arg in argv)
        assert secret not in repr(request)
        assert secret not in repr(record)
        assert secret not in str(exc_info.value)
        assert secret not in caplog.text


@pytest.fixture
def restore_package_logger():
    package_logger = logging.getLogger("sshinit")
    saved = (package_logger.handlers[:], package_logger.propagate, package_logger.level)
    yield package_logger
    package_logger.handlers[:], package_logger.propagate, level = saved
    package_logger.setLevel(level)


def test_configure_logging_once(config, restore_package_logger) -> None:
    package_logger = restore_package_logger
    package_logger.handlers.clear()
    config.settings.log_level = "DEBUG"

    configure_logging(config.settings)
    configure_logging(config.settings)

    assert len(package_logger.handlers) == 1
    assert package_logger.level == logging.DEBUG
    assert package_logger.propagate is False
    assert logging.getLogger("asyncssh").level == logging.WARNING


def test_create_handler_from_environment(
    monkeypatch: pytest.MonkeyPatch, known_hosts, memory_keyring, restore_package_logger
) -> None:
    monkeypatch.setenv("SSHINIT_KNOWN_HOSTS", str(known_hosts))
    monkeypatch.setenv("SSHINIT_TRANSPORT", "openssh")

    handler = create_handler()
    try:
        assert isinstance(handler.deps.transport, OpenSSHTransport)
        assert handler.execute("echo hi") is False
    finally:
        handler.shutdown()
