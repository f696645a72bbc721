"""Tests for environment driven configuration."""

from pathlib import Path

import pytest

from sshinit.config import Config, Settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Start every test without SSHINIT_* variables."""
    for name in [
        "SSHINIT_CREDENTIAL_TIMEOUT",
        "SSHINIT_KEYRING_SERVICE",
        "SSHINIT_SSH_BINARY",
        "SSHINIT_TRANSPORT",
        "SSHINIT_ELEVATION_MARKERS",
        "SSHINIT_ELEVATION_REUSES_LOGIN",
        "SSHINIT_TERMINATE_GRACE",
        "SSHINIT_LOG_LEVEL",
        "SSHINIT_LOG_COLORS",
        "SSHINIT_KNOWN_HOSTS",
        "SSHINIT_STRICT_HOST_KEY_CHECKING",
    ]:
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    settings = Settings.from_env()

    assert settings.credential_timeout == 10.0
    assert settings.keyring_service == "sshinit"
    assert settings.transport == "openssh"
    assert settings.ssh_binary == "ssh"
    assert settings.terminate_grace == 2.0
    assert settings.elevation_markers == ("sudo",)
    assert settings.elevation_reuses_login is False
    assert settings.log_level == "INFO"
    assert settings.log_colors is True


def test_env_vars_override_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SSHINIT_CREDENTIAL_TIMEOUT", "2.5")
    monkeypatch.setenv("SSHINIT_KEYRING_SERVICE", "work")
    monkeypatch.setenv("SSHINIT_TRANSPORT", "AsyncSSH")
    monkeypatch.setenv("SSHINIT_SSH_BINARY", "/opt/openssh/bin/ssh")
    monkeypatch.setenv("SSHINIT_ELEVATION_MARKERS", "sudo, /usr/bin/sudo")
    monkeypatch.setenv("SSHINIT_ELEVATION_REUSES_LOGIN", "yes")
    monkeypatch.setenv("SSHINIT_LOG_LEVEL", "debug")
    monkeypatch.setenv("SSHINIT_LOG_COLORS", "false")

    settings = Settings.from_env()

    assert settings.credential_timeout == 2.5
    assert settings.keyring_service == "work"
    assert settings.transport == "asyncssh"
    assert settings.ssh_binary == "/opt/openssh/bin/ssh"
    assert settings.elevation_markers == ("sudo", "/usr/bin/sudo")
    assert settings.elevation_reuses_login is True
    assert settings.log_level == "DEBUG"
    assert settings.log_colors is False


@pytest.mark.parametrize("value", ["abc", "0", "-3"])
def test_invalid_timeout_uses_default(
    monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture, value: str
) -> None:
    monkeypatch.setenv("SSHINIT_CREDENTIAL_TIMEOUT", value)

    assert Settings.from_env().credential_timeout == 10.0
    assert "SSHINIT_CREDENTIAL_TIMEOUT" in caplog.text


def test_unknown_transport_falls_back(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SSHINIT_TRANSPORT", "telnet")

    assert Settings.from_env().transport == "openssh"


def test_blank_marker_list_uses_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SSHINIT_ELEVATION_MARKERS", " , ")

    assert Settings.from_env().elevation_markers == ("sudo",)


def test_ssh_binaries_include_configured_name() -> None:
    settings = Settings(ssh_binary="/usr/local/bin/myssh")

    assert settings.ssh_binaries == ("myssh", "ssh")


def test_config_from_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    known_hosts = tmp_path / "known_hosts"
    known_hosts.touch()
    monkeypatch.setenv("SSHINIT_KNOWN_HOSTS", str(known_hosts))
    monkeypatch.setenv("SSHINIT_STRICT_HOST_KEY_CHECKING", "false")

    config = Config.from_env()

    assert config.host_keys.get_known_hosts_path() == str(known_hosts)
    assert config.host_keys.strict_checking is False
    assert config.settings.transport == "openssh"


def test_config_from_env_missing_known_hosts_strict(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setenv("SSHINIT_KNOWN_HOSTS", str(tmp_path / "missing"))

    with pytest.raises(FileNotFoundError):
        Config.from_env()


@pytest.mark.parametrize("variable", ["SSHINIT_LOG_COLORS", "SSHINIT_ELEVATION_REUSES_LOGIN"])
def test_unrecognized_bool_uses_default(
    monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture, variable: str
) -> None:
    monkeypatch.setenv(variable, "maybe")
    caplog.set_level("WARNING", logger="sshinit")

    settings = Settings.from_env()

    assert settings.log_colors is True
    assert settings.elevation_reuses_login is False
    assert variable in caplog.text


def test_unrecognized_strict_checking_stays_strict(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    known_hosts = tmp_path / "known_hosts"
    known_hosts.touch()
    monkeypatch.setenv("SSHINIT_KNOWN_HOSTS", str(known_hosts))
    monkeypatch.setenv("SSHINIT_STRICT_HOST_KEY_CHECKING", "nope")

    assert Config.from_env().host_keys.strict_checking is True
