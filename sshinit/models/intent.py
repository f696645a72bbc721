"""Connection intent parsed from a typed command line."""

from dataclasses import dataclass

from sshinit.models.session import SessionKey

DEFAULT_SSH_PORT = 22


@dataclass(frozen=True)
class ConnectionIntent:
    """An ssh invocation decomposed into its target and remote command.

    ssh_options holds the user's pass-through options (``-i key``, ``-A``...)
    in the order they were typed. Port and login name options are absorbed
    into ``port`` and ``username`` and never appear there.
    """

    raw_command: str
    host: str
    username: str | None = None
    port: int = DEFAULT_SSH_PORT
    remote_command: str | None = None
    ssh_options: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.host:
            raise ValueError("host cannot be empty")
        if not 1 <= self.port <= 65535:
            raise ValueError(f"port out of range: {self.port}")

    @property
    def session_key(self) -> SessionKey:
        """Key used to deduplicate concurrent launches."""
        return SessionKey(host=self.host, username=self.username, port=self.port)

    @property
    def destination(self) -> str:
        """Destination argument for the ssh client."""
        return f"{self.username}@{self.host}" if self.username else self.host
