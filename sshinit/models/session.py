"""Session tracking models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class SessionState(Enum):
    """Lifecycle state of a launched SSH session."""

    LAUNCHING = "launching"
    ACTIVE = "active"
    CLOSED = "closed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Whether the session can no longer change state."""
        return self in (SessionState.CLOSED, SessionState.FAILED)


@dataclass(frozen=True)
class SessionKey:
    """Identity of one logical connection target."""

    host: str
    username: str | None
    port: int

    def __str__(self) -> str:
        user = f"{self.username}@" if self.username else ""
        return f"{user}{self.host}:{self.port}"


@dataclass
class SessionRecord:
    """Registry entry for a connection attempt."""

    key: SessionKey
    state: SessionState = SessionState.LAUNCHING
    started_at: datetime = field(default_factory=datetime.now)
