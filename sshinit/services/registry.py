"""Registry of live SSH sessions.

Locking Strategy:
- One `threading.Lock` guards the whole map; callers come from the host's
  threads and from the background event loop
- `try_begin` is the only mutual-exclusion point: check and insert happen
  under the same lock acquisition
- Records never leave the registry; `get` hands out copies
"""

import logging
import threading
from dataclasses import replace

from sshinit.models import SessionKey, SessionRecord, SessionState

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    SessionState.LAUNCHING: frozenset(
        [SessionState.ACTIVE, SessionState.CLOSED, SessionState.FAILED]
    ),
    SessionState.ACTIVE: frozenset([SessionState.CLOSED, SessionState.FAILED]),
    SessionState.CLOSED: frozenset(),
    SessionState.FAILED: frozenset(),
}


class SessionRegistry:
    """Thread-safe map of session keys to their records."""

    def __init__(self) -> None:
        self._records: dict[SessionKey, SessionRecord] = {}
        self._lock = threading.Lock()

    def try_begin(self, key: SessionKey) -> bool:
        """Register a new launching session.

        Args:
            key: Target of the new session

        Returns:
            True if the caller won the key, False if a live session exists
        """
        with self._lock:
            existing = self._records.get(key)
            if existing is not None and not existing.state.is_terminal:
                logger.debug("Session %s already %s", key, existing.state.value)
                return False
            self._records[key] = SessionRecord(key=key)

        logger.debug("Session %s registered", key)
        return True

    def transition(self, key: SessionKey, state: SessionState) -> None:
        """Move a session to a new state.

        Transitions for keys that are no longer registered are ignored.

        Raises:
            ValueError: If the state change is not allowed
        """
        with self._lock:
            record = self._records.get(key)
            if record is None:
                logger.debug("Ignoring %s for ended session %s", state.value, key)
                return
            if state not in ALLOWED_TRANSITIONS[record.state]:
                raise ValueError(
                    f"Invalid session transition for {key}: "
                    f"{record.state.value} -> {state.value}"
                )
            previous = record.state
            record.state = state

        logger.info("Session %s: %s -> %s", key, previous.value, state.value)

    def end(self, key: SessionKey) -> None:
        """Remove a session so the key can be launched again."""
        with self._lock:
            removed = self._records.pop(key, None)
        if removed is not None:
            logger.debug("Session %s removed (%s)", key, removed.state.value)

    def get(self, key: SessionKey) -> SessionRecord | None:
        """Get a copy of a session record."""
        with self._lock:
            record = self._records.get(key)
            return replace(record) if record is not None else None

    @property
    def active_keys(self) -> list[SessionKey]:
        """Keys of sessions that are launching or active."""
        with self._lock:
            return [
                key for key, record in self._records.items()
                if not record.state.is_terminal
            ]

    def clear(self) -> None:
        """Discard all records."""
        with self._lock:
            count = len(self._records)
            self._records.clear()
        if count:
            logger.info("Session registry cleared (%d record(s))", count)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
