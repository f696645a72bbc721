"""Tests for the session registry."""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from sshinit.models import SessionKey, SessionState
from sshinit.services.registry import SessionRegistry

KEY = SessionKey("host1", "charlie", 22)


def test_try_begin_registers_launching() -> None:
    registry = SessionRegistry()

    assert registry.try_begin(KEY)

    record = registry.get(KEY)
    assert record is not None
    assert record.state is SessionState.LAUNCHING
    assert registry.active_keys == [KEY]
    assert len(registry) == 1


def test_try_begin_rejects_live_session() -> None:
    registry = SessionRegistry()
    registry.try_begin(KEY)

    assert not registry.try_begin(KEY)
    registry.transition(KEY, SessionState.ACTIVE)
    assert not registry.try_begin(KEY)


def test_try_begin_after_end() -> None:
    registry = SessionRegistry()
    registry.try_begin(KEY)
    registry.transition(KEY, SessionState.FAILED)
    registry.end(KEY)

    assert registry.try_begin(KEY)


def test_try_begin_replaces_terminal_record() -> None:
    registry = SessionRegistry()
    registry.try_begin(KEY)
    registry.transition(KEY, SessionState.CLOSED)

    assert registry.try_begin(KEY)
    assert registry.get(KEY).state is SessionState.LAUNCHING


def test_different_ports_are_different_sessions() -> None:
    registry = SessionRegistry()

    assert registry.try_begin(KEY)
    assert registry.try_begin(SessionKey("host1", "charlie", 2222))


@pytest.mark.parametrize(
    "path",
    [
        [SessionState.ACTIVE, SessionState.CLOSED],
        [SessionState.ACTIVE, SessionState.FAILED],
        [SessionState.CLOSED],
        [SessionState.FAILED],
    ],
)
def test_allowed_transitions(path: list[SessionState]) -> None:
    registry = SessionRegistry()
    registry.try_begin(KEY)

    for state in path:
        registry.transition(KEY, state)

    assert registry.get(KEY).state is path[-1]


@pytest.mark.parametrize(
    "path",
    [
        [SessionState.LAUNCHING],
        [SessionState.ACTIVE, SessionState.LAUNCHING],
        [SessionState.ACTIVE, SessionState.ACTIVE],
        [SessionState.CLOSED, SessionState.ACTIVE],
        [SessionState.FAILED, SessionState.CLOSED],
    ],
)
def test_invalid_transitions(path: list[SessionState]) -> None:
    registry = SessionRegistry()
    registry.try_begin(KEY)

    with pytest.raises(ValueError, match="Invalid session transition"):
        for state in path:
            registry.transition(KEY, state)


def test_transition_unknown_key_ignored() -> None:
    registry = SessionRegistry()

    registry.transition(KEY, SessionState.ACTIVE)

    assert registry.get(KEY) is None


def test_get_returns_copy() -> None:
    registry = SessionRegistry()
    registry.try_begin(KEY)

    record = registry.get(KEY)
    record.state = SessionState.FAILED

    assert registry.get(KEY).state is SessionState.LAUNCHING


def test_active_keys_excludes_terminal() -> None:
    registry = SessionRegistry()
    other = SessionKey("host2", None, 22)
    registry.try_begin(KEY)
    registry.try_begin(other)
    registry.transition(other, SessionState.CLOSED)

    assert registry.active_keys == [KEY]


def test_clear() -> None:
    registry = SessionRegistry()
    registry.try_begin(KEY)

    registry.clear()

    assert len(registry) == 0
    assert registry.try_begin(KEY)


def test_concurrent_try_begin_single_winner() -> None:
    """Many threads racing for one key produce exactly one winner."""
    registry = SessionRegistry()
    workers = 32
    barrier = threading.Barrier(workers)

    def race() -> bool:
        barrier.wait()
        return registry.try_begin(KEY)

    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(lambda _: race(), range(workers)))

    assert results.count(True) == 1
    assert len(registry) == 1
