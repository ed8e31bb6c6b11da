"""Connection Supervisor — tests for the boot-time retry state machine.

Tests cover:
    - a failing connect is retried after exactly the configured delay
    - the boot continuation runs once, only after a successful connect
    - state transitions follow the table; illegal ones raise
    - errors from the boot continuation propagate instead of retrying
"""

import logging

import pytest

from mernapp.infrastructure.connection_supervisor import (
    ConnectionState, ConnectionSupervisor, InvalidTransitionError,
)


class FlakyConnect:
    """Fails the first `failures` calls, then succeeds."""

    def __init__(self, failures: int):
        self.failures = failures
        self.calls = 0

    async def __call__(self) -> None:
        self.calls += 1
        if self.calls <= self.failures:
            raise ConnectionError(f"refused #{self.calls}")


class Recorder:
    def __init__(self):
        self.sleeps: list[float] = []
        self.boots = 0
        self.states_at_boot: list[ConnectionState] = []

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)


@pytest.fixture
def recorder():
    return Recorder()


def _supervisor(connect, recorder, retry_delay=5.0) -> ConnectionSupervisor:
    supervisor = None

    async def boot():
        recorder.boots += 1
        recorder.states_at_boot.append(supervisor.state)

    supervisor = ConnectionSupervisor(
        connect, boot, retry_delay=retry_delay, sleep=recorder.sleep,
    )
    return supervisor


# ─── Retry loop ──────────────────────────────────────────────────

async def test_connects_first_try_without_sleeping(recorder):
    supervisor = _supervisor(FlakyConnect(0), recorder)
    await supervisor.run()
    assert supervisor.state is ConnectionState.CONNECTED
    assert (supervisor.attempts, supervisor.retries) == (1, 0)
    assert recorder.sleeps == []
    assert recorder.boots == 1


async def test_retries_with_fixed_delay_until_connected(recorder):
    connect = FlakyConnect(2)
    supervisor = _supervisor(connect, recorder)
    await supervisor.run()
    assert connect.calls == 3
    assert recorder.sleeps == [5.0, 5.0]
    assert (supervisor.attempts, supervisor.retries) == (3, 2)
    assert supervisor.last_error is None
    assert supervisor.is_connected


async def test_boot_runs_once_and_only_when_connected(recorder):
    supervisor = _supervisor(FlakyConnect(3), recorder)
    await supervisor.run()
    await supervisor.run()
    assert recorder.boots == 1
    assert recorder.states_at_boot == [ConnectionState.CONNECTED]


async def test_custom_retry_delay(recorder):
    supervisor = _supervisor(FlakyConnect(1), recorder, retry_delay=0.25)
    await supervisor.run()
    assert recorder.sleeps == [0.25]


async def test_failed_attempts_logged_as_errors(recorder, caplog):
    caplog.set_level(logging.INFO)
    supervisor = _supervisor(FlakyConnect(1), recorder)
    await supervisor.run()
    errors = [r for r in caplog.records if r.levelno == logging.ERROR]
    assert len(errors) == 1
    assert "retrying in 5 sec" in errors[0].getMessage()
    assert errors[0].attempt == 1


async def test_boot_errors_propagate(recorder):
    async def broken_boot():
        raise RuntimeError("bad interface schema")

    connect = FlakyConnect(0)
    supervisor = ConnectionSupervisor(connect, broken_boot, sleep=recorder.sleep)
    with pytest.raises(RuntimeError, match="bad interface schema"):
        await supervisor.run()
    assert connect.calls == 1
    assert recorder.sleeps == []


# ─── State table ─────────────────────────────────────────────────

def test_initial_state_is_disconnected(recorder):
    supervisor = _supervisor(FlakyConnect(0), recorder)
    assert supervisor.state is ConnectionState.DISCONNECTED
    assert not supervisor.is_connected


def test_illegal_transition_raises(recorder):
    supervisor = _supervisor(FlakyConnect(0), recorder)
    with pytest.raises(InvalidTransitionError):
        supervisor._transition(ConnectionState.CONNECTED)


async def test_connected_is_terminal(recorder):
    supervisor = _supervisor(FlakyConnect(0), recorder)
    await supervisor.run()
    for state in ConnectionState:
        with pytest.raises(InvalidTransitionError):
            supervisor._transition(state)


def test_negative_delay_rejected(recorder):
    with pytest.raises(ValueError):
        _supervisor(FlakyConnect(0), recorder, retry_delay=-1)
