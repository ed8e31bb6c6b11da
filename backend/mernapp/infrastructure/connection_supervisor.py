"""Connection Supervisor — boot-time state machine that waits for the datastore.

Invariants:
    - States: disconnected → connecting → connected | failed_retrying → connecting ...
    - connected is terminal: the boot continuation runs exactly once, after the first
      successful connect(), and never again
    - A failed attempt schedules exactly one retry after the fixed delay; there is no
      maximum retry count
    - Nothing downstream (routes, pipeline) is activated before connected

Design Decisions:
    - Explicit transition table instead of a recursive timer callback: illegal
      transitions raise InvalidTransitionError
    - sleep injected (asyncio.sleep by default) so tests run without real delays
    - Errors raised by the boot continuation itself propagate: they are setup bugs,
      not datastore unavailability, and retrying would not fix them
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import Enum

logger = logging.getLogger(__name__)

DEFAULT_RETRY_DELAY_SECONDS = 5.0


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED_RETRYING = "failed_retrying"


_ALLOWED: dict[ConnectionState, set[ConnectionState]] = {
    ConnectionState.DISCONNECTED: {ConnectionState.CONNECTING},
    ConnectionState.CONNECTING: {
        ConnectionState.CONNECTED, ConnectionState.FAILED_RETRYING,
    },
    ConnectionState.FAILED_RETRYING: {ConnectionState.CONNECTING},
    ConnectionState.CONNECTED: set(),
}


class InvalidTransitionError(RuntimeError):
    pass


class ConnectionSupervisor:
    """Retries connect() with a fixed delay until it succeeds, then boots once."""

    def __init__(
        self,
        connect: Callable[[], Awaitable[None]],
        on_connected: Callable[[], Awaitable[None]],
        retry_delay: float = DEFAULT_RETRY_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        target: str = "datastore",
    ):
        if retry_delay < 0:
            raise ValueError("retry_delay must be >= 0")
        self._connect = connect
        self._on_connected = on_connected
        self.retry_delay = retry_delay
        self._sleep = sleep
        self.target = target
        self.state = ConnectionState.DISCONNECTED
        self.attempts = 0
        self.retries = 0
        self.last_error: Exception | None = None
        self._booted = False

    @property
    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    async def run(self) -> None:
        """Drive the state machine until connected and booted."""
        if self.is_connected:
            return
        self._transition(ConnectionState.CONNECTING)
        while True:
            self.attempts += 1
            logger.info(
                f"Attempting to connect to {self.target}",
                extra={"attempt": self.attempts, "state": self.state.value},
            )
            try:
                await self._connect()
            except Exception as e:
                self.last_error = e
                self._transition(ConnectionState.FAILED_RETRYING)
                logger.error(
                    f"Failed to connect to {self.target} on startup - "
                    f"retrying in {self.retry_delay:g} sec: {e}",
                    extra={
                        "attempt": self.attempts,
                        "retry_in_seconds": self.retry_delay,
                        "state": self.state.value,
                    },
                )
                await self._sleep(self.retry_delay)
                self.retries += 1
                self._transition(ConnectionState.CONNECTING)
                continue
            break

        self._transition(ConnectionState.CONNECTED)
        self.last_error = None
        logger.info(
            f"Connected to {self.target}",
            extra={"attempt": self.attempts, "state": self.state.value},
        )
        await self._boot()

    async def _boot(self) -> None:
        if self._booted:
            return
        self._booted = True
        await self._on_connected()

    def _transition(self, new_state: ConnectionState) -> None:
        if new_state not in _ALLOWED[self.state]:
            raise InvalidTransitionError(
                f"Invalid connection state transition: "
                f"{self.state.value} -> {new_state.value}",
            )
        self.state = new_state
