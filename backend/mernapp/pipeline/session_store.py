"""Session Store — pluggable backend for per-visitor session data.

Invariants:
    - Session ids are opaque, URL-safe and unguessable (secrets.token_urlsafe)
    - Stores return copies; mutating a loaded dict does not change the store until save()
    - An expired session loads as None, exactly like an unknown id

Design Decisions:
    - Protocol over ABC: any object with these coroutines can replace the in-memory store
      without touching the chain
    - In-memory store is per process, like the ephemeral cache: sessions do not follow a
      client across workers
    - Expiry is idle-based: every save() restarts the session's TTL
    - Abandoned sessions are swept whenever a new session is first saved, so the store
      holds only live sessions plus those expired since the last new visitor
"""

import secrets
import time
from collections.abc import Callable
from typing import Any, Protocol

from mernapp.core.cache import MISS, EphemeralCache

DEFAULT_SESSION_TTL_SECONDS = 24 * 60 * 60


def new_session_id() -> str:
    return secrets.token_urlsafe(24)


class SessionStore(Protocol):
    """Contract for session persistence."""
    async def load(self, session_id: str) -> dict[str, Any] | None: ...
    async def save(self, session_id: str, data: dict[str, Any]) -> None: ...
    async def destroy(self, session_id: str) -> None: ...


class InMemorySessionStore:
    """Default store: an EphemeralCache of session dicts with an idle TTL."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_SESSION_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        self._sessions = EphemeralCache(default_ttl=ttl_seconds, clock=clock)

    async def load(self, session_id: str) -> dict[str, Any] | None:
        data = self._sessions.get(session_id)
        return None if data is MISS else dict(data)

    async def save(self, session_id: str, data: dict[str, Any]) -> None:
        if session_id not in self._sessions:
            self._sessions.prune()
        self._sessions.set(session_id, dict(data))

    async def destroy(self, session_id: str) -> None:
        self._sessions.delete(session_id)

    def __len__(self) -> int:
        return len(self._sessions)
