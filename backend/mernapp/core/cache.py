"""Ephemeral Cache — process-local key/value store with optional per-key expiry.

Invariants:
    - A read after expiry behaves exactly like a miss (and drops the entry)
    - Writes are last-write-wins; no versioning, no multi-key transactions
    - ttl of None falls back to default_ttl; a ttl of 0 means "never expires"
    - Nothing is persisted — contents are lost on process restart

Design Decisions:
    - No size bound and no eviction beyond TTL: callers must not cache unbounded key spaces
    - No locking: the event loop never runs two stages at once inside one process
    - Clock injected for tests (monotonic by default, immune to wall-clock jumps)
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any


class _Miss:
    """Sentinel returned by get() when a key is absent or expired."""
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISS"


MISS: Any = _Miss()


@dataclass
class _Entry:
    value: Any
    expires_at: float | None


@dataclass(frozen=True)
class CacheStats:
    hits: int
    misses: int
    keys: int


class EphemeralCache:
    """Key/value store shared by every request in the current process."""

    def __init__(
        self,
        default_ttl: float = 0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._hits = 0
        self._misses = 0

    def get(self, key: str, default: Any = MISS) -> Any:
        entry = self._live_entry(key)
        if entry is None:
            self._misses += 1
            return default
        self._hits += 1
        return entry.value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        if ttl < 0:
            raise ValueError("ttl must be >= 0")
        expires_at = self._clock() + ttl if ttl else None
        self._entries[key] = _Entry(value, expires_at)

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def has(self, key: str) -> bool:
        return self._live_entry(key) is not None

    def take(self, key: str, default: Any = MISS) -> Any:
        """Get and delete in one step."""
        value = self.get(key, default)
        self._entries.pop(key, None)
        return value

    def ttl_remaining(self, key: str) -> float | None:
        """Seconds until expiry; None when missing or non-expiring."""
        entry = self._live_entry(key)
        if entry is None or entry.expires_at is None:
            return None
        return entry.expires_at - self._clock()

    def keys(self) -> list[str]:
        return [k for k in list(self._entries) if self._live_entry(k) is not None]

    def prune(self) -> int:
        """Drop every expired entry; returns how many were dropped."""
        now = self._clock()
        expired = [
            k for k, e in self._entries.items()
            if e.expires_at is not None and now >= e.expires_at
        ]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def flush(self) -> None:
        self._entries.clear()
        self._hits = 0
        self._misses = 0

    def stats(self) -> CacheStats:
        return CacheStats(hits=self._hits, misses=self._misses, keys=len(self.keys()))

    def __len__(self) -> int:
        return len(self.keys())

    def __contains__(self, key: str) -> bool:
        return self.has(key)

    def _live_entry(self, key: str) -> _Entry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at is not None and self._clock() >= entry.expires_at:
            del self._entries[key]
            return None
        return entry
