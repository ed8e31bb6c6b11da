"""Ephemeral Cache — tests for expiry, misses and bookkeeping.

Tests cover:
    - get returns MISS (falsy) or the caller's default for absent keys
    - ttl expiry is exact at the boundary and drops the entry
    - ttl 0 and default_ttl 0 never expire
    - take, delete, flush, prune, keys and stats
"""

import pytest

from mernapp.core.cache import MISS, EphemeralCache


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return EphemeralCache(clock=clock)


# ─── get / set ───────────────────────────────────────────────────

def test_get_missing_returns_miss_sentinel(cache):
    assert cache.get("nope") is MISS
    assert not MISS


def test_get_missing_returns_default_when_given(cache):
    assert cache.get("nope", None) is None


def test_cached_falsy_values_are_distinguishable_from_miss(cache):
    cache.set("zero", 0)
    assert cache.get("zero") == 0
    assert cache.get("zero") is not MISS


def test_set_is_last_write_wins(cache):
    cache.set("k", "first")
    cache.set("k", "second")
    assert cache.get("k") == "second"


def test_negative_ttl_rejected(cache):
    with pytest.raises(ValueError):
        cache.set("k", 1, ttl=-1)


# ─── Expiry ──────────────────────────────────────────────────────

def test_entry_live_before_ttl(cache, clock):
    cache.set("k", "v", ttl=10)
    clock.now += 9.999
    assert cache.get("k") == "v"


def test_entry_expires_at_ttl_boundary(cache, clock):
    cache.set("k", "v", ttl=10)
    clock.now += 10
    assert cache.get("k") is MISS
    assert "k" not in cache._entries


def test_ttl_zero_never_expires(cache, clock):
    cache.set("k", "v", ttl=0)
    clock.now += 10**9
    assert cache.get("k") == "v"
    assert cache.ttl_remaining("k") is None


def test_default_ttl_applies_when_ttl_omitted(clock):
    cache = EphemeralCache(default_ttl=5, clock=clock)
    cache.set("k", "v")
    assert cache.ttl_remaining("k") == 5
    clock.now += 5
    assert not cache.has("k")


def test_explicit_ttl_overrides_default(clock):
    cache = EphemeralCache(default_ttl=5, clock=clock)
    cache.set("k", "v", ttl=0)
    clock.now += 100
    assert cache.has("k")


# ─── take / delete / flush ──────────────────────────────────────

def test_take_returns_and_removes(cache):
    cache.set("k", "v")
    assert cache.take("k") == "v"
    assert "k" not in cache


def test_delete_missing_key_is_noop(cache):
    cache.delete("missing")
    assert len(cache) == 0


def test_keys_skip_expired_entries(cache, clock):
    cache.set("short", 1, ttl=1)
    cache.set("long", 2, ttl=100)
    clock.now += 2
    assert cache.keys() == ["long"]
    assert len(cache) == 1


def test_prune_drops_only_expired_entries(cache, clock):
    cache.set("short", 1, ttl=1)
    cache.set("forever", 2)
    clock.now += 5
    assert cache.prune() == 1
    assert cache.prune() == 0
    assert cache.get("forever") == 2


def test_stats_count_hits_and_misses(cache):
    cache.set("k", "v")
    cache.get("k")
    cache.get("k")
    cache.get("other")
    stats = cache.stats()
    assert (stats.hits, stats.misses, stats.keys) == (2, 1, 1)


def test_flush_clears_entries_and_counters(cache):
    cache.set("k", "v")
    cache.get("k")
    cache.flush()
    assert cache.stats().hits == 0
    assert len(cache) == 0
