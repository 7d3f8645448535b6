"""
Unit tests for PlayerStatsCache.

Tests TTL expiry, copy-on-read, in-place increments, capacity eviction
the cache counters and concurrent use from worker threads.
"""

import threading
import uuid
from concurrent.futures import ThreadPoolExecutor

import pytest

from capture_stats.core.cache.player_stats import PlayerStatsCache


@pytest.fixture
def cache(clock):
    return PlayerStatsCache(max_entries=3, clock=clock)


@pytest.mark.unit
class TestReadThrough:
    """Test get/put semantics."""

    def test_get_missing_returns_none(self, cache, player_a):
        """An unknown player is a miss."""
        assert cache.get(player_a) is None
        assert cache.metrics.get("misses") == 1

    def test_put_then_get_returns_stats(self, cache, player_a):
        """A stored entry is returned while live."""
        cache.put(player_a, {"castle": 2}, ttl=60)

        assert cache.get(player_a) == {"castle": 2}
        assert cache.metrics.get("hits") == 1

    def test_get_returns_copy(self, cache, player_a):
        """Mutating a returned dict does not change the cached entry."""
        cache.put(player_a, {"castle": 2}, ttl=60)

        stats = cache.get(player_a)
        stats["castle"] = 99

        assert cache.get(player_a) == {"castle": 2}

    def test_put_stores_copy(self, cache, player_a):
        """Mutating the dict passed to put does not change the cached entry."""
        stats = {"castle": 2}
        cache.put(player_a, stats, ttl=60)
        stats["castle"] = 99

        assert cache.get(player_a) == {"castle": 2}

    def test_empty_stats_are_cached(self, cache, player_a):
        """A player with no wins is a hit with an empty dict, not a miss."""
        cache.put(player_a, {}, ttl=60)

        assert cache.get(player_a) == {}
        assert player_a in cache


@pytest.mark.unit
class TestExpiry:
    """Test TTL handling."""

    def test_entry_live_at_ttl_boundary(self, cache, clock, player_a):
        """An entry is still live exactly at its expiry time."""
        cache.put(player_a, {"castle": 1}, ttl=60)
        clock.advance(60)

        assert cache.get(player_a) == {"castle": 1}

    def test_entry_expires_after_ttl(self, cache, clock, player_a):
        """An expired entry reads as absent and is dropped."""
        cache.put(player_a, {"castle": 1}, ttl=60)
        clock.advance(60.5)

        assert cache.get(player_a) is None
        assert len(cache) == 0

    def test_sweep_expired_counts_removed(self, cache, clock, player_a, player_b):
        """sweep_expired removes only expired entries."""
        cache.put(player_a, {"castle": 1}, ttl=10)
        cache.put(player_b, {"castle": 1}, ttl=100)
        clock.advance(50)

        removed = cache.sweep_expired()

        assert removed == 1
        assert player_a not in cache
        assert player_b in cache
        assert cache.metrics.get("evictions") == 1


@pytest.mark.unit
class TestIncrement:
    """Test in-place increments."""

    def test_increment_existing_event(self, cache, player_a):
        cache.put(player_a, {"castle": 3}, ttl=60)

        assert cache.increment(player_a, "castle") is True
        assert cache.get(player_a) == {"castle": 4}

    def test_increment_new_event_starts_at_one(self, cache, player_a):
        cache.put(player_a, {"castle": 3}, ttl=60)

        cache.increment(player_a, "koth")

        assert cache.get(player_a) == {"castle": 3, "koth": 1}

    def test_increment_uncached_player_is_noop(self, cache, player_a):
        """A missed increment does not create an entry."""
        assert cache.increment(player_a, "castle") is False
        assert len(cache) == 0

    def test_increment_expired_entry_is_noop(self, cache, clock, player_a):
        cache.put(player_a, {"castle": 3}, ttl=5)
        clock.advance(10)

        assert cache.increment(player_a, "castle") is False
        assert cache.get(player_a) is None


@pytest.mark.unit
class TestCapacity:
    """Test bounded size and invalidation."""

    def test_rejects_non_positive_capacity(self):
        with pytest.raises(ValueError):
            PlayerStatsCache(max_entries=0)

    def test_full_cache_evicts_soonest_expiry(self, cache):
        """Adding a new player to a full cache evicts the entry closest to expiry."""
        players = [uuid.uuid4() for _ in range(4)]
        cache.put(players[0], {}, ttl=100)
        cache.put(players[1], {}, ttl=10)
        cache.put(players[2], {}, ttl=50)

        cache.put(players[3], {}, ttl=100)

        assert len(cache) == 3
        assert players[1] not in cache
        assert cache.metrics.get("evictions") == 1

    def test_replacing_existing_entry_does_not_evict(self, cache):
        players = [uuid.uuid4() for _ in range(3)]
        for pid in players:
            cache.put(pid, {}, ttl=100)

        cache.put(players[0], {"castle": 1}, ttl=100)

        assert len(cache) == 3
        assert cache.metrics.get("evictions") == 0

    def test_invalidate_removes_entry(self, cache, player_a):
        cache.put(player_a, {"castle": 1}, ttl=60)

        cache.invalidate(player_a)

        assert cache.get(player_a) is None
        assert cache.metrics.get("invalidations") == 1

    def test_invalidate_all_returns_count(self, cache, player_a, player_b):
        cache.put(player_a, {}, ttl=60)
        cache.put(player_b, {}, ttl=60)

        assert cache.invalidate_all() == 2
        assert len(cache) == 0

    def test_snapshot_reports_hit_rate(self, cache, player_a):
        cache.put(player_a, {}, ttl=60)
        cache.get(player_a)
        cache.get(uuid.uuid4())

        snapshot = cache.metrics.snapshot()

        assert snapshot["hits"] == 1
        assert snapshot["misses"] == 1
        assert snapshot["hit_rate"] == 50.0


@pytest.mark.unit
class TestThreadSafety:
    """Test concurrent use from worker threads."""

    THREADS = 8
    ROUNDS = 500

    def test_concurrent_increments_are_all_counted(self, cache, player_a):
        """Increments from many threads on a live entry never lose an update."""
        # Arrange
        cache.put(player_a, {"castle": 0}, ttl=60)

        def worker():
            return sum(cache.increment(player_a, "castle") for _ in range(self.ROUNDS))

        # Act
        with ThreadPoolExecutor(max_workers=self.THREADS) as pool:
            applied = [f.result() for f in [pool.submit(worker) for _ in range(self.THREADS)]]

        # Assert
        assert sum(applied) == self.THREADS * self.ROUNDS
        assert cache.get(player_a) == {"castle": self.THREADS * self.ROUNDS}
        assert cache.metrics.get("increments") == self.THREADS * self.ROUNDS

    def test_increment_racing_invalidate_and_put(self, cache, player_a):
        """Readers only ever see no entry or a stored value plus whole increments."""
        # Arrange
        base = 1000
        stop = threading.Event()
        observed = []

        def incrementer():
            return sum(cache.increment(player_a, "castle") for _ in range(self.ROUNDS))

        def churner():
            while not stop.is_set():
                cache.put(player_a, {"castle": base}, ttl=60)
                cache.invalidate(player_a)

        def reader():
            while not stop.is_set():
                observed.append(cache.get(player_a))

        # Act
        with ThreadPoolExecutor(max_workers=self.THREADS + 2) as pool:
            background = [pool.submit(churner), pool.submit(reader)]
            increments = [pool.submit(incrementer) for _ in range(self.THREADS)]
            applied = sum(f.result() for f in increments)
            stop.set()
            for f in background:
                f.result()
        final = cache.get(player_a)

        # Assert
        assert 0 <= applied <= self.THREADS * self.ROUNDS
        for stats in observed + [final]:
            assert stats is None or (
                set(stats) == {"castle"} and base <= stats["castle"] <= base + applied
            )
