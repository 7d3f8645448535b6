"""
Unit tests for LeaderboardCache and leaderboard ordering.
"""

import uuid

import pytest

from capture_stats.core.cache.leaderboard import LeaderboardCache
from capture_stats.modules.stats.types import LeaderboardEntry, LeaderboardState, rank_entries


def entry(total_wins, name="p", player_id=None):
    return LeaderboardEntry(
        player_id=player_id or uuid.uuid4(), name=name, total_wins=total_wins
    )


@pytest.mark.unit
class TestRanking:
    """Test leaderboard order: wins descending, player id ascending."""

    def test_orders_by_wins_descending(self):
        entries = [entry(1, "low"), entry(5, "high"), entry(3, "mid")]

        ranked = rank_entries(entries)

        assert [e.name for e in ranked] == ["high", "mid", "low"]

    def test_ties_break_by_player_id(self):
        first = uuid.UUID("00000000-0000-0000-0000-000000000001")
        second = uuid.UUID("00000000-0000-0000-0000-000000000002")

        ranked = rank_entries([entry(4, "b", second), entry(4, "a", first)])

        assert [e.player_id for e in ranked] == [first, second]


@pytest.mark.unit
class TestLeaderboardCache:
    """Test snapshot replacement and staleness."""

    def test_new_cache_is_empty_and_stale(self, clock):
        cache = LeaderboardCache(max_size=3, clock=clock)

        assert cache.is_empty
        assert cache.is_stale(60)
        assert cache.state(60) is LeaderboardState.EMPTY
        assert cache.read() == ()

    def test_replace_sorts_and_truncates(self, clock):
        cache = LeaderboardCache(max_size=2, clock=clock)

        cache.replace([entry(1, "c"), entry(9, "a"), entry(5, "b")])

        assert [e.name for e in cache.read()] == ["a", "b"]
        assert cache.state(60) is LeaderboardState.FRESH

    def test_read_limit(self, clock):
        cache = LeaderboardCache(max_size=5, clock=clock)
        cache.replace([entry(3, "a"), entry(2, "b"), entry(1, "c")])

        assert [e.name for e in cache.read(2)] == ["a", "b"]

    def test_becomes_stale_after_interval(self, clock):
        cache = LeaderboardCache(max_size=5, clock=clock)
        cache.replace([entry(1)])

        clock.advance(60)
        assert not cache.is_stale(60)

        clock.advance(1)
        assert cache.is_stale(60)
        assert cache.state(60) is LeaderboardState.STALE

    def test_replace_resets_timestamp(self, clock):
        cache = LeaderboardCache(max_size=5, clock=clock)
        cache.replace([entry(1)])
        clock.advance(100)

        cache.replace([entry(2)])

        assert cache.refreshed_at == clock.now
        assert not cache.is_stale(60)

    def test_clear_returns_to_empty(self, clock):
        cache = LeaderboardCache(max_size=5, clock=clock)
        cache.replace([entry(1)])

        cache.clear()

        assert cache.is_empty
        assert cache.read() == ()

    def test_rejects_non_positive_size(self):
        with pytest.raises(ValueError):
            LeaderboardCache(max_size=0)
