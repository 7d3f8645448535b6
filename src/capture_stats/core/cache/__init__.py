"""
In-process caches for the stats core.

- PlayerStatsCache: per-player TTL map of event -> wins
- LeaderboardCache: single sorted top-N snapshot
- CacheMetrics: counters owned by each cache
"""

from capture_stats.core.cache.leaderboard import LeaderboardCache
from capture_stats.core.cache.metrics import CacheMetrics
from capture_stats.core.cache.player_stats import PlayerStatsCache

__all__ = ["CacheMetrics", "LeaderboardCache", "PlayerStatsCache"]
