"""
Capture Stats
=============

Win statistics for recurring capture events: durable win recording,
cached per-player totals and a cached, debounced leaderboard.

Entry points:

- `capture_stats.app.StatsApplication`: builds and runs the full stack
- `capture_stats.modules.stats.coordinator.StatsCoordinator`: the stats facade
"""

__version__ = "1.0.0"
