"""
Stats module.

- types: LeaderboardEntry, WinEvent, LeaderboardState
- store: StatsStore contract
- sql_store: SqlStatsStore over DatabaseService
- coordinator: StatsCoordinator, the cache-aware facade
- placeholders: StatsPlaceholders for display text
"""
