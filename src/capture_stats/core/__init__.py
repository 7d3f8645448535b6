"""
Core infrastructure for Capture Stats.

- config: environment settings (Config) and stats tunables (StatsSettings)
- logging: structured, queue-backed logging with operation context
- database: engine, bounded units of work, timing metrics
- cache: in-process player stats and leaderboard caches
- scheduling: debouncer for deferred refreshes
- exceptions: infrastructure exception hierarchy

Import from the submodules directly; this package re-exports nothing so
that importing any one subsystem does not load the others.
"""
