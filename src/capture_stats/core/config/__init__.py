"""
Configuration for Capture Stats.

- `config.Config`: static, environment-driven process settings (.env aware)
- `settings.StatsSettings`: YAML-driven tunables of the stats core

Only `Config` is re-exported here; the logging module depends on it, and
`settings` depends on logging.
"""

from capture_stats.core.config.config import Config, Environment

__all__ = ["Config", "Environment"]
