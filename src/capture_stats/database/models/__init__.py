"""
Database Models
===============

SQLAlchemy ORM models for the capture stats schema. Schema only; no
behavior lives here.

- players: identity and latest display name
- win_log: append-only win history
- aggregate_stats: per (player, event) win counters
"""

from capture_stats.core.database.base import Base

from .aggregate_stat import AggregateStat
from .player import Player
from .win_log import WinLog

__all__ = ["Base", "AggregateStat", "Player", "WinLog"]
