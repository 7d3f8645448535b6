"""
Value types shared by the stats store, caches and coordinator.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable, List, Tuple


@dataclass(frozen=True)
class LeaderboardEntry:
    """One ranked row: a player, their latest name and their total wins."""

    player_id: uuid.UUID
    name: str
    total_wins: int

    def rank_key(self) -> Tuple[int, str]:
        """Sort key: most wins first, then player id ascending."""
        return (-self.total_wins, str(self.player_id))


@dataclass(frozen=True)
class WinEvent:
    """A single recorded win."""

    player_id: uuid.UUID
    event_name: str
    won_at: datetime


class LeaderboardState(Enum):
    EMPTY = "empty"
    FRESH = "fresh"
    STALE = "stale"
    REFRESHING = "refreshing"


def rank_entries(entries: Iterable[LeaderboardEntry]) -> List[LeaderboardEntry]:
    """Return entries in leaderboard order."""
    return sorted(entries, key=LeaderboardEntry.rank_key)
