"""
StatsStore: async persistence contract for capture win statistics.

Every method is a coroutine that returns its result or raises a
`StoreError` subclass (`ConnectionAcquisitionFailure` or
`TransactionFailure`). Implementations never retry and never cache.
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from typing import Dict, List, Mapping

from capture_stats.modules.stats.types import LeaderboardEntry


class StatsStore(ABC):
    """Abstract store; `SqlStatsStore` is the production implementation."""

    @abstractmethod
    async def create_schema(self) -> None:
        """Create the stats tables if they do not exist."""

    @abstractmethod
    async def upsert_player(self, player_id: uuid.UUID, name: str) -> None:
        """Insert the player or update their name and last-seen time."""

    @abstractmethod
    async def bulk_upsert_players(self, players: Mapping[uuid.UUID, str]) -> int:
        """Upsert many players in one transaction. Returns how many were written."""

    @abstractmethod
    async def record_win_transaction(self, player_id: uuid.UUID, event_name: str) -> None:
        """
        Append a win-log row and add one to the (player, event) aggregate,
        both in one transaction.
        """

    @abstractmethod
    async def fetch_player_aggregate(self, player_id: uuid.UUID) -> Dict[str, int]:
        """Event name -> wins for one player. Empty for an unknown player."""

    @abstractmethod
    async def fetch_top_players(self, limit: int) -> List[LeaderboardEntry]:
        """
        Players ranked by total wins descending, ties by player id ascending,
        at most `limit` entries. Players without wins appear with total 0.
        """

    @abstractmethod
    async def count_wins(self, player_id: uuid.UUID, event_name: str) -> int:
        """Number of win-log rows for one (player, event)."""
