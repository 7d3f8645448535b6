"""
WinRegistry: durable recording of capture wins.

Purpose
-------
Turn a win notification into committed rows: refresh the player's identity,
then append the win and bump its aggregate in one store transaction.

Non-Responsibilities
--------------------
- Caches. The registry returns once the write is durable and leaves cache
  updates to StatsCoordinator.
- Retries. A `StoreError` reaches the caller unchanged.
"""

from __future__ import annotations

import uuid
from typing import Any, Dict, Mapping

from capture_stats.core.logging.logger import LogContext, get_logger
from capture_stats.modules.shared.validators import InputValidator
from capture_stats.modules.stats.store import StatsStore

logger = get_logger(__name__)


class WinRegistry:
    """Records wins and player sightings against a `StatsStore`."""

    def __init__(self, store: StatsStore) -> None:
        self._store = store

    async def register_win(self, player_id: Any, name: Any, event_name: Any) -> uuid.UUID:
        """
        Persist one win.

        Args:
            player_id: UUID (or its string form) of the winner
            name: Current display name of the winner
            event_name: Name of the capture event that was won

        Returns:
            The normalized player id.

        Raises:
            ValidationError: If any argument is malformed. Nothing is written.
            StoreError: If either write fails. The win is not recorded.
        """
        pid = InputValidator.validate_player_id(player_id)
        player_name = InputValidator.validate_player_name(name)
        event = InputValidator.validate_event_name(event_name)

        async with LogContext(player_id=pid, event_name=event, operation="register_win"):
            await self._store.upsert_player(pid, player_name)
            await self._store.record_win_transaction(pid, event)
            logger.info("Win registered", extra={"player_name": player_name})
        return pid

    async def register_player(self, player_id: Any, name: Any) -> uuid.UUID:
        """Record a sighting: create the player or refresh name and last-seen time."""
        pid = InputValidator.validate_player_id(player_id)
        player_name = InputValidator.validate_player_name(name)
        await self._store.upsert_player(pid, player_name)
        logger.debug(
            "Player sighting registered",
            extra={"player_id": str(pid), "player_name": player_name},
        )
        return pid

    async def register_players(self, players: Mapping[Any, Any]) -> int:
        """Record many sightings in one transaction. Returns how many were written."""
        normalized: Dict[uuid.UUID, str] = {
            InputValidator.validate_player_id(pid): InputValidator.validate_player_name(name)
            for pid, name in players.items()
        }
        written = await self._store.bulk_upsert_players(normalized)
        logger.info("Player sightings registered", extra={"count": written})
        return written
