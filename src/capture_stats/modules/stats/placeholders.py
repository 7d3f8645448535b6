"""
Display placeholders for scoreboards, chat and holograms.

Identifiers
-----------
- `total_wins`            total wins of the viewing player
- `wins_<event>`          the viewing player's wins for one event
- `top_<position>_name`   name at a 1-based leaderboard position
- `top_<position>_wins`   total wins at a 1-based leaderboard position

A display must never show a raw error, so store failures render the neutral
value for the identifier ("None" for names, "0" for counts) and are logged.
Unknown identifiers resolve to `None` so the host can leave them untouched.
"""

from __future__ import annotations

from typing import Any, Optional

from capture_stats.core.exceptions import StoreError
from capture_stats.core.logging.logger import get_logger
from capture_stats.modules.shared.exceptions import ValidationError
from capture_stats.modules.stats.coordinator import StatsCoordinator

logger = get_logger(__name__)

NO_NAME = "None"
NO_COUNT = "0"


class StatsPlaceholders:
    """Resolves placeholder identifiers against a `StatsCoordinator`."""

    def __init__(self, coordinator: StatsCoordinator) -> None:
        self._coordinator = coordinator

    async def resolve(self, player_id: Any, identifier: str) -> Optional[str]:
        """
        Render one placeholder.

        Args:
            player_id: Viewing player, or None when there is none
            identifier: Placeholder identifier without the host prefix

        Returns:
            The rendered text, "" without a viewing player for per-player
            identifiers, or None for an unknown identifier.
        """
        if identifier.startswith("top_"):
            return await self._resolve_top(identifier)

        if identifier == "total_wins":
            if player_id is None:
                return ""
            return await self._count(self._coordinator.get_total_wins(player_id), identifier)

        if identifier.startswith("wins_"):
            if player_id is None:
                return ""
            event_name = identifier[len("wins_"):]
            return await self._count(
                self._coordinator.get_event_wins(player_id, event_name), identifier
            )

        return None

    async def _count(self, pending: Any, identifier: str) -> str:
        try:
            return str(await pending)
        except ValidationError:
            return NO_COUNT
        except StoreError as exc:
            self._log_failure(identifier, exc)
            return NO_COUNT

    async def _resolve_top(self, identifier: str) -> str:
        parts = identifier.split("_")
        if len(parts) < 3:
            return NO_COUNT
        try:
            position = int(parts[1])
        except ValueError:
            return NO_COUNT
        field = parts[2]

        try:
            leaderboard = await self._coordinator.get_leaderboard()
        except StoreError as exc:
            self._log_failure(identifier, exc)
            return NO_NAME if field == "name" else NO_COUNT

        if position <= 0 or position > len(leaderboard):
            return NO_NAME if field == "name" else NO_COUNT

        entry = leaderboard[position - 1]
        if field == "name":
            return entry.name
        if field == "wins":
            return str(entry.total_wins)
        return NO_COUNT

    @staticmethod
    def _log_failure(identifier: str, exc: StoreError) -> None:
        logger.warning(
            "Placeholder fell back to neutral value after store failure",
            extra={"identifier": identifier, "error_code": exc.error_code, "error": str(exc)},
        )
