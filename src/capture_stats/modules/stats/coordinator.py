"""
StatsCoordinator - cache-aware facade over the stats store
==========================================================

Purpose
-------
The single entry point the rest of the application uses for capture win
statistics. Composes the store, the win registry and both caches:

- read-through for per-player stats
- read-through-with-staleness for the leaderboard, single-flight refresh
- write-through for wins: commit first, then update the cache
- debounced leaderboard refresh after bursts of wins

Responsibilities
----------------
- Own and mutate PlayerStatsCache and LeaderboardCache (nobody else does)
- Guarantee at most one leaderboard store query in flight
- Leave every cache untouched when a write fails, and re-raise the
  `StoreError` unchanged
- Record cache-served reads as `<operation>-cached` timings

Non-Responsibilities
--------------------
- SQL, transactions, timeouts (SqlStatsStore / DatabaseService)
- Rendering (StatsPlaceholders)

Design Notes
------------
- A missed in-place increment (player not cached) is not repaired
  eagerly; the next read-through loads the committed count.
- Stale policy `wait`: readers that find the leaderboard stale join the
  in-flight refresh. Policy `serve-stale`: while a refresh is in flight,
  other readers get the previous snapshot at once. An empty cache always
  waits.
- The refresh task is shielded: a reader that is cancelled does not cancel
  the refresh other readers are waiting on.

Usage Example
-------------
>>> coordinator = StatsCoordinator(store, settings=settings)
>>> await coordinator.on_win(player_id, "Steve", "castle")
>>> await coordinator.get_player_stats(player_id)
{'castle': 1}
>>> await coordinator.get_leaderboard(5)
[LeaderboardEntry(player_id=UUID('...'), name='Steve', total_wins=1)]
>>> await coordinator.close()
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from capture_stats.core.cache.leaderboard import LeaderboardCache
from capture_stats.core.cache.player_stats import PlayerStatsCache
from capture_stats.core.config.settings import LeaderboardStalePolicy, StatsSettings
from capture_stats.core.database.metrics import DatabaseMetrics
from capture_stats.core.logging.logger import get_logger
from capture_stats.core.scheduling.debounce import Debouncer
from capture_stats.modules.shared.validators import InputValidator
from capture_stats.modules.stats.store import StatsStore
from capture_stats.modules.stats.types import LeaderboardEntry, LeaderboardState
from capture_stats.modules.wins.registry import WinRegistry

logger = get_logger(__name__)

Snapshot = Tuple[LeaderboardEntry, ...]


class StatsCoordinator:
    """
    Cache-aware stats facade.

    Public Methods
    --------------
    - on_win() -> Record a win, then update caches
    - on_win_registered() -> Cache update for a win committed elsewhere
    - on_player_seen() -> Record a sighting and warm the stats cache
    - get_player_stats() / get_total_wins() / get_event_wins()
    - get_leaderboard() -> Top players, refreshed when stale
    - refresh_leaderboard() -> Forced refresh
    - invalidate_player() / leaderboard_state() / close()
    """

    def __init__(
        self,
        store: StatsStore,
        settings: Optional[StatsSettings] = None,
        registry: Optional[WinRegistry] = None,
        metrics: Optional[DatabaseMetrics] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._settings = settings or StatsSettings()
        self._store = store
        self._registry = registry or WinRegistry(store)
        self.metrics = metrics or DatabaseMetrics()

        self.player_cache = PlayerStatsCache(
            max_entries=self._settings.player_stats_max_entries,
            clock=clock,
        )
        self.leaderboard_cache = LeaderboardCache(
            max_size=self._settings.leaderboard_max_size,
            clock=clock,
        )

        self._refresh_task: Optional[asyncio.Task[Snapshot]] = None
        self._debouncer = Debouncer(
            self.refresh_leaderboard,
            delay=self._settings.leaderboard_refresh_delay,
            name="leaderboard-refresh",
        )
        self.refresh_count = 0

    @property
    def settings(self) -> StatsSettings:
        return self._settings

    @property
    def refresh_pending(self) -> bool:
        """True while a debounced leaderboard refresh is waiting to fire."""
        return self._debouncer.pending

    # ========================================================================
    # Writes
    # ========================================================================

    async def on_win(self, player_id: Any, name: Any, event_name: Any) -> None:
        """
        Record a win durably, then update caches.

        Raises:
            ValidationError: Malformed input; nothing written, caches untouched.
            StoreError: The write failed; caches untouched.
        """
        event = InputValidator.validate_event_name(event_name)
        pid = await self._registry.register_win(player_id, name, event)
        await self.on_win_registered(pid, event)

    async def on_win_registered(self, player_id: Any, event_name: Any) -> None:
        """Bump the cached counter (when cached) and schedule a leaderboard refresh."""
        pid = InputValidator.validate_player_id(player_id)
        event = InputValidator.validate_event_name(event_name)

        updated = self.player_cache.increment(pid, event)
        self._debouncer.trigger()
        logger.debug(
            "Win applied to caches",
            extra={
                "player_id": str(pid),
                "event_name": event,
                "player_cache_updated": updated,
            },
        )

    async def on_player_seen(self, player_id: Any, name: Any) -> Dict[str, int]:
        """Record a sighting and preload the player's stats. Returns the stats."""
        pid = await self._registry.register_player(player_id, name)
        return await self.get_player_stats(pid)

    def invalidate_player(self, player_id: Any) -> None:
        self.player_cache.invalidate(InputValidator.validate_player_id(player_id))

    # ========================================================================
    # Per-player reads
    # ========================================================================

    async def get_player_stats(self, player_id: Any) -> Dict[str, int]:
        """
        Event name -> wins for one player, `{}` when they have none.

        Served from cache when live; otherwise loaded from the store and
        cached for `player-stats-ttl` seconds.
        """
        pid = InputValidator.validate_player_id(player_id)

        start = time.perf_counter()
        cached = self.player_cache.get(pid)
        if cached is not None:
            self.metrics.record(
                "fetch_player_aggregate-cached", (time.perf_counter() - start) * 1000.0
            )
            return cached

        stats = await self._store.fetch_player_aggregate(pid)
        self.player_cache.put(pid, stats, self._settings.player_stats_ttl)
        logger.debug(
            "Player stats loaded from store",
            extra={"player_id": str(pid), "events": len(stats)},
        )
        return dict(stats)

    async def get_total_wins(self, player_id: Any) -> int:
        return sum((await self.get_player_stats(player_id)).values())

    async def get_event_wins(self, player_id: Any, event_name: Any) -> int:
        event = InputValidator.validate_event_name(event_name)
        return (await self.get_player_stats(player_id)).get(event, 0)

    # ========================================================================
    # Leaderboard
    # ========================================================================

    def leaderboard_state(self) -> LeaderboardState:
        if self._refresh_in_flight():
            return LeaderboardState.REFRESHING
        return self.leaderboard_cache.state(self._settings.leaderboard_refresh_interval)

    async def get_leaderboard(self, limit: Optional[int] = None) -> List[LeaderboardEntry]:
        """
        Top players, at most `limit` (default and maximum `leaderboard-max-size`).

        Raises:
            ValidationError: `limit` is not between 1 and `leaderboard-max-size`.
            StoreError: A needed refresh failed.
        """
        max_size = self._settings.leaderboard_max_size
        count = max_size if limit is None else InputValidator.validate_limit(limit, max_size)
        cache = self.leaderboard_cache

        start = time.perf_counter()
        if not cache.is_stale(self._settings.leaderboard_refresh_interval):
            entries = list(cache.read(count))
            self.metrics.record("fetch_top_players-cached", (time.perf_counter() - start) * 1000.0)
            return entries

        if (
            self._settings.leaderboard_stale_policy is LeaderboardStalePolicy.SERVE_STALE
            and self._refresh_in_flight()
            and not cache.is_empty
        ):
            logger.debug("Serving stale leaderboard while refresh is in flight")
            return list(cache.read(count))

        snapshot = await self._refresh_single_flight()
        return list(snapshot[:count])

    async def refresh_leaderboard(self) -> Snapshot:
        """
        Reload the leaderboard from the store now.

        A refresh already in flight may have queried before the latest win
        committed, so this waits for it and then starts a new one.
        """
        in_flight = self._refresh_task
        if in_flight is not None and not in_flight.done():
            await asyncio.wait({in_flight})
        return await self._refresh_single_flight()

    def _refresh_in_flight(self) -> bool:
        return self._refresh_task is not None and not self._refresh_task.done()

    async def _refresh_single_flight(self) -> Snapshot:
        task = self._refresh_task
        if task is None or task.done():
            task = asyncio.get_running_loop().create_task(
                self._load_leaderboard(), name="leaderboard-refresh"
            )
            task.add_done_callback(self._on_refresh_done)
            self._refresh_task = task
        return await asyncio.shield(task)

    def _on_refresh_done(self, task: "asyncio.Task[Snapshot]") -> None:
        if self._refresh_task is task:
            self._refresh_task = None
        if not task.cancelled():
            # Mark retrieved; waiters re-raise it themselves.
            task.exception()

    async def _load_leaderboard(self) -> Snapshot:
        self.refresh_count += 1
        try:
            entries = await self._store.fetch_top_players(self._settings.leaderboard_max_size)
        except Exception as exc:
            logger.warning(
                "Leaderboard refresh failed; keeping previous snapshot",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            raise
        self.leaderboard_cache.replace(entries)
        logger.debug("Leaderboard refreshed", extra={"entries": len(entries)})
        return self.leaderboard_cache.read()

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def close(self) -> None:
        """Cancel a pending debounced refresh and wait for one in flight."""
        await self._debouncer.close()
        task = self._refresh_task
        if task is not None and not task.done():
            await asyncio.wait({task})
        logger.info(
            "StatsCoordinator closed",
            extra={
                "leaderboard_refreshes": self.refresh_count,
                "player_cache": self.player_cache.metrics.snapshot(),
            },
        )
