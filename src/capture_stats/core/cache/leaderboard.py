"""
Leaderboard snapshot cache.

Purpose
-------
Keep the top-N leaderboard as one immutable, sorted snapshot together with
the time it was last refreshed. Readers get the snapshot without touching the
store; the coordinator asks `is_stale` and refreshes when needed.

Design Notes
------------
- The snapshot is a tuple of frozen `LeaderboardEntry` values, so handing it
  out needs no copy.
- `replace` sorts and truncates outside the lock, then swaps snapshot and
  `refreshed_at` together under it. A reader never sees a new snapshot with
  an old timestamp or the reverse.
- A cache that has never been replaced is EMPTY and always stale.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Iterable, Optional, Tuple

from capture_stats.core.cache.metrics import CacheMetrics
from capture_stats.core.logging.logger import get_logger
from capture_stats.modules.stats.types import LeaderboardEntry, LeaderboardState, rank_entries

logger = get_logger(__name__)


class LeaderboardCache:
    """Single sorted top-N snapshot with pull-based staleness."""

    def __init__(self, max_size: int = 10, clock: Callable[[], float] = time.monotonic) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self._clock = clock
        self._snapshot: Tuple[LeaderboardEntry, ...] = ()
        self._refreshed_at: Optional[float] = None
        self._lock = threading.Lock()
        self.metrics = CacheMetrics()

    @property
    def refreshed_at(self) -> Optional[float]:
        with self._lock:
            return self._refreshed_at

    @property
    def is_empty(self) -> bool:
        """True until the first `replace`."""
        return self.refreshed_at is None

    def is_stale(self, ttl: float) -> bool:
        refreshed_at = self.refreshed_at
        if refreshed_at is None:
            return True
        return self._clock() - refreshed_at > ttl

    def state(self, ttl: float) -> LeaderboardState:
        if self.is_empty:
            return LeaderboardState.EMPTY
        return LeaderboardState.STALE if self.is_stale(ttl) else LeaderboardState.FRESH

    def read(self, limit: Optional[int] = None) -> Tuple[LeaderboardEntry, ...]:
        with self._lock:
            snapshot = self._snapshot
        self.metrics.record_hit()
        return snapshot if limit is None else snapshot[:limit]

    def replace(self, entries: Iterable[LeaderboardEntry]) -> None:
        ranked = tuple(rank_entries(entries)[: self.max_size])
        now = self._clock()
        with self._lock:
            self._snapshot = ranked
            self._refreshed_at = now
        self.metrics.record("sets")
        logger.debug("Leaderboard snapshot replaced", extra={"entries": len(ranked)})

    def clear(self) -> None:
        """Back to EMPTY; the next read refreshes."""
        with self._lock:
            self._snapshot = ()
            self._refreshed_at = None
        self.metrics.record("invalidations")
