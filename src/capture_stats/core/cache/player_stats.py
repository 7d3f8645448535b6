"""
Per-player win statistics cache.

Purpose
-------
Hold each player's `event name -> wins` map in memory for a bounded time so
repeated reads (scoreboards, placeholders, commands) do not reach the store.

Responsibilities
----------------
- Return a copy of an unexpired entry, or None on miss/expiry
- Overwrite entries with a fresh expiry (last writer wins)
- Increment one event counter in place, only when the entry is live
- Invalidate one or all entries; sweep expired entries on demand
- Evict the entry closest to expiry when `max_entries` is reached

Non-Responsibilities
--------------------
- Loading from the store on a miss (StatsCoordinator)
- Persisting anything

Design Notes
------------
- One `threading.Lock` guards the map. Every critical section is a dict
  operation, so it never blocks for long and never awaits.
- Expiry is checked lazily on read; expired entries are dropped when seen.
- Entries are stored and returned as copies. Callers cannot mutate cached
  state through a returned dict.
- The clock is injectable (monotonic seconds) so tests control time.
"""

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional

from capture_stats.core.cache.metrics import CacheMetrics
from capture_stats.core.logging.logger import get_logger

logger = get_logger(__name__)

Clock = Callable[[], float]


@dataclass
class _Entry:
    stats: Dict[str, int]
    expires_at: float


class PlayerStatsCache:
    """
    TTL map of player id -> (event name -> wins).

    Usage
    -----
    >>> cache = PlayerStatsCache(max_entries=1000)
    >>> cache.put(player_id, {"castle": 3}, ttl=300)
    >>> cache.increment(player_id, "castle")
    True
    >>> cache.get(player_id)
    {'castle': 4}
    """

    def __init__(self, max_entries: int = 1000, clock: Clock = time.monotonic) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._clock = clock
        self._entries: Dict[uuid.UUID, _Entry] = {}
        self._lock = threading.Lock()
        self.metrics = CacheMetrics()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, player_id: object) -> bool:
        return isinstance(player_id, uuid.UUID) and self.get(player_id) is not None

    def get(self, player_id: uuid.UUID) -> Optional[Dict[str, int]]:
        """Copy of the live entry, or None when absent or expired."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(player_id)
            if entry is not None and now > entry.expires_at:
                del self._entries[player_id]
                entry = None
            stats = dict(entry.stats) if entry is not None else None

        if stats is None:
            self.metrics.record_miss()
        else:
            self.metrics.record_hit()
        return stats

    def put(self, player_id: uuid.UUID, stats: Mapping[str, int], ttl: float) -> None:
        """Store a copy of `stats`, replacing any existing entry."""
        now = self._clock()
        entry = _Entry(stats=dict(stats), expires_at=now + ttl)
        evicted: Optional[uuid.UUID] = None
        with self._lock:
            if player_id not in self._entries and len(self._entries) >= self.max_entries:
                evicted = self._evict_locked()
            self._entries[player_id] = entry

        self.metrics.record("sets")
        if evicted is not None:
            self.metrics.record("evictions")
            logger.debug(
                "Player stats cache full; evicted entry",
                extra={"evicted_player_id": str(evicted), "max_entries": self.max_entries},
            )

    def increment(self, player_id: uuid.UUID, event_name: str) -> bool:
        """
        Add one win to a live entry.

        Returns False, and changes nothing, when the player is not cached or
        the entry has expired. The next read-through then loads the
        persisted count, which already includes this win.
        """
        now = self._clock()
        with self._lock:
            entry = self._entries.get(player_id)
            if entry is None or now > entry.expires_at:
                return False
            entry.stats[event_name] = entry.stats.get(event_name, 0) + 1

        self.metrics.record("increments")
        return True

    def invalidate(self, player_id: uuid.UUID) -> None:
        with self._lock:
            removed = self._entries.pop(player_id, None) is not None
        if removed:
            self.metrics.record("invalidations")

    def invalidate_all(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        self.metrics.record("invalidations", count)
        return count

    def sweep_expired(self) -> int:
        """Drop every expired entry now. Returns how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [pid for pid, entry in self._entries.items() if now > entry.expires_at]
            for pid in expired:
                del self._entries[pid]
        if expired:
            self.metrics.record("evictions", len(expired))
        return len(expired)

    def _evict_locked(self) -> Optional[uuid.UUID]:
        # Soonest expiry first, which includes anything already expired.
        victim = min(self._entries, key=lambda pid: self._entries[pid].expires_at, default=None)
        if victim is not None:
            del self._entries[victim]
        return victim
