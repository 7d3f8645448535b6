"""
Cache metrics tracking.

Purpose
-------
Thread-safe counters for the in-process caches: hits, misses, sets,
increments, invalidations and evictions, with a derived hit rate.

Architecture Notes
------------------
- One `CacheMetrics` instance per cache, owned by that cache
- Counters guarded by a `threading.Lock`; cache operations are synchronous
  and may be called from the event loop or a worker thread
- Derived metrics calculated on demand from raw counters
"""

import threading
from typing import Any, Dict


class CacheMetrics:
    """Counters for one cache instance."""

    COUNTERS = ("hits", "misses", "sets", "increments", "invalidations", "evictions")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: Dict[str, int] = dict.fromkeys(self.COUNTERS, 0)

    def record(self, counter: str, amount: int = 1) -> None:
        with self._lock:
            self._counters[counter] += amount

    def record_hit(self) -> None:
        self.record("hits")

    def record_miss(self) -> None:
        self.record("misses")

    def get(self, counter: str) -> int:
        with self._lock:
            return self._counters[counter]

    def hit_rate(self) -> float:
        """Hits / (hits + misses) as a percentage, 0.0 when unused."""
        with self._lock:
            total = self._counters["hits"] + self._counters["misses"]
            return (self._counters["hits"] / total * 100.0) if total else 0.0

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            data: Dict[str, Any] = dict(self._counters)
        total = data["hits"] + data["misses"]
        data["hit_rate"] = round(data["hits"] / total * 100.0, 2) if total else 0.0
        return data

    def reset(self) -> None:
        with self._lock:
            self._counters = dict.fromkeys(self.COUNTERS, 0)
