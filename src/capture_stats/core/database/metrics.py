"""
Database Metrics - per-operation timing registry.

Purpose
-------
Record how long each named store operation takes and how often it fails, and
report the slowest operations first. This is the query performance report
operators read when a server feels slow: which operation, how many calls,
average and worst latency.

Responsibilities
----------------
- Accumulate count / failures / total / max duration per operation name
- Produce immutable snapshots for tests and health endpoints
- Log a summary sorted by average duration, descending

Non-Responsibilities
--------------------
- Scheduling the periodic summary (StatsApplication does that)
- Exporting to a monitoring backend

Usage Example
-------------
>>> metrics = DatabaseMetrics()
>>> with metrics.measure("fetch_top_players"):
...     rows = await store.fetch_top_players(10)
>>> metrics.record("fetch_player_aggregate-cached", 0.02)
>>> metrics.log_summary()
"""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator, List, Tuple

from capture_stats.core.logging.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class OperationTiming:
    """Immutable timing totals for one operation name."""

    count: int = 0
    failures: int = 0
    total_ms: float = 0.0
    max_ms: float = 0.0

    @property
    def average_ms(self) -> float:
        return self.total_ms / self.count if self.count else 0.0

    def add(self, duration_ms: float, success: bool) -> "OperationTiming":
        return OperationTiming(
            count=self.count + 1,
            failures=self.failures + (0 if success else 1),
            total_ms=self.total_ms + duration_ms,
            max_ms=max(self.max_ms, duration_ms),
        )


class DatabaseMetrics:
    """Thread-safe registry of `OperationTiming` keyed by operation name."""

    def __init__(self) -> None:
        self._timings: Dict[str, OperationTiming] = {}
        self._lock = threading.Lock()

    def record(self, operation: str, duration_ms: float, success: bool = True) -> None:
        with self._lock:
            current = self._timings.get(operation, OperationTiming())
            self._timings[operation] = current.add(duration_ms, success)

    @contextmanager
    def measure(self, operation: str) -> Iterator[None]:
        """Time the enclosed block; a raised exception counts as a failure."""
        start = time.perf_counter()
        success = False
        try:
            yield
            success = True
        finally:
            self.record(operation, (time.perf_counter() - start) * 1000.0, success)

    def get(self, operation: str) -> OperationTiming:
        with self._lock:
            return self._timings.get(operation, OperationTiming())

    def snapshot(self) -> Dict[str, OperationTiming]:
        with self._lock:
            return dict(self._timings)

    def slowest_first(self) -> List[Tuple[str, OperationTiming]]:
        return sorted(
            self.snapshot().items(),
            key=lambda item: item[1].average_ms,
            reverse=True,
        )

    def reset(self) -> None:
        with self._lock:
            self._timings.clear()

    def log_summary(self) -> None:
        """Log one line per operation, slowest average first."""
        ranked = self.slowest_first()
        if not ranked:
            logger.info("Query performance summary: no operations recorded")
            return

        logger.info("Query performance summary", extra={"operations": len(ranked)})
        for operation, timing in ranked:
            logger.info(
                f"  {operation}: avg {timing.average_ms:.2f}ms over {timing.count} calls",
                extra={
                    "metric_operation": operation,
                    "count": timing.count,
                    "failures": timing.failures,
                    "average_ms": round(timing.average_ms, 3),
                    "max_ms": round(timing.max_ms, 3),
                },
            )
