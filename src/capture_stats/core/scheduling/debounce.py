"""
Cancel-and-reschedule debouncer for async actions.

Purpose
-------
Coalesce a burst of triggers into one deferred run of an async action: each
`trigger()` cancels the pending timer and starts a new one, so the action
runs once, `delay` seconds after the last trigger of the burst.

Design Notes
------------
- The timer is an asyncio task that sleeps, then runs the action. Once the
  sleep has finished the run belongs to the action phase and later triggers
  no longer cancel it; they schedule the next run instead.
- Action failures are logged with traceback and counted. The debouncer stays
  usable; the next trigger schedules a new attempt.
- `close()` cancels a pending timer and waits for a running action.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional

from capture_stats.core.logging.logger import get_logger

logger = get_logger(__name__)


class Debouncer:
    """
    Usage
    -----
    >>> debouncer = Debouncer(refresh_leaderboard, delay=0.25, name="leaderboard")
    >>> debouncer.trigger()
    >>> debouncer.trigger()   # replaces the first timer
    >>> await debouncer.close()
    """

    def __init__(
        self,
        action: Callable[[], Awaitable[object]],
        delay: float,
        name: str = "debouncer",
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        if delay < 0:
            raise ValueError("delay cannot be negative")
        self.delay = delay
        self.name = name
        self._action = action
        self._sleep = sleep
        self._pending: Optional[asyncio.Task[None]] = None
        self._running: Optional[asyncio.Task[None]] = None
        self._closed = False

        self.trigger_count = 0
        self.fire_count = 0
        self.failure_count = 0

    @property
    def pending(self) -> bool:
        """True while a timer is waiting to fire."""
        return self._pending is not None and not self._pending.done()

    @property
    def running(self) -> bool:
        return self._running is not None and not self._running.done()

    def trigger(self) -> None:
        """(Re)start the timer. Must be called from a running event loop."""
        if self._closed:
            logger.debug("Ignoring trigger on closed debouncer", extra={"debouncer": self.name})
            return

        if self.pending:
            assert self._pending is not None
            self._pending.cancel()

        self.trigger_count += 1
        self._pending = asyncio.get_running_loop().create_task(
            self._wait_then_fire(), name=f"{self.name}-debounce"
        )

    async def _wait_then_fire(self) -> None:
        await self._sleep(self.delay)

        task = asyncio.current_task()
        if self._pending is task:
            self._pending = None
        self._running = task
        self.fire_count += 1

        try:
            await self._action()
        except Exception as exc:
            self.failure_count += 1
            logger.error(
                "Debounced action failed",
                extra={
                    "debouncer": self.name,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )
        finally:
            if self._running is task:
                self._running = None

    def cancel(self) -> bool:
        """Cancel a waiting timer. Returns whether one was pending."""
        if not self.pending:
            return False
        assert self._pending is not None
        self._pending.cancel()
        self._pending = None
        return True

    async def close(self) -> None:
        """Stop accepting triggers, drop the pending timer, await a running action."""
        self._closed = True
        pending = self._pending
        self.cancel()
        if pending is not None:
            await asyncio.gather(pending, return_exceptions=True)
        running = self._running
        if running is not None:
            await asyncio.gather(running, return_exceptions=True)
