"""
Capture Stats application wiring.

Purpose
-------
Build the whole stats stack from configuration, start it, and shut it down
in order. Hosts (game server bridge, bot, CLI) hold one `StatsApplication`
and talk to `app.coordinator` and `app.placeholders`.

Startup Sequence
----------------
1. Configure logging
2. Load `StatsSettings` (STATS_CONFIG_PATH, or defaults)
3. Initialize `DatabaseService` and verify it answers `SELECT 1`
4. Ensure the schema exists
5. Start the periodic query timing report when `debug` is on

Shutdown Sequence
-----------------
1. Stop the timing report
2. Close the coordinator (pending debounced refresh cancelled, in-flight
   refresh awaited)
3. Log the final timing summary when `debug` is on
4. Dispose the engine

Usage Example
-------------
>>> async with StatsApplication.create() as app:
...     await app.coordinator.on_win(player_id, "Steve", "castle")
...     await app.placeholders.resolve(player_id, "total_wins")
'1'
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

from capture_stats.core.config.config import Config
from capture_stats.core.config.settings import StatsSettings, load_settings
from capture_stats.core.database.service import DatabaseService
from capture_stats.core.exceptions import DatabaseInitializationError
from capture_stats.core.logging.logger import get_logger, setup_logging
from capture_stats.modules.stats.coordinator import StatsCoordinator
from capture_stats.modules.stats.placeholders import StatsPlaceholders
from capture_stats.modules.stats.sql_store import SqlStatsStore
from capture_stats.modules.wins.registry import WinRegistry

logger = get_logger(__name__)

HEALTH_TIMEOUT_SECONDS = 5.0


class StatsApplication:
    """Owns every long-lived stats object; nothing here is a module global."""

    def __init__(self, settings: StatsSettings, database_url: Optional[str] = None) -> None:
        self.settings = settings
        self.database = DatabaseService(url=database_url, settings=settings)
        self.store = SqlStatsStore(self.database)
        self.registry = WinRegistry(self.store)
        self.coordinator = StatsCoordinator(
            self.store,
            settings=settings,
            registry=self.registry,
            metrics=self.database.metrics,
        )
        self.placeholders = StatsPlaceholders(self.coordinator)

        self._stop_event = asyncio.Event()
        self._report_task: Optional[asyncio.Task[None]] = None
        self._started = False

    @classmethod
    def create(
        cls,
        settings: Optional[StatsSettings] = None,
        database_url: Optional[str] = None,
        configure_logging: bool = True,
    ) -> "StatsApplication":
        """
        Build an application from configuration. Call `start()` (or use
        `async with`) before use.

        Raises:
            ConfigurationError: The stats configuration file is invalid.
        """
        if configure_logging:
            setup_logging()
        if settings is None:
            settings = load_settings(Config.STATS_CONFIG_PATH)
        logger.info("Capture stats configuration", extra=Config.get_config_summary())
        return cls(settings, database_url=database_url)

    async def start(self) -> None:
        """
        Raises:
            DatabaseInitializationError: The database is unreachable or the
                schema could not be created.
        """
        if self._started:
            return

        await self.database.initialize()
        try:
            healthy = await asyncio.wait_for(
                self.database.health_check(), timeout=HEALTH_TIMEOUT_SECONDS
            )
        except asyncio.TimeoutError:
            healthy = False
        if not healthy:
            await self.database.shutdown()
            raise DatabaseInitializationError("Database did not answer the startup health check")

        await self.store.create_schema()

        self._stop_event.clear()
        if self.settings.debug:
            self._report_task = asyncio.create_task(
                self._report_performance(), name="query-performance-report"
            )

        self._started = True
        logger.info(
            "Capture stats started",
            extra={"debug": self.settings.debug, **self.database.get_pool_metrics()},
        )

    async def stop(self) -> None:
        if not self._started:
            return

        self._stop_event.set()
        if self._report_task is not None:
            await self._report_task
            self._report_task = None

        await self.coordinator.close()
        if self.settings.debug:
            self.database.metrics.log_summary()
        await self.database.shutdown()

        self._started = False
        logger.info("Capture stats stopped")

    async def _report_performance(self) -> None:
        interval = self.settings.performance_log_interval
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                self.database.metrics.log_summary()

    async def __aenter__(self) -> "StatsApplication":
        await self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.stop()
