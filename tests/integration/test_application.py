"""
StatsApplication Integration Tests
==================================

End-to-end runs of the wired stack on a SQLite file: wins in, placeholder
text out.
"""

import asyncio
import uuid

import pytest

from capture_stats.app import StatsApplication
from capture_stats.core.config.settings import StatsSettings
from capture_stats.core.exceptions import DatabaseInitializationError


@pytest.fixture
def app_settings():
    return StatsSettings(leaderboard_refresh_delay=0.05, connection_pool_size=3)


@pytest.mark.integration
@pytest.mark.database
class TestStatsApplication:
    """Test startup, a win round trip and shutdown."""

    async def test_win_round_trip(self, app_settings, sqlite_url):
        """A recorded win shows up in player and leaderboard placeholders."""
        # Arrange
        steve, alex = uuid.uuid4(), uuid.uuid4()
        app = StatsApplication.create(
            settings=app_settings, database_url=sqlite_url, configure_logging=False
        )

        # Act
        async with app:
            await app.coordinator.on_player_seen(alex, "Alex")
            for event_name in ("castle", "castle", "koth"):
                await app.coordinator.on_win(steve, "Steve", event_name)
            await app.coordinator.refresh_leaderboard()

            total = await app.placeholders.resolve(steve, "total_wins")
            castle = await app.placeholders.resolve(steve, "wins_castle")
            first = await app.placeholders.resolve(None, "top_1_name")
            second_wins = await app.placeholders.resolve(None, "top_2_wins")

        # Assert
        assert (total, castle, first, second_wins) == ("3", "2", "Steve", "0")
        assert not app.database.is_initialized

    async def test_data_survives_restart(self, app_settings, sqlite_url):
        pid = uuid.uuid4()

        async with StatsApplication(app_settings, database_url=sqlite_url) as app:
            await app.coordinator.on_win(pid, "Steve", "castle")

        async with StatsApplication(app_settings, database_url=sqlite_url) as app:
            assert await app.coordinator.get_player_stats(pid) == {"castle": 1}

    async def test_failed_health_check_aborts_start(self, app_settings, sqlite_url, mocker):
        app = StatsApplication(app_settings, database_url=sqlite_url)
        mocker.patch.object(app.database, "health_check", return_value=False)

        with pytest.raises(DatabaseInitializationError):
            await app.start()

        assert not app.database.is_initialized

    async def test_debug_mode_reports_timings(self, sqlite_url, mocker):
        settings = StatsSettings(debug=True, performance_log_interval=0.01)
        app = StatsApplication(settings, database_url=sqlite_url)
        summary = mocker.spy(app.database.metrics, "log_summary")

        async with app:
            await app.coordinator.get_player_stats(uuid.uuid4())
            await asyncio.sleep(0.05)

        assert summary.call_count >= 2

    async def test_stop_without_start_is_noop(self, app_settings, sqlite_url):
        app = StatsApplication(app_settings, database_url=sqlite_url)

        await app.stop()

        assert not app.database.is_initialized
