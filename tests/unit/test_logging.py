"""
Unit tests for structured logging helpers.
"""

import json
import logging

import pytest

from capture_stats.core.config.config import Config
from capture_stats.core.logging.logger import (
    ContextFilter,
    JSONFormatter,
    LogContext,
    clear_log_context,
    get_log_context,
    get_logger,
    get_logging_health,
    set_log_context,
    setup_logging,
    shutdown_logging,
)


def make_record(name="capture_stats.modules.wins.registry", msg="Win registered", **extra):
    record = logging.makeLogRecord({"name": name, "msg": msg, "levelname": "INFO"})
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture(autouse=True)
def clean_context():
    clear_log_context()
    yield
    clear_log_context()


@pytest.mark.unit
class TestLogContext:
    """Test scoped operation context."""

    def test_context_applies_inside_block_only(self):
        with LogContext(player_id="abc", event_name="castle", operation="register_win"):
            context = get_log_context()
        assert context["player_id"] == "abc"
        assert context["event_name"] == "castle"
        assert len(context["correlation_id"]) == 8
        assert get_log_context() == {}

    async def test_async_context_nests(self):
        async with LogContext(operation="outer", correlation_id="c1"):
            async with LogContext(event_name="koth"):
                inner = get_log_context()
            outer = get_log_context()

        assert inner["operation"] == "outer"
        assert inner["event_name"] == "koth"
        assert "event_name" not in outer

    def test_set_log_context_skips_none(self):
        set_log_context(player_id="p1", event_name=None)

        assert get_log_context() == {"player_id": "p1"}


@pytest.mark.unit
class TestFormatting:
    """Test the context filter and JSON formatter."""

    def test_filter_fills_context_and_component(self):
        record = make_record()

        with LogContext(player_id="p1"):
            ContextFilter().filter(record)

        assert record.player_id == "p1"
        assert record.event_name == "N/A"
        assert record.component == "registry"

    def test_filter_keeps_explicit_extra(self):
        record = make_record(player_id="explicit")

        with LogContext(player_id="scoped"):
            ContextFilter().filter(record)

        assert record.player_id == "explicit"

    def test_json_formatter_includes_context_and_extra(self):
        record = make_record(player_name="Steve")
        with LogContext(player_id="p1", operation="register_win", correlation_id="c1"):
            ContextFilter().filter(record)

        payload = json.loads(JSONFormatter().format(record))

        assert payload["message"] == "Win registered"
        assert payload["player_id"] == "p1"
        assert payload["operation"] == "register_win"
        assert payload["extra"] == {"player_name": "Steve"}
        assert "event_name" not in payload


@pytest.mark.unit
class TestSetup:
    """Test the queue-backed handler lifecycle."""

    def test_setup_writes_json_file_and_shuts_down(self, tmp_path, monkeypatch):
        # Arrange
        monkeypatch.setattr(Config, "LOGS_DIR", tmp_path)
        monkeypatch.setattr(Config, "LOG_LEVEL", "INFO")

        # Act
        setup_logging()
        try:
            setup_logging()
            with LogContext(player_id="p1", event_name="castle"):
                get_logger("capture_stats.tests").info("hello", extra={"wins": 3})
            health = get_logging_health()
        finally:
            shutdown_logging()

        # Assert
        assert health.initialized
        assert health.records_dropped == 0
        assert not get_logging_health().initialized
        lines = (tmp_path / "capture_stats.json.log").read_text(encoding="utf-8").splitlines()
        entries = [json.loads(line) for line in lines]
        hello = next(entry for entry in entries if entry["message"] == "hello")
        assert hello["player_id"] == "p1"
        assert hello["extra"]["wins"] == 3
