"""
Capture Stats logging subsystem.

Purpose
-------
Provide the async-safe logging stack shared by every stats component:

- Structured JSON logs for aggregation and analysis.
- LogContext-based propagation of operation context via ContextVars, so a
  win registration and the cache/store work it triggers share one
  correlation id.
- Async-safe emission via a bounded QueueHandler + QueueListener pair; the
  event loop never blocks on console or file I/O.
- Hybrid output:
  - Console handler (JSON in production, colored human text in dev).
  - Optional rotating JSON file handler when `Config.LOGS_DIR` is set.

Responsibilities
----------------
- Enrich records with contextual fields:
  player_id, event_name, operation, component, correlation_id.
- Merge `extra={...}` fields into JSON output.
- Degrade gracefully (drop and count) when the queue is overloaded.
- Expose `get_logging_health()` for infra-level inspection.

Non-Responsibilities
--------------------
- Query timing (see `capture_stats.core.database.metrics`).
- Deciding what is worth logging; callers choose levels.

Design Notes
------------
- `setup_logging()` is explicit. Importing this module only defines loggers,
  so libraries embedding the stats core keep control of the root logger.
- Loggers are plain `logging.Logger` instances; the filter on the root
  handler adds context, so `get_logger(__name__)` is all a module needs.
"""

from __future__ import annotations

import json
import logging
import queue
import sys
import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass
from datetime import datetime, timezone
from logging import Logger
from logging.handlers import QueueHandler, QueueListener, TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

from capture_stats.core.config.config import Config


# ============================================================================
# Operation Context (ContextVars)
# ============================================================================

_operation_context: ContextVar[Dict[str, Any]] = ContextVar(
    "operation_context",
    default={},
)

_CONTEXT_FIELDS = ("player_id", "event_name", "operation", "component", "correlation_id")


# ============================================================================
# Config
# ============================================================================


@dataclass(frozen=True)
class LoggerConfig:
    """Formatting constants plus live views over `Config`."""

    CONSOLE_FORMAT: str = "%(asctime)s | %(levelname)-8s | %(name)-36s | %(message)s"
    DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"

    FILE_BASENAME: str = "capture_stats.json.log"
    FILE_BACKUP_COUNT: int = 3

    QUEUE_MAX_SIZE: int = 10_000

    @property
    def environment(self) -> str:
        return str(Config.ENVIRONMENT).lower()

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def logs_dir(self) -> Optional[Path]:
        return Path(Config.LOGS_DIR).resolve() if Config.LOGS_DIR else None

    @property
    def log_level(self) -> int:
        return getattr(logging, str(Config.LOG_LEVEL).upper(), logging.INFO)

    @property
    def use_json(self) -> bool:
        if Config.LOG_JSON is None:
            return self.is_production
        return bool(Config.LOG_JSON)

    @property
    def use_colors(self) -> bool:
        if self.use_json:
            return False
        return Config.LOG_COLORS and sys.stdout.isatty()


LOGGER_CONFIG = LoggerConfig()


# ============================================================================
# Metrics / Health
# ============================================================================


@dataclass
class LoggingMetrics:
    records_enqueued: int = 0
    records_dropped: int = 0
    listener_errors: int = 0


@dataclass(frozen=True)
class LoggingHealth:
    initialized: bool
    queue_size: int
    queue_max_size: int
    records_enqueued: int
    records_dropped: int
    listener_errors: int


_logging_metrics = LoggingMetrics()
_log_queue: Optional["queue.Queue[logging.LogRecord]"] = None
_queue_listener: Optional[QueueListener] = None
_initialized = False


# ============================================================================
# Filters & Formatters
# ============================================================================


class ContextFilter(logging.Filter):
    """Copy the current operation context onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = _operation_context.get()
        for field_name in _CONTEXT_FIELDS:
            if not hasattr(record, field_name):
                setattr(record, field_name, context.get(field_name, "N/A"))
        if getattr(record, "component", "N/A") == "N/A":
            record.component = record.name.rsplit(".", 1)[-1]
        return True


class ColoredFormatter(logging.Formatter):
    COLORS: Dict[str, str] = {
        "DEBUG": "\033[90m",
        "INFO": "\033[94m",
        "WARNING": "\033[93m",
        "ERROR": "\033[91m",
        "CRITICAL": "\033[91m\033[1m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        original = record.levelname
        prefix = self.COLORS.get(original)
        if prefix:
            record.levelname = f"{prefix}{original}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


class JSONFormatter(logging.Formatter):
    """One JSON object per record; context and `extra` fields included."""

    STANDARD_ATTRS = frozenset(
        logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
    ) | {"message", "asctime", "taskName"}

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }

        for field_name in _CONTEXT_FIELDS:
            value = getattr(record, field_name, None)
            if value not in (None, "N/A"):
                log_data[field_name] = str(value)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra = {
            key: val
            for key, val in record.__dict__.items()
            if key not in self.STANDARD_ATTRS
            and key not in _CONTEXT_FIELDS
            and not key.startswith("_")
        }
        if extra:
            log_data["extra"] = extra

        return json.dumps(log_data, ensure_ascii=False, default=str)


# ============================================================================
# Bounded Queue Handler & Listener
# ============================================================================


class BoundedQueueHandler(QueueHandler):
    """Drop (and count) records instead of blocking when the queue is full."""

    def enqueue(self, record: logging.LogRecord) -> None:
        _logging_metrics.records_enqueued += 1
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            _logging_metrics.records_dropped += 1
            sys.stderr.write("capture_stats logging queue full; dropping log record.\n")


class CountingQueueListener(QueueListener):
    def handleError(self, record: logging.LogRecord) -> None:
        _logging_metrics.listener_errors += 1
        sys.stderr.write("capture_stats logging handler error while processing record.\n")


# ============================================================================
# Setup / Shutdown
# ============================================================================


def _build_console_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(LOGGER_CONFIG.log_level)

    if LOGGER_CONFIG.use_json:
        handler.setFormatter(JSONFormatter())
    elif LOGGER_CONFIG.use_colors:
        handler.setFormatter(
            ColoredFormatter(fmt=LOGGER_CONFIG.CONSOLE_FORMAT, datefmt=LOGGER_CONFIG.DATE_FORMAT)
        )
    else:
        handler.setFormatter(
            logging.Formatter(fmt=LOGGER_CONFIG.CONSOLE_FORMAT, datefmt=LOGGER_CONFIG.DATE_FORMAT)
        )
    return handler


def _build_file_handler(logs_dir: Path) -> logging.Handler:
    logs_dir.mkdir(parents=True, exist_ok=True)
    handler = TimedRotatingFileHandler(
        filename=str(logs_dir / LOGGER_CONFIG.FILE_BASENAME),
        when="midnight",
        interval=1,
        backupCount=LOGGER_CONFIG.FILE_BACKUP_COUNT,
        encoding="utf-8",
        utc=True,
    )
    handler.setLevel(LOGGER_CONFIG.log_level)
    handler.setFormatter(JSONFormatter())
    return handler


def setup_logging() -> None:
    """Install the queue-backed handlers on the root logger. Idempotent."""
    global _queue_listener, _log_queue, _logging_metrics, _initialized

    if _initialized:
        return

    _logging_metrics = LoggingMetrics()

    root = logging.getLogger()
    root.setLevel(LOGGER_CONFIG.log_level)

    handlers = [_build_console_handler()]
    logs_dir = LOGGER_CONFIG.logs_dir
    if logs_dir is not None:
        handlers.append(_build_file_handler(logs_dir))

    _log_queue = queue.Queue(LOGGER_CONFIG.QUEUE_MAX_SIZE)
    _queue_listener = CountingQueueListener(_log_queue, *handlers, respect_handler_level=True)
    _queue_listener.start()

    queue_handler = BoundedQueueHandler(_log_queue)
    queue_handler.setLevel(LOGGER_CONFIG.log_level)
    queue_handler.addFilter(ContextFilter())
    root.addHandler(queue_handler)

    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if Config.DATABASE_ECHO else logging.WARNING
    )
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    _initialized = True

    logging.getLogger(__name__).info(
        "Logging initialized",
        extra={
            "environment": LOGGER_CONFIG.environment,
            "log_level": logging.getLevelName(LOGGER_CONFIG.log_level),
            "json": LOGGER_CONFIG.use_json,
            "colors": LOGGER_CONFIG.use_colors,
            "logs_dir": str(logs_dir) if logs_dir else None,
        },
    )


def shutdown_logging() -> None:
    """Flush the queue and remove the handlers installed by `setup_logging`."""
    global _queue_listener, _log_queue, _initialized

    if not _initialized:
        return

    logging.getLogger(__name__).info("Shutting down logging subsystem")

    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler, BoundedQueueHandler):
            root.removeHandler(handler)
            handler.close()

    if _queue_listener is not None:
        _queue_listener.stop()
        for handler in _queue_listener.handlers:
            handler.flush()
            handler.close()
        _queue_listener = None

    _log_queue = None
    _initialized = False


def get_logging_health() -> LoggingHealth:
    queue_size = _log_queue.qsize() if _log_queue is not None else 0
    max_size = _log_queue.maxsize if _log_queue is not None else 0
    return LoggingHealth(
        initialized=_initialized,
        queue_size=queue_size,
        queue_max_size=max_size,
        records_enqueued=_logging_metrics.records_enqueued,
        records_dropped=_logging_metrics.records_dropped,
        listener_errors=_logging_metrics.listener_errors,
    )


# ============================================================================
# Public API
# ============================================================================


def get_logger(name: str) -> Logger:
    return logging.getLogger(name)


class LogContext:
    """
    Scope operation context for every log record emitted inside the block.

    Works as both a sync and an async context manager:

        async with LogContext(player_id=pid, operation="register_win"):
            ...
    """

    def __init__(
        self,
        player_id: Optional[Any] = None,
        event_name: Optional[str] = None,
        operation: Optional[str] = None,
        component: Optional[str] = None,
        correlation_id: Optional[str] = None,
        **extra: Any,
    ) -> None:
        self.context: Dict[str, Any] = {
            **_operation_context.get(),
            "correlation_id": correlation_id or str(uuid.uuid4())[:8],
            **extra,
        }
        if player_id is not None:
            self.context["player_id"] = str(player_id)
        if event_name is not None:
            self.context["event_name"] = event_name
        if operation is not None:
            self.context["operation"] = operation
        if component is not None:
            self.context["component"] = component
        self._token: Optional[Token[Dict[str, Any]]] = None

    def __enter__(self) -> "LogContext":
        self._token = _operation_context.set(self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _operation_context.reset(self._token)
            self._token = None

    async def __aenter__(self) -> "LogContext":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


def set_log_context(**fields: Any) -> None:
    """Merge fields into the current context without a scope."""
    current = dict(_operation_context.get())
    current.update({k: v for k, v in fields.items() if v is not None})
    _operation_context.set(current)


def clear_log_context() -> None:
    _operation_context.set({})


def get_log_context() -> Dict[str, Any]:
    return dict(_operation_context.get())
