"""
Static configuration management for Capture Stats.

Purpose
-------
Provides centralized static configuration loaded from environment variables
with sensible defaults, type validation and bounds checking. This module
handles process-level settings fixed at startup (environment, logging,
database URL). The tunables of the stats core itself live in
`capture_stats.core.config.settings.StatsSettings`.

Responsibilities
----------------
- Load configuration from environment variables with .env support
- Provide type-safe access to all static configuration values
- Fall back to documented defaults, with a warning, on malformed values

Non-Responsibilities
--------------------
- Cache TTLs, leaderboard sizing and pool sizing (StatsSettings)
- Runtime configuration changes

Environment Variables
---------------------
- ENVIRONMENT: development | testing | staging | production (default: development)
- LOG_LEVEL: Logging level (default: INFO)
- LOG_JSON: Force JSON console logs (default: on in production)
- LOG_COLORS: Colored console logs on a TTY (default: True)
- LOGS_DIR: Directory for the rotating JSON log file (default: unset, no file)
- DATABASE_URL: SQLAlchemy async URL (default: sqlite+aiosqlite:///capture_stats.db)
- DATABASE_ECHO: Echo SQL statements (default: False)
- STATS_CONFIG_PATH: YAML file with StatsSettings overrides (default: unset)
"""

import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

load_dotenv()


class Environment(Enum):
    """Deployment environment types."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"

    @classmethod
    def from_string(cls, value: str) -> "Environment":
        """
        Parse environment string safely with fallback.

        Example
        -------
        >>> Environment.from_string("production") == Environment.PRODUCTION
        True
        >>> Environment.from_string("invalid") == Environment.DEVELOPMENT
        True
        """
        try:
            return cls(value.lower())
        except ValueError:
            # structured logger is not configured yet at this point
            logging.warning(f"Unknown environment '{value}', defaulting to development")
            return cls.DEVELOPMENT


class Config:
    """
    Centralized static configuration.

    Values are class attributes populated by `Config.load()`, which runs on
    import and can be re-run by tests after changing the environment.

    Usage
    -----
    >>> Config.DATABASE_URL
    'sqlite+aiosqlite:///capture_stats.db'
    >>> Config.is_production()
    False
    """

    ENVIRONMENT: str = Environment.DEVELOPMENT.value
    LOG_LEVEL: str = "INFO"
    LOG_JSON: Optional[bool] = None
    LOG_COLORS: bool = True
    LOGS_DIR: Optional[Path] = None

    DATABASE_URL: str = "sqlite+aiosqlite:///capture_stats.db"
    DATABASE_ECHO: bool = False

    STATS_CONFIG_PATH: Optional[Path] = None

    _TRUE_VALUES = {"true", "yes", "1", "on"}
    _FALSE_VALUES = {"false", "no", "0", "off"}

    # =========================================================================
    # Parsing helpers
    # =========================================================================

    @classmethod
    def _safe_bool(cls, key: str, default: Optional[bool]) -> Optional[bool]:
        """
        Safely parse boolean from environment.

        Recognizes: true/false, yes/no, 1/0, on/off (case-insensitive).
        """
        raw_value = os.getenv(key)
        if raw_value is None:
            return default

        normalized = raw_value.lower().strip()
        if normalized in cls._TRUE_VALUES:
            return True
        if normalized in cls._FALSE_VALUES:
            return False

        logging.warning(f"{key}='{raw_value}' is not a valid boolean, using default {default}")
        return default

    @classmethod
    def _safe_str(cls, key: str, default: str) -> str:
        value = os.getenv(key)
        if value is None or not value.strip():
            return default
        return value.strip()

    @classmethod
    def _safe_path(cls, key: str) -> Optional[Path]:
        value = os.getenv(key)
        if not value or not value.strip():
            return None
        return Path(value.strip()).expanduser()

    # =========================================================================
    # Loading
    # =========================================================================

    @classmethod
    def load(cls) -> None:
        """(Re)load every value from the environment."""
        cls.ENVIRONMENT = Environment.from_string(
            cls._safe_str("ENVIRONMENT", Environment.DEVELOPMENT.value)
        ).value
        cls.LOG_LEVEL = cls._safe_str("LOG_LEVEL", "INFO").upper()
        cls.LOG_JSON = cls._safe_bool("LOG_JSON", None)
        cls.LOG_COLORS = bool(cls._safe_bool("LOG_COLORS", True))
        cls.LOGS_DIR = cls._safe_path("LOGS_DIR")

        cls.DATABASE_URL = cls._safe_str(
            "DATABASE_URL", "sqlite+aiosqlite:///capture_stats.db"
        )
        cls.DATABASE_ECHO = bool(cls._safe_bool("DATABASE_ECHO", False))

        cls.STATS_CONFIG_PATH = cls._safe_path("STATS_CONFIG_PATH")

    @classmethod
    def is_production(cls) -> bool:
        return cls.ENVIRONMENT == Environment.PRODUCTION.value

    @classmethod
    def is_testing(cls) -> bool:
        return cls.ENVIRONMENT == Environment.TESTING.value

    @classmethod
    def get_config_summary(cls) -> Dict[str, Any]:
        """Non-secret summary suitable for a startup log line."""
        return {
            "environment": cls.ENVIRONMENT,
            "log_level": cls.LOG_LEVEL,
            "database_scheme": cls.DATABASE_URL.split(":", 1)[0],
            "stats_config_path": str(cls.STATS_CONFIG_PATH) if cls.STATS_CONFIG_PATH else None,
        }


Config.load()
