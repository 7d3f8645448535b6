"""
Stats core tunables.

Purpose
-------
Load the recognized configuration options of the stats core from a YAML
document into an immutable `StatsSettings` snapshot. Keys use the
hyphenated option names, durations are seconds:

```yaml
player-stats-ttl: 300
player-stats-max-entries: 1000
leaderboard-refresh-interval: 60
leaderboard-max-size: 10
leaderboard-refresh-delay: 0.25
leaderboard-stale-policy: wait        # or serve-stale
connection-pool-size: 10
connection-timeout: 5
store-operation-timeout: 10
debug: false
performance-log-interval: 300
```

Missing keys take the defaults above. Unknown keys are logged and ignored.
Values of the wrong type or out of range raise `ConfigurationError`; a
misconfigured cache is better refused at startup than discovered under load.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from capture_stats.core.exceptions import ConfigurationError
from capture_stats.core.logging.logger import get_logger

logger = get_logger(__name__)


class LeaderboardStalePolicy(Enum):
    """What concurrent readers do while a leaderboard refresh is in flight."""

    WAIT = "wait"
    SERVE_STALE = "serve-stale"


@dataclass(frozen=True)
class StatsSettings:
    """Immutable snapshot of the stats core configuration."""

    player_stats_ttl: float = 300.0
    player_stats_max_entries: int = 1000
    leaderboard_refresh_interval: float = 60.0
    leaderboard_max_size: int = 10
    leaderboard_refresh_delay: float = 0.25
    leaderboard_stale_policy: LeaderboardStalePolicy = LeaderboardStalePolicy.WAIT
    connection_pool_size: int = 10
    connection_timeout: float = 5.0
    store_operation_timeout: float = 10.0
    debug: bool = False
    performance_log_interval: float = 300.0

    @classmethod
    def option_names(cls) -> Dict[str, str]:
        """Map of YAML option name to dataclass field name."""
        return {f.name.replace("_", "-"): f.name for f in fields(cls)}

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "StatsSettings":
        """
        Build settings from a parsed YAML mapping.

        Raises
        ------
        ConfigurationError
            If a value has the wrong type or is out of range.
        """
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise ConfigurationError("<root>", "Stats configuration must be a mapping")

        known = cls.option_names()
        values: Dict[str, Any] = {}
        for key, raw in data.items():
            field_name = known.get(str(key))
            if field_name is None:
                logger.warning(
                    "Ignoring unknown stats configuration option",
                    extra={"option": key},
                )
                continue
            values[field_name] = _coerce(str(key), field_name, raw)

        return replace(cls(), **values)

    def to_mapping(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        for option, field_name in self.option_names().items():
            value = getattr(self, field_name)
            result[option] = value.value if isinstance(value, Enum) else value
        return result


_POSITIVE_FLOATS = {
    "player_stats_ttl",
    "leaderboard_refresh_interval",
    "connection_timeout",
    "store_operation_timeout",
    "performance_log_interval",
}
_POSITIVE_INTS = {
    "player_stats_max_entries",
    "leaderboard_max_size",
    "connection_pool_size",
}


def _coerce(option: str, field_name: str, raw: Any) -> Any:
    if field_name == "leaderboard_stale_policy":
        try:
            return LeaderboardStalePolicy(str(raw).strip().lower())
        except ValueError:
            allowed = ", ".join(p.value for p in LeaderboardStalePolicy)
            raise ConfigurationError(option, f"Must be one of: {allowed}") from None

    if field_name == "debug":
        if not isinstance(raw, bool):
            raise ConfigurationError(option, "Must be true or false")
        return raw

    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise ConfigurationError(option, f"Must be a number, got {raw!r}")

    if field_name in _POSITIVE_INTS:
        if int(raw) != raw or raw < 1:
            raise ConfigurationError(option, f"Must be a positive whole number, got {raw!r}")
        return int(raw)

    if field_name in _POSITIVE_FLOATS and raw <= 0:
        raise ConfigurationError(option, f"Must be greater than zero, got {raw!r}")
    if raw < 0:
        raise ConfigurationError(option, f"Cannot be negative, got {raw!r}")
    return float(raw)


def load_settings(path: Optional[Union[str, Path]] = None) -> StatsSettings:
    """
    Load `StatsSettings` from a YAML file.

    Parameters
    ----------
    path:
        YAML file to read. `None` returns the defaults.

    Raises
    ------
    ConfigurationError
        If the file is missing, is not valid YAML, or holds invalid values.
    """
    if path is None:
        logger.debug("No stats configuration file given; using defaults")
        return StatsSettings()

    config_path = Path(path)
    try:
        with config_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except FileNotFoundError:
        raise ConfigurationError(str(config_path), "Configuration file not found") from None
    except yaml.YAMLError as exc:
        raise ConfigurationError(str(config_path), f"Invalid YAML: {exc}") from exc

    settings = StatsSettings.from_mapping(data)
    logger.info(
        "Stats configuration loaded",
        extra={"path": str(config_path), **settings.to_mapping()},
    )
    return settings
