"""
Input validation for stats operations.

All validators are stateless, return the normalized value on success and
raise `ValidationError` on failure. Failures are logged at debug level only;
a bad request is the caller's problem, not an operational event.
"""

from __future__ import annotations

import uuid
from typing import Any, NoReturn, Optional

from capture_stats.core.logging.logger import get_logger
from capture_stats.modules.shared.exceptions import ValidationError

logger = get_logger(__name__)

# Column widths of the persisted schema.
MAX_PLAYER_NAME_LENGTH = 16
MAX_EVENT_NAME_LENGTH = 64


def _raise_validation_error(field_name: str, value: Any, message: str) -> NoReturn:
    logger.debug(
        "Input validation failed",
        extra={
            "field_name": field_name,
            "raw_value": repr(value),
            "reason": message,
        },
    )
    raise ValidationError(field_name, message)


class InputValidator:
    """Centralized validation for identifiers and names entering the stats core."""

    @staticmethod
    def validate_player_id(value: Any, field_name: str = "player_id") -> uuid.UUID:
        """
        Accept a `uuid.UUID` or its string form.

        Returns:
            The player id as a `uuid.UUID`.
        """
        if isinstance(value, uuid.UUID):
            return value
        if isinstance(value, str):
            try:
                return uuid.UUID(value)
            except ValueError:
                pass
        _raise_validation_error(field_name, value, "Must be a UUID")

    @staticmethod
    def validate_string(
        value: Any,
        field_name: str,
        min_length: int = 1,
        max_length: Optional[int] = None,
    ) -> str:
        """Strip and length-check a string value."""
        if not isinstance(value, str):
            _raise_validation_error(field_name, value, "Must be a string")

        stripped = value.strip()
        if len(stripped) < min_length:
            _raise_validation_error(
                field_name, value, f"Must be at least {min_length} characters"
            )
        if max_length is not None and len(stripped) > max_length:
            _raise_validation_error(
                field_name, value, f"Cannot exceed {max_length} characters"
            )
        return stripped

    @staticmethod
    def validate_player_name(value: Any) -> str:
        return InputValidator.validate_string(
            value, field_name="name", max_length=MAX_PLAYER_NAME_LENGTH
        )

    @staticmethod
    def validate_event_name(value: Any) -> str:
        return InputValidator.validate_string(
            value, field_name="event_name", max_length=MAX_EVENT_NAME_LENGTH
        )

    @staticmethod
    def validate_limit(value: Any, max_value: int, field_name: str = "limit") -> int:
        """Validate a positive integer no greater than `max_value`."""
        if isinstance(value, bool) or not isinstance(value, int):
            _raise_validation_error(field_name, value, "Must be a whole number")
        if value < 1:
            _raise_validation_error(field_name, value, "Must be at least 1")
        if value > max_value:
            _raise_validation_error(
                field_name, value, f"Cannot exceed {max_value}, got {value}"
            )
        return value
