"""
Infrastructure exceptions for Capture Stats.

Purpose
-------
Define the structured exception hierarchy for infrastructure-level concerns:
store failures, configuration errors and database lifecycle errors.

Design Notes
------------
- All infrastructure exceptions inherit from
  `CaptureStatsInfrastructureException`.
- Each exception carries:
  - `message`: human-readable description
  - `details`: additional structured context (dict)
  - `severity`: `ErrorSeverity` value for logging/alerting
  - `is_retryable`: whether the operation can be retried
  - `error_code`: short, stable identifier for programmatic use
- `StoreError` is the single type callers catch for "the store did not give
  us an answer". Its two concrete forms mirror the two ways a unit of work
  fails: it never obtained a connection, or it obtained one and was rolled
  back.
- A cache miss is not an exception. Caches return `None`.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels for logging and alerting."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class CaptureStatsInfrastructureException(Exception):
    """
    Base exception for all infrastructure-level errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error
        severity: Error severity level for logging handlers
        is_retryable: Whether the operation can be retried
        error_code: Optional code for programmatic handling

    Example:
        >>> raise CaptureStatsInfrastructureException(
        ...     "Store unreachable",
        ...     {"host": "localhost", "port": 5432}
        ... )
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message: str = message
        self.details: Dict[str, Any] = details or {}
        self.severity: ErrorSeverity = severity or self.DEFAULT_SEVERITY
        self.is_retryable: bool = (
            is_retryable if is_retryable is not None else self.DEFAULT_RETRYABLE
        )
        self.error_code: str = error_code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"severity={self.severity.value!r}, "
            f"is_retryable={self.is_retryable!r}"
            ")"
        )


class ConfigurationError(CaptureStatsInfrastructureException):
    """
    Raised when a configuration key is invalid or missing.

    Args:
        config_key: The configuration key that has issues
        message: Description of the configuration problem
    """

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL
    DEFAULT_RETRYABLE = False

    def __init__(self, config_key: str, message: str) -> None:
        self.config_key = config_key
        super().__init__(
            f"Configuration error for {config_key}: {message}",
            details={
                "config_key": config_key,
                "message": message,
            },
            error_code="CONFIG_ERROR",
        )


class DatabaseInitializationError(CaptureStatsInfrastructureException):
    """Raised when the database engine cannot be created or verified."""

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL

    def __init__(self, message: str) -> None:
        super().__init__(message, error_code="DATABASE_INIT_ERROR")


class DatabaseNotInitializedError(CaptureStatsInfrastructureException):
    """Raised when a session is requested before `initialize()` or after `shutdown()`."""

    def __init__(self, message: str) -> None:
        super().__init__(message, error_code="DATABASE_NOT_INITIALIZED")


class StoreError(CaptureStatsInfrastructureException):
    """
    Base class for failures of a stats store operation.

    Args:
        operation: Name of the store operation that failed
        message: Description of the failure
        original_error: The underlying exception, when there is one
    """

    DEFAULT_SEVERITY = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE = False
    ERROR_CODE = "STORE_ERROR"

    def __init__(
        self,
        operation: str,
        message: str,
        original_error: Optional[BaseException] = None,
        **details: Any,
    ) -> None:
        self.operation = operation
        self.original_error = original_error
        super().__init__(
            f"Store error during {operation}: {message}",
            details={
                "operation": operation,
                "error": str(original_error) if original_error else message,
                "error_type": (
                    type(original_error).__name__ if original_error else None
                ),
                **details,
            },
            error_code=self.ERROR_CODE,
        )


class ConnectionAcquisitionFailure(StoreError):
    """
    Raised when no pooled connection could be obtained in time.

    The pool was exhausted, the acquisition timed out, or the database
    refused the connection. Nothing was written.
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    DEFAULT_RETRYABLE = True
    ERROR_CODE = "CONNECTION_ACQUISITION_FAILED"


class TransactionFailure(StoreError):
    """
    Raised when a unit of work failed after a connection was obtained.

    Covers constraint violations, mid-transaction database errors and
    execution timeouts. The transaction has been rolled back.
    """

    DEFAULT_SEVERITY = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE = False
    ERROR_CODE = "TRANSACTION_FAILED"


def is_transient_error(exc: BaseException) -> bool:
    """
    Check if an exception represents a transient error that can be retried.

    Args:
        exc: Exception to check

    Returns:
        True if error is retryable, False otherwise.
    """
    if isinstance(exc, CaptureStatsInfrastructureException):
        return exc.is_retryable
    return False


def get_error_severity(exc: BaseException) -> ErrorSeverity:
    """Get the severity level of an exception for logging."""
    if isinstance(exc, CaptureStatsInfrastructureException):
        return exc.severity
    return ErrorSeverity.ERROR
