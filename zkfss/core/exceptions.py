"""
Exception hierarchy for zkfss.

Purpose
-------
Define the structured exceptions raised by the feature switch service and its
infrastructure: lifecycle misuse, malformed feature keys, connectivity
failures against ZooKeeper, and invalid configuration.

Design Notes
------------
- All exceptions inherit from `FeatureSwitchError`.
- Each exception carries:
  - `message`: human-readable description
  - `details`: additional structured context (dict)
  - `severity`: `ErrorSeverity` value for logging/alerting
  - `is_retryable`: whether the operation can be retried
  - `error_code`: short, stable identifier for programmatic use
- A stored value that is neither a true nor a false encoding is NOT an error:
  it degrades to "unset" inside the watch cache and never surfaces here.
- Helper functions (`is_transient_error`, `get_error_severity`, `should_alert`)
  centralize common exception handling patterns.

Hierarchy
---------
FeatureSwitchError
├── ServiceStateError        (lookup before start, mutation while running)
├── KeyFormatError           (feature key violates ZooKeeper naming rules)
├── ConfigurationError       (invalid value handed to the config builder)
└── ConnectivityError        (cannot reach or stay connected to ZooKeeper)
    ├── HostnameResolutionError
    └── WatchInstallError
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


class FeatureSwitchError(Exception):
    """
    Base exception for all zkfss errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error
        severity: Error severity level for logging handlers
        is_retryable: Whether the operation can be retried
        error_code: Optional code for programmatic handling

    Example:
        >>> raise FeatureSwitchError(
        ...     "Lookup failed",
        ...     {"key": "checkout.v2"}
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


class ServiceStateError(FeatureSwitchError):
    """
    Raised when an operation is not allowed in the service's current state.

    Covers lookups on a stopped service and configuration changes on a
    running one. Never retried: the caller has a lifecycle bug.

    Args:
        operation: The operation that was attempted (e.g. "is_enabled")
        state: The state the service was in
        message: Optional override for the default message
    """

    DEFAULT_SEVERITY = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE = False

    def __init__(
        self,
        operation: str,
        state: str,
        message: Optional[str] = None,
    ) -> None:
        self.operation = operation
        self.state = state
        super().__init__(
            message or f"Operation '{operation}' is not allowed while service is {state}",
            details={"operation": operation, "state": state},
            error_code="SERVICE_STATE",
        )


class KeyFormatError(FeatureSwitchError):
    """
    Raised when a feature key (or a configured path segment) violates the
    ZooKeeper node naming rules.

    Args:
        key: The offending key
        reason: What rule was violated
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, key: str, reason: str) -> None:
        self.key = key
        self.reason = reason
        super().__init__(
            f"Invalid feature key {key!r}: {reason}",
            details={"key": key, "reason": reason},
            error_code="KEY_FORMAT",
        )


class ConfigurationError(FeatureSwitchError):
    """
    Raised when a configuration value is invalid.

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
            details={"config_key": config_key, "message": message},
            error_code="CONFIG_ERROR",
        )


class ConnectivityError(FeatureSwitchError):
    """
    Raised when the ZooKeeper connection cannot be established or used.

    Fatal to `start()`: no fallback value is substituted.

    Args:
        operation: Description of the operation that failed
        original_error: The underlying exception, if any
    """

    DEFAULT_SEVERITY = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE = True

    def __init__(
        self,
        operation: str,
        original_error: Optional[BaseException] = None,
        error_code: str = "CONNECTIVITY_ERROR",
    ) -> None:
        self.operation = operation
        self.original_error = original_error
        error_msg = str(original_error) if original_error else "no response"
        super().__init__(
            f"ZooKeeper error during {operation}: {error_msg}",
            details={
                "operation": operation,
                "error": error_msg,
                "error_type": (
                    type(original_error).__name__ if original_error else None
                ),
            },
            error_code=error_code,
        )


class HostnameResolutionError(ConnectivityError):
    """Raised when the local hostname cannot be determined at start."""

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL
    DEFAULT_RETRYABLE = False

    def __init__(self, original_error: Optional[BaseException] = None) -> None:
        super().__init__(
            "hostname resolution",
            original_error,
            error_code="HOSTNAME_RESOLUTION",
        )


class WatchInstallError(ConnectivityError):
    """
    Raised when a data watch cannot be installed or its initial snapshot
    does not arrive in time.

    Args:
        path: The ZooKeeper path being watched
        original_error: The underlying exception, if any
    """

    def __init__(
        self, path: str, original_error: Optional[BaseException] = None
    ) -> None:
        self.path = path
        super().__init__(
            f"watch install on {path}",
            original_error,
            error_code="WATCH_INSTALL",
        )
        self.details["path"] = path


# Utility functions for exception handling patterns


def is_transient_error(exc: Exception) -> bool:
    """
    Check if an exception represents a transient error that can be retried.

    Args:
        exc: Exception to check

    Returns:
        True if error is retryable, False otherwise.
    """
    if isinstance(exc, FeatureSwitchError):
        return exc.is_retryable
    return False


def get_error_severity(exc: Exception) -> ErrorSeverity:
    """
    Get the severity level of an exception for logging.

    Args:
        exc: Exception to check

    Returns:
        ErrorSeverity level.
    """
    if isinstance(exc, FeatureSwitchError):
        return exc.severity
    return ErrorSeverity.ERROR


def should_alert(exc: Exception) -> bool:
    """
    Determine if an exception should trigger alerting.

    Args:
        exc: Exception to check

    Returns:
        True if severity is ERROR or CRITICAL, False otherwise.
    """
    severity = get_error_severity(exc)
    return severity in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)
