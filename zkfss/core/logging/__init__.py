"""
zkfss Logging Infrastructure

Exports the opt-in logging stack and the lookup context manager.
"""

from zkfss.core.logging.logger import (
    LogContext,
    LoggingHealth,
    LogSettings,
    get_logger,
    get_logging_health,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    "setup_logging",
    "shutdown_logging",
    "get_logger",
    "get_logging_health",
    "LogContext",
    "LogSettings",
    "LoggingHealth",
]
