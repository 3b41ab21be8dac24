"""
Static configuration management for zkfss.

Purpose
-------
Provides environment-driven defaults for the feature switch service and the
logging subsystem, with type validation and bounds checking. Values are read
from the process environment, optionally seeded from a `.env` file.

Responsibilities
----------------
- Load configuration from environment variables with .env support
- Provide type-safe access to all static configuration values
- Track which values came from the environment vs defaults

Non-Responsibilities
--------------------
- Per-service configuration (handled by FeatureSwitchConfig / its builder)
- Runtime configuration changes of a running service (not allowed)

Architecture Notes
------------------
- Singleton pattern via class methods (no instantiation)
- `Config.load()` is explicit; nothing is read until something asks for it
- The feature switch service never consults `Config` implicitly: callers opt
  in through `FeatureSwitchConfigBuilder.from_env()`

Environment Variables
---------------------
- ZKFSS_CONNECT_STRING: ZooKeeper connect string (default: localhost:2181)
- ZKFSS_CONNECTION_TIMEOUT_MS: connection timeout (default: 30000)
- ZKFSS_NAMESPACE: feature switch namespace (default: /zkfss/)
- ZKFSS_APPLICATION_NAME: application name sub-key (default: unset)
- ZKFSS_HOSTNAME_SUBKEY: hostname sub-key enabled (default: true)
- ZKFSS_HOSTNAME: explicit hostname sub-key value (default: resolved)
- ZKFSS_RETRY_BASE_SLEEP_MS: retry base sleep (default: 1000)
- ZKFSS_RETRY_MAX_RETRIES: retry count (default: 3)
- ENVIRONMENT: Environment type (default: development)
- LOG_LEVEL: Logging level (default: INFO)
- LOG_JSON: force JSON console logs (default: production only)
- LOG_COLORS: coloured console logs in development (default: true)
- LOGS_DIR: directory for the rotating JSON log file (default: disabled)
"""

import logging
import os
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from zkfss.core.constants import (
    DEFAULT_CONNECT_STRING,
    DEFAULT_CONNECTION_TIMEOUT_MS,
    DEFAULT_NAMESPACE,
    DEFAULT_RETRY_BASE_SLEEP_MS,
    DEFAULT_RETRY_MAX_RETRIES,
    MAX_CONNECTION_TIMEOUT_MS,
)

# Bootstrap logger: the structured logger depends on this module
_bootstrap_log = logging.getLogger(__name__)


# ============================================================================
# Enums and Constants
# ============================================================================


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
            _bootstrap_log.warning(
                f"Unknown environment '{value}', defaulting to development"
            )
            return cls.DEVELOPMENT


# ============================================================================
# Configuration Metrics Tracker
# ============================================================================


class _ConfigLoadMetrics:
    """
    Internal metrics tracker for configuration loading.

    Tracks which configuration values came from environment variables
    versus defaults, and any validation errors encountered.
    """

    def __init__(self):
        self.env_vars_loaded: Dict[str, bool] = {}
        self.validation_errors: Dict[str, str] = {}
        self.defaults_used: Dict[str, Any] = {}
        self.last_reload: Optional[str] = None

    def record_env_load(self, key: str, from_env: bool, value: Any, default: Any):
        """Record whether a config value came from environment."""
        self.env_vars_loaded[key] = from_env
        if not from_env:
            self.defaults_used[key] = default

    def record_validation_error(self, key: str, error: str):
        """Record a validation error."""
        self.validation_errors[key] = error

    def get_summary(self) -> Dict[str, Any]:
        """Get configuration loading summary."""
        return {
            "total_configs": len(self.env_vars_loaded),
            "from_environment": sum(1 for v in self.env_vars_loaded.values() if v),
            "from_defaults": sum(1 for v in self.env_vars_loaded.values() if not v),
            "validation_errors": len(self.validation_errors),
            "defaults_used": list(self.defaults_used.keys()),
            "last_reload": self.last_reload,
        }


# ============================================================================
# Main Configuration Class
# ============================================================================


class Config:
    """
    Centralized static configuration for zkfss.

    Usage
    -----
    >>> Config.load()
    >>> Config.ZKFSS_CONNECT_STRING
    'localhost:2181'
    >>> Config.is_production()
    False
    """

    # =========================================================================
    # Internal State
    # =========================================================================

    _metrics: Optional[_ConfigLoadMetrics] = None
    _loaded: bool = False

    # =========================================================================
    # ZooKeeper / Feature Switch Configuration
    # =========================================================================

    ZKFSS_CONNECT_STRING: str = DEFAULT_CONNECT_STRING
    ZKFSS_CONNECTION_TIMEOUT_MS: int = DEFAULT_CONNECTION_TIMEOUT_MS
    ZKFSS_NAMESPACE: str = DEFAULT_NAMESPACE
    ZKFSS_APPLICATION_NAME: Optional[str] = None
    ZKFSS_HOSTNAME_SUBKEY: bool = True
    ZKFSS_HOSTNAME: Optional[str] = None
    ZKFSS_RETRY_BASE_SLEEP_MS: int = DEFAULT_RETRY_BASE_SLEEP_MS
    ZKFSS_RETRY_MAX_RETRIES: int = DEFAULT_RETRY_MAX_RETRIES

    # =========================================================================
    # Environment / Logging Configuration
    # =========================================================================

    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_JSON: Optional[bool] = None
    LOG_COLORS: bool = True
    LOGS_DIR: Optional[Path] = None

    # =========================================================================
    # Helper Methods
    # =========================================================================

    @classmethod
    def _init_metrics(cls):
        if cls._metrics is None:
            cls._metrics = _ConfigLoadMetrics()

    @classmethod
    def _safe_int(
        cls,
        key: str,
        default: int,
        min_val: Optional[int] = None,
        max_val: Optional[int] = None,
    ) -> int:
        """
        Safely parse integer from environment with validation.

        Parameters
        ----------
        key:
            Environment variable name.
        default:
            Default value if not set or invalid.
        min_val:
            Minimum allowed value (inclusive).
        max_val:
            Maximum allowed value (inclusive).

        Example
        -------
        >>> Config._safe_int("ZKFSS_CONNECTION_TIMEOUT_MS", 30000, min_val=1)
        30000
        """
        cls._init_metrics()

        raw_value = os.getenv(key)

        if raw_value is None:
            cls._metrics.record_env_load(key, False, default, default)
            return default

        try:
            value = int(raw_value)
        except ValueError:
            error = f"{key}='{raw_value}' is not a valid integer, using default {default}"
            _bootstrap_log.warning(error)
            cls._metrics.record_validation_error(key, error)
            return default

        if min_val is not None and value < min_val:
            error = f"{key}={value} is below minimum {min_val}, using default {default}"
            _bootstrap_log.warning(error)
            cls._metrics.record_validation_error(key, error)
            return default

        if max_val is not None and value > max_val:
            error = f"{key}={value} exceeds maximum {max_val}, using default {default}"
            _bootstrap_log.warning(error)
            cls._metrics.record_validation_error(key, error)
            return default

        cls._metrics.record_env_load(key, True, value, default)
        return value

    @classmethod
    def _parse_bool(cls, key: str, raw_value: str) -> Optional[bool]:
        normalized = raw_value.lower().strip()
        if normalized in {"true", "yes", "1", "on"}:
            return True
        if normalized in {"false", "no", "0", "off"}:
            return False
        error = f"{key}='{raw_value}' is not a valid boolean"
        _bootstrap_log.warning(error)
        cls._metrics.record_validation_error(key, error)
        return None

    @classmethod
    def _safe_bool(cls, key: str, default: bool) -> bool:
        """
        Safely parse boolean from environment.

        Recognizes: true/false, yes/no, 1/0, on/off (case-insensitive).
        """
        cls._init_metrics()

        raw_value = os.getenv(key)
        if raw_value is None:
            cls._metrics.record_env_load(key, False, default, default)
            return default

        value = cls._parse_bool(key, raw_value)
        if value is None:
            return default

        cls._metrics.record_env_load(key, True, value, default)
        return value

    @classmethod
    def _safe_optional_bool(cls, key: str) -> Optional[bool]:
        cls._init_metrics()

        raw_value = os.getenv(key)
        if raw_value is None:
            cls._metrics.record_env_load(key, False, None, None)
            return None

        value = cls._parse_bool(key, raw_value)
        cls._metrics.record_env_load(key, value is not None, value, None)
        return value

    @classmethod
    def _safe_str(cls, key: str, default: Optional[str]) -> Optional[str]:
        """Safely get string from environment; empty strings count as unset."""
        cls._init_metrics()

        value = os.getenv(key)
        from_env = bool(value)
        cls._metrics.record_env_load(key, from_env, value, default)

        return value if from_env else default

    # =========================================================================
    # Configuration Loading
    # =========================================================================

    @classmethod
    def load(cls, dotenv_path: Optional[str] = None) -> None:
        """
        Load all configuration from environment variables with validation.

        Can be called again to pick up environment changes.

        Parameters
        ----------
        dotenv_path:
            Optional explicit `.env` file; by default python-dotenv searches
            upwards from the working directory. Existing environment
            variables always win over `.env` entries.
        """
        cls._metrics = _ConfigLoadMetrics()
        load_dotenv(dotenv_path)

        cls.ZKFSS_CONNECT_STRING = cls._safe_str(
            "ZKFSS_CONNECT_STRING", DEFAULT_CONNECT_STRING
        )
        cls.ZKFSS_CONNECTION_TIMEOUT_MS = cls._safe_int(
            "ZKFSS_CONNECTION_TIMEOUT_MS",
            DEFAULT_CONNECTION_TIMEOUT_MS,
            min_val=1,
            max_val=MAX_CONNECTION_TIMEOUT_MS,
        )
        cls.ZKFSS_NAMESPACE = cls._safe_str("ZKFSS_NAMESPACE", DEFAULT_NAMESPACE)
        cls.ZKFSS_APPLICATION_NAME = cls._safe_str("ZKFSS_APPLICATION_NAME", None)
        cls.ZKFSS_HOSTNAME_SUBKEY = cls._safe_bool("ZKFSS_HOSTNAME_SUBKEY", True)
        cls.ZKFSS_HOSTNAME = cls._safe_str("ZKFSS_HOSTNAME", None)
        cls.ZKFSS_RETRY_BASE_SLEEP_MS = cls._safe_int(
            "ZKFSS_RETRY_BASE_SLEEP_MS", DEFAULT_RETRY_BASE_SLEEP_MS, min_val=0
        )
        cls.ZKFSS_RETRY_MAX_RETRIES = cls._safe_int(
            "ZKFSS_RETRY_MAX_RETRIES", DEFAULT_RETRY_MAX_RETRIES, min_val=0, max_val=100
        )

        cls.ENVIRONMENT = Environment.from_string(
            cls._safe_str("ENVIRONMENT", "development")
        ).value
        cls.LOG_LEVEL = cls._safe_str("LOG_LEVEL", "INFO").upper()
        if cls.LOG_LEVEL not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            _bootstrap_log.warning(f"Invalid LOG_LEVEL '{cls.LOG_LEVEL}', using INFO")
            cls.LOG_LEVEL = "INFO"
        cls.LOG_JSON = cls._safe_optional_bool("LOG_JSON")
        cls.LOG_COLORS = cls._safe_bool("LOG_COLORS", True)
        logs_dir = cls._safe_str("LOGS_DIR", None)
        cls.LOGS_DIR = Path(logs_dir).resolve() if logs_dir else None

        cls._metrics.last_reload = datetime.now(timezone.utc).isoformat()
        cls._loaded = True

        if cls._metrics.validation_errors:
            _bootstrap_log.warning(
                f"Configuration warnings: {cls._metrics.validation_errors}"
            )

    @classmethod
    def ensure_loaded(cls) -> None:
        """Load configuration once; later calls are no-ops."""
        if not cls._loaded:
            cls.load()

    # =========================================================================
    # Environment Checks
    # =========================================================================

    @classmethod
    def is_production(cls) -> bool:
        """Check if running in production environment."""
        return cls.ENVIRONMENT.lower() == "production"

    @classmethod
    def is_testing(cls) -> bool:
        """Check if running in testing environment."""
        return cls.ENVIRONMENT.lower() == "testing"

    # =========================================================================
    # Metrics & Summary
    # =========================================================================

    @classmethod
    def get_metrics(cls) -> Optional[_ConfigLoadMetrics]:
        """Get configuration loading metrics."""
        return cls._metrics

    @classmethod
    def get_config_summary(cls) -> Dict[str, Any]:
        """
        Get configuration summary for debugging.

        The connect string may embed credentials (digest auth), so only its
        presence is reported.
        """
        return {
            "environment": cls.ENVIRONMENT,
            "log_level": cls.LOG_LEVEL,
            "namespace": cls.ZKFSS_NAMESPACE,
            "application_name": cls.ZKFSS_APPLICATION_NAME,
            "hostname_subkey": cls.ZKFSS_HOSTNAME_SUBKEY,
            "connection_timeout_ms": cls.ZKFSS_CONNECTION_TIMEOUT_MS,
            "retry_max_retries": cls.ZKFSS_RETRY_MAX_RETRIES,
            "connect_string_set": bool(cls.ZKFSS_CONNECT_STRING),
        }
