"""
Core infrastructure layer for zkfss.

Purpose
-------
Provide a single import surface for the infrastructure the feature switch
module is built on:

- Configuration (Config)
- ZooKeeper connection management (ZooKeeperConnection)
- Watch cache (WatchCache, TriState)
- Logging (structured logging, logger factory)
- Validation (KeyValidator)
- Exceptions (FeatureSwitchError hierarchy)

Non-Responsibilities
--------------------
- Implement infra logic (delegated to submodules)
- Any side effects beyond simple re-exports
"""

from __future__ import annotations

from zkfss.core.cache import TriState, WatchCache, WatchCacheMetrics
from zkfss.core.config import Config
from zkfss.core.exceptions import (
    ConfigurationError,
    ConnectivityError,
    ErrorSeverity,
    FeatureSwitchError,
    HostnameResolutionError,
    KeyFormatError,
    ServiceStateError,
    WatchInstallError,
)
from zkfss.core.logging import get_logger, setup_logging
from zkfss.core.validation import KeyValidator
from zkfss.core.zookeeper import ZooKeeperConnection

__all__ = [
    # Configuration
    "Config",
    # ZooKeeper
    "ZooKeeperConnection",
    # Cache
    "WatchCache",
    "WatchCacheMetrics",
    "TriState",
    # Logging
    "setup_logging",
    "get_logger",
    # Validation
    "KeyValidator",
    # Exceptions
    "FeatureSwitchError",
    "ServiceStateError",
    "KeyFormatError",
    "ConfigurationError",
    "ConnectivityError",
    "HostnameResolutionError",
    "WatchInstallError",
    "ErrorSeverity",
]
