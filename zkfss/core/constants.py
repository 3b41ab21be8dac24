"""
zkfss Infrastructure Constants

Purpose
-------
Defaults and limits for the ZooKeeper connection, the retry policy, the
feature switch namespace and the watch cache.

Design Notes
------------
- Values are annotated with typing.Final to signal immutability
- Grouped by functional area for easy scanning
- No side effects at import time
"""

from __future__ import annotations

from typing import Final, FrozenSet

# ============================================================================
# NAMESPACE
# ============================================================================

PATH_SEPARATOR: Final[str] = "/"
DEFAULT_NAMESPACE: Final[str] = "/zkfss/"

# ============================================================================
# ZOOKEEPER CONNECTION
# ============================================================================

DEFAULT_CONNECT_STRING: Final[str] = "localhost:2181"
DEFAULT_CONNECTION_TIMEOUT_MS: Final[int] = 30_000
MAX_CONNECTION_TIMEOUT_MS: Final[int] = 600_000

# Exponential backoff: 1s base sleep, 3 retries, doubling each attempt
DEFAULT_RETRY_BASE_SLEEP_MS: Final[int] = 1_000
DEFAULT_RETRY_MAX_RETRIES: Final[int] = 3
DEFAULT_RETRY_BACKOFF: Final[float] = 2.0
DEFAULT_RETRY_MAX_SLEEP_MS: Final[int] = 60_000

# ============================================================================
# STORED VALUE ENCODINGS
# ============================================================================

# "true"/"false" match case-insensitively, "1"/"0" exactly
TRUE_ENCODINGS: Final[FrozenSet[str]] = frozenset({"true", "1"})
FALSE_ENCODINGS: Final[FrozenSet[str]] = frozenset({"false", "0"})

# ============================================================================
# WATCH CACHE
# ============================================================================

WATCH_EVENT_THREAD_NAME: Final[str] = "zkfss-watch-events"
WATCH_EVENT_THREAD_JOIN_SECONDS: Final[float] = 5.0
DEFAULT_FLUSH_TIMEOUT_SECONDS: Final[float] = 5.0
