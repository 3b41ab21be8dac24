"""
ZooKeeper retry policy for zkfss.

Purpose
-------
Build the kazoo retry policy used for connection attempts and commands of a
service-owned client.

Architecture Notes
------------------
- Exponential backoff: delay = min(base * backoff^attempt, max_delay)
- Default is 1s base sleep, 3 retries, doubling each attempt
- Only applies to clients the service creates; an injected client keeps
  whatever retry policy its owner gave it
"""

from __future__ import annotations

from kazoo.retry import KazooRetry

from zkfss.core.constants import (
    DEFAULT_RETRY_BACKOFF,
    DEFAULT_RETRY_BASE_SLEEP_MS,
    DEFAULT_RETRY_MAX_RETRIES,
    DEFAULT_RETRY_MAX_SLEEP_MS,
)
from zkfss.core.logging.logger import get_logger

logger = get_logger(__name__)


def exponential_backoff_retry(
    base_sleep_ms: int = DEFAULT_RETRY_BASE_SLEEP_MS,
    max_retries: int = DEFAULT_RETRY_MAX_RETRIES,
    backoff: float = DEFAULT_RETRY_BACKOFF,
    max_sleep_ms: int = DEFAULT_RETRY_MAX_SLEEP_MS,
) -> KazooRetry:
    """
    Create a KazooRetry with exponential backoff.

    Parameters
    ----------
    base_sleep_ms : int
        Delay before the first retry, in milliseconds
    max_retries : int
        Number of retries after the first attempt
    backoff : float
        Multiplier applied to the delay after each retry
    max_sleep_ms : int
        Upper bound for a single delay, in milliseconds

    Returns
    -------
    KazooRetry
        A fresh retry policy. KazooRetry keeps per-run state, so each client
        gets its own instance.
    """
    retry = KazooRetry(
        max_tries=max_retries,
        delay=base_sleep_ms / 1000.0,
        backoff=backoff,
        max_delay=max_sleep_ms / 1000.0,
    )
    logger.debug(
        "ZooKeeper retry policy created",
        extra={
            "base_sleep_ms": base_sleep_ms,
            "max_retries": max_retries,
            "backoff": backoff,
            "max_sleep_ms": max_sleep_ms,
        },
    )
    return retry
