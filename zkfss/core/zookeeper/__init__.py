"""
ZooKeeper infrastructure for zkfss.

Exports
-------
ZooKeeperConnection - lifecycle of one kazoo client (owned or injected)
exponential_backoff_retry - KazooRetry factory for owned clients
resolve_local_hostname - hostname lookup for the hostname sub-key
"""

from zkfss.core.zookeeper.client import ZooKeeperConnection, resolve_local_hostname
from zkfss.core.zookeeper.retry_policy import exponential_backoff_retry

__all__ = [
    "ZooKeeperConnection",
    "exponential_backoff_retry",
    "resolve_local_hostname",
]
