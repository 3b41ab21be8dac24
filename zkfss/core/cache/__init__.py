"""
Watch cache subsystem for zkfss.

Exports
-------
WatchCache - lazy path -> TriState cache backed by ZooKeeper data watches
CacheEntry - cached state of one watched path
TriState - true / false / unset
WatchUpdate - pushed change published by a watch callback
WatchCacheMetrics - thread-safe cache counters
parse_tri_state - raw node data -> TriState
"""

from zkfss.core.cache.metrics import WatchCacheMetrics
from zkfss.core.cache.watch_cache import (
    CacheEntry,
    TriState,
    WatchCache,
    WatchUpdate,
    parse_tri_state,
)

__all__ = [
    "WatchCache",
    "CacheEntry",
    "TriState",
    "WatchUpdate",
    "WatchCacheMetrics",
    "parse_tri_state",
]
