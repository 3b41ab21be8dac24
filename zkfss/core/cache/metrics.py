"""
Watch cache metrics for zkfss.

Purpose
-------
Thread-safe counters for the watch cache: how often lookups were served from
cache, how many watches were installed (each install is a ZooKeeper round
trip), how many pushes were applied, and how many pushes failed or carried
data that could not be parsed.

Architecture Notes
------------------
- One instance per WatchCache, so two services never share counters
- Guarded by a threading.Lock: lookups run on caller threads while pushes
  are applied on the cache's event consumer thread
- Derived metrics are calculated on demand from raw counters
"""

import threading
from typing import Any, Dict


def _zeroed() -> Dict[str, Any]:
    return {
        "hits": 0,
        "watch_installs": 0,
        "install_failures": 0,
        "updates": 0,
        "update_errors": 0,
        "parse_anomalies": 0,
        "releases": 0,
        "total_install_time_ms": 0.0,
    }


class WatchCacheMetrics:
    """
    Thread-safe watch cache metrics tracker.

    Example
    -------
    >>> metrics = WatchCacheMetrics()
    >>> metrics.record_hit()
    >>> metrics.get_metrics()["hits"]
    1
    """

    def __init__(self) -> None:
        self._metrics: Dict[str, Any] = _zeroed()
        self._lock = threading.Lock()

    def record_hit(self) -> None:
        """Record a lookup served from an already-watched path."""
        with self._lock:
            self._metrics["hits"] += 1

    def record_install(self, elapsed_ms: float) -> None:
        """
        Record a successful watch install and its latency.

        Parameters
        ----------
        elapsed_ms:
            Time from DataWatch creation to primed snapshot, in milliseconds.
        """
        with self._lock:
            self._metrics["watch_installs"] += 1
            self._metrics["total_install_time_ms"] += elapsed_ms

    def record_install_failure(self) -> None:
        with self._lock:
            self._metrics["install_failures"] += 1

    def record_update(self) -> None:
        """Record a pushed value applied to a cache entry."""
        with self._lock:
            self._metrics["updates"] += 1

    def record_update_error(self) -> None:
        with self._lock:
            self._metrics["update_errors"] += 1

    def record_parse_anomaly(self) -> None:
        """Record stored data that was neither a true nor a false encoding."""
        with self._lock:
            self._metrics["parse_anomalies"] += 1

    def record_releases(self, count: int) -> None:
        with self._lock:
            self._metrics["releases"] += count

    def get_metrics(self) -> Dict[str, Any]:
        """
        Get raw counters plus derived metrics.

        Returns
        -------
        Dict[str, Any]
            Raw counters and:
            - lookups: hits + watch installs
            - hit_rate: percentage of lookups served without a round trip
            - avg_install_time_ms: mean watch install latency
        """
        with self._lock:
            snapshot = dict(self._metrics)

        lookups = snapshot["hits"] + snapshot["watch_installs"]
        hit_rate = (snapshot["hits"] / lookups * 100) if lookups > 0 else 0.0
        avg_install = (
            snapshot["total_install_time_ms"] / snapshot["watch_installs"]
            if snapshot["watch_installs"] > 0
            else 0.0
        )

        snapshot["lookups"] = lookups
        snapshot["hit_rate"] = round(hit_rate, 2)
        snapshot["avg_install_time_ms"] = round(avg_install, 2)
        snapshot["total_install_time_ms"] = round(snapshot["total_install_time_ms"], 2)
        return snapshot

    def reset_metrics(self) -> None:
        """Reset all counters to zero."""
        with self._lock:
            self._metrics = _zeroed()
