"""
Lazy, push-invalidated watch cache for zkfss.

Purpose
-------
Keep the last observed boolean value of every ZooKeeper path a lookup has
touched, without polling. The first lookup of a path installs a data watch
and blocks until its initial snapshot arrives; every later lookup of that
path is answered from memory. ZooKeeper pushes keep the entries current for
as long as the cache is open.

Responsibilities
----------------
- Own the path -> CacheEntry mapping for one service instance
- Install exactly one data watch per path, lazily, on first lookup
- Parse raw node data into TriState (true / false / unset)
- Apply pushed changes through a single consumer thread
- Release every watch and clear the mapping on close

Non-Responsibilities
--------------------
- Connecting to ZooKeeper (handled by zkfss.core.zookeeper)
- Deciding which paths to probe or in which order (handled by the resolver)

Architecture Notes
------------------
- A cache hit never takes the cache lock: it is a dict read, an attribute
  read and a hit counter bump, which holds the metrics lock for one
  increment.
- Concurrent first lookups of the same path race on an insert-if-absent
  under a short lock. The winner performs the blocking install outside the
  lock; losers wait on the entry's `ready` event and share its outcome.
- Push callbacks run on kazoo's event thread. They never touch the mapping:
  they publish WatchUpdate messages onto a queue, and one consumer thread
  applies them in arrival order, so the last push for a path wins.
- The data watch is registered on a thread from the client handler, and
  the installing caller waits at most `prime_timeout` for the initial
  snapshot. The snapshot is applied directly to the entry, so `resolve()`
  can return the primed value.
- A data watch is released by returning False from its callback; closing
  marks every entry released so the next callback detaches it.

Value Encoding
--------------
"true" (any case) or "1" -> TRUE; "false" (any case) or "0" -> FALSE;
a missing node, empty data, undecodable bytes or any other text -> UNSET.
"""

from __future__ import annotations

import queue
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from zkfss.core.cache.metrics import WatchCacheMetrics
from zkfss.core.constants import (
    DEFAULT_FLUSH_TIMEOUT_SECONDS,
    FALSE_ENCODINGS,
    TRUE_ENCODINGS,
    WATCH_EVENT_THREAD_JOIN_SECONDS,
    WATCH_EVENT_THREAD_NAME,
)
from zkfss.core.exceptions import ServiceStateError, WatchInstallError
from zkfss.core.logging.logger import LogContext, get_logger

logger = get_logger(__name__)


class TriState(Enum):
    """Last observed value of a watched path."""

    TRUE = "true"
    FALSE = "false"
    UNSET = "unset"

    @property
    def is_set(self) -> bool:
        return self is not TriState.UNSET

    def as_bool(self) -> Optional[bool]:
        """Map to True/False, or None for UNSET."""
        if self is TriState.UNSET:
            return None
        return self is TriState.TRUE


def parse_tri_state(data: Union[bytes, str, None]) -> TriState:
    """
    Interpret raw node data as a TriState.

    Example
    -------
    >>> parse_tri_state(b"TRUE")
    <TriState.TRUE: 'true'>
    >>> parse_tri_state(b"maybe")
    <TriState.UNSET: 'unset'>
    >>> parse_tri_state(None)
    <TriState.UNSET: 'unset'>
    """
    if not data:
        return TriState.UNSET

    if isinstance(data, bytes):
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError:
            return TriState.UNSET
    elif isinstance(data, str):
        text = data
    else:
        return TriState.UNSET

    if text in TRUE_ENCODINGS or text.lower() == "true":
        return TriState.TRUE
    if text in FALSE_ENCODINGS or text.lower() == "false":
        return TriState.FALSE
    return TriState.UNSET


@dataclass(eq=False)
class CacheEntry:
    """
    Cached state of one watched path.

    `primed` is set once the initial snapshot has been applied, `ready` once
    the install finished (successfully or not; see `error`).
    """

    path: str
    value: TriState = TriState.UNSET
    watch: Any = None
    error: Optional[BaseException] = None
    released: bool = False
    primed: threading.Event = field(default_factory=threading.Event)
    ready: threading.Event = field(default_factory=threading.Event)


@dataclass(frozen=True)
class WatchUpdate:
    """A pushed change for one path, published by a watch callback."""

    entry: CacheEntry
    value: Optional[TriState]
    error: Optional[BaseException] = None

    @property
    def path(self) -> str:
        return self.entry.path


@dataclass(frozen=True)
class _FlushMarker:
    done: threading.Event = field(default_factory=threading.Event)


_STOP = object()


class WatchCache:
    """
    Path -> TriState cache backed by lazily installed ZooKeeper data watches.

    Parameters
    ----------
    client:
        A started kazoo client (anything exposing `DataWatch(path, func)` and
        `handler.spawn(func)`).
    prime_timeout:
        Seconds to wait for a new watch's initial snapshot.
    metrics:
        Optional metrics tracker; a private one is created if omitted.

    Example
    -------
    >>> cache = WatchCache(client, prime_timeout=30.0)
    >>> cache.open()
    >>> cache.resolve("/zkfss/checkout")
    <TriState.UNSET: 'unset'>
    >>> cache.close()
    """

    def __init__(
        self,
        client: Any,
        prime_timeout: float,
        metrics: Optional[WatchCacheMetrics] = None,
    ) -> None:
        self._client = client
        self._prime_timeout = prime_timeout
        self._metrics = metrics or WatchCacheMetrics()

        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._events: "queue.Queue[Any]" = queue.Queue()
        self._consumer: Optional[threading.Thread] = None
        self._opened = False
        self._closed = False

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def open(self) -> None:
        """Start the event consumer thread. A closed cache cannot be reopened."""
        with self._lock:
            if self._closed:
                raise ServiceStateError("open", "closed", "WatchCache cannot be reopened")
            if self._opened:
                return
            self._opened = True

        self._consumer = threading.Thread(
            target=self._consume,
            name=WATCH_EVENT_THREAD_NAME,
            daemon=True,
        )
        self._consumer.start()
        logger.debug("WatchCache opened")

    def close(self) -> None:
        """Release every watch, clear the mapping and stop the consumer."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            entries = list(self._entries.values())
            self._entries.clear()

        for entry in entries:
            entry.released = True
            entry.watch = None
        self._metrics.record_releases(len(entries))

        if self._consumer is not None:
            self._events.put(_STOP)
            self._consumer.join(WATCH_EVENT_THREAD_JOIN_SECONDS)
            if self._consumer.is_alive():
                logger.warning("Watch event consumer did not stop in time")
            self._consumer = None

        logger.debug("WatchCache closed", extra={"released_watches": len(entries)})

    @property
    def is_open(self) -> bool:
        return self._opened and not self._closed

    # =========================================================================
    # LOOKUP
    # =========================================================================

    def resolve(self, path: str) -> TriState:
        """
        Return the cached TriState for `path`, installing a watch first if
        the path has never been looked up.

        Only the first lookup of a path performs I/O; it blocks until the
        watch delivers the node's current value.

        Raises
        ------
        ServiceStateError
            If the cache is not open.
        WatchInstallError
            If the watch could not be installed or primed in time.
        """
        if not self.is_open:
            raise ServiceStateError("resolve", "closed")

        entry = self._entries.get(path)
        if entry is None:
            entry, owner = self._claim(path)
            if owner:
                with LogContext(operation="install_watch", zk_path=path):
                    self._install(entry)
                return entry.value

        if not entry.ready.is_set():
            entry.ready.wait()

        if entry.error is not None:
            raise WatchInstallError(path, entry.error)

        self._metrics.record_hit()
        return entry.value

    def _claim(self, path: str) -> Tuple[CacheEntry, bool]:
        """Atomically fetch the entry for `path` or insert a new one."""
        with self._lock:
            if self._closed:
                raise ServiceStateError("resolve", "closed")
            entry = self._entries.get(path)
            if entry is not None:
                return entry, False
            entry = CacheEntry(path=path)
            self._entries[path] = entry
            return entry, True

    def _install(self, entry: CacheEntry) -> None:
        started = time.perf_counter()
        failures: List[BaseException] = []

        def register() -> None:
            try:
                watch = self._client.DataWatch(entry.path, self._make_watcher(entry))
            except Exception as exc:
                failures.append(exc)
                entry.primed.set()
                return
            if not entry.released:
                entry.watch = watch

        try:
            # kazoo retries the first read without limit while the session is
            # suspended, so the registration runs off the calling thread
            self._client.handler.spawn(register)
            if not entry.primed.wait(self._prime_timeout):
                raise TimeoutError(
                    f"no initial snapshot within {self._prime_timeout:.1f}s"
                )
            if failures:
                raise failures[0]
        except Exception as exc:
            entry.released = True
            entry.error = exc
            with self._lock:
                if self._entries.get(entry.path) is entry:
                    del self._entries[entry.path]
            self._metrics.record_install_failure()
            logger.warning(
                "Failed to install data watch",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            entry.ready.set()
            raise WatchInstallError(entry.path, exc) from exc

        entry.ready.set()

        elapsed_ms = (time.perf_counter() - started) * 1000
        self._metrics.record_install(elapsed_ms)
        logger.debug(
            "Data watch installed",
            extra={
                "value": entry.value.value,
                "install_time_ms": round(elapsed_ms, 2),
            },
        )

    # =========================================================================
    # PUSH HANDLING
    # =========================================================================

    def _make_watcher(self, entry: CacheEntry) -> Callable[[Any, Any, Any], Optional[bool]]:
        def watcher(data: Any, stat: Any, event: Any) -> Optional[bool]:
            if entry.released:
                return False

            try:
                value = parse_tri_state(data)
            except Exception as exc:
                if not entry.primed.is_set():
                    entry.primed.set()
                else:
                    self._events.put(WatchUpdate(entry, None, exc))
                return None

            if value is TriState.UNSET and data:
                self._metrics.record_parse_anomaly()
                logger.debug(
                    "Unrecognized feature switch value treated as unset",
                    extra={"zk_path": entry.path, "raw_value": repr(data)[:64]},
                )

            if not entry.primed.is_set():
                entry.value = value
                entry.primed.set()
            else:
                self._events.put(WatchUpdate(entry, value))
            return None

        return watcher

    def _consume(self) -> None:
        while True:
            message = self._events.get()
            try:
                if message is _STOP:
                    return
                if isinstance(message, _FlushMarker):
                    message.done.set()
                    continue
                with LogContext(operation="apply_push", zk_path=message.path):
                    self._apply(message)
            except Exception:
                self._metrics.record_update_error()
                logger.exception("Failed to apply watch update")
            finally:
                self._events.task_done()

    def _apply(self, update: WatchUpdate) -> None:
        entry = update.entry
        if entry.released or self._entries.get(entry.path) is not entry:
            return

        if update.error is not None:
            self._metrics.record_update_error()
            logger.warning(
                "Watch callback failed; keeping last known value",
                extra={
                    "retained_value": entry.value.value,
                    "error": str(update.error),
                    "error_type": type(update.error).__name__,
                },
            )
            return

        previous = entry.value
        entry.value = update.value
        self._metrics.record_update()
        logger.debug(
            "Feature switch value pushed",
            extra={
                "previous": previous.value,
                "value": update.value.value,
            },
        )

    def flush(self, timeout: float = DEFAULT_FLUSH_TIMEOUT_SECONDS) -> bool:
        """
        Wait until every update published so far has been applied.

        Returns
        -------
        bool
            True if the queue drained within `timeout` (or the cache is closed).
        """
        if self._closed:
            return True
        if self._consumer is None:
            return False
        marker = _FlushMarker()
        self._events.put(marker)
        return marker.done.wait(timeout)

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    @property
    def metrics(self) -> WatchCacheMetrics:
        return self._metrics

    def watched_paths(self) -> List[str]:
        with self._lock:
            return sorted(self._entries)

    def snapshot(self) -> Dict[str, Optional[bool]]:
        """Current value of every installed watch, keyed by path."""
        with self._lock:
            entries = list(self._entries.values())
        return {
            entry.path: entry.value.as_bool()
            for entry in entries
            if entry.ready.is_set() and entry.error is None
        }

    def __contains__(self, path: object) -> bool:
        return path in self._entries

    def __len__(self) -> int:
        return len(self._entries)
