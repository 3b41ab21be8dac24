"""
Pytest Configuration and Fixtures for zkfss Tests
==================================================

Purpose
-------
Centralized fixtures for the zkfss test suite: an in-memory ZooKeeper stand-in
for unit tests and ready-made caches and services built on top of it.

Responsibilities
----------------
- FakeZooKeeperClient implementing the slice of the kazoo client zkfss uses
- WatchCache and ZKFeatureSwitchService fixtures wired to the fake
- Test environment flags

Non-Responsibilities
--------------------
- Real ZooKeeper (integration tests start one with testcontainers)

Architecture Notes
------------------
- The fake mirrors kazoo's DataWatch contract: the callback fires once on
  registration with the current snapshot, then on every change, and a
  callback returning False detaches the watch.
- Callbacks fire synchronously on the mutating thread. Pushes still reach the
  cache through its consumer thread, so tests call `flush()` before asserting
  on pushed values.
- WatchCache registers watches through `handler.spawn`, so the registration
  callback runs on a FakeHandler thread; `handler.join_all()` waits for them.
"""

from __future__ import annotations

import os
import threading
import time
from collections import Counter, defaultdict
from types import SimpleNamespace
from typing import Any, Callable, Dict, Generator, List, Optional, Union

import pytest

from zkfss.core.cache.watch_cache import WatchCache
from zkfss.modules.feature_switch.service import ZKFeatureSwitchService

# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================


def pytest_configure(config):
    """Configure pytest environment."""
    os.environ["ENVIRONMENT"] = "testing"
    os.environ["LOG_LEVEL"] = "DEBUG"


# ============================================================================
# FAKE ZOOKEEPER
# ============================================================================


class FakeDataWatch:
    """A registered data watch on FakeZooKeeperClient."""

    def __init__(self, client: "FakeZooKeeperClient", path: str, func: Callable) -> None:
        self.client = client
        self.path = path
        self.func = func
        self.stopped = False

    def fire(self, data: Optional[bytes], event: Any) -> None:
        if self.stopped:
            return
        stat = SimpleNamespace(version=0) if data is not None else None
        if self.func(data, stat, event) is False:
            self.stopped = True
            self.client._detach(self)


class FakeHandler:
    """Mirrors kazoo's threading handler: spawn runs a daemon thread."""

    def __init__(self) -> None:
        self.spawned: List[threading.Thread] = []

    def spawn(self, func: Callable, *args: Any, **kwargs: Any) -> threading.Thread:
        thread = threading.Thread(target=func, args=args, kwargs=kwargs, daemon=True)
        thread.start()
        self.spawned.append(thread)
        return thread

    def join_all(self, timeout: float = 5.0) -> None:
        for thread in list(self.spawned):
            thread.join(timeout)


class FakeZooKeeperClient:
    """
    In-memory stand-in for kazoo.client.KazooClient.

    Test controls
    -------------
    - set / delete: mutate a node and fire its watches
    - fail_paths: path -> exception raised by DataWatch
    - silent_paths: DataWatch registers but never delivers a snapshot
    - watch_delay: seconds DataWatch sleeps before the first callback, like a
  read stuck retrying on a suspended session
    """

    def __init__(self) -> None:
        self.nodes: Dict[str, bytes] = {}
        self.watches: Dict[str, List[FakeDataWatch]] = defaultdict(list)
        self.data_watch_calls: Counter = Counter()
        self.listeners: List[Callable] = []

        self.fail_paths: Dict[str, Exception] = {}
        self.silent_paths: set = set()
        self.watch_delay: float = 0.0
        self.handler = FakeHandler()

        self.connected = False
        self.start_calls = 0
        self.stop_calls = 0
        self.close_calls = 0
        self._lock = threading.Lock()

    # Lifecycle ---------------------------------------------------------------

    def start(self, timeout: Optional[float] = None) -> None:
        self.start_calls += 1
        self.connected = True

    def stop(self) -> None:
        self.stop_calls += 1
        self.connected = False

    def close(self) -> None:
        self.close_calls += 1

    def add_listener(self, listener: Callable) -> None:
        self.listeners.append(listener)

    def remove_listener(self, listener: Callable) -> None:
        self.listeners.remove(listener)

    # Watches -----------------------------------------------------------------

    def DataWatch(self, path: str, func: Callable) -> FakeDataWatch:
        with self._lock:
            self.data_watch_calls[path] += 1
        if path in self.fail_paths:
            raise self.fail_paths[path]
        if self.watch_delay:
            time.sleep(self.watch_delay)

        watch = FakeDataWatch(self, path, func)
        with self._lock:
            self.watches[path].append(watch)
        if path not in self.silent_paths:
            watch.fire(self.nodes.get(path), None)
        return watch

    def _detach(self, watch: FakeDataWatch) -> None:
        with self._lock:
            if watch in self.watches[watch.path]:
                self.watches[watch.path].remove(watch)

    def active_watches(self, path: str) -> int:
        with self._lock:
            return len(self.watches[path])

    # Store mutation ----------------------------------------------------------

    def set(self, path: str, value: Union[str, bytes]) -> None:
        data = value.encode("utf-8") if isinstance(value, str) else value
        event_type = "CHANGED" if path in self.nodes else "CREATED"
        self.nodes[path] = data
        self._fire(path, data, SimpleNamespace(type=event_type, path=path))

    def delete(self, path: str) -> None:
        self.nodes.pop(path, None)
        self._fire(path, None, SimpleNamespace(type="DELETED", path=path))

    def _fire(self, path: str, data: Optional[bytes], event: Any) -> None:
        with self._lock:
            watches = list(self.watches[path])
        for watch in watches:
            watch.fire(data, event)


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def fake_zk() -> FakeZooKeeperClient:
    """Fresh in-memory ZooKeeper for each test."""
    return FakeZooKeeperClient()


@pytest.fixture
def watch_cache(fake_zk) -> Generator[WatchCache, None, None]:
    """Open WatchCache on the fake client with a short prime timeout."""
    cache = WatchCache(fake_zk, prime_timeout=1.0)
    cache.open()
    yield cache
    cache.close()


@pytest.fixture
def service(fake_zk) -> Generator[ZKFeatureSwitchService, None, None]:
    """
    Stopped service with the fake client injected and hostname pinned to
    "test-host". Stopped again on teardown if a test left it running.
    """
    svc = ZKFeatureSwitchService().set_client(fake_zk).set_hostname("test-host")
    yield svc
    svc.stop()


@pytest.fixture
def owned_zk(mocker, fake_zk) -> FakeZooKeeperClient:
    """Make service-created KazooClients come out as the fake."""
    mocker.patch("zkfss.core.zookeeper.client.KazooClient", return_value=fake_zk)
    return fake_zk
