"""
ZooKeeper-backed feature switch service.

Purpose
-------
Answer `is_enabled(key)` from hierarchical overrides stored in ZooKeeper,
most specific first:

    {namespace}{key}/{application_name}/{hostname}
    {namespace}{key}/{application_name}
    {namespace}{key}/{hostname}
    {namespace}{key}

Responsibilities
----------------
- Gate configuration (stopped only) and lookups (running only)
- Freeze the builder into an immutable FeatureSwitchConfig on start
- Own the ZooKeeper connection, hostname resolution and WatchCache of a run
- Tear everything down on stop, leaving the instance restartable

Non-Responsibilities
--------------------
- Path expansion (KeyPathBuilder) and precedence (PrecedenceResolver)
- Watch management (WatchCache)
- Writing switch values; operators manage nodes with their own tooling

Architecture Notes
------------------
Startup order:
    1. Freeze configuration
    2. Resolve hostname sub-key (fail fast, nothing to clean up yet)
    3. Open the ZooKeeper connection (owned or injected client)
    4. Open the WatchCache and bind a PrecedenceResolver

Shutdown order (reverse):
    1. Drop the resolver so new lookups fail with ServiceStateError
    2. Close the WatchCache, releasing every watch
    3. Stop and close the ZooKeeper client

Lookups never take the lifecycle lock; they read the current resolver once
and work against it.

Usage
-----
>>> service = ZKFeatureSwitchService()
>>> service.set_application_name("checkout").set_connect_string("zk:2181")
>>> with service:
...     if service.is_enabled("new-payment-flow"):
...         ...
"""

from __future__ import annotations

import threading
import time
from enum import Enum
from typing import Any, Dict, Optional

from kazoo.retry import KazooRetry

from zkfss.core.cache.metrics import WatchCacheMetrics
from zkfss.core.cache.watch_cache import WatchCache
from zkfss.core.constants import DEFAULT_FLUSH_TIMEOUT_SECONDS
from zkfss.core.exceptions import ServiceStateError
from zkfss.core.logging.logger import LogContext, get_logger
from zkfss.core.zookeeper.client import ZooKeeperConnection, resolve_local_hostname
from zkfss.modules.feature_switch.base import FeatureSwitchService
from zkfss.modules.feature_switch.config import (
    FeatureSwitchConfig,
    FeatureSwitchConfigBuilder,
)
from zkfss.modules.feature_switch.paths import KeyPathBuilder
from zkfss.modules.feature_switch.resolver import PrecedenceResolver, Resolution

logger = get_logger(__name__)


class ServiceState(Enum):
    STOPPED = "stopped"
    RUNNING = "running"


class ZKFeatureSwitchService(FeatureSwitchService):
    """
    Feature switch service backed by ZooKeeper data watches.

    Configure with the fluent setters (or `configure()`) while stopped, then
    `start()`. Every setter raises ServiceStateError while running.
    """

    def __init__(self, config: Optional[FeatureSwitchConfig] = None) -> None:
        self._builder = FeatureSwitchConfigBuilder(config)
        self._lock = threading.RLock()
        self._state = ServiceState.STOPPED

        self._config: Optional[FeatureSwitchConfig] = None
        self._hostname: Optional[str] = None
        self._connection: Optional[ZooKeeperConnection] = None
        self._cache: Optional[WatchCache] = None
        self._resolver: Optional[PrecedenceResolver] = None
        self._metrics: Optional[WatchCacheMetrics] = None

    # ========================================================================
    # CONFIGURATION (stopped only)
    # ========================================================================

    def _mutate(self, operation: str) -> FeatureSwitchConfigBuilder:
        if self._state is ServiceState.RUNNING:
            raise ServiceStateError(operation, self._state.value)
        return self._builder

    def set_namespace(self, namespace: Optional[str]) -> "ZKFeatureSwitchService":
        with self._lock:
            self._mutate("set_namespace").namespace(namespace)
        return self

    def set_application_name(self, application_name: Optional[str]) -> "ZKFeatureSwitchService":
        with self._lock:
            self._mutate("set_application_name").application_name(application_name)
        return self

    def enable_hostname_subkey(self) -> "ZKFeatureSwitchService":
        with self._lock:
            self._mutate("enable_hostname_subkey").enable_hostname_subkey()
        return self

    def disable_hostname_subkey(self) -> "ZKFeatureSwitchService":
        with self._lock:
            self._mutate("disable_hostname_subkey").disable_hostname_subkey()
        return self

    def set_hostname(self, hostname: Optional[str]) -> "ZKFeatureSwitchService":
        with self._lock:
            self._mutate("set_hostname").hostname(hostname)
        return self

    def set_connect_string(self, connect_string: str) -> "ZKFeatureSwitchService":
        with self._lock:
            self._mutate("set_connect_string").connect_string(connect_string)
        return self

    def set_connection_timeout_ms(self, timeout_ms: int) -> "ZKFeatureSwitchService":
        with self._lock:
            self._mutate("set_connection_timeout_ms").connection_timeout_ms(timeout_ms)
        return self

    def set_retry_policy(self, retry_policy: Optional[KazooRetry]) -> "ZKFeatureSwitchService":
        with self._lock:
            self._mutate("set_retry_policy").retry_policy(retry_policy)
        return self

    def set_client(self, client: Any) -> "ZKFeatureSwitchService":
        """Inject an already started kazoo client instead of creating one."""
        with self._lock:
            self._mutate("set_client").client(client)
        return self

    def configure(self, config: FeatureSwitchConfig) -> "ZKFeatureSwitchService":
        """Replace the whole configuration."""
        with self._lock:
            self._mutate("configure")
            self._builder = FeatureSwitchConfigBuilder(config)
        return self

    @property
    def config(self) -> FeatureSwitchConfig:
        """The running configuration, or the pending one while stopped."""
        with self._lock:
            if self._config is not None:
                return self._config
            return self._builder.build()

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    @property
    def state(self) -> ServiceState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is ServiceState.RUNNING

    def start(self) -> "ZKFeatureSwitchService":
        """
        Connect to ZooKeeper and begin serving lookups. No-op if running.

        Raises:
            HostnameResolutionError: If the hostname sub-key is enabled and
                the local hostname cannot be determined
            ConnectivityError: If a service-created client cannot connect
        """
        with self._lock:
            if self._state is ServiceState.RUNNING:
                logger.debug("start() called on a running service; ignoring")
                return self

            with LogContext(operation="start"):
                started = time.perf_counter()
                config = self._builder.build()
                logger.info("Starting feature switch service", extra=config.summary())

                hostname: Optional[str] = None
                if config.use_hostname_subkey:
                    hostname = config.hostname or resolve_local_hostname()

                connect_started = time.perf_counter()
                connection = self._open_connection(config)
                connect_ms = (time.perf_counter() - connect_started) * 1000

                try:
                    metrics = WatchCacheMetrics()
                    cache = WatchCache(
                        connection.client,
                        prime_timeout=config.connection_timeout_seconds,
                        metrics=metrics,
                    )
                    cache.open()
                except Exception:
                    connection.close()
                    raise

                self._config = config
                self._hostname = hostname
                self._connection = connection
                self._cache = cache
                self._metrics = metrics
                self._resolver = PrecedenceResolver(
                    KeyPathBuilder(
                        namespace=config.namespace,
                        application_name=config.application_name,
                        hostname=hostname,
                    ),
                    cache,
                )
                self._state = ServiceState.RUNNING

                logger.info(
                    "Feature switch service started (%.2fms)",
                    (time.perf_counter() - started) * 1000,
                    extra={"hostname": hostname, "connect_time_ms": round(connect_ms, 2)},
                )
        return self

    def _open_connection(self, config: FeatureSwitchConfig) -> ZooKeeperConnection:
        if config.client is not None:
            connection = ZooKeeperConnection.wrap(
                config.client, config.connection_timeout_seconds
            )
        else:
            connection = ZooKeeperConnection.create(
                config.connect_string,
                config.connection_timeout_seconds,
                config.build_retry_policy(),
            )
        connection.open()
        return connection

    def stop(self) -> "ZKFeatureSwitchService":
        """
        Release every watch and close the ZooKeeper client. No-op if stopped.

        An injected client is closed too, and forgotten: the next start()
        creates its own client unless another one is injected.
        """
        with self._lock:
            if self._state is ServiceState.STOPPED:
                logger.debug("stop() called on a stopped service; ignoring")
                return self

            with LogContext(operation="stop"):
                started = time.perf_counter()
                cache, connection = self._cache, self._connection

                self._resolver = None
                self._state = ServiceState.STOPPED

                released = len(cache) if cache is not None else 0
                try:
                    if cache is not None:
                        cache.close()
                finally:
                    if connection is not None:
                        connection.close()
                    self._cache = None
                    self._connection = None
                    self._config = None
                    self._hostname = None
                    self._builder.client(None)

                logger.info(
                    "Feature switch service stopped (%.2fms)",
                    (time.perf_counter() - started) * 1000,
                    extra={"released_watches": released},
                )
        return self

    def __enter__(self) -> "ZKFeatureSwitchService":
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    # ========================================================================
    # LOOKUPS (running only)
    # ========================================================================

    def _require_resolver(self, operation: str) -> PrecedenceResolver:
        resolver = self._resolver
        if resolver is None:
            raise ServiceStateError(operation, self._state.value)
        return resolver

    def is_enabled(self, key: str) -> bool:
        """
        Return whether `key` is enabled, consulting the most specific
        override first. Unset everywhere means False.

        Raises:
            ServiceStateError: If the service is not running
            KeyFormatError: If `key` violates the naming rules
            WatchInstallError: If a new path's watch cannot be installed
        """
        return self._require_resolver("is_enabled").resolve(key)

    def explain(self, key: str) -> Resolution:
        """Like is_enabled, but also report which path decided the answer."""
        return self._require_resolver("explain").explain(key)

    def flush(self, timeout: float = DEFAULT_FLUSH_TIMEOUT_SECONDS) -> bool:
        """Wait until pushed updates received so far are visible to lookups."""
        cache = self._cache
        if cache is None:
            raise ServiceStateError("flush", self._state.value)
        return cache.flush(timeout)

    # ========================================================================
    # INTROSPECTION
    # ========================================================================

    @property
    def client(self) -> Any:
        """The kazoo client in use while running, else the injected one (if any)."""
        connection = self._connection
        if connection is not None:
            return connection.client
        return self._builder.build().client

    @property
    def hostname(self) -> Optional[str]:
        return self._hostname

    def get_status(self) -> Dict[str, Any]:
        with self._lock:
            config = self.config
            cache = self._cache
            connection = self._connection
            return {
                "state": self._state.value,
                "namespace": config.namespace,
                "application_name": config.application_name,
                "use_hostname_subkey": config.use_hostname_subkey,
                "hostname": self._hostname,
                "connected": connection.connected if connection is not None else False,
                "owned_client": connection.owned if connection is not None else None,
                "watched_paths": len(cache) if cache is not None else 0,
                "metrics": self._metrics.get_metrics() if self._metrics is not None else None,
            }
