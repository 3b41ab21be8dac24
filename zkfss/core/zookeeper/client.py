"""
ZooKeeper client management for zkfss.

Purpose
-------
Create, start and close the kazoo client a feature switch service talks to,
and resolve the local hostname used as an override sub-key.

Responsibilities
----------------
- Build a KazooClient from connection parameters and a retry policy
- Start it, failing fast with ConnectivityError if it cannot connect
- Log connection state transitions (CONNECTED / SUSPENDED / LOST)
- Stop and close the client on shutdown
- Resolve the local hostname, failing fast with HostnameResolutionError

Non-Responsibilities
--------------------
- Watches and caching (handled by WatchCache)
- The ZooKeeper protocol itself (handled by kazoo)
"""

from __future__ import annotations

import socket
import time
from typing import Any, Callable, Optional

from kazoo.client import KazooClient, KazooState
from kazoo.retry import KazooRetry

from zkfss.core.exceptions import ConnectivityError, HostnameResolutionError
from zkfss.core.logging.logger import get_logger

logger = get_logger(__name__)


def resolve_local_hostname(resolver: Optional[Callable[[], str]] = None) -> str:
    """
    Return the local hostname.

    Raises
    ------
    HostnameResolutionError
        If the hostname cannot be determined or is empty.
    """
    try:
        hostname = (resolver or socket.gethostname)()
    except OSError as exc:
        logger.critical("Unable to resolve local hostname", exc_info=True)
        raise HostnameResolutionError(exc) from exc

    if not hostname:
        logger.critical("Local hostname is empty")
        raise HostnameResolutionError()
    return hostname


def _log_state_change(state: str) -> None:
    # Runs on kazoo's connection thread; must not block
    if state == KazooState.CONNECTED:
        logger.info("ZooKeeper connection established")
    elif state == KazooState.SUSPENDED:
        logger.warning("ZooKeeper connection suspended; serving cached values")
    elif state == KazooState.LOST:
        logger.error("ZooKeeper session lost; watches will be re-registered on reconnect")


class ZooKeeperConnection:
    """
    Owns the lifecycle of one kazoo client.

    A connection either builds its own client (`owned=True`) or wraps a client
    supplied by the caller. Either way `close()` stops and closes it.

    Example
    -------
    >>> connection = ZooKeeperConnection.create("localhost:2181", 30.0, retry)
    >>> connection.open()
    >>> connection.client.DataWatch("/zkfss/checkout", callback)
    >>> connection.close()
    """

    def __init__(self, client: Any, owned: bool, connection_timeout: float) -> None:
        self._client = client
        self._owned = owned
        self._connection_timeout = connection_timeout
        self._listening = False

    @classmethod
    def create(
        cls,
        connect_string: str,
        connection_timeout: float,
        retry_policy: KazooRetry,
    ) -> "ZooKeeperConnection":
        """Build an owned connection around a new, not yet started, KazooClient."""
        client = KazooClient(
            hosts=connect_string,
            timeout=connection_timeout,
            connection_retry=retry_policy,
            command_retry=retry_policy.copy(),
        )
        return cls(client, owned=True, connection_timeout=connection_timeout)

    @classmethod
    def wrap(cls, client: Any, connection_timeout: float) -> "ZooKeeperConnection":
        """Wrap a caller-supplied client, assumed to be started already."""
        return cls(client, owned=False, connection_timeout=connection_timeout)

    @property
    def client(self) -> Any:
        return self._client

    @property
    def owned(self) -> bool:
        return self._owned

    def open(self) -> None:
        """
        Start the client if this connection owns it, and register the state
        listener.

        Raises
        ------
        ConnectivityError
            If an owned client does not connect within the timeout.
        """
        started = time.perf_counter()
        if self._owned:
            try:
                self._client.start(timeout=self._connection_timeout)
            except Exception as exc:
                logger.error(
                    "Failed to connect to ZooKeeper",
                    extra={"timeout_s": self._connection_timeout, "error": str(exc)},
                )
                self._discard()
                raise ConnectivityError("connect", exc) from exc

        self._client.add_listener(_log_state_change)
        self._listening = True

        logger.info(
            "ZooKeeper client ready",
            extra={
                "owned": self._owned,
                "connect_time_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )

    def close(self) -> None:
        """Detach the listener, then stop and close the client."""
        if self._listening:
            self._client.remove_listener(_log_state_change)
            self._listening = False
        try:
            self._client.stop()
            self._client.close()
        except Exception:
            logger.exception("Error while closing ZooKeeper client")
        else:
            logger.info("ZooKeeper client closed", extra={"owned": self._owned})

    def _discard(self) -> None:
        try:
            self._client.stop()
            self._client.close()
        except Exception:
            logger.debug("Ignoring error while discarding unconnected client", exc_info=True)

    @property
    def connected(self) -> Optional[bool]:
        return getattr(self._client, "connected", None)
