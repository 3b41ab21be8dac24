"""
Feature switch service configuration.

Purpose
-------
Separate the mutable, fluent configuration surface used before start from
the immutable configuration a running service reads.

- `FeatureSwitchConfigBuilder` collects settings, validating and
  normalizing each one as it is set.
- `FeatureSwitchConfig` is the frozen result of `build()`. A running
  service only ever holds one of these, so its configuration cannot change
  underneath in-flight lookups.

Defaults
--------
- namespace: /zkfss/
- application name: unset
- hostname sub-key: enabled, hostname resolved at start
- connect string: localhost:2181
- connection timeout: 30000 ms
- retry: exponential backoff, 1000 ms base sleep, 3 retries
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional

from kazoo.retry import KazooRetry

from zkfss.core.config.config import Config
from zkfss.core.constants import (
    DEFAULT_CONNECT_STRING,
    DEFAULT_CONNECTION_TIMEOUT_MS,
    DEFAULT_NAMESPACE,
    DEFAULT_RETRY_BASE_SLEEP_MS,
    DEFAULT_RETRY_MAX_RETRIES,
    MAX_CONNECTION_TIMEOUT_MS,
    PATH_SEPARATOR,
)
from zkfss.core.exceptions import ConfigurationError, KeyFormatError
from zkfss.core.validation.key_validator import KeyValidator, find_forbidden_character
from zkfss.core.zookeeper.retry_policy import exponential_backoff_retry


def normalize_namespace(namespace: Optional[str]) -> str:
    """
    Ensure a namespace starts and ends with "/".

    Example
    -------
    >>> normalize_namespace("foo")
    '/foo/'
    >>> normalize_namespace(None)
    '/zkfss/'
    """
    if namespace is None:
        return DEFAULT_NAMESPACE
    if not namespace.endswith(PATH_SEPARATOR):
        namespace = namespace + PATH_SEPARATOR
    if not namespace.startswith(PATH_SEPARATOR):
        namespace = PATH_SEPARATOR + namespace
    return namespace


@dataclass(frozen=True)
class FeatureSwitchConfig:
    """Immutable configuration of one feature switch service."""

    namespace: str = DEFAULT_NAMESPACE
    application_name: Optional[str] = None
    use_hostname_subkey: bool = True
    hostname: Optional[str] = None
    connect_string: str = DEFAULT_CONNECT_STRING
    connection_timeout_ms: int = DEFAULT_CONNECTION_TIMEOUT_MS
    retry_base_sleep_ms: int = DEFAULT_RETRY_BASE_SLEEP_MS
    retry_max_retries: int = DEFAULT_RETRY_MAX_RETRIES
    retry_policy: Optional[KazooRetry] = field(default=None, compare=False, repr=False)
    client: Any = field(default=None, compare=False, repr=False)

    @property
    def connection_timeout_seconds(self) -> float:
        return self.connection_timeout_ms / 1000.0

    def build_retry_policy(self) -> KazooRetry:
        """Return the explicit retry policy, or an exponential backoff one."""
        if self.retry_policy is not None:
            return self.retry_policy.copy()
        return exponential_backoff_retry(
            base_sleep_ms=self.retry_base_sleep_ms,
            max_retries=self.retry_max_retries,
        )

    def to_builder(self) -> "FeatureSwitchConfigBuilder":
        return FeatureSwitchConfigBuilder(self)

    def summary(self) -> Dict[str, Any]:
        """Loggable view of the configuration (no client object)."""
        return {
            "namespace": self.namespace,
            "application_name": self.application_name,
            "use_hostname_subkey": self.use_hostname_subkey,
            "hostname_override": self.hostname,
            "connection_timeout_ms": self.connection_timeout_ms,
            "custom_retry_policy": self.retry_policy is not None,
            "injected_client": self.client is not None,
        }


class FeatureSwitchConfigBuilder:
    """
    Fluent, mutable builder for FeatureSwitchConfig.

    Every setter validates its input and returns the builder.

    Example
    -------
    >>> config = (
    ...     FeatureSwitchConfigBuilder()
    ...     .namespace("flags")
    ...     .application_name("checkout")
    ...     .disable_hostname_subkey()
    ...     .build()
    ... )
    >>> config.namespace
    '/flags/'
    """

    def __init__(self, base: Optional[FeatureSwitchConfig] = None) -> None:
        self._config = base or FeatureSwitchConfig()

    def _set(self, **changes: Any) -> "FeatureSwitchConfigBuilder":
        self._config = replace(self._config, **changes)
        return self

    # =========================================================================
    # SETTERS
    # =========================================================================

    def namespace(self, namespace: Optional[str]) -> "FeatureSwitchConfigBuilder":
        """Set the namespace; None restores the default, slashes are added."""
        normalized = normalize_namespace(namespace)
        index = find_forbidden_character(normalized)
        if index is not None:
            raise ConfigurationError(
                "namespace",
                f"forbidden character U+{ord(normalized[index]):04X} at position {index}",
            )
        return self._set(namespace=normalized)

    def application_name(self, application_name: Optional[str]) -> "FeatureSwitchConfigBuilder":
        """Set the application name sub-key; None disables it."""
        if application_name is not None:
            self._validate_segment(application_name, "application_name")
        return self._set(application_name=application_name)

    def enable_hostname_subkey(self) -> "FeatureSwitchConfigBuilder":
        return self._set(use_hostname_subkey=True)

    def disable_hostname_subkey(self) -> "FeatureSwitchConfigBuilder":
        return self._set(use_hostname_subkey=False)

    def hostname(self, hostname: Optional[str]) -> "FeatureSwitchConfigBuilder":
        """Use an explicit hostname sub-key instead of the resolved one."""
        if hostname is not None:
            self._validate_segment(hostname, "hostname")
        return self._set(hostname=hostname)

    def connect_string(self, connect_string: str) -> "FeatureSwitchConfigBuilder":
        if not connect_string:
            raise ConfigurationError("connect_string", "must not be empty")
        return self._set(connect_string=connect_string)

    def connection_timeout_ms(self, timeout_ms: int) -> "FeatureSwitchConfigBuilder":
        if not isinstance(timeout_ms, int) or isinstance(timeout_ms, bool):
            raise ConfigurationError("connection_timeout_ms", "must be an integer")
        if not 0 < timeout_ms <= MAX_CONNECTION_TIMEOUT_MS:
            raise ConfigurationError(
                "connection_timeout_ms",
                f"must be between 1 and {MAX_CONNECTION_TIMEOUT_MS}, got {timeout_ms}",
            )
        return self._set(connection_timeout_ms=timeout_ms)

    def retry(self, base_sleep_ms: int, max_retries: int) -> "FeatureSwitchConfigBuilder":
        """Configure the default exponential backoff retry."""
        if base_sleep_ms < 0 or max_retries < 0:
            raise ConfigurationError("retry", "sleep and retry count must be non-negative")
        return self._set(retry_base_sleep_ms=base_sleep_ms, retry_max_retries=max_retries)

    def retry_policy(self, retry_policy: Optional[KazooRetry]) -> "FeatureSwitchConfigBuilder":
        """Use an explicit KazooRetry for a service-created client."""
        return self._set(retry_policy=retry_policy)

    def client(self, client: Any) -> "FeatureSwitchConfigBuilder":
        """Inject a started kazoo client; None lets the service create one."""
        return self._set(client=client)

    # =========================================================================
    # BUILD
    # =========================================================================

    def build(self) -> FeatureSwitchConfig:
        return self._config

    @classmethod
    def from_env(cls) -> "FeatureSwitchConfigBuilder":
        """
        Seed a builder from ZKFSS_* environment variables (and `.env`).

        Invalid values are logged by Config and replaced by defaults; values
        that pass Config but break a setter rule raise ConfigurationError.
        """
        Config.load()
        builder = (
            cls()
            .namespace(Config.ZKFSS_NAMESPACE)
            .application_name(Config.ZKFSS_APPLICATION_NAME)
            .hostname(Config.ZKFSS_HOSTNAME)
            .connect_string(Config.ZKFSS_CONNECT_STRING)
            .connection_timeout_ms(Config.ZKFSS_CONNECTION_TIMEOUT_MS)
            .retry(Config.ZKFSS_RETRY_BASE_SLEEP_MS, Config.ZKFSS_RETRY_MAX_RETRIES)
        )
        if Config.ZKFSS_HOSTNAME_SUBKEY:
            return builder.enable_hostname_subkey()
        return builder.disable_hostname_subkey()

    @staticmethod
    def _validate_segment(value: str, field_name: str) -> None:
        try:
            KeyValidator.validate_segment(value, field_name)
        except KeyFormatError as exc:
            raise ConfigurationError(field_name, exc.reason) from exc
