"""
Override precedence resolution.

Walks the candidate paths of a feature key, most specific first, and returns
the first value that is actually set. Nothing set anywhere means disabled.
Tiers are never merged: the first set value wins outright, even if a less
specific tier disagrees.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from zkfss.core.cache.watch_cache import WatchCache
from zkfss.core.logging.logger import LogContext, get_logger
from zkfss.core.validation.key_validator import KeyValidator
from zkfss.modules.feature_switch.paths import KeyPathBuilder

logger = get_logger(__name__)


@dataclass(frozen=True)
class Resolution:
    """
    Outcome of one lookup.

    `path` is the candidate that decided the value, or None when no candidate
    was set and the default applied.
    """

    key: str
    value: bool
    path: Optional[str] = None

    @property
    def is_default(self) -> bool:
        return self.path is None


class PrecedenceResolver:
    """Most-specific-wins lookup over a WatchCache."""

    DEFAULT_VALUE = False

    def __init__(self, paths: KeyPathBuilder, cache: WatchCache) -> None:
        self._paths = paths
        self._cache = cache

    @property
    def paths(self) -> KeyPathBuilder:
        return self._paths

    def explain(self, feature_key: str) -> Resolution:
        """
        Resolve `feature_key` and report which path decided it.

        Raises
        ------
        KeyFormatError
            If the key violates the naming rules.
        ServiceStateError
            If the underlying cache has been closed.
        WatchInstallError
            If a candidate path's watch could not be installed.
        """
        KeyValidator.validate_feature_key(feature_key)
        paths = self._paths.build(feature_key)

        if all(path in self._cache for path in paths):
            return self._walk(feature_key, paths)

        # At least one watch still has to be installed
        with LogContext(operation="resolve", feature_key=feature_key):
            return self._walk(feature_key, paths)

    def _walk(self, feature_key: str, paths: Tuple[str, ...]) -> Resolution:
        for path in paths:
            value = self._cache.resolve(path).as_bool()
            if value is not None:
                return Resolution(key=feature_key, value=value, path=path)

        logger.debug(
            "No override set; using default",
            extra={"feature_key": feature_key, "default": self.DEFAULT_VALUE},
        )
        return Resolution(key=feature_key, value=self.DEFAULT_VALUE)

    def resolve(self, feature_key: str) -> bool:
        return self.explain(feature_key).value
