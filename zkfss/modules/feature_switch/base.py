"""
Feature switch service abstraction.

Callers depend on `FeatureSwitchService` rather than on the ZooKeeper-backed
implementation, so tests and alternative backends can stand in for it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class FeatureSwitchService(ABC):
    """Answers whether a feature is enabled."""

    @abstractmethod
    def is_enabled(self, key: str) -> bool:
        """
        Return True if the feature identified by `key` is enabled.

        Implementations return False when nothing is configured for `key`.
        """
