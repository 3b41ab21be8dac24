"""
Feature Switch Module

Services
--------
- ZKFeatureSwitchService: ZooKeeper-backed feature switches with lazy,
  push-invalidated watches and most-specific-wins overrides
- FeatureSwitchService: abstract lookup interface

Supporting types
----------------
- FeatureSwitchConfig / FeatureSwitchConfigBuilder: immutable configuration
  and its fluent builder
- KeyPathBuilder: candidate path expansion
- PrecedenceResolver / Resolution: override precedence and its outcome
"""

from .base import FeatureSwitchService
from .config import FeatureSwitchConfig, FeatureSwitchConfigBuilder, normalize_namespace
from .paths import KeyPathBuilder, build_candidate_paths
from .resolver import PrecedenceResolver, Resolution
from .service import ServiceState, ZKFeatureSwitchService

__all__ = [
    "FeatureSwitchService",
    "ZKFeatureSwitchService",
    "ServiceState",
    "FeatureSwitchConfig",
    "FeatureSwitchConfigBuilder",
    "normalize_namespace",
    "KeyPathBuilder",
    "build_candidate_paths",
    "PrecedenceResolver",
    "Resolution",
]
