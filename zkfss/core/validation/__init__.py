"""
zkfss Validation Package

Exposes the ZooKeeper node-name rules applied to feature keys and to the
configured path segments (application name, hostname).
"""

from zkfss.core.validation.key_validator import KeyValidator, find_forbidden_character

__all__ = ["KeyValidator", "find_forbidden_character"]
