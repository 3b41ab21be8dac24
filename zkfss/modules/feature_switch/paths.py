"""
Candidate path construction for feature switch lookups.

A feature key expands to up to four ZooKeeper paths, most specific first:

1. {namespace}{key}/{application_name}/{hostname}
2. {namespace}{key}/{application_name}
3. {namespace}{key}/{hostname}
4. {namespace}{key}

Tiers 1 and 2 need an application name, tiers 1 and 3 need the hostname
sub-key. Tier 4 is always present. No I/O happens here.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from zkfss.core.constants import PATH_SEPARATOR


def build_candidate_paths(
    namespace: str,
    feature_key: str,
    application_name: Optional[str] = None,
    hostname: Optional[str] = None,
) -> Tuple[str, ...]:
    """
    Expand a feature key into its ordered candidate paths.

    Args:
        namespace: Normalized namespace (leading and trailing "/")
        feature_key: Validated feature key
        application_name: Application sub-key, or None
        hostname: Hostname sub-key, or None when the hostname sub-key is off

    Example:
        >>> build_candidate_paths("/zkfss/", "blah", "XYZ", "h")
        ('/zkfss/blah/XYZ/h', '/zkfss/blah/XYZ', '/zkfss/blah/h', '/zkfss/blah')
    """
    base = namespace + feature_key
    candidates = []

    if application_name is not None:
        app_path = base + PATH_SEPARATOR + application_name
        if hostname is not None:
            candidates.append(app_path + PATH_SEPARATOR + hostname)
        candidates.append(app_path)

    if hostname is not None:
        candidates.append(base + PATH_SEPARATOR + hostname)

    candidates.append(base)
    return tuple(candidates)


@dataclass(frozen=True)
class KeyPathBuilder:
    """Candidate path expansion bound to a running service's settings."""

    namespace: str
    application_name: Optional[str] = None
    hostname: Optional[str] = None

    def build(self, feature_key: str) -> Tuple[str, ...]:
        return build_candidate_paths(
            self.namespace,
            feature_key,
            self.application_name,
            self.hostname,
        )
