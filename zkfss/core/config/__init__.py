"""
Static, environment-driven configuration for zkfss.

Per-service configuration lives in `zkfss.modules.feature_switch.config`;
this package only holds process-wide defaults read from the environment.
"""

from zkfss.core.config.config import Config, Environment

__all__ = ["Config", "Environment"]
