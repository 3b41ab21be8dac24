"""
zkfss: ZooKeeper feature switches.

Resolve boolean feature switches from hierarchical overrides stored in
ZooKeeper. Values are cached behind data watches, so only the first lookup
of a path touches the network and later changes are pushed in.

>>> from zkfss import ZKFeatureSwitchService
>>> with ZKFeatureSwitchService().set_application_name("checkout") as switches:
...     switches.is_enabled("new-payment-flow")
"""

from zkfss.core.exceptions import (
    ConfigurationError,
    ConnectivityError,
    FeatureSwitchError,
    HostnameResolutionError,
    KeyFormatError,
    ServiceStateError,
    WatchInstallError,
)
from zkfss.core.logging import setup_logging, shutdown_logging
from zkfss.modules.feature_switch import (
    FeatureSwitchConfig,
    FeatureSwitchConfigBuilder,
    FeatureSwitchService,
    Resolution,
    ServiceState,
    ZKFeatureSwitchService,
)

__version__ = "0.1.0"

__all__ = [
    "ZKFeatureSwitchService",
    "FeatureSwitchService",
    "FeatureSwitchConfig",
    "FeatureSwitchConfigBuilder",
    "Resolution",
    "ServiceState",
    "FeatureSwitchError",
    "ServiceStateError",
    "KeyFormatError",
    "ConfigurationError",
    "ConnectivityError",
    "HostnameResolutionError",
    "WatchInstallError",
    "setup_logging",
    "shutdown_logging",
]
