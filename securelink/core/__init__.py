"""
Core configuration for securelink.
"""

from .config import (
    Config,
    StoreConfig,
    SweepConfig,
    ServerConfig,
    MetricsConfig,
    STORE_BACKENDS,
    env_overrides,
)

__all__ = [
    "Config",
    "StoreConfig",
    "SweepConfig",
    "ServerConfig",
    "MetricsConfig",
    "STORE_BACKENDS",
    "env_overrides",
]
