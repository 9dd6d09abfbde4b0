"""Configuration for attowatch."""

from attowatch.config.loader import load_config
from attowatch.config.schema import (
    AttowatchConfig,
    HostsConfig,
    TimingConfig,
    ToolsConfig,
    WatchConfig,
)

__all__ = [
    "AttowatchConfig",
    "HostsConfig",
    "TimingConfig",
    "ToolsConfig",
    "WatchConfig",
    "load_config",
]
