"""Configuration system for providers, cache and fetcher."""

from ..providers.base import ProviderSettings
from .factory import create_adapters, create_cache, create_fetcher, create_in_flight
from .loader import (
    DEFAULT_CONFIG_PATH,
    CacheConfig,
    ConfigFile,
    FetcherConfig,
    ProfileConfig,
    ProviderOverride,
    load_config,
    load_config_from_env,
    load_config_from_yaml,
)

__all__ = [
    # Loader
    "DEFAULT_CONFIG_PATH",
    "CacheConfig",
    "ConfigFile",
    "FetcherConfig",
    "ProfileConfig",
    "ProviderOverride",
    "ProviderSettings",
    "load_config",
    "load_config_from_env",
    "load_config_from_yaml",
    # Factory
    "create_adapters",
    "create_cache",
    "create_fetcher",
    "create_in_flight",
]
