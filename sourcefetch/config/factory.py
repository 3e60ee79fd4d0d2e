"""Factory functions to build adapters, cache and fetcher from configuration."""

import logging

import httpx

from ..providers.registry import PROVIDER_CLASSES, create_adapter
from ..sources.cache import InFlightDeduplicator, TTLCache
from ..sources.fetcher import SourceFetcher
from .loader import CacheConfig, FetcherConfig, ProfileConfig

logger = logging.getLogger(__name__)


def create_adapters(
    config: FetcherConfig,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list:
    """Create one adapter per configured provider, in configured order.

    Args:
        config: Fetcher configuration
        transport: Optional httpx transport shared by HTTP adapters (tests)

    Returns:
        List of adapters (not yet entered)
    """
    adapters = []
    for name in config.providers:
        api_key = config.api_keys.get(name)
        settings = None
        override = config.overrides.get(name)
        if override is not None:
            settings = override.apply(PROVIDER_CLASSES[name].default_settings(api_key))

        adapters.append(create_adapter(name, api_key=api_key, settings=settings, transport=transport))

    logger.debug(f"Created adapters: {', '.join(a.label for a in adapters)}")
    return adapters


def create_cache(config: CacheConfig) -> TTLCache:
    """Create the shared TTL cache."""
    return TTLCache(default_ttl=config.search_ttl, max_entries=config.max_entries)


def create_in_flight(config: CacheConfig) -> InFlightDeduplicator:
    """Create the shared in-flight request deduplicator."""
    return InFlightDeduplicator(max_age=config.in_flight_max_age)


def create_fetcher(
    config: ProfileConfig,
    cache: TTLCache | None = None,
    in_flight: InFlightDeduplicator | None = None,
    adapters: list | None = None,
) -> SourceFetcher:
    """Create a SourceFetcher from a profile.

    Cache and in-flight deduplicator are created from the profile unless
    given, so a process can share one pair across fetchers.

    Args:
        config: Profile configuration
        cache: Shared cache (created if None)
        in_flight: Shared in-flight deduplicator (created if None)
        adapters: Use these adapters instead of creating them from config

    Returns:
        SourceFetcher (enter it with ``async with`` before use)
    """
    fetcher_config = config.fetcher
    return SourceFetcher(
        adapters=adapters if adapters is not None else create_adapters(fetcher_config),
        cache=cache if cache is not None else create_cache(config.cache),
        in_flight=in_flight if in_flight is not None else create_in_flight(config.cache),
        max_parallel_requests=fetcher_config.max_parallel_requests,
        use_cache=fetcher_config.use_cache,
        adapter_timeout=fetcher_config.adapter_timeout,
        stream_limit=fetcher_config.stream_limit,
        preferred_providers=[p.value for p in fetcher_config.preferred_providers],
        excluded_providers=[p.value for p in fetcher_config.excluded_providers],
        search_ttl=config.cache.search_ttl,
        metadata_ttl=config.cache.metadata_ttl,
    )
