"""Bibliographic metasearch across scholarly metadata providers."""

from .sources import (
    CanonicalSource,
    InFlightDeduplicator,
    SearchFilters,
    SearchQuery,
    SearchResult,
    SearchType,
    SourceFetcher,
    TTLCache,
)

__all__ = [
    "CanonicalSource",
    "InFlightDeduplicator",
    "SearchFilters",
    "SearchQuery",
    "SearchResult",
    "SearchType",
    "SourceFetcher",
    "TTLCache",
]
