"""Core pipeline: models, normalizer, deduplicator, cache and fetcher."""

from .cache import CacheEntry, InFlightDeduplicator, InFlightRequest, TTLCache
from .deduplication import Deduplicator, title_key
from .errors import (
    AdapterFailure,
    InvalidQueryError,
    NoResultsError,
    NormalizationError,
    SourceFetchError,
)
from .fetcher import PROVIDER_PRIORITY, SourceFetcher
from .models import (
    Author,
    CanonicalSource,
    DoneEvent,
    ProgressEvent,
    ProviderResponse,
    ResultsEvent,
    SearchFilters,
    SearchQuery,
    SearchResult,
    SearchType,
    SourceType,
    StartEvent,
    StreamEvent,
)
from .normalizer import calculate_completeness, normalize, normalize_doi
from .protocols import ProviderAdapter, ResponseTransformer
from .streaming import SSE_HEADERS, SSE_MEDIA_TYPE, encode_event, sse_stream

__all__ = [
    # Models
    "Author",
    "CanonicalSource",
    "ProviderResponse",
    "SearchFilters",
    "SearchQuery",
    "SearchResult",
    "SearchType",
    "SourceType",
    # Stream events
    "DoneEvent",
    "ProgressEvent",
    "ResultsEvent",
    "StartEvent",
    "StreamEvent",
    # Errors
    "AdapterFailure",
    "InvalidQueryError",
    "NoResultsError",
    "NormalizationError",
    "SourceFetchError",
    # Pipeline
    "CacheEntry",
    "Deduplicator",
    "InFlightDeduplicator",
    "InFlightRequest",
    "PROVIDER_PRIORITY",
    "ProviderAdapter",
    "ResponseTransformer",
    "SourceFetcher",
    "TTLCache",
    "calculate_completeness",
    "normalize",
    "normalize_doi",
    "title_key",
    # Streaming
    "SSE_HEADERS",
    "SSE_MEDIA_TYPE",
    "encode_event",
    "sse_stream",
]
