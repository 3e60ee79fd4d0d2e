"""SourceFetcher: fan-out, normalization and deduplication across providers."""

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from typing import Any

from pydantic import ValidationError

from ..settings import (
    ADAPTER_TIMEOUT_SECONDS,
    MAX_PARALLEL_REQUESTS,
    METADATA_TTL_SECONDS,
    SEARCH_RESULTS_TTL_SECONDS,
    STREAM_LIMIT_PER_PROVIDER,
)
from .cache import InFlightDeduplicator, TTLCache
from .deduplication import Deduplicator
from .errors import AdapterFailure, InvalidQueryError, NormalizationError
from .models import (
    CanonicalSource,
    DoneEvent,
    ProgressEvent,
    ProviderResponse,
    ResultsEvent,
    SearchQuery,
    SearchResult,
    SearchType,
    StartEvent,
    StreamEvent,
)
from .normalizer import normalize, normalize_doi
from .protocols import ProviderAdapter, ResponseTransformer

logger = logging.getLogger(__name__)

# Batch-mode provider order per query type. Providers not listed run last.
PROVIDER_PRIORITY: dict[SearchType, list[str]] = {
    SearchType.DOI: ["crossref", "openalex", "datacite", "semanticscholar", "europepmc"],
    SearchType.TITLE: ["openalex", "semanticscholar", "crossref", "pubmed", "arxiv", "core", "europepmc"],
    SearchType.AUTHOR: ["openalex", "semanticscholar", "crossref", "pubmed", "arxiv", "europepmc"],
    SearchType.KEYWORD: ["openalex", "semanticscholar", "pubmed", "arxiv", "crossref", "core", "doaj"],
}


def _adapter_name(adapter: ProviderAdapter) -> str:
    return getattr(adapter, "name", adapter.label).lower()


class SourceFetcher:
    """
    Orchestrates one query across every configured provider adapter.

    Batch mode (``search``) runs adapters in chunks of
    ``max_parallel_requests`` and returns one merged result, cached by query.
    Streaming mode (``stream``) calls adapters one at a time and yields
    events as each one resolves. Both share the normalize -> filter ->
    deduplicate pipeline, with dedupe state scoped to a single query.

    The cache and in-flight deduplicator are injected so they can be shared
    process-wide; passing None disables the corresponding layer.

    Usage:
        async with SourceFetcher(adapters, cache=TTLCache(), in_flight=InFlightDeduplicator()) as fetcher:
            result = await fetcher.search(SearchQuery(query="attention is all you need"))
            async for event in fetcher.stream(SearchQuery(query="machine learning")):
                ...
    """

    def __init__(
        self,
        adapters: list[ProviderAdapter],
        cache: TTLCache | None = None,
        in_flight: InFlightDeduplicator | None = None,
        max_parallel_requests: int = MAX_PARALLEL_REQUESTS,
        use_cache: bool = True,
        adapter_timeout: float = ADAPTER_TIMEOUT_SECONDS,
        stream_limit: int = STREAM_LIMIT_PER_PROVIDER,
        preferred_providers: list[str] | None = None,
        excluded_providers: list[str] | None = None,
        search_ttl: float = SEARCH_RESULTS_TTL_SECONDS,
        metadata_ttl: float = METADATA_TTL_SECONDS,
    ):
        """
        Initialize the fetcher.

        Args:
            adapters: Provider adapters in configured (streaming) order
            cache: Shared TTL cache for search and resolve results
            in_flight: Shared in-flight deduplicator for identical queries
            max_parallel_requests: Adapters in flight at once in batch mode
            use_cache: Whether batch searches read and populate the cache
            adapter_timeout: Seconds before one adapter call counts as failed
            stream_limit: Per-provider result limit in streaming mode
            preferred_providers: If any of these are configured, use only them
            excluded_providers: Providers never called
            search_ttl: TTL for cached search results
            metadata_ttl: TTL for cached identifier resolutions
        """
        if max_parallel_requests < 1:
            raise ValueError("max_parallel_requests must be at least 1")

        self.adapters = list(adapters)
        self.cache = cache
        self.in_flight = in_flight
        self.max_parallel_requests = max_parallel_requests
        self.use_cache = use_cache
        self.adapter_timeout = adapter_timeout
        self.stream_limit = stream_limit
        self.preferred_providers = {p.lower() for p in preferred_providers or []}
        self.excluded_providers = {p.lower() for p in excluded_providers or []}
        self.search_ttl = search_ttl
        self.metadata_ttl = metadata_ttl

    async def __aenter__(self) -> "SourceFetcher":
        """Enter async context for all adapters."""
        for adapter in self.adapters:
            if hasattr(adapter, "__aenter__"):
                await adapter.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context for all adapters."""
        for adapter in self.adapters:
            if hasattr(adapter, "__aexit__"):
                await adapter.__aexit__(exc_type, exc_val, exc_tb)

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def validate_query(self, query: SearchQuery) -> None:
        """Reject a query before any provider is contacted.

        Raises:
            InvalidQueryError: If the query string is empty or whitespace
        """
        if not query.query or not query.query.strip():
            raise InvalidQueryError("Query must not be empty")

    async def search(self, query: SearchQuery) -> SearchResult:
        """
        Batch search across providers.

        Args:
            query: The search request

        Returns:
            SearchResult with at most ``query.limit`` deduplicated sources.
            A query where every provider fails is an empty result, not an error.

        Raises:
            InvalidQueryError: If the query string is empty
        """
        self.validate_query(query)
        key = query.cache_key()

        if self.use_cache and self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                logger.info(f"Cache hit for {query.type.value} query '{query.query}'")
                return cached.model_copy(update={"cached": True})

        if self.in_flight is not None:
            return await self.in_flight.deduplicate(key, lambda: self._search_providers(query, key))
        return await self._search_providers(query, key)

    async def stream(self, query: SearchQuery) -> AsyncIterator[StreamEvent]:
        """
        Streaming search: one provider at a time, in configured order.

        Yields ``start``, then for each provider a ``progress`` event and (if
        the call succeeded) a ``results`` event holding only its newly
        accepted sources, then ``done``. Failed providers are logged and
        skipped.

        Raises:
            InvalidQueryError: If the query string is empty (before any event)
        """
        self.validate_query(query)
        adapters = self._select_adapters(query.type, prioritize=False)
        dedupe = Deduplicator()
        total = len(adapters)

        logger.info(f"Streaming {query.type.value} query '{query.query}' across {total} providers")
        yield StartEvent(total_providers=total)

        for index, adapter in enumerate(adapters, start=1):
            yield ProgressEvent(provider=adapter.label, current=index, total=total)

            # Shielded so a consumer disconnect lets the provider call finish
            call = asyncio.ensure_future(self._fetch_records(adapter, query, self.stream_limit))
            response = await asyncio.shield(call)
            if not response.success:
                continue

            sources = self._accept(adapter, response.data, query, dedupe)
            yield ResultsEvent(provider=adapter.label, sources=sources)

        logger.info(f"Stream finished: {len(dedupe.seen_title_keys)} unique sources")
        yield DoneEvent()

    async def resolve(self, identifier: str) -> CanonicalSource | None:
        """
        Resolve a DOI to its single best-matching source.

        Runs a batch DOI search with ``limit=1``. Matches are cached with the
        metadata TTL.

        Returns:
            The matched source, or None if no provider returned one

        Raises:
            InvalidQueryError: If the identifier is empty or not a DOI
        """
        if not identifier or not identifier.strip():
            raise InvalidQueryError("Identifier must not be empty")

        doi = normalize_doi(identifier)
        if doi is None:
            raise InvalidQueryError(f"Not a valid DOI: {identifier!r}")

        key = f"resolve:doi:{doi}"
        if self.use_cache and self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                logger.info(f"Cache hit for DOI {doi}")
                return cached

        result = await self.search(SearchQuery(query=doi, type=SearchType.DOI, limit=1))
        if not result.sources:
            logger.info(f"No provider resolved DOI {doi}")
            return None

        source = result.sources[0]
        if self.use_cache and self.cache is not None:
            self.cache.set(key, source, ttl=self.metadata_ttl)
        return source

    def available_providers(self) -> list[str]:
        """Labels of configured adapters, in configured order."""
        return [adapter.label for adapter in self.adapters]

    def get_metrics(self) -> dict[str, dict[str, Any]]:
        """Request metrics per provider label."""
        return {
            adapter.label: adapter.get_metrics()
            for adapter in self.adapters
            if hasattr(adapter, "get_metrics")
        }

    # -------------------------------------------------------------------------
    # Pipeline
    # -------------------------------------------------------------------------

    def _select_adapters(self, search_type: SearchType, prioritize: bool) -> list[ProviderAdapter]:
        """Apply preferred/excluded providers, then optionally priority order."""
        adapters = [a for a in self.adapters if _adapter_name(a) not in self.excluded_providers]

        if self.preferred_providers:
            preferred = [a for a in adapters if _adapter_name(a) in self.preferred_providers]
            if preferred:
                adapters = preferred

        if prioritize:
            priority = PROVIDER_PRIORITY.get(search_type, [])
            rank = {name: i for i, name in enumerate(priority)}
            # sorted() is stable, so unranked providers keep configured order
            adapters = sorted(adapters, key=lambda a: rank.get(_adapter_name(a), len(priority)))

        return adapters

    async def _search_providers(self, query: SearchQuery, key: str) -> SearchResult:
        """Run the batch fan-out and populate the cache."""
        started = time.monotonic()
        adapters = self._select_adapters(query.type, prioritize=True)
        dedupe = Deduplicator()
        sources: list[CanonicalSource] = []
        called: list[str] = []
        succeeded = 0
        failed = 0

        for start in range(0, len(adapters), self.max_parallel_requests):
            if len(sources) >= query.limit:
                break

            batch = adapters[start:start + self.max_parallel_requests]
            called.extend(adapter.label for adapter in batch)
            responses = await asyncio.gather(
                *(self._fetch_records(adapter, query, query.limit) for adapter in batch)
            )

            for adapter, response in zip(batch, responses):
                if not response.success:
                    failed += 1
                    continue
                succeeded += 1
                sources.extend(self._accept(adapter, response.data, query, dedupe))

        result = SearchResult(
            sources=sources[:query.limit],
            total_found=len(sources),
            query=query,
            providers=called,
            providers_succeeded=succeeded,
            providers_failed=failed,
            search_time_ms=int((time.monotonic() - started) * 1000),
        )

        logger.info(
            f"Search '{query.query}' found {result.total_found} sources "
            f"({succeeded} providers ok, {failed} failed) in {result.search_time_ms}ms"
        )

        if self.use_cache and self.cache is not None:
            if succeeded:
                self.cache.set(key, result, ttl=self.search_ttl)
            else:
                logger.warning(f"All providers failed for '{query.query}', result not cached")

        return result

    async def _fetch_records(
        self,
        adapter: ProviderAdapter,
        query: SearchQuery,
        limit: int,
    ) -> ProviderResponse:
        """Call one adapter and flatten its payload. Never raises.

        On success ``data`` is the list of raw records.
        """
        try:
            response = await asyncio.wait_for(
                self._dispatch(adapter, query.type, query.query, limit),
                timeout=self.adapter_timeout,
            )
            if response.success:
                return ProviderResponse.ok(self._records(adapter, response.data), provider=adapter.label)
            failure = AdapterFailure(adapter.label, response.error or "unknown error")
        except asyncio.TimeoutError:
            failure = AdapterFailure(adapter.label, f"timed out after {self.adapter_timeout}s")
        except Exception as e:
            failure = AdapterFailure(adapter.label, f"{type(e).__name__}: {e}")

        logger.warning(f"Provider {failure.provider} failed: {failure.reason}")
        return ProviderResponse.fail(failure.reason, provider=adapter.label)

    async def _dispatch(
        self,
        adapter: ProviderAdapter,
        search_type: SearchType,
        text: str,
        limit: int,
    ) -> ProviderResponse:
        if search_type == SearchType.DOI:
            return await adapter.search_by_doi(text)
        elif search_type == SearchType.TITLE:
            return await adapter.search_by_title(text, limit)
        elif search_type == SearchType.AUTHOR:
            return await adapter.search_by_author(text, limit)
        return await adapter.search_by_keyword(text, limit)

    def _records(self, adapter: ProviderAdapter, data: Any) -> list[Any]:
        """Flatten a payload via ``transform_response`` or list-wrap it."""
        if isinstance(adapter, ResponseTransformer):
            return adapter.transform_response(data)
        if data is None:
            return []
        if isinstance(data, list):
            return data
        return [data]

    def _accept(
        self,
        adapter: ProviderAdapter,
        records: list[Any],
        query: SearchQuery,
        dedupe: Deduplicator,
    ) -> list[CanonicalSource]:
        """Normalize, filter and deduplicate one provider's records."""
        normalized: list[CanonicalSource] = []
        skipped = 0
        for raw in records:
            try:
                normalized.append(normalize(raw, adapter.label))
            except (NormalizationError, ValidationError) as e:
                skipped += 1
                logger.debug(f"Skipping record: {e}")

        if skipped:
            logger.info(f"Skipped {skipped}/{len(records)} unusable records from {adapter.label}")

        if query.filters:
            normalized = [source for source in normalized if query.filters.matches(source)]

        return dedupe.filter(normalized)
