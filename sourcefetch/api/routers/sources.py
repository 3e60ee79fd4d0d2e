"""Search, streaming search and DOI resolution endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse

from ...sources.errors import InvalidQueryError, NoResultsError
from ...sources.fetcher import SourceFetcher
from ...sources.models import (
    CanonicalSource,
    SearchFilters,
    SearchQuery,
    SearchResult,
    SearchType,
    SourceType,
)
from ...sources.streaming import SSE_HEADERS, SSE_MEDIA_TYPE, sse_stream
from ..dependencies import get_fetcher
from ..models import ProvidersResponse, ResolveRequest

router = APIRouter()
logger = logging.getLogger(__name__)

PUBLIC_METRICS = frozenset({
    "total_requests",
    "successful_requests",
    "failed_requests",
    "average_response_time",
})


def query_from_params(
    query: Annotated[str, Query(description="Search text")] = "",
    type: Annotated[SearchType, Query()] = SearchType.KEYWORD,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
    year_from: Annotated[int | None, Query(alias="yearFrom")] = None,
    year_to: Annotated[int | None, Query(alias="yearTo")] = None,
    source_types: Annotated[list[SourceType] | None, Query(alias="sourceTypes")] = None,
    open_access_only: Annotated[bool, Query(alias="openAccessOnly")] = False,
) -> SearchQuery:
    """Build a SearchQuery from URL parameters."""
    filters = None
    if year_from is not None or year_to is not None or source_types or open_access_only:
        filters = SearchFilters(
            year_from=year_from,
            year_to=year_to,
            source_types=source_types,
            open_access_only=open_access_only,
        )
    return SearchQuery(query=query, type=type, limit=limit, filters=filters)


async def _run_search(fetcher: SourceFetcher, query: SearchQuery) -> SearchResult:
    try:
        return await fetcher.search(query)
    except InvalidQueryError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.error("Error in source search", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/search", response_model=SearchResult)
async def search_sources(
    payload: SearchQuery,
    fetcher: SourceFetcher = Depends(get_fetcher),
) -> SearchResult:
    return await _run_search(fetcher, payload)


@router.get("/search", response_model=SearchResult)
async def search_sources_get(
    query: SearchQuery = Depends(query_from_params),
    fetcher: SourceFetcher = Depends(get_fetcher),
) -> SearchResult:
    return await _run_search(fetcher, query)


@router.get("/search/stream")
async def stream_sources(
    query: SearchQuery = Depends(query_from_params),
    fetcher: SourceFetcher = Depends(get_fetcher),
) -> StreamingResponse:
    """
    Stream search progress with Server-Sent Events.

    SSE Events (one JSON object per ``data:`` frame):
        - start: {type, totalProviders}
        - progress: {type, provider, current, total}
        - results: {type, provider, sources}
        - done: {type}
    """
    try:
        fetcher.validate_query(query)
    except InvalidQueryError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return StreamingResponse(
        sse_stream(fetcher.stream(query)),
        media_type=SSE_MEDIA_TYPE,
        headers=SSE_HEADERS,
    )


@router.post("/resolve", response_model=CanonicalSource)
async def resolve_source(
    payload: ResolveRequest,
    fetcher: SourceFetcher = Depends(get_fetcher),
) -> CanonicalSource:
    try:
        source = await fetcher.resolve(payload.identifier)
        if source is None:
            raise NoResultsError(payload.identifier)
        return source
    except InvalidQueryError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NoResultsError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception:
        logger.error("Error in resolve_source", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/providers", response_model=ProvidersResponse)
async def list_providers(fetcher: SourceFetcher = Depends(get_fetcher)) -> ProvidersResponse:
    """Configured providers and their request counters.

    Error text stays in the logs; only counters are returned.
    """
    metrics = {
        label: {key: value for key, value in counters.items() if key in PUBLIC_METRICS}
        for label, counters in fetcher.get_metrics().items()
    }
    return ProvidersResponse(providers=fetcher.available_providers(), metrics=metrics)
