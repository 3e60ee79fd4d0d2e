"""arXiv adapter built on the arxiv Python library."""

import asyncio
import logging
import time
from dataclasses import asdict
from typing import Any

import arxiv

from ..sources.models import ProviderResponse
from .base import ProviderMetrics, ProviderSettings, RateLimiter

logger = logging.getLogger(__name__)


class ArXivClient:
    """Async wrapper around the synchronous arxiv library."""

    def __init__(self, requests_per_second: float = 1 / 3, max_retries: int = 2):
        """
        Initialize arXiv client.

        Args:
            requests_per_second: arXiv asks for one request every three seconds
            max_retries: Retries handled by the arxiv library
        """
        self._rate_limiter = RateLimiter(requests_per_second)
        self._client = arxiv.Client(
            page_size=100,
            delay_seconds=0,  # We handle rate limiting ourselves
            num_retries=max_retries,
        )

    async def search(self, query: str, max_results: int = 10) -> list[arxiv.Result]:
        """Search arXiv (query uses arXiv query syntax)."""
        search = arxiv.Search(
            query=query,
            max_results=max_results,
            sort_by=arxiv.SortCriterion.Relevance,
        )

        # Run in thread pool since arxiv.py is synchronous
        await self._rate_limiter.acquire()
        results = await asyncio.to_thread(lambda: list(self._client.results(search)))

        logger.debug(f"arXiv search '{query}' returned {len(results)} results")
        return results


def result_to_record(result: arxiv.Result) -> dict[str, Any]:
    """Map an arxiv.Result onto a provider record."""
    published = result.published
    return {
        "id": result.entry_id,
        "arxivId": result.get_short_id(),
        "doi": result.doi,
        "title": result.title,
        "authors": [author.name for author in result.authors],
        "year": published.year if published else None,
        "publicationDate": published.date().isoformat() if published else None,
        "type": "preprint",
        "journal": result.journal_ref,
        "abstract": result.summary,
        "url": result.entry_id,
        "pdfUrl": result.pdf_url,
        "isOpenAccess": True,
        "keywords": list(result.categories or []),
    }


class ArXivAdapter:
    """
    Adapter for arXiv.

    Unlike the HTTP adapters this delegates transport to the arxiv library.
    DOI lookups are not supported by the arXiv API.
    """

    name = "arxiv"
    label = "arXiv"

    def __init__(
        self,
        api_key: str | None = None,
        settings: ProviderSettings | None = None,
        client: ArXivClient | None = None,
    ):
        self.settings = settings or self.default_settings(api_key)
        self.metrics = ProviderMetrics()
        self._client = client or ArXivClient(
            requests_per_second=self.settings.requests_per_second or 1 / 3,
            max_retries=self.settings.retries,
        )

    @classmethod
    def default_settings(cls, api_key: str | None = None) -> ProviderSettings:
        return ProviderSettings(
            base_url="http://export.arxiv.org/api",
            timeout=10.0,
            retries=2,
            requests_per_second=1 / 3,
        )

    async def __aenter__(self) -> "ArXivAdapter":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        pass

    async def _search(self, query: str, limit: int) -> ProviderResponse:
        started = time.monotonic()
        try:
            results = await self._client.search(query, max_results=limit)
        except (arxiv.ArxivError, OSError) as e:
            error = f"{type(e).__name__}: {e}"
            self.metrics.record_failure(error)
            logger.debug(f"arXiv request failed: {error}")
            return ProviderResponse.fail(error, provider=self.label)

        self.metrics.record_success(time.monotonic() - started)
        return ProviderResponse.ok(results, provider=self.label)

    async def search_by_title(self, title: str, limit: int = 10) -> ProviderResponse:
        return await self._search(f'ti:"{title}"', limit)

    async def search_by_author(self, author: str, limit: int = 10) -> ProviderResponse:
        return await self._search(f'au:"{author}"', limit)

    async def search_by_doi(self, doi: str) -> ProviderResponse:
        return ProviderResponse.fail("DOI search not supported by arXiv", provider=self.label)

    async def search_by_keyword(self, keyword: str, limit: int = 10) -> ProviderResponse:
        return await self._search(f"all:{keyword}", limit)

    def transform_response(self, data: Any) -> list[dict[str, Any]]:
        return [result_to_record(result) for result in data or []]

    def get_metrics(self) -> dict[str, Any]:
        return asdict(self.metrics)
