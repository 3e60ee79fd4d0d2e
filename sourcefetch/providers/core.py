"""CORE adapter (open access aggregator)."""

import logging
from typing import Any

from ..sources.models import ProviderResponse
from .base import BaseProviderAdapter, ProviderSettings

logger = logging.getLogger(__name__)


class CoreAdapter(BaseProviderAdapter):
    """Adapter for the CORE v3 search API."""

    name = "core"
    label = "CORE"

    @classmethod
    def default_settings(cls, api_key: str | None = None) -> ProviderSettings:
        return ProviderSettings(
            base_url="https://api.core.ac.uk/v3",
            timeout=15.0,
            retries=3,
            requests_per_second=10 if api_key else 0.5,
        )

    def default_headers(self) -> dict[str, str]:
        headers = super().default_headers()
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _search(self, query: str, limit: int) -> ProviderResponse:
        return await self._post_json(
            "/search/works", json={"q": query, "limit": limit, "offset": 0}
        )

    async def search_by_title(self, title: str, limit: int = 10) -> ProviderResponse:
        return await self._search(f'title:"{title}"', limit)

    async def search_by_author(self, author: str, limit: int = 10) -> ProviderResponse:
        return await self._search(f'authors:"{author}"', limit)

    async def search_by_doi(self, doi: str) -> ProviderResponse:
        clean = self.clean_doi(doi)
        if not clean:
            return self.fail("Invalid DOI format")
        return await self._search(f'doi:"{clean}"', 1)

    async def search_by_keyword(self, keyword: str, limit: int = 10) -> ProviderResponse:
        return await self._search(keyword, limit)

    def transform_response(self, data: Any) -> list[dict[str, Any]]:
        if not isinstance(data, dict):
            return []

        records = []
        for work in data.get("results") or []:
            journals = work.get("journals") or [{}]
            identifiers = journals[0].get("identifiers") or [] if journals else []
            links = work.get("links") or []
            display = next((link.get("url") for link in links if link.get("type") == "display"), None)
            download_url = work.get("downloadUrl")

            records.append({
                "id": f"core:{work['id']}" if work.get("id") is not None else None,
                "doi": work.get("doi"),
                "title": work.get("title"),
                "authors": work.get("authors") or [],
                "year": work.get("yearPublished"),
                "publicationDate": work.get("publishedDate"),
                "type": work.get("documentType") or "journal",
                "journal": journals[0].get("title") if journals else None,
                "issn": next((i.removeprefix("issn:") for i in identifiers if isinstance(i, str)), None),
                "publisher": work.get("publisher"),
                "abstract": work.get("abstract"),
                "url": display or download_url,
                "pdfUrl": download_url,
                "isOpenAccess": bool(download_url),
                "citationCount": work.get("citationCount"),
            })
        return records
