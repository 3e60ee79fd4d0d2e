"""bioRxiv adapter."""

import logging
from datetime import date, timedelta
from typing import Any

from ..sources.models import ProviderResponse
from .base import BaseProviderAdapter, ProviderSettings

logger = logging.getLogger(__name__)

# The details endpoint only lists by date window, so author search scans recent posts
AUTHOR_WINDOW_DAYS = 30


class BioRxivAdapter(BaseProviderAdapter):
    """
    Adapter for the bioRxiv details API.

    The API has no text search: title and keyword searches are unsupported,
    author search filters the last 30 days of postings.
    """

    name = "biorxiv"
    label = "bioRxiv"

    @classmethod
    def default_settings(cls, api_key: str | None = None) -> ProviderSettings:
        return ProviderSettings(
            base_url="https://api.biorxiv.org",
            timeout=15.0,
            retries=3,
            requests_per_second=1,
        )

    async def search_by_title(self, title: str, limit: int = 10) -> ProviderResponse:
        return self.fail("Title search not supported by bioRxiv API")

    async def search_by_author(self, author: str, limit: int = 10) -> ProviderResponse:
        today = date.today()
        start = today - timedelta(days=AUTHOR_WINDOW_DAYS)
        response = await self._get_json(f"/details/biorxiv/{start.isoformat()}/{today.isoformat()}/0")
        if not response.success:
            return response

        needle = author.lower()
        collection = [
            item for item in (response.data or {}).get("collection") or []
            if needle in (item.get("authors") or "").lower()
        ]
        return self.ok({"collection": collection[:limit]})

    async def search_by_doi(self, doi: str) -> ProviderResponse:
        clean = self.clean_doi(doi)
        if not clean:
            return self.fail("Invalid DOI format")
        return await self._get_json(f"/details/biorxiv/{clean}")

    async def search_by_keyword(self, keyword: str, limit: int = 10) -> ProviderResponse:
        return self.fail("Keyword search not supported by bioRxiv API")

    def transform_response(self, data: Any) -> list[dict[str, Any]]:
        if not isinstance(data, dict):
            return []

        records = []
        for item in data.get("collection") or []:
            doi = item.get("doi")
            authors = [a.strip() for a in (item.get("authors") or "").split(";") if a.strip()]
            records.append({
                "doi": doi,
                "title": item.get("title"),
                "authors": authors,
                "year": item.get("date"),
                "publicationDate": item.get("date"),
                "type": "preprint",
                "journal": "bioRxiv",
                "publisher": "Cold Spring Harbor Laboratory",
                "abstract": item.get("abstract"),
                "url": f"https://www.biorxiv.org/content/{doi}" if doi else None,
                "isOpenAccess": True,
                "keywords": [item["category"]] if item.get("category") else [],
            })
        return records
