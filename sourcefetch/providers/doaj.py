"""DOAJ adapter (Directory of Open Access Journals)."""

import logging
from typing import Any
from urllib.parse import quote

from ..sources.models import ProviderResponse
from .base import BaseProviderAdapter, ProviderSettings

logger = logging.getLogger(__name__)


class DOAJAdapter(BaseProviderAdapter):
    """
    Adapter for the DOAJ article search API.

    The query is part of the path, so it is percent-encoded here.
    """

    name = "doaj"
    label = "DOAJ"

    @classmethod
    def default_settings(cls, api_key: str | None = None) -> ProviderSettings:
        return ProviderSettings(
            base_url="https://doaj.org/api/search",
            timeout=10.0,
            retries=3,
            requests_per_second=2,
        )

    async def _search(self, query: str, limit: int) -> ProviderResponse:
        return await self._get_json(
            f"/articles/{quote(query, safe='')}", params={"pageSize": limit}
        )

    async def search_by_title(self, title: str, limit: int = 10) -> ProviderResponse:
        return await self._search(f'bibjson.title:"{title}"', limit)

    async def search_by_author(self, author: str, limit: int = 10) -> ProviderResponse:
        return await self._search(f'bibjson.author.name:"{author}"', limit)

    async def search_by_doi(self, doi: str) -> ProviderResponse:
        clean = self.clean_doi(doi)
        if not clean:
            return self.fail("Invalid DOI format")
        return await self._search(f'bibjson.identifier.id:"{clean}"', 1)

    async def search_by_keyword(self, keyword: str, limit: int = 10) -> ProviderResponse:
        return await self._search(keyword, limit)

    def transform_response(self, data: Any) -> list[dict[str, Any]]:
        if not isinstance(data, dict):
            return []

        records = []
        for item in data.get("results") or []:
            bibjson = item.get("bibjson") or {}
            journal = bibjson.get("journal") or {}
            links = bibjson.get("link") or []
            full_text = next((link.get("url") for link in links if link.get("type") == "fulltext"), None)
            start, end = bibjson.get("start_page"), bibjson.get("end_page")

            records.append({
                "id": f"doaj:{item['id']}" if item.get("id") else None,
                "identifiers": bibjson.get("identifier") or [],
                "title": bibjson.get("title"),
                "authors": bibjson.get("author") or [],
                "year": bibjson.get("year"),
                "type": "journal",
                "journal": journal.get("title"),
                "issn": (journal.get("issns") or [None])[0],
                "volume": journal.get("volume"),
                "issue": journal.get("number"),
                "pages": f"{start}-{end}" if start and end else start,
                "publisher": journal.get("publisher"),
                "abstract": bibjson.get("abstract"),
                "url": full_text,
                "isOpenAccess": True,
                "keywords": bibjson.get("keywords"),
            })
        return records
