"""CrossRef adapter (primary DOI registry)."""

import logging
from typing import Any

from ..sources.models import ProviderResponse
from .base import BaseProviderAdapter, ProviderSettings

logger = logging.getLogger(__name__)


class CrossRefAdapter(BaseProviderAdapter):
    """
    Adapter for the CrossRef REST API.

    ``api_key`` is used as the ``mailto`` contact, which moves requests into
    CrossRef's polite pool.
    """

    name = "crossref"
    label = "CrossRef"

    @classmethod
    def default_settings(cls, api_key: str | None = None) -> ProviderSettings:
        return ProviderSettings(
            base_url="https://api.crossref.org",
            timeout=10.0,
            retries=3,
            requests_per_second=50 if api_key else 1,
        )

    def _params(self, **params: Any) -> dict[str, Any]:
        if self.api_key:
            params["mailto"] = self.api_key
        return params

    async def search_by_title(self, title: str, limit: int = 10) -> ProviderResponse:
        return await self._get_json(
            "/works", params=self._params(**{"query.bibliographic": title, "rows": limit})
        )

    async def search_by_author(self, author: str, limit: int = 10) -> ProviderResponse:
        return await self._get_json(
            "/works", params=self._params(**{"query.author": author, "rows": limit})
        )

    async def search_by_doi(self, doi: str) -> ProviderResponse:
        clean = self.clean_doi(doi)
        if not clean:
            return self.fail("Invalid DOI format")
        return await self._get_json(f"/works/{clean}", params=self._params())

    async def search_by_keyword(self, keyword: str, limit: int = 10) -> ProviderResponse:
        return await self._get_json("/works", params=self._params(query=keyword, rows=limit))

    def transform_response(self, data: Any) -> list[dict[str, Any]]:
        """Flatten ``message.items`` (search) or ``message`` (DOI lookup)."""
        if not isinstance(data, dict) or not isinstance(data.get("message"), dict):
            return []

        message = data["message"]
        items = message.get("items") if "items" in message else [message]

        records = []
        for item in items or []:
            date_parts = (item.get("published") or item.get("issued") or {}).get("date-parts") or [[]]
            first_date = [p for p in date_parts[0] if p is not None] if date_parts else []
            records.append({
                "doi": item.get("DOI"),
                "title": item.get("title"),
                "authors": item.get("author") or [],
                "year": first_date[0] if first_date else None,
                "published": "-".join(str(p) for p in first_date) or None,
                "type": item.get("type"),
                "journal": item.get("container-title"),
                "volume": item.get("volume"),
                "issue": item.get("issue"),
                "pages": item.get("page"),
                "publisher": item.get("publisher"),
                "issn": item.get("ISSN"),
                "isbn": item.get("ISBN"),
                "url": item.get("URL"),
                "citationCount": item.get("is-referenced-by-count"),
                "abstract": item.get("abstract"),
                "keywords": item.get("subject"),
            })
        return records
