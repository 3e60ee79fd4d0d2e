"""Semantic Scholar adapter."""

import logging
from typing import Any

from ..sources.models import ProviderResponse
from .base import BaseProviderAdapter, ProviderSettings

logger = logging.getLogger(__name__)

PAPER_FIELDS = ",".join([
    "paperId",
    "title",
    "authors",
    "year",
    "abstract",
    "citationCount",
    "fieldsOfStudy",
    "publicationTypes",
    "publicationDate",
    "journal",
    "venue",
    "externalIds",
    "url",
    "isOpenAccess",
    "openAccessPdf",
])


class SemanticScholarAdapter(BaseProviderAdapter):
    """
    Adapter for the Semantic Scholar Graph API.

    The search endpoint has no author field, so author searches go through
    keyword search.
    """

    name = "semanticscholar"
    label = "SemanticScholar"

    @classmethod
    def default_settings(cls, api_key: str | None = None) -> ProviderSettings:
        return ProviderSettings(
            base_url="https://api.semanticscholar.org/graph/v1",
            timeout=10.0,
            retries=3,
            requests_per_second=10 if api_key else 1,
        )

    def default_headers(self) -> dict[str, str]:
        headers = super().default_headers()
        if self.api_key:
            headers["x-api-key"] = self.api_key
        return headers

    async def search_by_title(self, title: str, limit: int = 10) -> ProviderResponse:
        return await self._get_json(
            "/paper/search",
            params={"query": title, "limit": min(limit, 100), "fields": PAPER_FIELDS},
        )

    async def search_by_author(self, author: str, limit: int = 10) -> ProviderResponse:
        return await self.search_by_keyword(author, limit)

    async def search_by_doi(self, doi: str) -> ProviderResponse:
        clean = self.clean_doi(doi)
        if not clean:
            return self.fail("Invalid DOI format")
        return await self._get_json(f"/paper/DOI:{clean}", params={"fields": PAPER_FIELDS})

    async def search_by_keyword(self, keyword: str, limit: int = 10) -> ProviderResponse:
        return await self.search_by_title(keyword, limit)

    def transform_response(self, data: Any) -> list[dict[str, Any]]:
        """Flatten ``data`` (search) or a single paper (DOI lookup)."""
        if not isinstance(data, dict):
            return []
        papers = data["data"] if "data" in data else [data]

        records = []
        for paper in papers or []:
            journal = paper.get("journal") or {}
            external_ids = paper.get("externalIds") or {}
            records.append({
                "id": paper.get("paperId"),
                "doi": external_ids.get("DOI"),
                "arxivId": external_ids.get("ArXiv"),
                "pmid": external_ids.get("PubMed"),
                "title": paper.get("title"),
                "authors": [{"fullName": a.get("name")} for a in paper.get("authors") or []],
                "year": paper.get("year"),
                "publicationDate": paper.get("publicationDate"),
                "type": _infer_type(paper.get("publicationTypes")),
                "journal": journal.get("name") or paper.get("venue"),
                "volume": journal.get("volume"),
                "pages": journal.get("pages"),
                "abstract": paper.get("abstract"),
                "url": paper.get("url"),
                "pdfUrl": (paper.get("openAccessPdf") or {}).get("url"),
                "isOpenAccess": paper.get("isOpenAccess"),
                "citationCount": paper.get("citationCount"),
                "keywords": paper.get("fieldsOfStudy"),
            })
        return records


def _infer_type(publication_types: list[str] | None) -> str:
    if not publication_types:
        return "other"

    kind = publication_types[0].lower()
    if "conference" in kind:
        return "conference"
    if "book" in kind:
        return "book"
    return "journal"
