"""OpenAlex adapter."""

import logging
from typing import Any

from ..sources.models import ProviderResponse
from .base import BaseProviderAdapter, ProviderSettings

logger = logging.getLogger(__name__)

OPENALEX_TYPES = {
    "journal-article": "journal",
    "article": "journal",
    "book": "book",
    "book-chapter": "book",
    "proceedings-article": "conference",
    "posted-content": "preprint",
    "preprint": "preprint",
    "dissertation": "thesis",
    "dataset": "dataset",
}


def reconstruct_abstract(inverted_index: dict[str, list[int]] | None) -> str | None:
    """Rebuild abstract text from OpenAlex's inverted index."""
    if not inverted_index:
        return None

    positions: list[tuple[int, str]] = []
    for word, indexes in inverted_index.items():
        for index in indexes:
            positions.append((index, word))
    positions.sort()
    return " ".join(word for _, word in positions)


class OpenAlexAdapter(BaseProviderAdapter):
    """
    Adapter for the OpenAlex works API.

    ``api_key`` is used as the ``mailto`` contact for the polite pool.
    """

    name = "openalex"
    label = "OpenAlex"

    @classmethod
    def default_settings(cls, api_key: str | None = None) -> ProviderSettings:
        return ProviderSettings(
            base_url="https://api.openalex.org",
            timeout=10.0,
            retries=3,
            requests_per_second=10,
        )

    def _params(self, **params: Any) -> dict[str, Any]:
        if self.api_key:
            params["mailto"] = self.api_key
        return params

    async def search_by_title(self, title: str, limit: int = 10) -> ProviderResponse:
        return await self._get_json(
            "/works", params=self._params(filter=f"title.search:{title}", per_page=limit)
        )

    async def search_by_author(self, author: str, limit: int = 10) -> ProviderResponse:
        return await self._get_json(
            "/works", params=self._params(filter=f"raw_author_name.search:{author}", per_page=limit)
        )

    async def search_by_doi(self, doi: str) -> ProviderResponse:
        clean = self.clean_doi(doi)
        if not clean:
            return self.fail("Invalid DOI format")
        return await self._get_json(f"/works/doi:{clean}", params=self._params())

    async def search_by_keyword(self, keyword: str, limit: int = 10) -> ProviderResponse:
        return await self._get_json("/works", params=self._params(search=keyword, per_page=limit))

    def transform_response(self, data: Any) -> list[dict[str, Any]]:
        """Flatten ``results`` (search) or a single work (DOI lookup)."""
        if not isinstance(data, dict):
            return []
        works = data["results"] if "results" in data else [data]

        records = []
        for work in works or []:
            location = work.get("primary_location") or {}
            source = location.get("source") or {}
            biblio = work.get("biblio") or {}
            open_access = work.get("open_access") or {}

            first_page, last_page = biblio.get("first_page"), biblio.get("last_page")
            pages = f"{first_page}-{last_page}" if first_page and last_page else first_page

            records.append({
                "id": work.get("id"),
                "doi": work.get("doi"),
                "title": work.get("title") or work.get("display_name"),
                "authors": [
                    {
                        "fullName": (a.get("author") or {}).get("display_name"),
                        "orcid": (a.get("author") or {}).get("orcid"),
                        "affiliation": ((a.get("institutions") or [{}])[0] or {}).get("display_name"),
                    }
                    for a in work.get("authorships") or []
                ],
                "year": work.get("publication_year"),
                "publicationDate": work.get("publication_date"),
                "type": OPENALEX_TYPES.get(work.get("type") or "", "other"),
                "journal": source.get("display_name"),
                "issn": source.get("issn_l"),
                "volume": biblio.get("volume"),
                "issue": biblio.get("issue"),
                "pages": pages,
                "publisher": source.get("host_organization_name"),
                "url": location.get("landing_page_url"),
                "pdfUrl": open_access.get("oa_url"),
                "isOpenAccess": open_access.get("is_oa", False),
                "abstract": reconstruct_abstract(work.get("abstract_inverted_index")),
                "citationCount": work.get("cited_by_count"),
                "keywords": [c.get("display_name") for c in work.get("concepts") or []],
            })
        return records
