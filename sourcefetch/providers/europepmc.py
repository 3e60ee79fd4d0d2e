"""Europe PMC adapter."""

import logging
from typing import Any

from ..sources.models import ProviderResponse
from .base import BaseProviderAdapter, ProviderSettings
from .pubmed import split_citation_name

logger = logging.getLogger(__name__)


class EuropePMCAdapter(BaseProviderAdapter):
    """Adapter for the Europe PMC REST search API."""

    name = "europepmc"
    label = "EuropePMC"

    @classmethod
    def default_settings(cls, api_key: str | None = None) -> ProviderSettings:
        return ProviderSettings(
            base_url="https://www.ebi.ac.uk/europepmc/webservices/rest",
            timeout=10.0,
            retries=3,
            requests_per_second=5,
        )

    async def _search(self, query: str, limit: int) -> ProviderResponse:
        return await self._get_json(
            "/search",
            params={"query": query, "pageSize": limit, "format": "json", "resultType": "core"},
        )

    async def search_by_title(self, title: str, limit: int = 10) -> ProviderResponse:
        return await self._search(f'TITLE:"{title}"', limit)

    async def search_by_author(self, author: str, limit: int = 10) -> ProviderResponse:
        return await self._search(f'AUTH:"{author}"', limit)

    async def search_by_doi(self, doi: str) -> ProviderResponse:
        clean = self.clean_doi(doi)
        if not clean:
            return self.fail("Invalid DOI format")
        return await self._search(f'DOI:"{clean}"', 1)

    async def search_by_keyword(self, keyword: str, limit: int = 10) -> ProviderResponse:
        return await self._search(keyword, limit)

    def transform_response(self, data: Any) -> list[dict[str, Any]]:
        """Map ``resultList.result`` entries."""
        if not isinstance(data, dict):
            return []

        records = []
        for item in (data.get("resultList") or {}).get("result") or []:
            pmid = item.get("pmid")
            journal_info = item.get("journalInfo") or {}
            journal = journal_info.get("journal") or {}
            author_string = item.get("authorString") or ""

            if pmid:
                url = f"https://europepmc.org/article/MED/{pmid}"
            elif item.get("id"):
                url = f"https://europepmc.org/article/{item.get('source', 'MED')}/{item['id']}"
            else:
                url = None

            records.append({
                "id": f"europepmc:{item['id']}" if item.get("id") else None,
                "pmid": pmid,
                "pmcid": item.get("pmcid"),
                "doi": item.get("doi"),
                "title": item.get("title"),
                "authors": [split_citation_name(a.strip().rstrip(".")) for a in author_string.split(", ") if a.strip()],
                "year": item.get("pubYear"),
                "publicationDate": item.get("firstPublicationDate"),
                "type": "preprint" if item.get("source") == "PPR" else "journal",
                "journal": item.get("journalTitle") or journal.get("title"),
                "issn": journal.get("issn"),
                "volume": journal_info.get("volume"),
                "issue": journal_info.get("issue"),
                "pages": item.get("pageInfo"),
                "abstract": item.get("abstractText"),
                "url": url,
                "isOpenAccess": item.get("isOpenAccess") == "Y",
                "citationCount": item.get("citedByCount"),
            })
        return records
