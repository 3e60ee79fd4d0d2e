"""PubMed adapter (NCBI E-utilities)."""

import logging
from typing import Any

from ..sources.models import ProviderResponse
from .base import BaseProviderAdapter, ProviderSettings

logger = logging.getLogger(__name__)


def split_citation_name(name: str) -> dict[str, str]:
    """PubMed names are "Last Initials", e.g. "Vaswani A"."""
    last, _, initials = name.rpartition(" ")
    if not last:
        return {"lastName": name, "fullName": name}
    return {"firstName": initials, "lastName": last, "fullName": name}


class PubMedAdapter(BaseProviderAdapter):
    """
    Adapter for PubMed via E-utilities.

    Searches run in two steps: ``esearch`` returns PMIDs, ``esummary``
    returns the records for those ids.
    """

    name = "pubmed"
    label = "PubMed"

    @classmethod
    def default_settings(cls, api_key: str | None = None) -> ProviderSettings:
        return ProviderSettings(
            base_url="https://eutils.ncbi.nlm.nih.gov/entrez/eutils",
            timeout=15.0,
            retries=3,
            requests_per_second=10 if api_key else 3,
        )

    def _params(self, **params: Any) -> dict[str, Any]:
        params.update(db="pubmed", retmode="json")
        if self.api_key:
            params["api_key"] = self.api_key
        return params

    async def _search(self, term: str, limit: int) -> ProviderResponse:
        ids = await self._get_json("/esearch.fcgi", params=self._params(term=term, retmax=limit))
        if not ids.success:
            return ids

        id_list = ((ids.data or {}).get("esearchresult") or {}).get("idlist") or []
        if not id_list:
            return self.ok({"result": {"uids": []}})

        return await self._get_json("/esummary.fcgi", params=self._params(id=",".join(id_list)))

    async def search_by_title(self, title: str, limit: int = 10) -> ProviderResponse:
        return await self._search(f"{title}[Title]", limit)

    async def search_by_author(self, author: str, limit: int = 10) -> ProviderResponse:
        return await self._search(f"{author}[Author]", limit)

    async def search_by_doi(self, doi: str) -> ProviderResponse:
        clean = self.clean_doi(doi)
        if not clean:
            return self.fail("Invalid DOI format")
        return await self._search(f"{clean}[DOI]", 1)

    async def search_by_keyword(self, keyword: str, limit: int = 10) -> ProviderResponse:
        return await self._search(keyword, limit)

    def transform_response(self, data: Any) -> list[dict[str, Any]]:
        """Map esummary ``result`` entries in PMID order."""
        result = (data or {}).get("result") if isinstance(data, dict) else None
        if not isinstance(result, dict):
            return []

        records = []
        for pmid in result.get("uids") or []:
            record = result.get(pmid)
            if not isinstance(record, dict):
                continue

            doi = None
            pmcid = None
            for article_id in record.get("articleids") or []:
                id_type = article_id.get("idtype")
                value = article_id.get("value")
                if id_type == "doi" and value and not doi:
                    doi = value
                if id_type == "pmc" and value and not pmcid:
                    pmcid = value

            pub_types = record.get("pubtype") or []
            records.append({
                "pmid": pmid,
                "pmcid": pmcid,
                "doi": doi,
                "title": record.get("title"),
                "authors": [split_citation_name(a.get("name")) for a in record.get("authors") or [] if a.get("name")],
                "year": record.get("pubdate"),
                "publicationDate": record.get("sortpubdate") or record.get("pubdate"),
                "type": "preprint" if "Preprint" in pub_types else "journal",
                "journal": record.get("fulljournalname") or record.get("source"),
                "volume": record.get("volume"),
                "issue": record.get("issue"),
                "pages": record.get("pages"),
                "issn": record.get("issn") or record.get("essn"),
                "url": f"https://pubmed.ncbi.nlm.nih.gov/{pmid}/",
                "isOpenAccess": bool(pmcid),
            })
        return records
