"""DataCite adapter (datasets, software and other research outputs)."""

import logging
from typing import Any

from ..sources.models import ProviderResponse
from .base import BaseProviderAdapter, ProviderSettings

logger = logging.getLogger(__name__)

RESOURCE_TYPES = {
    "journalarticle": "journal",
    "book": "book",
    "bookchapter": "book",
    "conferencepaper": "conference",
    "conferenceproceeding": "conference",
    "preprint": "preprint",
    "dissertation": "thesis",
    "dataset": "dataset",
}


class DataCiteAdapter(BaseProviderAdapter):
    """Adapter for the DataCite REST API."""

    name = "datacite"
    label = "DataCite"

    @classmethod
    def default_settings(cls, api_key: str | None = None) -> ProviderSettings:
        return ProviderSettings(
            base_url="https://api.datacite.org",
            timeout=10.0,
            retries=3,
            requests_per_second=2,
        )

    def default_headers(self) -> dict[str, str]:
        return {"Accept": "application/vnd.api+json"}

    async def _search(self, query: str, limit: int) -> ProviderResponse:
        return await self._get_json("/dois", params={"query": query, "page[size]": limit})

    async def search_by_title(self, title: str, limit: int = 10) -> ProviderResponse:
        return await self._search(f'titles.title:"{title}"', limit)

    async def search_by_author(self, author: str, limit: int = 10) -> ProviderResponse:
        return await self._search(f'creators.name:"{author}"', limit)

    async def search_by_doi(self, doi: str) -> ProviderResponse:
        clean = self.clean_doi(doi)
        if not clean:
            return self.fail("Invalid DOI format")
        return await self._get_json(f"/dois/{clean}")

    async def search_by_keyword(self, keyword: str, limit: int = 10) -> ProviderResponse:
        return await self._search(keyword, limit)

    def transform_response(self, data: Any) -> list[dict[str, Any]]:
        """Map ``data[].attributes`` (search) or ``data.attributes`` (DOI lookup)."""
        if not isinstance(data, dict):
            return []
        items = data.get("data")
        if isinstance(items, dict):
            items = [items]

        records = []
        for item in items or []:
            attributes = item.get("attributes") or {}
            titles = attributes.get("titles") or [{}]
            descriptions = attributes.get("descriptions") or []
            container = attributes.get("container") or {}
            resource_type = ((attributes.get("types") or {}).get("resourceTypeGeneral") or "").lower()

            records.append({
                "id": f"datacite:{item['id']}" if item.get("id") else None,
                "doi": attributes.get("doi") or item.get("id"),
                "title": titles[0].get("title"),
                "authors": [
                    {
                        "firstName": c.get("givenName"),
                        "lastName": c.get("familyName"),
                        "fullName": c.get("name"),
                        "affiliation": c.get("affiliation"),
                    }
                    for c in attributes.get("creators") or []
                ],
                "year": attributes.get("publicationYear"),
                "publicationDate": attributes.get("published"),
                "type": RESOURCE_TYPES.get(resource_type, "other"),
                "journal": container.get("title"),
                "volume": container.get("volume"),
                "issue": container.get("issue"),
                "publisher": _publisher(attributes.get("publisher")),
                "abstract": next(
                    (d.get("description") for d in descriptions if d.get("descriptionType") == "Abstract"),
                    None,
                ),
                "url": attributes.get("url"),
                "keywords": [s.get("subject") for s in attributes.get("subjects") or [] if s.get("subject")],
                "citationCount": attributes.get("citationCount"),
            })
        return records


def _publisher(value: Any) -> str | None:
    # Newer API versions return publisher as an object
    if isinstance(value, dict):
        return value.get("name")
    return value
