"""Pydantic models shared by adapters, the normalizer and the fetcher."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base for models that travel to callers (camelCase on the wire)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class SearchType(str, Enum):
    """How the query string should be interpreted by providers."""

    KEYWORD = "keyword"
    TITLE = "title"
    AUTHOR = "author"
    DOI = "doi"


class SourceType(str, Enum):
    """Publication type of a canonical source."""

    JOURNAL = "journal"
    BOOK = "book"
    CONFERENCE = "conference"
    PREPRINT = "preprint"
    THESIS = "thesis"
    WEBSITE = "website"
    DATASET = "dataset"
    OTHER = "other"


class SearchFilters(WireModel):
    """Optional constraints applied to normalized sources."""

    year_from: int | None = None
    year_to: int | None = None
    source_types: list[SourceType] | None = None
    open_access_only: bool = False

    def matches(self, source: "CanonicalSource") -> bool:
        """Return True when the source satisfies every populated constraint."""
        if self.year_from is not None or self.year_to is not None:
            if source.year is None:
                return False
            if self.year_from is not None and source.year < self.year_from:
                return False
            if self.year_to is not None and source.year > self.year_to:
                return False

        if self.source_types and source.source_type not in self.source_types:
            return False

        if self.open_access_only and not source.is_open_access:
            return False

        return True


class SearchQuery(WireModel):
    """One search request. Immutable once constructed."""

    query: str
    type: SearchType = SearchType.KEYWORD
    limit: int = Field(10, ge=1, le=100)
    filters: SearchFilters | None = None

    def cache_key(self) -> str:
        """Key derived from the full query, insensitive to case and spacing."""
        normalized = " ".join(self.query.lower().split())
        filters = self.filters.model_dump_json() if self.filters else ""
        return f"search:{self.type.value}:{self.limit}:{normalized}:{filters}"


class Author(WireModel):
    """Author information."""

    first_name: str | None = None
    last_name: str | None = None
    full_name: str | None = None
    orcid: str | None = None
    affiliation: str | None = None


class CanonicalSource(WireModel):
    """Provider-agnostic bibliographic record."""

    # Identifiers
    id: str
    doi: str | None = None
    pmid: str | None = None
    pmcid: str | None = None
    arxiv_id: str | None = None
    isbn: str | None = None
    issn: str | None = None

    # Basic metadata
    title: str
    authors: list[Author] = Field(default_factory=list)
    year: int | None = None
    publication_date: str | None = None

    # Publication details
    source_type: SourceType = SourceType.OTHER
    journal: str | None = None
    volume: str | None = None
    issue: str | None = None
    pages: str | None = None
    publisher: str | None = None

    # Access
    url: str | None = None
    pdf_url: str | None = None
    is_open_access: bool = False

    # Additional metadata
    abstract: str | None = None
    keywords: list[str] = Field(default_factory=list)
    citation_count: int | None = None

    completeness: float = 0.0
    source_api: str
    fetched_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ProviderResponse(BaseModel):
    """Result of one adapter call.

    ``data`` is whatever the provider returned (a JSON payload, a list of
    records, or a single record); adapters with a ``transform_response``
    method flatten it into records.
    """

    success: bool
    data: Any = None
    error: str | None = None
    provider: str | None = None

    @classmethod
    def ok(cls, data: Any, provider: str | None = None) -> "ProviderResponse":
        return cls(success=True, data=data, provider=provider)

    @classmethod
    def fail(cls, error: str, provider: str | None = None) -> "ProviderResponse":
        return cls(success=False, error=error, provider=provider)


class SearchResult(WireModel):
    """Batch search output."""

    sources: list[CanonicalSource] = Field(default_factory=list)
    total_found: int = 0
    query: SearchQuery
    providers: list[str] = Field(default_factory=list)
    providers_succeeded: int = 0
    providers_failed: int = 0
    search_time_ms: int = 0
    cached: bool = False


class StartEvent(WireModel):
    type: Literal["start"] = "start"
    total_providers: int


class ProgressEvent(WireModel):
    type: Literal["progress"] = "progress"
    provider: str
    current: int
    total: int


class ResultsEvent(WireModel):
    type: Literal["results"] = "results"
    provider: str
    sources: list[CanonicalSource] = Field(default_factory=list)


class DoneEvent(WireModel):
    type: Literal["done"] = "done"


StreamEvent = StartEvent | ProgressEvent | ResultsEvent | DoneEvent
