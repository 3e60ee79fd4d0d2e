"""Normalize provider records into CanonicalSource."""

import hashlib
import logging
import re
from collections.abc import Iterable, Mapping
from typing import Any

from .errors import NormalizationError
from .models import Author, CanonicalSource, SourceType

logger = logging.getLogger(__name__)

DOI_PATTERN = re.compile(r"^10\.\d{4,9}/\S+$")
DOI_PREFIXES = (
    "https://doi.org/",
    "http://doi.org/",
    "https://dx.doi.org/",
    "http://dx.doi.org/",
    "doi.org/",
    "dx.doi.org/",
    "doi:",
)
YEAR_PATTERN = re.compile(r"\b(\d{4})\b")
TAG_PATTERN = re.compile(r"<[^>]+>")

# Optional fields counted by the completeness score
COMPLETENESS_FIELDS = (
    "authors",
    "year",
    "doi",
    "url",
    "journal",
    "publisher",
    "volume",
    "issue",
    "pages",
    "isbn",
    "issn",
    "abstract",
)


def _first(raw: Mapping[str, Any], *keys: str) -> Any:
    """Return the first non-empty value among keys."""
    for key in keys:
        value = raw.get(key)
        if value not in (None, "", [], {}):
            return value
    return None


def _text(value: Any) -> str | None:
    """Coerce scalars and single-element lists to a stripped string."""
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def clean_markup(value: Any) -> str | None:
    """Strip markup tags (JATS, HTML) and collapse whitespace."""
    text = _text(value)
    if text is None:
        return None
    text = TAG_PATTERN.sub("", text)
    return " ".join(text.split()) or None


def normalize_doi(value: Any) -> str | None:
    """Strip resolver prefixes and lowercase. Invalid DOIs become None."""
    text = _text(value)
    if not text:
        return None

    doi = text
    lowered = doi.lower()
    for prefix in DOI_PREFIXES:
        if lowered.startswith(prefix):
            doi = doi[len(prefix):]
            lowered = doi.lower()
    doi = doi.strip().rstrip(".")

    if not DOI_PATTERN.match(doi):
        return None
    return doi.lower()


def _doi_from_identifiers(identifiers: Any) -> Any:
    """Find a DOI in identifier lists or mappings."""
    if isinstance(identifiers, Mapping):
        return identifiers.get("DOI") or identifiers.get("doi")
    if isinstance(identifiers, (list, tuple)):
        for item in identifiers:
            if not isinstance(item, Mapping):
                continue
            kind = str(item.get("type") or item.get("idtype") or "").lower()
            if kind == "doi":
                return item.get("id") or item.get("value")
    return None


def extract_doi(raw: Mapping[str, Any]) -> str | None:
    """Extract a normalized DOI from the usual field-name variants."""
    candidate = _first(raw, "doi", "DOI")
    if candidate is None:
        candidate = _doi_from_identifiers(
            _first(raw, "identifiers", "identifier", "externalIds", "articleids")
        )
    return normalize_doi(candidate)


def extract_year(value: Any) -> int | None:
    """Extract a year from ints, date strings, or CrossRef date-parts."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, Mapping):
        return extract_year(value.get("date-parts") or value.get("date_parts"))
    if isinstance(value, (list, tuple)):
        return extract_year(value[0]) if value else None

    match = YEAR_PATTERN.search(str(value))
    return int(match.group(1)) if match else None


def _date(value: Any) -> str | None:
    """Date string, or "Y-M-D" joined from CrossRef-style date-parts."""
    if isinstance(value, Mapping):
        parts = value.get("date-parts") or value.get("date_parts")
        if parts and isinstance(parts[0], (list, tuple)):
            return "-".join(str(p) for p in parts[0] if p is not None) or None
        return None
    return _text(value) if isinstance(value, str) else None


def _parse_author_string(value: str) -> Author | None:
    """Parse "Last, First" or "First Last"."""
    value = " ".join(value.split())
    if not value:
        return None

    parts = [p.strip() for p in value.split(",")]
    if len(parts) == 2 and all(parts):
        last, first = parts
        return Author(first_name=first, last_name=last, full_name=f"{first} {last}")

    names = value.split(" ")
    if len(names) >= 2:
        return Author(
            first_name=" ".join(names[:-1]),
            last_name=names[-1],
            full_name=value,
        )
    return Author(full_name=value)


def _affiliation(value: Any) -> str | None:
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if isinstance(value, Mapping):
        value = value.get("name") or value.get("display_name")
    return _text(value)


def normalize_authors(authors: Any) -> list[Author]:
    """Coerce provider author lists into Author models.

    Entries without a full or last name are dropped. Values that are not a
    string, mapping or list yield no authors.
    """
    if not authors:
        return []
    if isinstance(authors, (str, Mapping)):
        authors = [authors]
    elif not isinstance(authors, Iterable):
        return []

    result: list[Author] = []
    for entry in authors:
        if isinstance(entry, str):
            author = _parse_author_string(entry)
        elif isinstance(entry, Mapping):
            first = _text(_first(entry, "given", "firstName", "first_name", "givenName"))
            last = _text(_first(entry, "family", "lastName", "last_name", "familyName"))
            full = _text(_first(entry, "name", "fullName", "full_name", "display_name"))
            if not full and (first or last):
                full = " ".join(p for p in (first, last) if p)
            author = Author(
                first_name=first,
                last_name=last,
                full_name=full,
                orcid=_text(_first(entry, "ORCID", "orcid")),
                affiliation=_affiliation(entry.get("affiliation")),
            )
        else:
            author = None

        if author and (author.full_name or author.last_name):
            result.append(author)
    return result


def normalize_type(value: Any) -> SourceType:
    """Map provider publication types onto SourceType."""
    text = (_text(value) or "").lower()

    if "conference" in text or "proceeding" in text:
        return SourceType.CONFERENCE
    if "preprint" in text or "arxiv" in text or "posted-content" in text:
        return SourceType.PREPRINT
    if "journal" in text or "article" in text:
        return SourceType.JOURNAL
    if "book" in text:
        return SourceType.BOOK
    if "thesis" in text or "dissertation" in text:
        return SourceType.THESIS
    if "dataset" in text or "data" in text:
        return SourceType.DATASET
    if "website" in text or "web" in text:
        return SourceType.WEBSITE
    return SourceType.OTHER


def _keywords(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [k.strip() for k in re.split(r"[,;]", value) if k.strip()]
    if isinstance(value, Mapping) or not isinstance(value, Iterable):
        return []
    return [str(k).strip() for k in value if k and str(k).strip()]


def _int(value: Any) -> int | None:
    try:
        return int(value) if value not in (None, "") else None
    except (TypeError, ValueError):
        return None


def _source_id(raw: Mapping[str, Any], doi: str | None, title: str, year: int | None) -> str:
    explicit = _text(_first(raw, "id", "paperId"))
    if explicit:
        return explicit
    if doi:
        return doi
    digest = hashlib.sha1(f"{title}|{year or ''}".encode("utf-8")).hexdigest()[:12]
    return f"source_{digest}"


def calculate_completeness(fields: Mapping[str, Any]) -> float:
    """Fraction of tracked optional fields that are populated."""
    populated = sum(1 for name in COMPLETENESS_FIELDS if fields.get(name) not in (None, "", []))
    return populated / len(COMPLETENESS_FIELDS)


def normalize(raw: Mapping[str, Any], provider_name: str) -> CanonicalSource:
    """Map one provider record into a CanonicalSource.

    Args:
        raw: Provider record (after the adapter's transform, if any)
        provider_name: Display name of the originating provider

    Returns:
        CanonicalSource with completeness computed

    Raises:
        NormalizationError: If no title can be derived, or a field holds a
            value of an unexpected shape
    """
    if not isinstance(raw, Mapping):
        raise NormalizationError(provider_name, f"record is {type(raw).__name__}, not a mapping")

    try:
        title = clean_markup(_first(raw, "title", "Title", "display_name"))
        if not title:
            raise NormalizationError(provider_name, "record has no title")
        fields = _extract_fields(raw, title)
    except (TypeError, AttributeError, ValueError) as e:
        raise NormalizationError(provider_name, f"malformed record: {e}") from e

    return CanonicalSource(source_api=provider_name, **fields)


def _extract_fields(raw: Mapping[str, Any], title: str) -> dict[str, Any]:
    doi = extract_doi(raw)
    year = extract_year(
        _first(raw, "year", "publicationYear", "published", "issued", "date")
    )
    url = _text(_first(raw, "url", "URL", "link"))
    if not url and doi:
        url = f"https://doi.org/{doi}"

    fields: dict[str, Any] = {
        "doi": doi,
        "pmid": _text(_first(raw, "pmid", "PMID")),
        "pmcid": _text(_first(raw, "pmcid", "PMCID")),
        "arxiv_id": _text(_first(raw, "arxiv_id", "arxivId")),
        "isbn": _text(_first(raw, "isbn", "ISBN")),
        "issn": _text(_first(raw, "issn", "ISSN")),
        "title": title,
        "authors": normalize_authors(_first(raw, "authors", "author", "creator")),
        "year": year,
        "publication_date": _date(_first(raw, "publicationDate", "publication_date", "published", "date")),
        "source_type": normalize_type(_first(raw, "type", "publicationType")),
        "journal": clean_markup(_first(raw, "journal", "container-title", "journalTitle")),
        "volume": _text(raw.get("volume")),
        "issue": _text(raw.get("issue")),
        "pages": _text(_first(raw, "pages", "page")),
        "publisher": _text(_first(raw, "publisher", "Publisher")),
        "url": url,
        "pdf_url": _text(_first(raw, "pdfUrl", "pdf_url")),
        "is_open_access": bool(_first(raw, "isOpenAccess", "is_oa", "open_access")),
        "abstract": clean_markup(_first(raw, "abstract", "Abstract")),
        "keywords": _keywords(_first(raw, "keywords", "tags")),
        "citation_count": _int(_first(raw, "citationCount", "citation_count", "cited_by_count")),
    }
    fields["id"] = _source_id(raw, doi, title, year)
    fields["completeness"] = calculate_completeness(fields)

    return fields
