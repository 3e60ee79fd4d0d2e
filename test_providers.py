"""
Provider Adapter Tests

Each adapter runs against an httpx.MockTransport, so no network is needed.
"""

import asyncio
import json
from datetime import datetime, timezone

import arxiv
import httpx
import pytest

from sourcefetch.providers import (
    ArXivAdapter,
    BioRxivAdapter,
    CoreAdapter,
    CrossRefAdapter,
    DataCiteAdapter,
    DOAJAdapter,
    EuropePMCAdapter,
    OpenAlexAdapter,
    ProviderName,
    PubMedAdapter,
    SemanticScholarAdapter,
    create_adapter,
)
from sourcefetch.providers.openalex import reconstruct_abstract
from sourcefetch.providers.pubmed import split_citation_name
from sourcefetch.sources.models import SourceType
from sourcefetch.sources.normalizer import normalize
from sourcefetch.sources.protocols import ProviderAdapter, ResponseTransformer


def _adapter(adapter_class, handler, api_key=None, **overrides):
    """Adapter wired to a mock transport, with retries instant and no rate limit."""
    settings = adapter_class.default_settings(api_key).model_copy(
        update={"retry_backoff": 0.0, "requests_per_second": None, **overrides}
    )
    return adapter_class(api_key=api_key, settings=settings, transport=httpx.MockTransport(handler))


def _call(adapter, method, *args):
    async def run():
        async with adapter:
            return await getattr(adapter, method)(*args)

    return asyncio.run(run())


def _unexpected(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"unexpected request to {request.url}")


# -----------------------------------------------------------------------------
# Shared HTTP behavior (exercised through CrossRef)
# -----------------------------------------------------------------------------


CROSSREF_WORK = {
    "DOI": "10.1000/xyz123",
    "title": ["Attention Is <i>All</i> You Need"],
    "author": [{"given": "Ashish", "family": "Vaswani", "ORCID": "https://orcid.org/0000-0001"}],
    "published": {"date-parts": [[2017, 6, 12]]},
    "type": "proceedings-article",
    "container-title": ["Advances in Neural Information Processing Systems"],
    "volume": "30",
    "page": "5998-6008",
    "publisher": "Curran Associates",
    "URL": "https://doi.org/10.1000/xyz123",
    "is-referenced-by-count": 90000,
}


def test_crossref_title_search():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"message": {"items": [CROSSREF_WORK]}})

    adapter = _adapter(CrossRefAdapter, handler, api_key="team@example.org")
    response = _call(adapter, "search_by_title", "attention is all you need", 5)

    assert response.success
    assert response.provider == "CrossRef"
    params = seen[0].url.params
    assert seen[0].url.path == "/works"
    assert params["query.bibliographic"] == "attention is all you need"
    assert params["rows"] == "5"
    assert params["mailto"] == "team@example.org"

    records = adapter.transform_response(response.data)
    assert len(records) == 1
    assert records[0]["year"] == 2017
    assert records[0]["published"] == "2017-6-12"

    source = normalize(records[0], adapter.label)
    assert source.title == "Attention Is All You Need"
    assert source.doi == "10.1000/xyz123"
    assert source.source_type == SourceType.CONFERENCE
    assert source.journal == "Advances in Neural Information Processing Systems"
    assert source.authors[0].last_name == "Vaswani"
    assert source.citation_count == 90000


def test_crossref_doi_lookup_strips_resolver_prefix():
    seen = []

    def handler(request):
        seen.append(request.url.path)
        return httpx.Response(200, json={"message": CROSSREF_WORK})

    adapter = _adapter(CrossRefAdapter, handler)
    response = _call(adapter, "search_by_doi", "https://doi.org/10.1000/XYZ123")

    assert seen == ["/works/10.1000/xyz123"]
    assert [r["doi"] for r in adapter.transform_response(response.data)] == ["10.1000/xyz123"]


def test_invalid_doi_fails_without_request():
    adapter = _adapter(CrossRefAdapter, _unexpected)
    response = _call(adapter, "search_by_doi", "not a doi")

    assert not response.success
    assert response.error == "Invalid DOI format"


def test_not_found_is_a_failed_response():
    adapter = _adapter(CrossRefAdapter, lambda request: httpx.Response(404))
    response = _call(adapter, "search_by_doi", "10.0000/doesnotexist")

    assert not response.success
    assert response.error == "HTTP 404: Not Found"
    assert adapter.get_metrics()["failed_requests"] == 1


def test_server_error_is_retried():
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) == 1:
            return httpx.Response(503)
        return httpx.Response(200, json={"message": {"items": []}})

    adapter = _adapter(CrossRefAdapter, handler)
    response = _call(adapter, "search_by_keyword", "malaria")

    assert response.success
    assert len(calls) == 2
    metrics = adapter.get_metrics()
    assert metrics["total_requests"] == 2
    assert metrics["successful_requests"] == 1
    assert metrics["failed_requests"] == 1
    assert metrics["last_error"] == "HTTP 503"


def test_retries_are_bounded():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(503)

    adapter = _adapter(CrossRefAdapter, handler, retries=2)
    response = _call(adapter, "search_by_keyword", "malaria")

    assert not response.success
    assert len(calls) == 3
    assert response.error.startswith("HTTP 503")


def test_connection_error_is_a_failed_response():
    def handler(request):
        raise httpx.ConnectError("connection refused")

    adapter = _adapter(CrossRefAdapter, handler, retries=0)
    response = _call(adapter, "search_by_keyword", "malaria")

    assert not response.success
    assert "ConnectError" in response.error


def test_malformed_payload_is_a_failed_response():
    adapter = _adapter(CrossRefAdapter, lambda request: httpx.Response(200, text="<html>oops</html>"))
    response = _call(adapter, "search_by_keyword", "malaria")

    assert not response.success
    assert response.error.startswith("Malformed payload")


def test_unexpected_payload_shape_flattens_to_nothing():
    adapter = CrossRefAdapter()
    assert adapter.transform_response({"status": "ok"}) == []
    assert adapter.transform_response(["not", "a", "dict"]) == []


def test_adapter_requires_context_manager():
    adapter = CrossRefAdapter()
    with pytest.raises(RuntimeError, match="async with"):
        asyncio.run(adapter.search_by_title("anything"))


# -----------------------------------------------------------------------------
# PubMed and Europe PMC
# -----------------------------------------------------------------------------


def test_split_citation_name():
    assert split_citation_name("Vaswani A") == {"firstName": "A", "lastName": "Vaswani", "fullName": "Vaswani A"}
    assert split_citation_name("van der Berg JH")["lastName"] == "van der Berg"
    assert split_citation_name("Consortium") == {"lastName": "Consortium", "fullName": "Consortium"}


def test_pubmed_search_then_summary():
    seen = []

    def handler(request):
        seen.append(request)
        params = request.url.params
        assert params["db"] == "pubmed"
        assert params["retmode"] == "json"
        if request.url.path.endswith("/esearch.fcgi"):
            return httpx.Response(200, json={"esearchresult": {"idlist": ["111", "222"]}})
        return httpx.Response(200, json={
            "result": {
                "uids": ["111", "222"],
                "111": {
                    "title": "Malaria vaccines in Africa.",
                    "authors": [{"name": "Smith J"}, {"name": "Doe AB"}],
                    "pubdate": "2019 Mar",
                    "fulljournalname": "The Lancet",
                    "articleids": [
                        {"idtype": "pubmed", "value": "111"},
                        {"idtype": "doi", "value": "10.1016/S0140-6736(19)30001-1"},
                        {"idtype": "pmc", "value": "PMC123"},
                    ],
                    "pubtype": ["Journal Article"],
                },
                "222": {"title": "Second paper", "pubdate": "2020", "pubtype": ["Preprint"]},
            }
        })

    adapter = _adapter(PubMedAdapter, handler)
    response = _call(adapter, "search_by_title", "malaria vaccines", 5)

    assert response.success
    assert seen[0].url.params["term"] == "malaria vaccines[Title]"
    assert seen[0].url.params["retmax"] == "5"
    assert seen[1].url.params["id"] == "111,222"

    records = adapter.transform_response(response.data)
    assert [r["pmid"] for r in records] == ["111", "222"]
    assert records[1]["type"] == "preprint"

    source = normalize(records[0], adapter.label)
    assert source.doi == "10.1016/s0140-6736(19)30001-1"
    assert source.pmcid == "PMC123"
    assert source.year == 2019
    assert source.is_open_access is True
    assert [a.last_name for a in source.authors] == ["Smith", "Doe"]
    assert source.url == "https://pubmed.ncbi.nlm.nih.gov/111/"


def test_pubmed_empty_idlist_skips_summary():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"esearchresult": {"idlist": []}})

    adapter = _adapter(PubMedAdapter, handler, api_key="ncbi-key")
    response = _call(adapter, "search_by_doi", "10.1000/none")

    assert response.success
    assert len(seen) == 1
    assert seen[0].url.params["term"] == "10.1000/none[DOI]"
    assert seen[0].url.params["api_key"] == "ncbi-key"
    assert adapter.transform_response(response.data) == []


def test_europepmc_author_search():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={
            "resultList": {
                "result": [{
                    "id": "PPR555",
                    "source": "PPR",
                    "doi": "10.1101/2020.01.01.123456",
                    "title": "A preprint about malaria",
                    "authorString": "Smith J, Doe A.",
                    "pubYear": "2020",
                    "isOpenAccess": "Y",
                    "citedByCount": 3,
                }]
            }
        })

    adapter = _adapter(EuropePMCAdapter, handler)
    response = _call(adapter, "search_by_author", "Smith J", 7)

    params = seen[0].url.params
    assert params["query"] == 'AUTH:"Smith J"'
    assert params["pageSize"] == "7"
    assert params["format"] == "json"
    assert params["resultType"] == "core"

    source = normalize(adapter.transform_response(response.data)[0], adapter.label)
    assert source.source_type == SourceType.PREPRINT
    assert source.year == 2020
    assert source.is_open_access is True
    assert [a.last_name for a in source.authors] == ["Smith", "Doe"]
    assert source.url == "https://europepmc.org/article/PPR/PPR555"


# -----------------------------------------------------------------------------
# OpenAlex, Semantic Scholar, CORE
# -----------------------------------------------------------------------------


def test_reconstruct_abstract():
    assert reconstruct_abstract({"learning": [1, 3], "Deep": [0], "works": [2]}) == "Deep learning works learning"
    assert reconstruct_abstract(None) is None


def test_openalex_title_search():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={
            "results": [{
                "id": "https://openalex.org/W1",
                "doi": "https://doi.org/10.1000/OA1",
                "title": "Deep learning",
                "publication_year": 2015,
                "type": "proceedings-article",
                "authorships": [{"author": {"display_name": "Yann LeCun"}, "institutions": [{"display_name": "NYU"}]}],
                "abstract_inverted_index": {"Deep": [0], "learning": [1], "works": [2]},
                "primary_location": {"source": {"display_name": "Nature", "issn_l": "0028-0836"}},
                "biblio": {"volume": "521", "first_page": "436", "last_page": "444"},
                "open_access": {"is_oa": True, "oa_url": "https://example.org/dl.pdf"},
                "cited_by_count": 50000,
            }]
        })

    adapter = _adapter(OpenAlexAdapter, handler)
    response = _call(adapter, "search_by_title", "deep learning", 3)

    params = seen[0].url.params
    assert params["filter"] == "title.search:deep learning"
    assert params["per_page"] == "3"

    record = adapter.transform_response(response.data)[0]
    assert record["type"] == "conference"
    assert record["pages"] == "436-444"

    source = normalize(record, adapter.label)
    assert source.doi == "10.1000/oa1"
    assert source.abstract == "Deep learning works"
    assert source.authors[0].full_name == "Yann LeCun"
    assert source.authors[0].affiliation == "NYU"
    assert source.pdf_url == "https://example.org/dl.pdf"
    assert source.is_open_access is True


def test_openalex_doi_lookup_returns_single_work():
    seen = []

    def handler(request):
        seen.append(request.url.path)
        return httpx.Response(200, json={"id": "W2", "title": "Single", "type": "dataset"})

    adapter = _adapter(OpenAlexAdapter, handler)
    response = _call(adapter, "search_by_doi", "10.1000/abc")

    assert seen == ["/works/doi:10.1000/abc"]
    assert [r["type"] for r in adapter.transform_response(response.data)] == ["dataset"]


def test_semantic_scholar_sends_key_and_routes_author_search():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={
            "data": [{
                "paperId": "abc",
                "title": "BERT",
                "authors": [{"name": "Jacob Devlin"}],
                "year": 2019,
                "publicationTypes": ["Conference"],
                "externalIds": {"DOI": "10.18653/v1/N19-1423", "ArXiv": "1810.04805"},
                "openAccessPdf": {"url": "https://example.org/bert.pdf"},
                "isOpenAccess": True,
            }]
        })

    adapter = _adapter(SemanticScholarAdapter, handler, api_key="s2-key")
    response = _call(adapter, "search_by_author", "Jacob Devlin", 200)

    request = seen[0]
    assert request.headers["x-api-key"] == "s2-key"
    assert request.url.path.endswith("/paper/search")
    assert request.url.params["query"] == "Jacob Devlin"
    assert request.url.params["limit"] == "100"

    source = normalize(adapter.transform_response(response.data)[0], adapter.label)
    assert source.id == "abc"
    assert source.doi == "10.18653/v1/n19-1423"
    assert source.arxiv_id == "1810.04805"
    assert source.source_type == SourceType.CONFERENCE


def test_core_posts_query_body():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={
            "results": [{
                "id": 42,
                "doi": "10.1000/core42",
                "title": "Open access paper",
                "authors": [{"name": "Jane Roe"}],
                "yearPublished": 2021,
                "downloadUrl": "https://core.ac.uk/download/42.pdf",
                "links": [{"type": "display", "url": "https://core.ac.uk/works/42"}],
            }]
        })

    adapter = _adapter(CoreAdapter, handler, api_key="core-key")
    response = _call(adapter, "search_by_title", "Open access paper", 5)

    request = seen[0]
    assert request.method == "POST"
    assert request.headers["Authorization"] == "Bearer core-key"
    assert json.loads(request.content) == {"q": 'title:"Open access paper"', "limit": 5, "offset": 0}

    source = normalize(adapter.transform_response(response.data)[0], adapter.label)
    assert source.id == "core:42"
    assert source.url == "https://core.ac.uk/works/42"
    assert source.pdf_url == "https://core.ac.uk/download/42.pdf"
    assert source.is_open_access is True


# -----------------------------------------------------------------------------
# DOAJ, bioRxiv, DataCite
# -----------------------------------------------------------------------------


def test_doaj_keyword_search():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={
            "results": [{
                "id": "d1",
                "bibjson": {
                    "title": "Open malaria data",
                    "identifier": [{"type": "eissn", "id": "1234-5678"}, {"type": "doi", "id": "10.1000/DOAJ1"}],
                    "author": [{"name": "Ana Lima"}],
                    "year": "2018",
                    "journal": {"title": "Malaria Journal", "issns": ["1475-2875"]},
                    "link": [{"type": "fulltext", "url": "https://example.org/full"}],
                },
            }]
        })

    adapter = _adapter(DOAJAdapter, handler)
    response = _call(adapter, "search_by_keyword", "malaria", 4)

    assert seen[0].url.path.endswith("/articles/malaria")
    assert seen[0].url.params["pageSize"] == "4"

    source = normalize(adapter.transform_response(response.data)[0], adapter.label)
    assert source.doi == "10.1000/doaj1"
    assert source.issn == "1475-2875"
    assert source.url == "https://example.org/full"
    assert source.is_open_access is True


def test_biorxiv_text_search_is_unsupported():
    adapter = _adapter(BioRxivAdapter, _unexpected)

    assert not _call(adapter, "search_by_title", "anything").success
    assert not _call(adapter, "search_by_keyword", "anything").success


def test_biorxiv_author_search_filters_recent_posts():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={
            "collection": [
                {"doi": "10.1101/2024.01.01.000001", "title": "Ours", "authors": "Smith, J.; Doe, A.", "date": "2024-01-02"},
                {"doi": "10.1101/2024.01.01.000002", "title": "Theirs", "authors": "Other, B.", "date": "2024-01-03"},
            ]
        })

    adapter = _adapter(BioRxivAdapter, handler)
    response = _call(adapter, "search_by_author", "smith", 10)

    assert seen[0].url.path.startswith("/details/biorxiv/")
    records = adapter.transform_response(response.data)
    assert [r["title"] for r in records] == ["Ours"]

    source = normalize(records[0], adapter.label)
    assert source.source_type == SourceType.PREPRINT
    assert [a.last_name for a in source.authors] == ["Smith", "Doe"]
    assert source.url == "https://www.biorxiv.org/content/10.1101/2024.01.01.000001"


def test_datacite_doi_lookup():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={
            "data": {
                "id": "10.5061/dryad.abc",
                "attributes": {
                    "doi": "10.5061/dryad.abc",
                    "titles": [{"title": "Field measurements"}],
                    "creators": [{"name": "Roe, Jane", "givenName": "Jane", "familyName": "Roe"}],
                    "publicationYear": 2022,
                    "types": {"resourceTypeGeneral": "Dataset"},
                    "publisher": {"name": "Dryad"},
                    "descriptions": [{"description": "Raw data", "descriptionType": "Abstract"}],
                    "url": "https://datadryad.org/abc",
                },
            }
        })

    adapter = _adapter(DataCiteAdapter, handler)
    response = _call(adapter, "search_by_doi", "10.5061/dryad.abc")

    request = seen[0]
    assert request.url.path == "/dois/10.5061/dryad.abc"
    assert request.headers["Accept"] == "application/vnd.api+json"

    source = normalize(adapter.transform_response(response.data)[0], adapter.label)
    assert source.source_type == SourceType.DATASET
    assert source.publisher == "Dryad"
    assert source.abstract == "Raw data"
    assert source.authors[0].last_name == "Roe"


def test_datacite_title_search_params():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"data": []})

    adapter = _adapter(DataCiteAdapter, handler)
    _call(adapter, "search_by_title", "Field measurements", 6)

    assert seen[0].url.params["query"] == 'titles.title:"Field measurements"'
    assert seen[0].url.params["page[size]"] == "6"


# -----------------------------------------------------------------------------
# arXiv
# -----------------------------------------------------------------------------


class FakeArXivClient:
    def __init__(self, results=None, error=None):
        self.results = results or []
        self.error = error
        self.queries = []

    async def search(self, query, max_results=10):
        self.queries.append((query, max_results))
        if self.error:
            raise self.error
        return self.results


def _arxiv_result():
    return arxiv.Result(
        entry_id="http://arxiv.org/abs/1706.03762v7",
        published=datetime(2017, 6, 12, tzinfo=timezone.utc),
        title="Attention Is All You Need",
        authors=[arxiv.Result.Author("Ashish Vaswani"), arxiv.Result.Author("Noam Shazeer")],
        summary="The dominant sequence transduction models...",
        doi="10.48550/arXiv.1706.03762",
        categories=["cs.CL", "cs.LG"],
        links=[arxiv.Result.Link("http://arxiv.org/pdf/1706.03762v7", title="pdf")],
    )


def test_arxiv_query_syntax_and_mapping():
    client = FakeArXivClient(results=[_arxiv_result()])
    adapter = ArXivAdapter(client=client)

    async def run():
        async with adapter:
            return [
                await adapter.search_by_title("attention", 5),
                await adapter.search_by_author("Vaswani", 5),
                await adapter.search_by_keyword("transformers", 5),
            ]

    responses = asyncio.run(run())

    assert all(r.success for r in responses)
    assert [q for q, _ in client.queries] == ['ti:"attention"', 'au:"Vaswani"', "all:transformers"]

    record = adapter.transform_response(responses[0].data)[0]
    assert record["arxivId"] == "1706.03762v7"

    source = normalize(record, adapter.label)
    assert source.doi == "10.48550/arxiv.1706.03762"
    assert source.year == 2017
    assert source.source_type == SourceType.PREPRINT
    assert source.pdf_url == "http://arxiv.org/pdf/1706.03762v7"
    assert [a.full_name for a in source.authors] == ["Ashish Vaswani", "Noam Shazeer"]
    assert adapter.get_metrics()["successful_requests"] == 3


def test_arxiv_failures_become_failed_responses():
    adapter = ArXivAdapter(client=FakeArXivClient(error=OSError("network unreachable")))
    response = asyncio.run(adapter.search_by_keyword("anything"))

    assert not response.success
    assert "network unreachable" in response.error
    assert adapter.get_metrics()["failed_requests"] == 1


def test_arxiv_doi_search_is_unsupported():
    client = FakeArXivClient()
    response = asyncio.run(ArXivAdapter(client=client).search_by_doi("10.1000/x"))

    assert not response.success
    assert client.queries == []


# -----------------------------------------------------------------------------
# Registry
# -----------------------------------------------------------------------------


@pytest.mark.parametrize("name", list(ProviderName))
def test_every_provider_satisfies_protocols(name):
    adapter = create_adapter(name)

    assert isinstance(adapter, ProviderAdapter)
    assert isinstance(adapter, ResponseTransformer)
    assert adapter.name == name.value


def test_create_adapter_passes_settings_and_transport():
    transport = httpx.MockTransport(_unexpected)
    settings = CrossRefAdapter.default_settings().model_copy(update={"retries": 0})
    adapter = create_adapter("crossref", api_key="me@example.org", settings=settings, transport=transport)

    assert isinstance(adapter, CrossRefAdapter)
    assert adapter.api_key == "me@example.org"
    assert adapter.settings.retries == 0
    assert adapter._transport is transport


def test_create_adapter_rejects_unknown_name():
    with pytest.raises(ValueError, match="Unknown provider 'scopus'"):
        create_adapter("scopus")
