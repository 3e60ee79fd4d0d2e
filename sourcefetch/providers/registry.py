"""Provider names and the adapter class registry."""

from enum import Enum

import httpx

from .arxiv import ArXivAdapter
from .base import BaseProviderAdapter, ProviderSettings
from .biorxiv import BioRxivAdapter
from .core import CoreAdapter
from .crossref import CrossRefAdapter
from .datacite import DataCiteAdapter
from .doaj import DOAJAdapter
from .europepmc import EuropePMCAdapter
from .openalex import OpenAlexAdapter
from .pubmed import PubMedAdapter
from .semantic_scholar import SemanticScholarAdapter


class ProviderName(str, Enum):
    """Supported bibliographic providers."""

    CROSSREF = "crossref"
    PUBMED = "pubmed"
    ARXIV = "arxiv"
    SEMANTIC_SCHOLAR = "semanticscholar"
    OPENALEX = "openalex"
    CORE = "core"
    EUROPEPMC = "europepmc"
    DOAJ = "doaj"
    BIORXIV = "biorxiv"
    DATACITE = "datacite"


PROVIDER_CLASSES: dict[ProviderName, type] = {
    ProviderName.CROSSREF: CrossRefAdapter,
    ProviderName.PUBMED: PubMedAdapter,
    ProviderName.ARXIV: ArXivAdapter,
    ProviderName.SEMANTIC_SCHOLAR: SemanticScholarAdapter,
    ProviderName.OPENALEX: OpenAlexAdapter,
    ProviderName.CORE: CoreAdapter,
    ProviderName.EUROPEPMC: EuropePMCAdapter,
    ProviderName.DOAJ: DOAJAdapter,
    ProviderName.BIORXIV: BioRxivAdapter,
    ProviderName.DATACITE: DataCiteAdapter,
}

# Default order used by streaming search
STREAM_ORDER: list[ProviderName] = [
    ProviderName.SEMANTIC_SCHOLAR,
    ProviderName.OPENALEX,
    ProviderName.CROSSREF,
    ProviderName.PUBMED,
    ProviderName.EUROPEPMC,
    ProviderName.ARXIV,
    ProviderName.DOAJ,
    ProviderName.BIORXIV,
    ProviderName.DATACITE,
    ProviderName.CORE,
]


def create_adapter(
    name: ProviderName | str,
    api_key: str | None = None,
    settings: ProviderSettings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
):
    """
    Create an adapter by provider name.

    Args:
        name: Provider name (e.g. "crossref")
        api_key: Optional key or contact email
        settings: Override the provider's default settings
        transport: Optional httpx transport, ignored by non-HTTP adapters

    Raises:
        ValueError: If the provider name is unknown
    """
    try:
        provider = ProviderName(name)
    except ValueError:
        valid = ", ".join(p.value for p in ProviderName)
        raise ValueError(f"Unknown provider '{name}'. Valid providers: {valid}") from None

    adapter_class = PROVIDER_CLASSES[provider]
    if issubclass(adapter_class, BaseProviderAdapter):
        return adapter_class(api_key=api_key, settings=settings, transport=transport)
    return adapter_class(api_key=api_key, settings=settings)
