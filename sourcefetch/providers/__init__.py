"""Provider adapters for bibliographic APIs."""

from .arxiv import ArXivAdapter, ArXivClient
from .base import BaseProviderAdapter, ProviderMetrics, ProviderSettings, RateLimiter
from .biorxiv import BioRxivAdapter
from .core import CoreAdapter
from .crossref import CrossRefAdapter
from .datacite import DataCiteAdapter
from .doaj import DOAJAdapter
from .europepmc import EuropePMCAdapter
from .openalex import OpenAlexAdapter
from .pubmed import PubMedAdapter
from .registry import PROVIDER_CLASSES, STREAM_ORDER, ProviderName, create_adapter
from .semantic_scholar import SemanticScholarAdapter

__all__ = [
    "ArXivAdapter",
    "ArXivClient",
    "BaseProviderAdapter",
    "BioRxivAdapter",
    "CoreAdapter",
    "CrossRefAdapter",
    "DataCiteAdapter",
    "DOAJAdapter",
    "EuropePMCAdapter",
    "OpenAlexAdapter",
    "PROVIDER_CLASSES",
    "ProviderMetrics",
    "ProviderName",
    "ProviderSettings",
    "PubMedAdapter",
    "RateLimiter",
    "STREAM_ORDER",
    "SemanticScholarAdapter",
    "create_adapter",
]
