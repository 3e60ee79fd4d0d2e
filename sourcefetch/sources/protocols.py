"""Protocol definitions for provider adapters."""

from typing import Any, Protocol, runtime_checkable

from .models import ProviderResponse


@runtime_checkable
class ProviderAdapter(Protocol):
    """Protocol for bibliographic metadata providers.

    Implement this protocol to add support for a new provider. Adapters must
    not raise for ordinary failures (HTTP errors, empty results, malformed
    payloads); they return ``ProviderResponse(success=False, error=...)``.
    """

    name: str
    label: str

    async def search_by_doi(self, doi: str) -> ProviderResponse:
        """
        Look up a single work by DOI.

        Args:
            doi: DOI, with or without a resolver prefix

        Returns:
            ProviderResponse whose data holds the raw payload
        """
        ...

    async def search_by_title(self, title: str, limit: int = 10) -> ProviderResponse:
        """Search works by title."""
        ...

    async def search_by_author(self, author: str, limit: int = 10) -> ProviderResponse:
        """Search works by author name."""
        ...

    async def search_by_keyword(self, keyword: str, limit: int = 10) -> ProviderResponse:
        """Search works by free-text keyword."""
        ...


@runtime_checkable
class ResponseTransformer(Protocol):
    """Adapters whose payload is not already a flat list of records."""

    def transform_response(self, data: Any) -> list[dict[str, Any]]:
        """
        Flatten a provider payload into raw records.

        Args:
            data: ``ProviderResponse.data`` from a successful call

        Returns:
            List of records the normalizer understands
        """
        ...
