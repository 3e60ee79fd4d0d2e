"""Shared async HTTP plumbing for provider adapters."""

import asyncio
import logging
import time
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Any, ClassVar

import httpx
from pydantic import BaseModel

from ..settings import MAX_RETRY_DELAY_SECONDS
from ..sources.models import ProviderResponse
from ..sources.normalizer import normalize_doi

logger = logging.getLogger(__name__)

RETRY_STATUS_CODES = (429, 500, 502, 503, 504)


class ProviderSettings(BaseModel):
    """Connection settings for one provider."""

    base_url: str
    timeout: float = 10.0
    retries: int = 3
    retry_backoff: float = 1.0
    requests_per_second: float | None = None


class RateLimiter:
    """Minimum-interval rate limiter."""

    def __init__(self, requests_per_second: float | None):
        self.requests_per_second = requests_per_second
        self.min_interval = 1.0 / requests_per_second if requests_per_second else 0.0
        self.last_request_time = 0.0
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Wait until we can make another request."""
        if not self.min_interval:
            return
        async with self._lock:
            now = time.monotonic()
            time_since_last = now - self.last_request_time
            if time_since_last < self.min_interval:
                await asyncio.sleep(self.min_interval - time_since_last)
            self.last_request_time = time.monotonic()


@dataclass
class ProviderMetrics:
    """Request counters for one adapter."""

    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    average_response_time: float = 0.0
    last_error: str | None = None
    last_error_at: datetime | None = None

    def record_success(self, elapsed: float) -> None:
        self.total_requests += 1
        self.successful_requests += 1
        total = self.average_response_time * (self.successful_requests - 1)
        self.average_response_time = (total + elapsed) / self.successful_requests

    def record_failure(self, error: str) -> None:
        self.total_requests += 1
        self.failed_requests += 1
        self.last_error = error
        self.last_error_at = datetime.now(timezone.utc)


class BaseProviderAdapter:
    """
    Base class for HTTP-backed provider adapters.

    Subclasses set ``name``, ``label`` and ``default_settings`` and implement
    the four search operations on top of ``_get_json``/``_post_json``, which
    never raise for HTTP or network failures.

    Usage:
        async with CrossRefAdapter() as adapter:
            response = await adapter.search_by_title("attention is all you need")
    """

    name: ClassVar[str]
    label: ClassVar[str]

    def __init__(
        self,
        api_key: str | None = None,
        settings: ProviderSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the adapter.

        Args:
            api_key: Optional key (or contact email for polite pools)
            settings: Override the provider's default settings
            transport: Optional httpx transport (used by tests)
        """
        self.api_key = api_key
        self.settings = settings or self.default_settings(api_key)
        self.rate_limiter = RateLimiter(self.settings.requests_per_second)
        self.metrics = ProviderMetrics()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def default_settings(cls, api_key: str | None = None) -> ProviderSettings:
        raise NotImplementedError

    def default_headers(self) -> dict[str, str]:
        return {"Accept": "application/json"}

    async def __aenter__(self) -> "BaseProviderAdapter":
        self._client = httpx.AsyncClient(
            base_url=self.settings.base_url,
            headers=self.default_headers(),
            timeout=self.settings.timeout,
            transport=self._transport,
            follow_redirects=True,
        )
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError(
                f"{self.label} adapter not initialized. Use 'async with' context manager."
            )
        return self._client

    def fail(self, error: str) -> ProviderResponse:
        return ProviderResponse.fail(error, provider=self.label)

    def ok(self, data: Any) -> ProviderResponse:
        return ProviderResponse.ok(data, provider=self.label)

    def clean_doi(self, doi: str) -> str | None:
        return normalize_doi(doi)

    def _retry_delay(self, attempt: int) -> float:
        return min(self.settings.retry_backoff * (2 ** attempt), MAX_RETRY_DELAY_SECONDS)

    async def _request(
        self,
        method: str,
        url: str,
        parse: str = "json",
        **kwargs: Any,
    ) -> ProviderResponse:
        """Make a request with rate limiting and exponential backoff retry.

        Retries on 429/5xx, timeouts and connection errors. Any other failure
        is returned as an unsuccessful ProviderResponse.
        """
        client = self.client
        attempts = self.settings.retries + 1
        error = "Request failed"

        for attempt in range(attempts):
            await self.rate_limiter.acquire()
            logger.debug(f"{self.label} attempt {attempt + 1}/{attempts}: {method} {url}")
            started = time.monotonic()

            try:
                response = await client.request(method, url, **kwargs)
            except (httpx.TimeoutException, httpx.ConnectError) as e:
                error = f"{type(e).__name__}: {e}"
                self.metrics.record_failure(error)
                if attempt + 1 < attempts:
                    backoff = self._retry_delay(attempt)
                    logger.warning(f"{self.label} connection error, backoff {backoff}s: {e}")
                    await asyncio.sleep(backoff)
                    continue
                break
            except httpx.HTTPError as e:
                error = f"{type(e).__name__}: {e}"
                self.metrics.record_failure(error)
                break

            if response.status_code in RETRY_STATUS_CODES and attempt + 1 < attempts:
                error = f"HTTP {response.status_code}"
                self.metrics.record_failure(error)
                retry_after = response.headers.get("Retry-After", "")
                backoff = self._retry_delay(attempt)
                if retry_after.isdigit():
                    backoff = min(max(backoff, int(retry_after)), MAX_RETRY_DELAY_SECONDS)
                logger.warning(f"{self.label} returned {response.status_code}, backoff {backoff}s")
                await asyncio.sleep(backoff)
                continue

            if response.is_error:
                error = f"HTTP {response.status_code}: {response.reason_phrase}"
                self.metrics.record_failure(error)
                break

            try:
                data = response.json() if parse == "json" else response.text
            except ValueError as e:
                error = f"Malformed payload: {e}"
                self.metrics.record_failure(error)
                break

            self.metrics.record_success(time.monotonic() - started)
            return self.ok(data)

        logger.debug(f"{self.label} request failed: {error}")
        return self.fail(error)

    async def _get_json(self, url: str, **kwargs: Any) -> ProviderResponse:
        """Make a GET request."""
        return await self._request("GET", url, **kwargs)

    async def _post_json(self, url: str, **kwargs: Any) -> ProviderResponse:
        """Make a POST request."""
        return await self._request("POST", url, **kwargs)

    def get_metrics(self) -> dict[str, Any]:
        return asdict(self.metrics)
