"""Shared fixtures: scripted provider adapters and record builders."""

import asyncio
from typing import Any

import pytest

from sourcefetch.sources.models import CanonicalSource, ProviderResponse


class FakeAdapter:
    """Scripted adapter satisfying the ProviderAdapter protocol.

    Returns ``records`` for every search operation unless told to fail,
    raise, or stall. Every call is appended to ``calls`` (and to the shared
    ``call_log`` when given) as ``(label, operation, text)``.
    """

    def __init__(
        self,
        name: str,
        records: list[dict[str, Any]] | None = None,
        fail: bool = False,
        raises: Exception | None = None,
        delay: float = 0.0,
        label: str | None = None,
        call_log: list | None = None,
    ):
        self.name = name
        self.label = label or name
        self.records = records or []
        self.fail = fail
        self.raises = raises
        self.delay = delay
        self.call_log = call_log
        self.calls: list[tuple[str, str, str]] = []
        self.active = 0
        self.max_active = 0

    async def _respond(self, operation: str, text: str) -> ProviderResponse:
        call = (self.label, operation, text)
        self.calls.append(call)
        if self.call_log is not None:
            self.call_log.append(call)

        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        finally:
            self.active -= 1

        if self.raises is not None:
            raise self.raises
        if self.fail:
            return ProviderResponse.fail("HTTP 503: Service Unavailable", provider=self.label)
        return ProviderResponse.ok(list(self.records), provider=self.label)

    async def search_by_doi(self, doi: str) -> ProviderResponse:
        return await self._respond("doi", doi)

    async def search_by_title(self, title: str, limit: int = 10) -> ProviderResponse:
        return await self._respond("title", title)

    async def search_by_author(self, author: str, limit: int = 10) -> ProviderResponse:
        return await self._respond("author", author)

    async def search_by_keyword(self, keyword: str, limit: int = 10) -> ProviderResponse:
        return await self._respond("keyword", keyword)

    def get_metrics(self) -> dict[str, Any]:
        return {"total_requests": len(self.calls)}


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_record(title: str, doi: str | None = None, year: int | None = 2020, **extra: Any) -> dict[str, Any]:
    record: dict[str, Any] = {"title": title, "year": year}
    if doi:
        record["doi"] = doi
    record.update(extra)
    return record


def make_source(title: str, doi: str | None = None, provider: str = "Test", **extra: Any) -> CanonicalSource:
    return CanonicalSource(id=doi or title, title=title, doi=doi, source_api=provider, **extra)


@pytest.fixture
def fake_adapter():
    """Factory for FakeAdapter instances."""
    return FakeAdapter


@pytest.fixture
def record():
    """Factory for raw provider records."""
    return make_record


@pytest.fixture
def source():
    """Factory for CanonicalSource instances."""
    return make_source


@pytest.fixture
def clock():
    return FakeClock()
