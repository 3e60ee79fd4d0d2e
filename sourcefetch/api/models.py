"""Request and response bodies specific to the HTTP API."""

from typing import Any, Literal

from ..sources.models import WireModel


class ResolveRequest(WireModel):
    identifier: str
    type: Literal["doi"] = "doi"


class HealthResponse(WireModel):
    status: str = "ok"
    providers: list[str] = []


class ProvidersResponse(WireModel):
    providers: list[str] = []
    metrics: dict[str, dict[str, Any]] = {}
