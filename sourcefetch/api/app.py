"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..config import create_fetcher, load_config
from ..sources.fetcher import SourceFetcher
from .routers import health, sources

logger = logging.getLogger(__name__)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed requests as 400 without echoing the payload."""
    logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=400, content={"detail": "Invalid request payload"})


def create_app(fetcher: SourceFetcher | None = None, profile: str | None = None) -> FastAPI:
    """
    Create the API application.

    Args:
        fetcher: Use this fetcher (tests). If None, one is built from the
            config profile at startup, with one cache and in-flight
            deduplicator for the process lifetime.
        profile: Config profile name used when building the fetcher

    Returns:
        FastAPI app whose lifespan enters and exits the fetcher's adapters
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app_fetcher = fetcher or create_fetcher(load_config(profile))
        logger.info(f"Starting source fetcher with {len(app_fetcher.adapters)} providers")
        async with app_fetcher:
            app.state.fetcher = app_fetcher
            yield
        logger.info("Source fetcher stopped")

    app = FastAPI(
        title="SourceFetch",
        version="0.1.0",
        description="Bibliographic metasearch across scholarly metadata providers.",
        lifespan=lifespan,
    )
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.include_router(health.router)
    app.include_router(sources.router, prefix="/sources", tags=["Sources"])
    return app
