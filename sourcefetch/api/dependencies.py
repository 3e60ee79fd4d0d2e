from fastapi import Request

from ..sources.fetcher import SourceFetcher


def get_fetcher(request: Request) -> SourceFetcher:
    """The fetcher built once by the application lifespan."""
    return request.app.state.fetcher
