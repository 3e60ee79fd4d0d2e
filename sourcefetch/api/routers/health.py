from fastapi import APIRouter, Depends

from ...sources.fetcher import SourceFetcher
from ..dependencies import get_fetcher
from ..models import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check(fetcher: SourceFetcher = Depends(get_fetcher)) -> HealthResponse:
    return HealthResponse(status="ok", providers=fetcher.available_providers())
