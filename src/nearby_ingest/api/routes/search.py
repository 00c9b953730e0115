"""Unified search endpoint over places and events."""

from fastapi import APIRouter, Depends

from nearby_ingest.api.deps import get_search_service
from nearby_ingest.search.schemas import SearchRequest, SearchResponse
from nearby_ingest.search.service import SearchService

router = APIRouter(prefix="/api/search", tags=["search"])


@router.post("", response_model=SearchResponse)
async def search(
    request: SearchRequest,
    service: SearchService = Depends(get_search_service),
) -> SearchResponse:
    """Search persisted places and events, ingesting from providers on the first page."""
    return await service.search(request)
