"""FastAPI dependencies: DB sessions and the shared search service."""

from collections.abc import AsyncGenerator
from functools import lru_cache

from sqlalchemy.ext.asyncio import AsyncSession

from nearby_ingest.cache.service import CacheService, create_redis
from nearby_ingest.config.settings import get_settings
from nearby_ingest.db.session import dispose_engine, get_session_factory
from nearby_ingest.ingestion.config import load_ingestion_config
from nearby_ingest.providers.registry import build_http_client
from nearby_ingest.search.service import SearchService


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async DB session for request handling."""
    factory = get_session_factory()
    async with factory() as session:
        yield session


@lru_cache
def get_search_service() -> SearchService:
    settings = get_settings()
    return SearchService(
        session_factory=get_session_factory(),
        settings=settings,
        ingestion_config=load_ingestion_config(settings.ingestion_config_path),
        cache=CacheService(create_redis(settings), settings),
        http_client=build_http_client(settings),
    )


async def close_resources() -> None:
    """Drain background refreshes, close outbound clients and the DB pool."""
    if get_search_service.cache_info().currsize > 0:
        service = get_search_service()
        await service.wait_background()
        await service.http_client.aclose()
        await service.cache.aclose()
        get_search_service.cache_clear()
    await dispose_engine()
