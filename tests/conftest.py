"""Shared test fixtures."""

import fnmatch

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from nearby_ingest.api.app import app
from nearby_ingest.api.deps import get_db, get_search_service
from nearby_ingest.cache.service import CacheService
from nearby_ingest.cli.__main__ import seed_categories
from nearby_ingest.config.settings import Settings
from nearby_ingest.ingestion.config import IngestionConfig
from nearby_ingest.ingestion.dedup import DedupService
from nearby_ingest.ingestion.persist import PersistService
from nearby_ingest.models.base import Base
from nearby_ingest.models.city import City
from nearby_ingest.search.service import SearchService

BERLIN = {"lat": 52.52, "lng": 13.405}
POTSDAM = {"lat": 52.3906, "lng": 13.0645}


class FakeRedis:
    """Minimal dict-backed stand-in for the ``redis.asyncio`` calls the cache makes.

    TTLs are recorded, not enforced; tests expire keys by deleting them.
    """

    def __init__(self) -> None:
        self.store: dict[str, object] = {}
        self.ttls: dict[str, int] = {}
        self.closed = False

    async def get(self, key: str):
        value = self.store.get(key)
        return value if isinstance(value, str) else None

    async def set(self, key: str, value: str, ex: int | None = None, nx: bool = False):
        if nx and key in self.store:
            return None
        self.store[key] = value
        if ex is not None:
            self.ttls[key] = ex
        else:
            self.ttls.pop(key, None)
        return True

    async def exists(self, *keys: str) -> int:
        return sum(1 for k in keys if k in self.store)

    async def delete(self, *keys: str) -> int:
        deleted = 0
        for key in keys:
            if key in self.store:
                deleted += 1
                self.store.pop(key)
                self.ttls.pop(key, None)
        return deleted

    async def sadd(self, key: str, *members: str) -> int:
        members_set = self.store.setdefault(key, set())
        before = len(members_set)
        members_set.update(members)
        return len(members_set) - before

    async def smembers(self, key: str) -> set:
        return set(self.store.get(key, set()))

    async def expire(self, key: str, seconds: int) -> bool:
        if key not in self.store:
            return False
        self.ttls[key] = seconds
        return True

    async def scan_iter(self, match: str | None = None, count: int | None = None):
        for key in list(self.store):
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key

    async def aclose(self) -> None:
        self.closed = True


class BrokenRedis:
    """Every command fails as if the server were unreachable."""

    def __getattr__(self, name):
        async def fail(*args, **kwargs):
            raise ConnectionError("redis unavailable")

        return fail

    async def scan_iter(self, match: str | None = None, count: int | None = None):
        raise ConnectionError("redis unavailable")
        yield


@pytest.fixture
async def test_engine():
    """Create an async SQLite in-memory engine for tests."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory bound to the test engine."""
    return async_sessionmaker(test_engine, expire_on_commit=False)


@pytest.fixture
async def seeded_db(test_session_factory):
    """Seed taxonomy categories plus two cities (Berlin with a bbox, Potsdam without)."""
    await seed_categories(test_session_factory)
    async with test_session_factory() as session, session.begin():
        session.add_all(
            [
                City(
                    id="berlin",
                    name="Berlin",
                    country_code="DE",
                    timezone="Europe/Berlin",
                    lat=BERLIN["lat"],
                    lng=BERLIN["lng"],
                    min_lat=52.3383,
                    max_lat=52.6755,
                    min_lng=13.0884,
                    max_lng=13.7611,
                ),
                City(
                    id="potsdam",
                    name="Potsdam",
                    country_code="DE",
                    lat=POTSDAM["lat"],
                    lng=POTSDAM["lng"],
                ),
            ]
        )
    return test_session_factory


@pytest.fixture
def ingestion_config() -> IngestionConfig:
    return IngestionConfig()


@pytest.fixture
def persist_service(seeded_db, ingestion_config) -> PersistService:
    return PersistService(seeded_db, DedupService(ingestion_config.dedup), ingestion_config)


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def broken_redis() -> BrokenRedis:
    return BrokenRedis()


@pytest.fixture
def settings() -> Settings:
    """Settings with every provider key cleared so nothing reaches the network."""
    return Settings(
        ticketmaster_api_key=None,
        predicthq_token=None,
        geoapify_api_key=None,
        google_places_api_key=None,
        foursquare_api_key=None,
        cache_enabled=True,
        cache_namespace="test",
    )


@pytest.fixture
def cache(fake_redis, settings) -> CacheService:
    return CacheService(fake_redis, settings)


@pytest.fixture
async def http_client():
    """HTTP client whose transport fails every request."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError(f"unexpected outbound request to {request.url}")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        yield client


@pytest.fixture
def search_service(seeded_db, settings, ingestion_config, cache, http_client) -> SearchService:
    return SearchService(seeded_db, settings, ingestion_config, cache, http_client)


@pytest.fixture
async def api_client(seeded_db, search_service):
    """Async HTTP client hitting the FastAPI app with the test DB and cache."""

    async def override_get_db():
        async with seeded_db() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_search_service] = lambda: search_service
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    await search_service.wait_background()
    app.dependency_overrides.clear()
