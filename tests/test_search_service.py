"""Tests for the cached search flow and query translation."""

import datetime as dt

import pytest

from nearby_ingest.cache.keys import build_search_key_parts
from nearby_ingest.ingestion.schemas import (
    BaseQuery,
    GeoPoint,
    NormalizedPlace,
    ProviderResult,
    SourceRef,
    SourceType,
)
from nearby_ingest.search.schemas import SearchRequest
from nearby_ingest.search.service import DEFAULT_SOURCES, SearchService

PLACES_LINE = "ingest places: total=1 created=1 updated=0 unchanged=0 errors=0"
EVENTS_LINE = "ingest events: total=0 created=0 updated=0 unchanged=0 errors=0"


class StubPlaceProvider:
    name = "stub"
    source = SourceType.GEOAPIFY

    def __init__(self) -> None:
        self.queries: list[BaseQuery] = []

    async def search_places(self, query: BaseQuery) -> ProviderResult:
        self.queries.append(query)
        place = NormalizedPlace(
            name="Cafe Central",
            location=GeoPoint(lat=52.52, lon=13.405),
            source=SourceRef(source=SourceType.GEOAPIFY, external_id="g-1"),
        )
        return ProviderResult(items=[place])


@pytest.fixture
def stub_provider(monkeypatch) -> StubPlaceProvider:
    """Route every search to one stub place provider and record the requested sources."""
    provider = StubPlaceProvider()
    provider.requested = []

    def build_place_providers(settings, client, requested, sample_sink=None):
        provider.requested.append(list(requested))
        return [provider]

    monkeypatch.setattr("nearby_ingest.search.service.build_place_providers", build_place_providers)
    monkeypatch.setattr("nearby_ingest.search.service.build_event_providers", lambda *args, **kwargs: [])
    return provider


def _request(**data) -> SearchRequest:
    data.setdefault("where", {"city": {"id": "berlin"}})
    data.setdefault("target", "places")
    return SearchRequest.model_validate(data)


def _key(cache, request: SearchRequest) -> str:
    return cache.build_key("search", build_search_key_parts(request))


class TestCachedSearch:
    async def test_miss_then_fresh_hit(self, search_service, stub_provider, cache, fake_redis) -> None:
        request = _request()
        first = await search_service.search(request)
        second = await search_service.search(request)

        assert len(stub_provider.queries) == 1
        assert first.total == 1
        assert first.items[0].title == "Cafe Central"
        assert first.warnings[:2] == [PLACES_LINE, EVENTS_LINE]
        assert first.warnings[2].startswith("online_ingest_start ")
        assert "provider_start provider=stub source=GEOAPIFY limit=100" in first.warnings
        assert len(first.warnings) <= 10
        assert second.model_dump(mode="json") == first.model_dump(mode="json")
        key = _key(cache, request)
        assert fake_redis.ttls[key] == 60 + 300
        assert key in fake_redis.store["test:index:city:berlin:search"]

    async def test_later_pages_skip_ingest(self, search_service, stub_provider, fake_redis) -> None:
        response = await search_service.search(_request(pagination={"page": 2}))

        assert stub_provider.queries == []
        assert response.warnings == []
        assert 300 + 300 in fake_redis.ttls.values()

    async def test_stale_hit_refreshes_in_background(self, search_service, stub_provider, cache, fake_redis) -> None:
        request = _request()
        await search_service.search(request)
        key = _key(cache, request)
        await fake_redis.delete(f"{key}:fresh")

        stale = await search_service.search(request)
        await search_service.wait_background()

        assert stale.total == 1
        assert len(stub_provider.queries) == 2
        assert f"{key}:fresh" in fake_redis.store
        assert f"{key}:lock" not in fake_redis.store

    async def test_held_lock_skips_refresh(self, search_service, stub_provider, cache, fake_redis) -> None:
        request = _request()
        await search_service.search(request)
        key = _key(cache, request)
        await fake_redis.delete(f"{key}:fresh")
        await fake_redis.set(f"{key}:lock", "1", ex=10)

        await search_service.search(request)
        await search_service.wait_background()

        assert len(stub_provider.queries) == 1

    async def test_invalidate_after_ingest(
        self, seeded_db, settings, ingestion_config, cache, http_client, stub_provider, fake_redis
    ) -> None:
        service = SearchService(
            seeded_db,
            settings.model_copy(update={"cache_invalidate_after_ingest": True}),
            ingestion_config,
            cache,
            http_client,
        )
        await cache.set_json("test:catalog:x", [1], 60, tags=["city:berlin:catalog:places"])

        await service.search(_request())

        assert "test:catalog:x" not in fake_redis.store

    async def test_default_and_filtered_sources(self, search_service, stub_provider) -> None:
        await search_service.search(_request())
        await search_service.search(_request(filters={"sources": ["GEOAPIFY"]}))
        assert stub_provider.requested == [list(DEFAULT_SOURCES), [SourceType.GEOAPIFY]]

    async def test_providers_without_keys_report_warnings(self, search_service) -> None:
        response = await search_service.search(_request(target="both"))
        assert response.warnings[:2] == [
            "ingest places: total=0 created=0 updated=0 unchanged=0 errors=0",
            EVENTS_LINE,
        ]
        assert "ticketmaster: Ticketmaster API key is missing" in response.warnings
        assert "foursquare: Foursquare API key is missing" in response.warnings
        assert len(response.warnings) <= 10


class TestBuildBaseQuery:
    """Search request to provider query translation."""

    async def _build(self, search_service, seeded_db, **data) -> BaseQuery:
        async with seeded_db() as session:
            return await search_service.build_base_query(session, _request(**data))

    async def test_city_with_bbox(self, search_service, seeded_db) -> None:
        query = await self._build(search_service, seeded_db)
        assert (query.lat, query.lon) == (52.52, 13.405)
        # half-diagonal from center to the north-east corner, about 29.6 km
        assert query.radius_km == 30
        assert (query.city_id, query.city_name, query.country_code) == ("berlin", "Berlin", "DE")

    async def test_city_without_bbox_keeps_default_radius(self, search_service, seeded_db) -> None:
        query = await self._build(search_service, seeded_db, where={"city": {"id": "potsdam", "name": "Potsdam City"}})
        assert (query.lat, query.lon, query.radius_km) == (52.3906, 13.0645, 10.0)
        assert query.city_name == "Potsdam City"

    async def test_unknown_city(self, search_service, seeded_db) -> None:
        query = await self._build(search_service, seeded_db, where={"city": {"id": "atlantis"}})
        assert query.city_id == "atlantis"
        assert query.lat is None

    async def test_geo(self, search_service, seeded_db) -> None:
        query = await self._build(
            search_service,
            seeded_db,
            where={"geo": {"lat": 48.1, "lon": 11.5, "radius_km": 3}},
            filters={"category_slugs": ["place.bar_pub"]},
            q="beer",
        )
        assert (query.lat, query.lon, query.radius_km) == (48.1, 11.5, 3)
        assert query.category_slugs == ["place.bar_pub"]
        assert query.q == "beer"

    async def test_bbox(self, search_service, seeded_db) -> None:
        query = await self._build(
            search_service, seeded_db, where={"bbox": {"south": 52.4, "west": 13.3, "north": 52.6, "east": 13.5}}
        )
        assert query.rect == (13.3, 52.4, 13.5, 52.6)
        assert query.lat == pytest.approx(52.5)
        assert query.lon == pytest.approx(13.4)
        assert query.radius_km == 13

    async def test_range_sets_time_bounds(self, search_service, seeded_db) -> None:
        query = await self._build(
            search_service,
            seeded_db,
            when={"type": "range", "from": "2026-06-05T18:00:00+02:00", "to": "2026-06-05T23:00:00+02:00"},
        )
        assert query.from_time == dt.datetime(2026, 6, 5, 16, 0)
        assert query.to_time == dt.datetime(2026, 6, 5, 21, 0)
