"""End-to-end tests: mocked provider HTTP through ingest, persistence and search."""

import datetime as dt

import httpx
import pytest
import sqlalchemy as sa

from nearby_ingest.ingestion.orchestrator import OnlineIngestDeps, run_online_ingest
from nearby_ingest.ingestion.schemas import BaseQuery
from nearby_ingest.models.event import Event, EventOccurrence, EventSource
from nearby_ingest.providers.ticketmaster import TicketmasterProvider
from nearby_ingest.search.schemas import SearchRequest
from nearby_ingest.search.service import SearchService

START = dt.datetime(2026, 6, 5, 18, 0)

TM_PAYLOAD = {
    "_embedded": {
        "events": [
            {
                "id": "tm-42",
                "name": "Berlin Rock Night",
                "url": "https://tickets.example/e/42",
                "dates": {"start": {"dateTime": "2026-06-05T18:00:00Z"}, "timezone": "Europe/Berlin"},
                "classifications": [{"segment": {"name": "Music"}, "genre": {"name": "Rock"}}],
                "_embedded": {"venues": [{"location": {"latitude": "52.5", "longitude": "13.4"}}]},
            }
        ]
    },
    "page": {"totalElements": 1},
}


def _handler(request: httpx.Request) -> httpx.Response:
    if request.url.host == "app.ticketmaster.com":
        return httpx.Response(200, json=TM_PAYLOAD)
    return httpx.Response(404)


@pytest.fixture
async def tm_client():
    async with httpx.AsyncClient(transport=httpx.MockTransport(_handler)) as client:
        yield client


async def test_ticketmaster_ingest_is_idempotent(seeded_db, ingestion_config, tm_client):
    """A second identical ingest changes nothing."""
    deps = OnlineIngestDeps(
        session_factory=seeded_db,
        config=ingestion_config,
        event_providers=[TicketmasterProvider(tm_client, "k")],
    )
    query = BaseQuery(lat=52.52, lon=13.405, radius_km=10)

    first = await run_online_ingest(deps, query)
    second = await run_online_ingest(deps, query)

    assert first.event_stats.as_dict() == {"total": 1, "created": 1, "updated": 0, "unchanged": 0, "errors": 0}
    assert second.event_stats.as_dict() == {"total": 1, "created": 0, "updated": 0, "unchanged": 1, "errors": 0}
    async with seeded_db() as session:
        event = await session.scalar(sa.select(Event))
        occurrence = await session.scalar(sa.select(EventOccurrence))
        source = await session.scalar(sa.select(EventSource))
    assert event.city_id == "berlin"
    assert event.main_category_id == "event.concert_show"
    assert event.provider_categories == "Music, Rock"
    assert occurrence.start_time == START
    assert occurrence.end_time == START + dt.timedelta(minutes=120)
    assert source.external_id == "tm-42"
    assert source.payload["snapshot"]["title"] == "Berlin Rock Night"


async def test_search_ingests_and_returns_event(seeded_db, settings, ingestion_config, cache, tm_client):
    service = SearchService(
        seeded_db,
        settings.model_copy(update={"ticketmaster_api_key": "k"}),
        ingestion_config,
        cache,
        tm_client,
    )
    request = SearchRequest.model_validate(
        {
            "where": {"city": {"id": "berlin"}},
            "when": {"type": "range", "from": "2026-06-05T00:00:00Z", "to": "2026-06-06T00:00:00Z"},
            "target": "events",
            "filters": {"sources": ["TICKETMASTER"]},
        }
    )

    response = await service.search(request)

    assert response.warnings[:2] == [
        "ingest places: total=0 created=0 updated=0 unchanged=0 errors=0",
        "ingest events: total=1 created=1 updated=0 unchanged=0 errors=0",
    ]
    assert response.warnings[2].startswith("online_ingest_start ")
    [hit] = response.items
    assert hit.title == "Berlin Rock Night"
    assert hit.primary_category == "event.concert_show"
    assert hit.expected_duration == 120
    assert hit.next_occurrence.starts_at == START
    assert hit.next_occurrence.ends_at == START + dt.timedelta(minutes=120)
