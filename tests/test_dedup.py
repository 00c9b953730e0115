"""Tests for canonical place/event resolution."""

import datetime as dt

import pytest
import sqlalchemy as sa

from nearby_ingest.errors import MissingCityError, MissingCoordinatesError
from nearby_ingest.ingestion.config import DedupConfig
from nearby_ingest.ingestion.dedup import (
    MATCH_CREATED,
    MATCH_GEO_NAME,
    MATCH_SOURCE,
    MATCH_TITLE_CITY,
    DedupService,
    normalize_name,
)
from nearby_ingest.ingestion.schemas import GeoPoint, NormalizedEvent, NormalizedPlace, SourceRef, SourceType
from nearby_ingest.models.event import Event, EventSource
from nearby_ingest.models.place import Place, PlaceSource

BERLIN = {"lat": 52.52, "lng": 13.405}
# Metres per degree of latitude on the haversine sphere
M_PER_DEG = 111195.0


def _make_place_row(id: str, name: str, north_m: float = 0.0, **overrides) -> Place:
    """Helper: active approved place ``north_m`` metres north of Berlin center."""
    fields = {
        "id": id,
        "name": name,
        "lat": BERLIN["lat"] + north_m / M_PER_DEG,
        "lng": BERLIN["lng"],
        "city_id": "berlin",
        "is_active": True,
        "moderation": "APPROVED",
    }
    fields.update(overrides)
    return Place(**fields)


def _make_place(name: str = "Cafe Central", external_id: str = "g-1", **overrides) -> NormalizedPlace:
    fields = {
        "name": name,
        "location": GeoPoint(lat=BERLIN["lat"], lon=BERLIN["lng"]),
        "city_id": "berlin",
        "source": SourceRef(source=SourceType.GEOAPIFY, external_id=external_id),
    }
    fields.update(overrides)
    return NormalizedPlace(**fields)


def _make_event(title: str = "Jazz Night", external_id: str = "tm-1", **overrides) -> NormalizedEvent:
    fields = {
        "title": title,
        "city_id": "berlin",
        "source": SourceRef(source=SourceType.TICKETMASTER, external_id=external_id),
    }
    fields.update(overrides)
    return NormalizedEvent(**fields)


class TestNormalizeName:
    def test_trims_lowercases_and_collapses(self) -> None:
        assert normalize_name("  Cafe   CENTRAL ") == "cafe central"

    def test_none_is_empty(self) -> None:
        assert normalize_name(None) == ""


class TestMatchPlace:
    async def test_creates_when_nothing_matches(self, seeded_db) -> None:
        dedup = DedupService()
        async with seeded_db() as session, session.begin():
            match = await dedup.match_or_create_place(session, _make_place(rating=4.2, review_count=-3))
            place = await session.get(Place, match.id)
        assert match.reason == MATCH_CREATED
        assert match.created
        assert place.name == "Cafe Central"
        assert place.provider == "GEOAPIFY"
        assert place.review_count == 0
        assert place.moderation == "APPROVED"

    async def test_source_identity_wins(self, seeded_db) -> None:
        dedup = DedupService()
        async with seeded_db() as session, session.begin():
            session.add(_make_place_row("p-far", "Somewhere Else", north_m=5000))
            session.add(
                PlaceSource(
                    id="s-1",
                    place_id="p-far",
                    source="GEOAPIFY",
                    external_id="g-1",
                    checksum="x",
                    fetched_at=dt.datetime(2026, 1, 1),
                )
            )
            await session.flush()
            match = await dedup.match_or_create_place(session, _make_place())
        assert (match.id, match.reason) == ("p-far", MATCH_SOURCE)

    async def test_geo_name_match_within_radius(self, seeded_db) -> None:
        dedup = DedupService()
        async with seeded_db() as session, session.begin():
            session.add(_make_place_row("p-1", "Cafe Central", north_m=30))
            await session.flush()
            match = await dedup.match_or_create_place(session, _make_place(name="  cafe   central"))
        assert match.id == "p-1"
        assert match.reason == MATCH_GEO_NAME
        assert match.distance_m == pytest.approx(30, abs=0.5)

    async def test_beyond_radius_creates(self, seeded_db) -> None:
        dedup = DedupService()
        async with seeded_db() as session, session.begin():
            session.add(_make_place_row("p-1", "Cafe Central", north_m=80))
            await session.flush()
            match = await dedup.match_or_create_place(session, _make_place())
        assert match.created
        assert match.id != "p-1"

    async def test_inactive_places_ignored(self, seeded_db) -> None:
        dedup = DedupService()
        async with seeded_db() as session, session.begin():
            session.add(_make_place_row("p-1", "Cafe Central", north_m=5, is_active=False))
            await session.flush()
            match = await dedup.match_or_create_place(session, _make_place())
        assert match.created

    async def test_missing_coordinates_rejected(self, seeded_db) -> None:
        dedup = DedupService()
        with pytest.raises(MissingCoordinatesError, match="source=GEOAPIFY externalId=g-9"):
            async with seeded_db() as session, session.begin():
                await dedup.match_or_create_place(session, _make_place(external_id="g-9", location=None))

    async def test_missing_city_rejected(self, seeded_db) -> None:
        dedup = DedupService()
        with pytest.raises(MissingCityError, match="Cannot create Place without cityId"):
            async with seeded_db() as session, session.begin():
                await dedup.match_or_create_place(session, _make_place(city_id=None))


class TestFindNearestPlace:
    async def test_other_name_closer_than_penalized_exact(self, seeded_db) -> None:
        """Other name at 20 m ranks as 24 m, still ahead of the exact name at 50 m."""
        dedup = DedupService(DedupConfig(radius_m=200))
        async with seeded_db() as session, session.begin():
            session.add(_make_place_row("exact", "Cafe Central", north_m=50))
            session.add(_make_place_row("other", "Other Cafe", north_m=20))
            await session.flush()
            found_id, distance = await dedup.find_nearest_place(
                session, BERLIN["lat"], BERLIN["lng"], "Cafe Central", "berlin"
            )
        assert found_id == "other"
        assert distance == pytest.approx(24, abs=0.5)

    async def test_exact_name_beats_penalized_other(self, seeded_db) -> None:
        dedup = DedupService(DedupConfig(radius_m=200))
        async with seeded_db() as session, session.begin():
            session.add(_make_place_row("exact", "Cafe Central", north_m=22))
            session.add(_make_place_row("other", "Other Cafe", north_m=20))
            await session.flush()
            found_id, _ = await dedup.find_nearest_place(
                session, BERLIN["lat"], BERLIN["lng"], "Cafe Central", "berlin"
            )
        assert found_id == "exact"

    async def test_no_name_means_no_penalty(self, seeded_db) -> None:
        dedup = DedupService(DedupConfig(radius_m=200))
        async with seeded_db() as session, session.begin():
            session.add(_make_place_row("exact", "Cafe Central", north_m=22))
            session.add(_make_place_row("other", "Other Cafe", north_m=20))
            await session.flush()
            found_id, _ = await dedup.find_nearest_place(session, BERLIN["lat"], BERLIN["lng"], None, None)
        assert found_id == "other"

    async def test_city_filter(self, seeded_db) -> None:
        dedup = DedupService()
        async with seeded_db() as session, session.begin():
            session.add(_make_place_row("p-1", "Cafe Central", north_m=5, city_id="potsdam"))
            await session.flush()
            assert await dedup.find_nearest_place(session, BERLIN["lat"], BERLIN["lng"], "x", "berlin") is None


class TestMatchEvent:
    async def test_creates_with_extended_fields(self, seeded_db) -> None:
        dedup = DedupService()
        candidate = _make_event(price_from=12.5, currency="EUR", languages=["de", "en"])
        async with seeded_db() as session, session.begin():
            match = await dedup.match_or_create_event(session, candidate)
            event = await session.get(Event, match.id)
        assert match.created
        assert event.price_from == 12.5
        assert event.languages == ["de", "en"]
        assert event.provider == "TICKETMASTER"

    async def test_source_identity(self, seeded_db) -> None:
        dedup = DedupService()
        async with seeded_db() as session, session.begin():
            session.add(Event(id="e-1", title="Unrelated", city_id="potsdam"))
            session.add(
                EventSource(
                    id="s-1",
                    event_id="e-1",
                    source="TICKETMASTER",
                    external_id="tm-1",
                    checksum="x",
                    fetched_at=dt.datetime(2026, 1, 1),
                )
            )
            await session.flush()
            match = await dedup.match_or_create_event(session, _make_event())
        assert (match.id, match.reason) == ("e-1", MATCH_SOURCE)

    async def test_title_and_city_match(self, seeded_db) -> None:
        dedup = DedupService()
        async with seeded_db() as session, session.begin():
            session.add(Event(id="e-1", title="Jazz Night", city_id="berlin"))
            await session.flush()
            match = await dedup.match_or_create_event(
                session,
                _make_event(title="  JAZZ NIGHT ", source=SourceRef(source=SourceType.PREDICTHQ, external_id="p-1")),
            )
        assert (match.id, match.reason) == ("e-1", MATCH_TITLE_CITY)

    async def test_title_with_inner_double_space_matches_itself(self, seeded_db) -> None:
        """A second provider sending the identical title reuses the event."""
        dedup = DedupService()
        async with seeded_db() as session, session.begin():
            first = await dedup.match_or_create_event(session, _make_event(title="Jazz  Night"))
            second = await dedup.match_or_create_event(
                session,
                _make_event(title="Jazz  Night", source=SourceRef(source=SourceType.PREDICTHQ, external_id="phq-1")),
            )
            count = await session.scalar(sa.select(sa.func.count()).select_from(Event))
        assert first.created
        assert (second.id, second.reason) == (first.id, MATCH_TITLE_CITY)
        assert count == 1

    async def test_same_title_other_city_creates(self, seeded_db) -> None:
        dedup = DedupService()
        async with seeded_db() as session, session.begin():
            session.add(Event(id="e-1", title="Jazz Night", city_id="potsdam"))
            await session.flush()
            match = await dedup.match_or_create_event(session, _make_event())
        assert match.created

    async def test_missing_city_rejected(self, seeded_db) -> None:
        dedup = DedupService()
        with pytest.raises(MissingCityError, match="Cannot create Event without cityId"):
            async with seeded_db() as session, session.begin():
                await dedup.match_or_create_event(session, _make_event(city_id=None))
