"""Ranked read of persisted places and events for a search request."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from nearby_ingest.ingestion.config import DurationConfig
from nearby_ingest.ingestion.duration import (
    resolve_expected_duration_for_event,
    resolve_expected_duration_for_place,
)
from nearby_ingest.ingestion.geo import bbox_around, haversine_km
from nearby_ingest.ingestion.schemas import to_utc_naive, utcnow
from nearby_ingest.models.category import EventCategory, EventToCategory, PlaceCategory, PlaceToCategory
from nearby_ingest.models.event import Event, EventOccurrence, EventSource
from nearby_ingest.models.place import Place, PlaceSource
from nearby_ingest.search.schemas import (
    Coordinates,
    OccurrenceSummary,
    SearchHit,
    SearchRequest,
    SearchResponse,
    SearchTarget,
    Where,
    When,
)

# Upper bound on rows pulled per kind before in-memory ranking
MAX_CANDIDATES = 1000


@dataclass
class SearchArea:
    city_id: str | None = None
    center: tuple[float, float] | None = None
    radius_km: float | None = None
    # south, west, north, east
    bbox: tuple[float, float, float, float] | None = None

    def contains(self, lat: float | None, lon: float | None) -> bool:
        if self.center is None and self.bbox is None:
            return True
        if lat is None or lon is None:
            return False
        if self.bbox is not None:
            south, west, north, east = self.bbox
            if not (south <= lat <= north and west <= lon <= east):
                return False
        if self.center is not None and self.radius_km is not None:
            return haversine_km(self.center[0], self.center[1], lat, lon) <= self.radius_km
        return True

    def distance_km(self, lat: float | None, lon: float | None) -> float | None:
        if self.center is None or lat is None or lon is None:
            return None
        return haversine_km(self.center[0], self.center[1], lat, lon)


def resolve_area(where: Where) -> SearchArea:
    area = SearchArea(city_id=where.city.id if where.city else None)
    if where.geo is not None:
        min_lat, max_lat, min_lon, max_lon = bbox_around(where.geo.lat, where.geo.lon, where.geo.radius_km)
        area.center = (where.geo.lat, where.geo.lon)
        area.radius_km = where.geo.radius_km
        area.bbox = (min_lat, min_lon, max_lat, max_lon)
    elif where.bbox is not None:
        b = where.bbox
        area.bbox = (b.south, b.west, b.north, b.east)
        area.center = ((b.south + b.north) / 2, (b.west + b.east) / 2)
    return area


def resolve_time_window(when: When | None, now: dt.datetime | None = None) -> tuple[dt.datetime, dt.datetime]:
    """Resolve a preset or explicit range to a naive-UTC ``(from, to)`` window.

    Presets are evaluated in UTC.  Without ``when`` the window is the
    upcoming weekend, Friday 18:00 to Sunday 23:59:59.
    """
    now = now or utcnow()
    if when is not None and when.type == "range":
        return to_utc_naive(when.from_), to_utc_naive(when.to)

    preset = when.preset if when is not None else "this_weekend"
    day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    day_end = dt.timedelta(hours=23, minutes=59, seconds=59)
    if preset == "now":
        return now, now + dt.timedelta(hours=6)
    if preset in ("today_evening", "tonight"):
        return day_start + dt.timedelta(hours=18), day_start + day_end
    if preset == "tomorrow":
        tomorrow = day_start + dt.timedelta(days=1)
        return tomorrow, tomorrow + day_end
    friday = day_start + dt.timedelta(days=(4 - now.weekday()) % 7)
    return friday + dt.timedelta(hours=18), friday + dt.timedelta(days=2) + day_end


def _score_sum(model) -> sa.ColumnElement:
    return (
        sa.func.coalesce(model.popularity_score, 0)
        + sa.func.coalesce(model.quality_score, 0)
        + sa.func.coalesce(model.freshness_score, 0)
    )


async def _place_hits(
    session: AsyncSession,
    request: SearchRequest,
    area: SearchArea,
    durations: DurationConfig,
) -> list[SearchHit]:
    rank = _score_sum(Place).label("rank")
    stmt = (
        sa.select(Place, PlaceCategory.key, rank)
        .outerjoin(PlaceCategory, PlaceCategory.id == Place.main_category_id)
        .where(Place.is_active.is_(True), Place.moderation == "APPROVED")
    )
    if area.city_id:
        stmt = stmt.where(Place.city_id == area.city_id)
    if area.bbox is not None:
        south, west, north, east = area.bbox
        stmt = stmt.where(Place.lat.between(south, north), Place.lng.between(west, east))
    if request.q:
        stmt = stmt.where(Place.name.ilike(f"%{request.q}%"))
    filters = request.filters
    if filters and filters.category_slugs:
        cat = aliased(PlaceCategory)
        stmt = stmt.where(
            sa.exists().where(
                PlaceToCategory.place_id == Place.id,
                PlaceToCategory.category_id == cat.id,
                cat.key.in_(filters.category_slugs),
            )
        )
    if filters and filters.sources:
        stmt = stmt.where(
            sa.exists()
            .where(PlaceSource.place_id == Place.id)
            .where(PlaceSource.source.in_([s.value for s in filters.sources]))
        )
    stmt = stmt.order_by(rank.desc()).limit(MAX_CANDIDATES)

    hits = []
    for place, category_key, score in (await session.execute(stmt)).all():
        if not area.contains(place.lat, place.lng):
            continue
        hits.append(
            SearchHit(
                id=place.id,
                type="place",
                title=place.name,
                city_id=place.city_id,
                primary_category=category_key,
                address=place.address,
                location=Coordinates(lat=place.lat, lon=place.lng),
                distance_km=area.distance_km(place.lat, place.lng),
                rating=place.rating,
                review_count=place.review_count,
                image_url=place.image_url,
                url=place.url,
                rank=float(score or 0),
                expected_duration=resolve_expected_duration_for_place(category_key, durations),
            )
        )
    return hits


async def _event_hits(
    session: AsyncSession,
    request: SearchRequest,
    area: SearchArea,
    window: tuple[dt.datetime, dt.datetime],
    durations: DurationConfig,
) -> list[SearchHit]:
    start, end = window
    rank = _score_sum(Event).label("rank")
    stmt = (
        sa.select(Event, EventOccurrence, EventCategory.key, rank)
        .join(EventOccurrence, EventOccurrence.event_id == Event.id)
        .outerjoin(EventCategory, EventCategory.id == Event.main_category_id)
        .where(
            Event.is_active.is_(True),
            Event.moderation == "APPROVED",
            EventOccurrence.start_time <= end,
            sa.func.coalesce(EventOccurrence.end_time, EventOccurrence.start_time) >= start,
        )
    )
    if area.city_id:
        stmt = stmt.where(Event.city_id == area.city_id)
    if request.q:
        stmt = stmt.where(Event.title.ilike(f"%{request.q}%"))
    filters = request.filters
    if filters and filters.category_slugs:
        cat = aliased(EventCategory)
        stmt = stmt.where(
            sa.exists().where(
                EventToCategory.event_id == Event.id,
                EventToCategory.category_id == cat.id,
                cat.key.in_(filters.category_slugs),
            )
        )
    if filters and filters.sources:
        stmt = stmt.where(
            sa.exists()
            .where(EventSource.event_id == Event.id)
            .where(EventSource.source.in_([s.value for s in filters.sources]))
        )
    stmt = stmt.order_by(rank.desc(), EventOccurrence.start_time).limit(MAX_CANDIDATES)

    # One hit per event, carrying its earliest occurrence inside the window
    by_event: dict[str, SearchHit] = {}
    for event, occ, category_key, score in (await session.execute(stmt)).all():
        if not area.contains(occ.lat, occ.lng) and not (area.city_id and event.city_id == area.city_id):
            continue
        summary = OccurrenceSummary(
            id=occ.id,
            starts_at=occ.start_time,
            ends_at=occ.end_time,
            timezone=occ.timezone,
            place_id=occ.place_id,
        )
        hit = by_event.get(event.id)
        if hit is not None:
            if summary.starts_at < hit.next_occurrence.starts_at:
                hit.next_occurrence = summary
            continue
        location = Coordinates(lat=occ.lat, lon=occ.lng) if occ.lat is not None and occ.lng is not None else None
        by_event[event.id] = SearchHit(
            id=event.id,
            type="event",
            title=event.title,
            description=event.description,
            city_id=event.city_id,
            primary_category=category_key,
            location=location,
            distance_km=area.distance_km(occ.lat, occ.lng),
            image_url=event.image_url,
            url=event.tickets_url,
            rank=float(score or 0),
            next_occurrence=summary,
            price_from=event.price_from,
            price_to=event.price_to,
            currency=event.currency,
            is_online=event.is_online,
            tickets_url=event.tickets_url,
            expected_duration=resolve_expected_duration_for_event(category_key, durations),
        )
    return list(by_event.values())


def _sort_key(sort: str):
    far = float("inf")
    if sort == "distance":
        return lambda h: (h.distance_km if h.distance_km is not None else far, -h.rank)
    if sort == "start_time":
        return lambda h: (h.next_occurrence.starts_at if h.next_occurrence else dt.datetime.max, -h.rank)
    if sort == "rating":
        return lambda h: (-(h.rating if h.rating is not None else -1.0), -h.rank)
    # Unpriced hits (all places) go last in either direction
    if sort == "price_asc":
        return lambda h: (h.price_from is None, h.price_from or 0.0, -h.rank)
    if sort == "price_desc":
        return lambda h: (h.price_from is None, -(h.price_from or 0.0), -h.rank)
    return lambda h: (-h.rank, h.title)


async def search_from_db(
    session: AsyncSession,
    request: SearchRequest,
    now: dt.datetime | None = None,
    durations: DurationConfig | None = None,
) -> SearchResponse:
    """Read matching places and events, rank them and return one page.

    Each hit carries the expected visit or attendance duration of its
    primary category.
    """
    durations = durations or DurationConfig()
    area = resolve_area(request.where)
    hits: list[SearchHit] = []
    if request.target in (SearchTarget.PLACES, SearchTarget.BOTH):
        hits.extend(await _place_hits(session, request, area, durations))
    if request.target in (SearchTarget.EVENTS, SearchTarget.BOTH):
        window = resolve_time_window(request.when, now)
        hits.extend(await _event_hits(session, request, area, window, durations))

    hits.sort(key=_sort_key(request.sort))
    page = request.pagination
    return SearchResponse(
        total=len(hits),
        page=page.page,
        limit=page.limit,
        items=hits[page.offset : page.offset + page.limit],
    )
