"""Resolve normalized candidates to canonical places and events.

Resolution order:

1. Source identity: an existing snapshot row for ``(source, external_id)``.
2. Heuristic: places by geo distance plus name, events by city plus title.
3. Create: a new canonical row, which requires a city (and coordinates
   for places).
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass

import sqlalchemy as sa
import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from nearby_ingest.errors import MissingCityError, MissingCoordinatesError
from nearby_ingest.ingestion.config import DedupConfig
from nearby_ingest.ingestion.geo import bbox_around, haversine_m
from nearby_ingest.ingestion.schemas import NormalizedEvent, NormalizedPlace, to_utc_naive
from nearby_ingest.models.event import Event, EventSource
from nearby_ingest.models.place import Place, PlaceSource

logger = structlog.get_logger()

MATCH_SOURCE = "SOURCE"
MATCH_GEO_NAME = "GEO_NAME"
MATCH_TITLE_CITY = "TITLE_CITY"
MATCH_CREATED = "CREATED"


@dataclass(frozen=True)
class MatchResult:
    id: str
    reason: str
    distance_m: float | None = None

    @property
    def created(self) -> bool:
        return self.reason == MATCH_CREATED


def normalize_name(value: str | None) -> str:
    """Trim, lowercase and collapse internal whitespace."""
    return " ".join((value or "").lower().split())


def new_id() -> str:
    return str(uuid.uuid4())


class DedupService:
    def __init__(self, config: DedupConfig | None = None) -> None:
        self.config = config or DedupConfig()

    async def match_or_create_place(
        self, session: AsyncSession, candidate: NormalizedPlace
    ) -> MatchResult:
        ref = candidate.source
        place_id = await session.scalar(
            sa.select(PlaceSource.place_id).where(
                PlaceSource.source == ref.source.value,
                PlaceSource.external_id == ref.external_id,
            )
        )
        if place_id is not None:
            return MatchResult(id=place_id, reason=MATCH_SOURCE)

        loc = candidate.location
        if loc is not None:
            nearest = await self.find_nearest_place(
                session, loc.lat, loc.lon, candidate.name, candidate.city_id
            )
            if nearest is not None:
                found_id, distance = nearest
                return MatchResult(id=found_id, reason=MATCH_GEO_NAME, distance_m=round(distance, 1))

        if loc is None:
            raise MissingCoordinatesError(source=ref.source.value, external_id=ref.external_id)
        if not candidate.city_id:
            raise MissingCityError("Place", source=ref.source.value, external_id=ref.external_id)

        place = Place(
            id=new_id(),
            name=candidate.name or "",
            lat=loc.lat,
            lng=loc.lon,
            address=candidate.address,
            url=candidate.url,
            image_url=candidate.image_url,
            rating=candidate.rating,
            review_count=max(0, int(candidate.review_count)) if candidate.review_count is not None else None,
            city_id=candidate.city_id,
            provider=ref.source.value,
            is_active=True,
            moderation="APPROVED",
            last_source_updated_at=to_utc_naive(candidate.source_updated_at),
        )
        session.add(place)
        await session.flush()
        logger.debug("place_created", place_id=place.id, source=ref.source.value, external_id=ref.external_id)
        return MatchResult(id=place.id, reason=MATCH_CREATED)

    async def match_or_create_event(
        self, session: AsyncSession, candidate: NormalizedEvent
    ) -> MatchResult:
        ref = candidate.source
        event_id = await session.scalar(
            sa.select(EventSource.event_id).where(
                EventSource.source == ref.source.value,
                EventSource.external_id == ref.external_id,
            )
        )
        if event_id is not None:
            return MatchResult(id=event_id, reason=MATCH_SOURCE)

        # Same trim/lower on both sides; internal whitespace is kept as stored
        title = (candidate.title or "").strip().lower()
        if title and candidate.city_id:
            same = await session.scalar(
                sa.select(Event.id)
                .where(
                    Event.city_id == candidate.city_id,
                    sa.func.lower(sa.func.trim(Event.title)) == title,
                )
                .limit(1)
            )
            if same is not None:
                return MatchResult(id=same, reason=MATCH_TITLE_CITY)

        if not candidate.city_id:
            raise MissingCityError("Event", source=ref.source.value, external_id=ref.external_id)

        event = Event(
            id=new_id(),
            title=candidate.title or "",
            description=candidate.description,
            image_url=candidate.image_url,
            city_id=candidate.city_id,
            provider=ref.source.value,
            price_from=candidate.price_from,
            price_to=candidate.price_to,
            currency=candidate.currency,
            is_online=candidate.is_online,
            age_limit=candidate.age_limit,
            languages=list(candidate.languages) if candidate.languages else None,
            tickets_url=candidate.tickets_url,
            is_active=True,
            moderation="APPROVED",
            last_source_updated_at=to_utc_naive(candidate.source_updated_at),
        )
        session.add(event)
        await session.flush()
        logger.debug("event_created", event_id=event.id, source=ref.source.value, external_id=ref.external_id)
        return MatchResult(id=event.id, reason=MATCH_CREATED)

    async def find_nearest_place(
        self,
        session: AsyncSession,
        lat: float,
        lon: float,
        name: str | None,
        city_id: str | None,
        radius_m: float | None = None,
        limit: int | None = None,
    ) -> tuple[str, float] | None:
        """Return ``(place_id, distance)`` of the best active place within the radius.

        Candidates whose normalized name differs from ``name`` have their
        distance multiplied by the mismatch penalty before comparison;
        the returned distance is the (possibly penalized) ranking value.
        """
        radius = radius_m if radius_m is not None else self.config.radius_m
        min_lat, max_lat, min_lon, max_lon = bbox_around(lat, lon, radius / 1000)

        stmt = sa.select(Place.id, Place.name, Place.lat, Place.lng).where(
            Place.is_active.is_(True),
            Place.moderation == "APPROVED",
            Place.lat.between(min_lat, max_lat),
            Place.lng.between(min_lon, max_lon),
        )
        if city_id:
            stmt = stmt.where(Place.city_id == city_id)
        stmt = stmt.limit(limit or self.config.place_candidate_limit)
        rows = (await session.execute(stmt)).all()

        wanted = normalize_name(name)
        best: tuple[str, float] | None = None
        for row in rows:
            if row.lat is None or row.lng is None:
                continue
            distance = haversine_m(lat, lon, row.lat, row.lng)
            if distance > radius:
                continue
            if wanted:
                have = normalize_name(row.name)
                if have and have != wanted:
                    distance *= self.config.name_mismatch_penalty
            if best is None or distance < best[1]:
                best = (row.id, distance)
        return best
