"""Assign a city to candidates that arrive without one."""

from __future__ import annotations

from dataclasses import dataclass

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from nearby_ingest.ingestion.geo import haversine_m
from nearby_ingest.ingestion.schemas import NormalizedEvent, NormalizedPlace
from nearby_ingest.models.city import City


@dataclass(frozen=True)
class CityArea:
    id: str
    lat: float
    lng: float
    min_lat: float | None = None
    min_lng: float | None = None
    max_lat: float | None = None
    max_lng: float | None = None

    def contains(self, lat: float, lon: float, padding: float) -> bool:
        """Point-in-bbox test with the box inflated by ``padding`` of its span per side."""
        if None in (self.min_lat, self.min_lng, self.max_lat, self.max_lng):
            return False
        pad_lat = max(0.0, self.max_lat - self.min_lat) * padding
        pad_lng = max(0.0, self.max_lng - self.min_lng) * padding
        return (
            self.min_lat - pad_lat <= lat <= self.max_lat + pad_lat
            and self.min_lng - pad_lng <= lon <= self.max_lng + pad_lng
        )


async def load_city_areas(session: AsyncSession) -> list[CityArea]:
    rows = (
        await session.execute(
            sa.select(City.id, City.lat, City.lng, City.min_lat, City.min_lng, City.max_lat, City.max_lng)
        )
    ).all()
    return [
        CityArea(
            id=row.id,
            lat=row.lat,
            lng=row.lng,
            min_lat=row.min_lat,
            min_lng=row.min_lng,
            max_lat=row.max_lat,
            max_lng=row.max_lng,
        )
        for row in rows
    ]


class CityResolver:
    """Resolve a point to a city: padded bbox first, then nearest center."""

    def __init__(self, cities: list[CityArea], padding: float = 0.05) -> None:
        self.cities = cities
        self.padding = padding

    def resolve_point(self, lat: float, lon: float) -> str | None:
        for city in self.cities:
            if city.contains(lat, lon, self.padding):
                return city.id

        best: tuple[str, float] | None = None
        for city in self.cities:
            if city.lat is None or city.lng is None:
                continue
            d = haversine_m(lat, lon, city.lat, city.lng)
            if best is None or d < best[1]:
                best = (city.id, d)
        return best[0] if best else None

    def enrich(
        self, items: list[NormalizedPlace] | list[NormalizedEvent], fallback_city_id: str | None
    ) -> tuple[int, int]:
        """Fill ``city_id`` in place; return ``(enriched, unresolved)`` counts."""
        enriched = unresolved = 0
        for item in items:
            if item.city_id:
                continue
            city_id = None
            if item.location is not None:
                city_id = self.resolve_point(item.location.lat, item.location.lon)
            city_id = city_id or fallback_city_id
            if city_id:
                item.city_id = city_id
                enriched += 1
            else:
                unresolved += 1
        return enriched, unresolved
