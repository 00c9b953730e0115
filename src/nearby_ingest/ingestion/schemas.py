"""Normalized candidate types exchanged between providers and the pipeline.

Provider adapters parse their raw responses into these validated models;
nothing downstream of an adapter handles untyped provider payloads.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class SourceType(str, Enum):
    TICKETMASTER = "TICKETMASTER"
    PREDICTHQ = "PREDICTHQ"
    GEOAPIFY = "GEOAPIFY"
    GOOGLE_PLACES = "GOOGLE_PLACES"
    FOURSQUARE = "FOURSQUARE"
    PARTNER = "PARTNER"
    MANUAL = "MANUAL"


EVENT_SOURCES = (SourceType.TICKETMASTER, SourceType.PREDICTHQ)
PLACE_SOURCES = (SourceType.GEOAPIFY, SourceType.GOOGLE_PLACES, SourceType.FOURSQUARE)


def utcnow() -> dt.datetime:
    """Current time as naive UTC, the storage convention for every timestamp column."""
    return dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)


def to_utc_naive(value: dt.datetime | None) -> dt.datetime | None:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(dt.timezone.utc).replace(tzinfo=None)
    return value


class GeoPoint(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lon: float = Field(ge=-180, le=180)


class SourceRef(BaseModel):
    source: SourceType
    external_id: str = Field(min_length=1)
    url: str | None = None


class TimeSlot(BaseModel):
    start: dt.datetime
    end: dt.datetime | None = None
    timezone: str | None = None

    @field_validator("start", "end")
    @classmethod
    def normalize_utc(cls, v: dt.datetime | None) -> dt.datetime | None:
        return to_utc_naive(v)


class _Candidate(BaseModel):
    location: GeoPoint | None = None
    address: str | None = None
    url: str | None = None
    image_url: str | None = None
    city_id: str | None = None
    # Internal taxonomy slugs, primary first
    categories: list[str] = []
    provider_categories_raw: list[str] = []
    source: SourceRef
    source_updated_at: dt.datetime | None = None

    @field_validator("source_updated_at")
    @classmethod
    def normalize_updated_at(cls, v: dt.datetime | None) -> dt.datetime | None:
        return to_utc_naive(v)


class NormalizedPlace(_Candidate):
    name: str = ""
    rating: float | None = None
    review_count: int | None = None
    open_now: bool | None = None


class NormalizedEvent(_Candidate):
    title: str = ""
    description: str | None = None
    time: TimeSlot | None = None
    price_from: float | None = None
    price_to: float | None = None
    currency: str | None = None
    is_online: bool | None = None
    age_limit: int | None = None
    languages: list[str] | None = None
    tickets_url: str | None = None


class BaseQuery(BaseModel):
    """Provider-agnostic query passed to every adapter."""

    q: str | None = None
    lat: float | None = None
    lon: float | None = None
    radius_km: float | None = None
    rect: tuple[float, float, float, float] | None = None  # min_lon, min_lat, max_lon, max_lat
    from_time: dt.datetime | None = None
    to_time: dt.datetime | None = None
    size: int | None = None
    city_id: str | None = None
    city_name: str | None = None
    country_code: str | None = None
    category_slugs: list[str] = []


@dataclass
class ProviderResult:
    items: list = field(default_factory=list)
    total: int | None = None
    warning: str | None = None


@dataclass
class IngestStats:
    """Per-kind counters returned by a persist batch."""

    total: int = 0
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    errors: int = 0
    warnings: list[str] = field(default_factory=list)

    def add(self, other: IngestStats) -> None:
        self.total += other.total
        self.created += other.created
        self.updated += other.updated
        self.unchanged += other.unchanged
        self.errors += other.errors
        self.warnings.extend(other.warnings)

    def as_dict(self) -> dict:
        return {
            "total": self.total,
            "created": self.created,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "errors": self.errors,
        }


@dataclass
class OnlineIngestResult:
    place_stats: IngestStats
    event_stats: IngestStats
    warnings: list[str] = field(default_factory=list)
