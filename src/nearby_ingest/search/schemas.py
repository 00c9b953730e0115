"""Request and response schemas for ``POST /api/search``."""

from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from nearby_ingest.ingestion.schemas import SourceType


class SearchTarget(str, Enum):
    PLACES = "places"
    EVENTS = "events"
    BOTH = "both"


class CityRef(BaseModel):
    id: str
    name: str | None = None
    country_code: str | None = Field(default=None, min_length=2, max_length=2)


class GeoWhere(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lon: float = Field(ge=-180, le=180)
    radius_km: float = Field(default=5, ge=0.5, le=50)


class BoundingBox(BaseModel):
    south: float = Field(ge=-90, le=90)
    west: float = Field(ge=-180, le=180)
    north: float = Field(ge=-90, le=90)
    east: float = Field(ge=-180, le=180)

    @model_validator(mode="after")
    def check_order(self) -> BoundingBox:
        if self.north < self.south:
            raise ValueError("Invalid bounding box: north < south")
        return self


class Where(BaseModel):
    city: CityRef | None = None
    geo: GeoWhere | None = None
    bbox: BoundingBox | None = None

    @model_validator(mode="after")
    def require_one(self) -> Where:
        if self.city is None and self.geo is None and self.bbox is None:
            raise ValueError("Either city, geo or bbox must be provided")
        return self


class WhenPreset(BaseModel):
    type: Literal["preset"] = "preset"
    preset: Literal["now", "today_evening", "tonight", "tomorrow", "this_weekend"]


class WhenRange(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["range"] = "range"
    from_: dt.datetime = Field(alias="from")
    to: dt.datetime


When = Annotated[Union[WhenPreset, WhenRange], Field(discriminator="type")]


class SearchFilters(BaseModel):
    category_slugs: list[str] | None = None
    sources: list[SourceType] | None = None


class Pagination(BaseModel):
    limit: int = Field(default=20, ge=1, le=100)
    page: int = Field(default=1, ge=1)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class SearchRequest(BaseModel):
    q: str | None = Field(default=None, min_length=1)
    where: Where
    when: When | None = None
    target: SearchTarget = SearchTarget.BOTH
    filters: SearchFilters | None = None
    pagination: Pagination = Pagination()
    sort: Literal["rank", "distance", "start_time", "rating", "price_asc", "price_desc"] = "rank"

    @property
    def is_first_page(self) -> bool:
        return self.pagination.page <= 1


class Coordinates(BaseModel):
    lat: float
    lon: float


class OccurrenceSummary(BaseModel):
    id: str
    starts_at: dt.datetime
    ends_at: dt.datetime | None = None
    timezone: str | None = None
    place_id: str | None = None


class SearchHit(BaseModel):
    id: str
    type: Literal["place", "event"]
    title: str
    description: str | None = None
    city_id: str | None = None
    primary_category: str | None = None
    address: str | None = None
    location: Coordinates | None = None
    distance_km: float | None = None
    rating: float | None = None
    review_count: int | None = None
    image_url: str | None = None
    url: str | None = None
    rank: float = 0.0
    expected_duration: int | None = None
    next_occurrence: OccurrenceSummary | None = None
    price_from: float | None = None
    price_to: float | None = None
    currency: str | None = None
    is_online: bool | None = None
    tickets_url: str | None = None


class SearchResponse(BaseModel):
    total: int = 0
    page: int = 1
    limit: int = 20
    warnings: list[str] = []
    items: list[SearchHit] = []
