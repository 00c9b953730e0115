"""Normalization helpers for building stable cache keys.

Two requests that mean the same thing must hash to the same key, so
coordinates are rounded, radii snapped to half kilometres, list filters
sorted and deduplicated, and explicit time ranges truncated to the hour.
"""

from __future__ import annotations

import datetime as dt
import math
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from nearby_ingest.ingestion.schemas import to_utc_naive

if TYPE_CHECKING:
    from nearby_ingest.search.schemas import SearchRequest, When

DEFAULT_RADIUS_KM = 5.0


def _round_half_up(value: float) -> float:
    return math.floor(value + 0.5)


def round_geo(value: float | None, digits: int = 5) -> float | None:
    if value is None:
        return None
    m = 10**digits
    return _round_half_up(value * m) / m


def round_radius(radius_km: float | None) -> float:
    """Snap a radius to 0.5 km steps; ``None`` means the default 5 km."""
    if radius_km is None:
        radius_km = DEFAULT_RADIUS_KM
    return _round_half_up(radius_km * 2) / 2


def normalize_array(values: Iterable[Any] | None) -> list[str] | None:
    """Sorted unique values; an empty filter is the same as no filter."""
    if values is None:
        return None
    return sorted({getattr(v, "value", v) for v in values}) or None


def _hour(value: dt.datetime) -> str:
    return to_utc_naive(value).strftime("%Y-%m-%dT%H")


def normalize_window(when: When | None) -> dict | None:
    """Presets stay symbolic; explicit ranges are truncated to the hour."""
    if when is None:
        return None
    if when.type == "preset":
        return {"type": "preset", "preset": when.preset}
    return {"type": "range", "from": _hour(when.from_), "to": _hour(when.to)}


def _drop_none(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _drop_none(v) for k, v in value.items() if v is not None}
    return value


def build_search_key_parts(request: SearchRequest) -> dict:
    """Key material for a search request, with absent fields omitted."""
    where = request.where
    limit = request.pagination.limit
    page = request.pagination.page
    parts: dict[str, Any] = {
        "target": request.target.value,
        "sort": request.sort,
        "q": request.q,
        "limit": limit,
        "page": page,
        "offset": max(0, (page - 1) * limit),
        "city_id": where.city.id if where.city else None,
        "bbox": (
            {
                "south": round_geo(where.bbox.south),
                "west": round_geo(where.bbox.west),
                "north": round_geo(where.bbox.north),
                "east": round_geo(where.bbox.east),
            }
            if where.bbox
            else None
        ),
        "geo": (
            {
                "lat": round_geo(where.geo.lat),
                "lon": round_geo(where.geo.lon),
                "radius_km": round_radius(where.geo.radius_km),
            }
            if where.geo
            else None
        ),
        "when": normalize_window(request.when),
        "filters": {
            "categories": normalize_array(request.filters.category_slugs if request.filters else None),
            "sources": normalize_array(request.filters.sources if request.filters else None),
        },
    }
    return _drop_none(parts)
