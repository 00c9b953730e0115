"""Spherical-earth distance helpers."""

from __future__ import annotations

import math

EARTH_RADIUS_KM = 6371.0
EARTH_RADIUS_M = 6371e3
KM_PER_DEGREE_LAT = 111.32


def _haversine(lat1: float, lon1: float, lat2: float, lon2: float, radius: float) -> float:
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * radius * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in metres."""
    return _haversine(lat1, lon1, lat2, lon2, EARTH_RADIUS_M)


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in kilometres."""
    return _haversine(lat1, lon1, lat2, lon2, EARTH_RADIUS_KM)


def bbox_around(lat: float, lon: float, radius_km: float) -> tuple[float, float, float, float]:
    """Return ``(min_lat, max_lat, min_lon, max_lon)`` enclosing a circle.

    Uses the local approximation of 111.32 km per degree of latitude and
    scales longitude degrees by ``cos(lat)``.
    """
    d_lat = radius_km / KM_PER_DEGREE_LAT
    cos_lat = max(math.cos(math.radians(lat)), 1e-6)
    d_lon = radius_km / (KM_PER_DEGREE_LAT * cos_lat)
    return lat - d_lat, lat + d_lat, lon - d_lon, lon + d_lon
