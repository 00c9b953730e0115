"""Google Places (legacy web service) adapter (places).

Uses Nearby Search when the query has coordinates, Text Search otherwise.
"""

from __future__ import annotations

from nearby_ingest.ingestion.schemas import (
    BaseQuery,
    GeoPoint,
    NormalizedPlace,
    ProviderResult,
    SourceRef,
    SourceType,
)
from nearby_ingest.providers.base import HttpProvider, as_float
from nearby_ingest.taxonomy.mapping import google_types_for, map_google

GP_NEARBY_URL = "https://maps.googleapis.com/maps/api/place/nearbysearch/json"
GP_TEXT_URL = "https://maps.googleapis.com/maps/api/place/textsearch/json"


class GooglePlacesProvider(HttpProvider):
    name = "google-places"
    label = "Google Places"
    source = SourceType.GOOGLE_PLACES
    missing_key_warning = "Google Places API key is missing"

    def build_request(self, query: BaseQuery) -> tuple[str, dict]:
        has_location = query.lat is not None and query.lon is not None
        params: dict = {"key": self.api_key}
        if has_location:
            params["location"] = f"{query.lat},{query.lon}"
            params["radius"] = round((query.radius_km or 5) * 1000)
        if query.q:
            params["keyword" if has_location else "query"] = query.q
        elif not has_location and query.city_name:
            params["query"] = query.city_name
        types = google_types_for(query.category_slugs)
        if types:
            # Nearby Search accepts a single type
            params["type"] = types[0]
        return (GP_NEARBY_URL if has_location else GP_TEXT_URL), params

    async def search_places(self, query: BaseQuery) -> ProviderResult:
        if not self.api_key:
            return ProviderResult(warning=self.missing_key_warning)
        url, params = self.build_request(query)
        data, warning = await self._get_json(url, params)
        if data is None:
            return ProviderResult(warning=warning)
        limit = min(50, max(1, query.size or 20))
        items, skipped = self._parse_all((data.get("results") or [])[:limit], self.parse_result)
        return self._result(items, skipped)

    def parse_result(self, r: dict) -> NormalizedPlace:
        geometry = (r.get("geometry") or {}).get("location") or {}
        lat, lon = as_float(geometry.get("lat")), as_float(geometry.get("lng"))
        types = [str(t) for t in r.get("types") or []]
        rating = as_float(r.get("rating"))
        reviews = r.get("user_ratings_total")
        return NormalizedPlace(
            name=r.get("name") or "Place",
            location=GeoPoint(lat=lat, lon=lon) if lat is not None and lon is not None else None,
            address=r.get("vicinity") or r.get("formatted_address"),
            rating=rating,
            review_count=int(reviews) if reviews is not None else None,
            open_now=(r.get("opening_hours") or {}).get("open_now"),
            categories=map_google(types),
            provider_categories_raw=types,
            source=SourceRef(source=SourceType.GOOGLE_PLACES, external_id=str(r["place_id"])),
        )
