"""Foursquare Places API adapter (places)."""

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
from nearby_ingest.taxonomy.mapping import map_foursquare

FSQ_SEARCH_URL = "https://places-api.foursquare.com/places/search"
FSQ_API_VERSION = "2025-06-17"


class FoursquareProvider(HttpProvider):
    name = "foursquare"
    label = "Foursquare"
    source = SourceType.FOURSQUARE
    missing_key_warning = "Foursquare API key is missing"

    def build_params(self, query: BaseQuery) -> dict:
        params: dict = {"limit": min(50, max(1, query.size or 20))}
        if query.lat is not None and query.lon is not None:
            params["ll"] = f"{query.lat},{query.lon}"
            params["radius"] = round((query.radius_km or 5) * 1000)
        elif query.city_name:
            params["near"] = query.city_name
        if query.q:
            params["query"] = query.q
        return params

    async def search_places(self, query: BaseQuery) -> ProviderResult:
        if not self.api_key:
            return ProviderResult(warning=self.missing_key_warning)
        headers = {"Authorization": f"Bearer {self.api_key}", "X-Places-Api-Version": FSQ_API_VERSION}
        data, warning = await self._get_json(FSQ_SEARCH_URL, self.build_params(query), headers=headers)
        if data is None:
            return ProviderResult(warning=warning)
        items, skipped = self._parse_all(data.get("results") or [], self.parse_result)
        return self._result(items, skipped)

    def parse_result(self, r: dict) -> NormalizedPlace:
        external_id = r.get("fsq_id") or r.get("fsq_place_id")
        if not external_id:
            raise ValueError("Foursquare result without id")
        main = (r.get("geocodes") or {}).get("main") or {}
        lat = as_float(main.get("latitude", r.get("latitude")))
        lon = as_float(main.get("longitude", r.get("longitude")))
        location = r.get("location") or {}
        composed = ", ".join(p for p in (location.get("address"), location.get("locality"), location.get("country")) if p)
        names = []
        for category in r.get("categories") or []:
            names.append(f"{category.get('name', '')} {category.get('short_name') or ''}".strip())
        raw_categories = [str(c.get("name")) for c in r.get("categories") or [] if c.get("name")]
        return NormalizedPlace(
            name=r.get("name") or "Place",
            location=GeoPoint(lat=lat, lon=lon) if lat is not None and lon is not None else None,
            address=location.get("formatted_address") or composed or None,
            url=r.get("website"),
            categories=map_foursquare(names),
            provider_categories_raw=raw_categories,
            source=SourceRef(source=SourceType.FOURSQUARE, external_id=str(external_id)),
        )
