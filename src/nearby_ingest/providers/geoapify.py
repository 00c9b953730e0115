"""Geoapify Places API adapter (places)."""

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
from nearby_ingest.taxonomy.mapping import geoapify_filters_for, map_geoapify

GEOAPIFY_PLACES_URL = "https://api.geoapify.com/v2/places"


class GeoapifyProvider(HttpProvider):
    name = "geoapify"
    label = "Geoapify"
    source = SourceType.GEOAPIFY
    missing_key_warning = "Geoapify API key is missing"

    def build_params(self, query: BaseQuery) -> dict:
        params: dict = {"apiKey": self.api_key, "limit": min(50, max(1, query.size or 20))}
        if query.q:
            params["text"] = query.q
        categories = geoapify_filters_for(query.category_slugs)
        if categories:
            params["categories"] = ",".join(categories)
        if query.rect is not None:
            min_lon, min_lat, max_lon, max_lat = query.rect
            params["filter"] = f"rect:{min_lon},{min_lat},{max_lon},{max_lat}"
        elif query.lat is not None and query.lon is not None:
            radius_m = round((query.radius_km or 5) * 1000)
            params["filter"] = f"circle:{query.lon},{query.lat},{radius_m}"
            params["bias"] = f"proximity:{query.lon},{query.lat}"
        return params

    async def search_places(self, query: BaseQuery) -> ProviderResult:
        if not self.api_key:
            return ProviderResult(warning=self.missing_key_warning)
        data, warning = await self._get_json(GEOAPIFY_PLACES_URL, self.build_params(query))
        if data is None:
            return ProviderResult(warning=warning)
        items, skipped = self._parse_all(data.get("features") or [], self.parse_feature)
        total = data.get("total") if isinstance(data.get("total"), int) else None
        return self._result(items, skipped, total)

    def parse_feature(self, feature: dict) -> NormalizedPlace:
        props = feature.get("properties") or {}
        lat, lon = as_float(props.get("lat")), as_float(props.get("lon"))
        external_id = props.get("place_id") or props.get("osm_id") or f"{props.get('lat')},{props.get('lon')}"
        raw_categories = [str(c) for c in props.get("categories") or []]
        address = ", ".join(p for p in (props.get("address_line1"), props.get("address_line2")) if p)
        url = props.get("website") or props.get("url")
        return NormalizedPlace(
            name=props.get("name") or props.get("street") or props.get("address_line1") or "Place",
            location=GeoPoint(lat=lat, lon=lon) if lat is not None and lon is not None else None,
            address=address or None,
            url=url,
            image_url=((props.get("datasource") or {}).get("raw") or {}).get("image"),
            open_now=props.get("open_now"),
            categories=map_geoapify(raw_categories),
            provider_categories_raw=raw_categories,
            source=SourceRef(source=SourceType.GEOAPIFY, external_id=str(external_id), url=url),
        )
