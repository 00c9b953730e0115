"""PredictHQ Events API adapter (events)."""

from __future__ import annotations

from nearby_ingest.ingestion.schemas import (
    BaseQuery,
    GeoPoint,
    NormalizedEvent,
    ProviderResult,
    SourceRef,
    SourceType,
    TimeSlot,
)
from nearby_ingest.providers.base import HttpProvider, as_float, clamp_radius_km
from nearby_ingest.taxonomy.mapping import map_predicthq

PHQ_EVENTS_URL = "https://api.predicthq.com/v1/events/"


class PredictHQProvider(HttpProvider):
    name = "predicthq"
    label = "PredictHQ"
    source = SourceType.PREDICTHQ
    missing_key_warning = "PredictHQ token is missing"

    def build_params(self, query: BaseQuery) -> dict:
        params: dict = {"limit": min(100, query.size or 10)}
        if query.q:
            params["q"] = query.q
        if query.lat is not None and query.lon is not None:
            radius = clamp_radius_km(query.radius_km, 200)
            params["within"] = f"{radius}km@{query.lat},{query.lon}"
        if query.from_time:
            params["start.gte"] = query.from_time.isoformat()
        if query.to_time:
            params["start.lte"] = query.to_time.isoformat()
        return params

    async def search_events(self, query: BaseQuery) -> ProviderResult:
        if not self.api_key:
            return ProviderResult(warning=self.missing_key_warning)
        data, warning = await self._get_json(
            PHQ_EVENTS_URL, self.build_params(query), headers={"Authorization": f"Bearer {self.api_key}"}
        )
        if data is None:
            return ProviderResult(warning=warning)
        items, skipped = self._parse_all(data.get("results") or [], self.parse_event)
        return self._result(items, skipped, data.get("count"))

    def parse_event(self, ev: dict) -> NormalizedEvent:
        location = ev.get("location")
        point = None
        if isinstance(location, list) and len(location) == 2:
            lon, lat = as_float(location[0]), as_float(location[1])
            if lat is not None and lon is not None:
                point = GeoPoint(lat=lat, lon=lon)

        entities = ev.get("entities") or []
        venue = next((e for e in entities if e.get("type") == "venue"), None)
        address = (entities[0].get("name") if entities else None) or (venue or {}).get("name")

        raw_categories = [c for c in [ev.get("category"), *(ev.get("labels") or [])] if c]
        time = None
        if ev.get("start"):
            time = TimeSlot(start=ev["start"], end=ev.get("end"), timezone=ev.get("timezone"))
        online = ev.get("online", ev.get("is_online"))

        return NormalizedEvent(
            title=ev.get("title") or "",
            description=ev.get("description") or None,
            url=ev.get("url"),
            location=point,
            address=address,
            time=time,
            categories=map_predicthq(raw_categories),
            provider_categories_raw=[str(c) for c in raw_categories],
            is_online=online if isinstance(online, bool) else None,
            source=SourceRef(source=SourceType.PREDICTHQ, external_id=str(ev["id"]), url=ev.get("url")),
        )
