"""Ticketmaster Discovery API adapter (events)."""

from __future__ import annotations

import datetime as dt

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
from nearby_ingest.taxonomy.mapping import map_ticketmaster

TM_EVENTS_URL = "https://app.ticketmaster.com/discovery/v2/events.json"


def _tm_datetime(value: dt.datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(dt.timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")


class TicketmasterProvider(HttpProvider):
    name = "ticketmaster"
    label = "Ticketmaster"
    source = SourceType.TICKETMASTER
    missing_key_warning = "Ticketmaster API key is missing"

    def build_params(self, query: BaseQuery) -> dict:
        params: dict = {"apikey": self.api_key, "size": min(100, query.size or 20)}
        if query.q:
            params["keyword"] = query.q
        if query.city_name:
            params["city"] = query.city_name
        if query.country_code:
            params["countryCode"] = query.country_code
        if query.lat is not None and query.lon is not None:
            params["latlong"] = f"{query.lat},{query.lon}"
            params["radius"] = clamp_radius_km(query.radius_km, 100)
            params["unit"] = "km"
        if query.from_time:
            params["startDateTime"] = _tm_datetime(query.from_time)
        if query.to_time:
            params["endDateTime"] = _tm_datetime(query.to_time)
        return params

    async def search_events(self, query: BaseQuery) -> ProviderResult:
        if not self.api_key:
            return ProviderResult(warning=self.missing_key_warning)
        data, warning = await self._get_json(TM_EVENTS_URL, self.build_params(query))
        if data is None:
            return ProviderResult(warning=warning)
        raw_events = (data.get("_embedded") or {}).get("events") or []
        items, skipped = self._parse_all(raw_events, self.parse_event)
        total = (data.get("page") or {}).get("totalElements")
        return self._result(items, skipped, total)

    def parse_event(self, ev: dict) -> NormalizedEvent:
        venue = ((ev.get("_embedded") or {}).get("venues") or [{}])[0] or {}
        location = venue.get("location") or {}
        lat, lon = as_float(location.get("latitude")), as_float(location.get("longitude"))
        address_parts = [
            (venue.get("address") or {}).get("line1"),
            (venue.get("city") or {}).get("name"),
            (venue.get("country") or {}).get("name"),
        ]
        address = ", ".join(p for p in address_parts if p) or None

        dates = ev.get("dates") or {}
        start = dates.get("start") or {}
        time = None
        start_value = start.get("dateTime") or (f"{start['localDate']}T00:00:00" if start.get("localDate") else None)
        if start_value:
            end_value = (dates.get("end") or {}).get("dateTime")
            time = TimeSlot(start=start_value, end=end_value, timezone=dates.get("timezone"))

        raw_categories: list[str] = []
        for classification in ev.get("classifications") or []:
            for level in ("segment", "genre", "subGenre"):
                value = (classification.get(level) or {}).get("name")
                if value:
                    raw_categories.append(str(value))

        price = (ev.get("priceRanges") or [{}])[0] or {}
        image_url = next((img["url"] for img in ev.get("images") or [] if img.get("url")), None)
        legal_age = (ev.get("ageRestrictions") or {}).get("legalAgeEnforced")

        return NormalizedEvent(
            title=ev.get("name") or "",
            description=ev.get("info") or ev.get("pleaseNote"),
            url=ev.get("url"),
            image_url=image_url,
            location=GeoPoint(lat=lat, lon=lon) if lat is not None and lon is not None else None,
            address=address,
            time=time,
            categories=map_ticketmaster(raw_categories),
            provider_categories_raw=raw_categories,
            price_from=as_float(price.get("min")),
            price_to=as_float(price.get("max")),
            currency=price.get("currency"),
            is_online=False,
            age_limit=18 if legal_age else None,
            tickets_url=ev.get("url"),
            source=SourceRef(source=SourceType.TICKETMASTER, external_id=str(ev["id"]), url=ev.get("url")),
        )
