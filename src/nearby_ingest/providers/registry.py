"""Build the provider adapter lists requested for a search."""

from __future__ import annotations

from collections.abc import Iterable

import httpx

from nearby_ingest.config.settings import Settings
from nearby_ingest.ingestion.schemas import SourceType
from nearby_ingest.ingestion.trace import SampleSink
from nearby_ingest.providers.base import EventProvider, PlaceProvider
from nearby_ingest.providers.foursquare import FoursquareProvider
from nearby_ingest.providers.geoapify import GeoapifyProvider
from nearby_ingest.providers.google_places import GooglePlacesProvider
from nearby_ingest.providers.predicthq import PredictHQProvider
from nearby_ingest.providers.ticketmaster import TicketmasterProvider


def build_http_client(settings: Settings) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=httpx.Timeout(settings.provider_http_timeout_seconds))


def build_event_providers(
    settings: Settings,
    client: httpx.AsyncClient,
    requested: Iterable[SourceType],
    sample_sink: SampleSink | None = None,
) -> list[EventProvider]:
    wanted = set(requested)
    providers: list[EventProvider] = []
    if SourceType.TICKETMASTER in wanted:
        providers.append(TicketmasterProvider(client, settings.ticketmaster_api_key, sample_sink))
    if SourceType.PREDICTHQ in wanted:
        providers.append(PredictHQProvider(client, settings.predicthq_token, sample_sink))
    return providers


def build_place_providers(
    settings: Settings,
    client: httpx.AsyncClient,
    requested: Iterable[SourceType],
    sample_sink: SampleSink | None = None,
) -> list[PlaceProvider]:
    wanted = set(requested)
    providers: list[PlaceProvider] = []
    if SourceType.GEOAPIFY in wanted:
        providers.append(GeoapifyProvider(client, settings.geoapify_api_key, sample_sink))
    if SourceType.GOOGLE_PLACES in wanted:
        providers.append(GooglePlacesProvider(client, settings.google_places_api_key, sample_sink))
    if SourceType.FOURSQUARE in wanted:
        providers.append(FoursquareProvider(client, settings.foursquare_api_key, sample_sink))
    return providers
