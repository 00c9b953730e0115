"""Online ingest: provider fan-out, capping, city enrichment and persistence.

Providers are queried concurrently.  A provider that raises, times out
or reports a warning only contributes a warning string; the others
complete normally.  Candidates are then capped globally, enriched with a
city, grouped by source and handed to ``PersistService``.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable

import structlog
from sqlalchemy.ext.asyncio import async_sessionmaker

from nearby_ingest.ingestion.city_resolver import CityResolver, load_city_areas
from nearby_ingest.ingestion.config import IngestionConfig
from nearby_ingest.ingestion.dedup import DedupService
from nearby_ingest.ingestion.persist import PersistService
from nearby_ingest.ingestion.schemas import (
    BaseQuery,
    IngestStats,
    NormalizedEvent,
    NormalizedPlace,
    OnlineIngestResult,
    ProviderResult,
)
from nearby_ingest.ingestion.trace import IngestTrace
from nearby_ingest.providers.base import EventProvider, PlaceProvider

logger = structlog.get_logger()


@dataclass
class OnlineIngestDeps:
    session_factory: async_sessionmaker
    config: IngestionConfig
    event_providers: list[EventProvider] = field(default_factory=list)
    place_providers: list[PlaceProvider] = field(default_factory=list)
    trace: IngestTrace | None = None
    rand: random.Random | None = None


async def _fetch(
    name: str,
    source: str,
    search: Callable[[BaseQuery], Awaitable[ProviderResult]],
    query: BaseQuery,
    config: IngestionConfig,
    warnings: list[str],
    trace: IngestTrace,
) -> list:
    limit = config.limit_for(source)
    if limit <= 0:
        return []
    trace.event("provider_start", provider=name, source=source, limit=limit)
    timeout = config.provider_timeout_seconds
    try:
        result = await asyncio.wait_for(search(query.model_copy(update={"size": limit})), timeout=timeout)
    except TimeoutError:
        warnings.append(f"{name}: timed out after {timeout:g}s")
        trace.warning("provider_timeout", provider=name, timeout_seconds=timeout)
        return []
    except Exception as exc:
        warnings.append(f"{name}: {str(exc) or type(exc).__name__}")
        trace.warning("provider_failed", provider=name, error=str(exc) or type(exc).__name__)
        return []

    if result.warning:
        warnings.append(f"{name}: {result.warning}")
    trace.event("provider_done", provider=name, items=len(result.items), warning=result.warning or "")
    return list(result.items[:limit])


def _group_by_source(items: list) -> dict[str, list]:
    groups: dict[str, list] = {}
    for item in items:
        groups.setdefault(item.source.source.value, []).append(item)
    return groups


async def run_online_ingest(deps: OnlineIngestDeps, query: BaseQuery) -> OnlineIngestResult:
    """Fetch from every provider and persist the results.

    Args:
        deps: Session factory, config, provider adapters and optional trace.
        query: Provider-agnostic query; ``size`` is overridden per provider
            by its configured cap.

    Returns:
        Aggregated place and event stats plus provider warnings.
    """
    config = deps.config
    trace = deps.trace or IngestTrace()
    warnings: list[str] = []
    trace.event(
        "online_ingest_start",
        q=query.q or "",
        lat=query.lat,
        lon=query.lon,
        radius_km=query.radius_km,
        city_id=query.city_id,
    )

    place_batches, event_batches = await asyncio.gather(
        asyncio.gather(
            *(
                _fetch(p.name, p.source.value, p.search_places, query, config, warnings, trace)
                for p in deps.place_providers
            )
        ),
        asyncio.gather(
            *(
                _fetch(p.name, p.source.value, p.search_events, query, config, warnings, trace)
                for p in deps.event_providers
            )
        ),
    )

    fetched_places = [item for batch in place_batches for item in batch]
    fetched_events = [item for batch in event_batches for item in batch]
    places: list[NormalizedPlace] = fetched_places[: config.global_limit]
    events: list[NormalizedEvent] = fetched_events[: config.global_limit]
    trace.event(
        "providers_merged",
        places_before_cap=len(fetched_places),
        places_after_cap=len(places),
        events_before_cap=len(fetched_events),
        events_after_cap=len(events),
    )

    if any(not item.city_id for item in [*places, *events]):
        async with deps.session_factory() as session:
            cities = await load_city_areas(session)
        resolver = CityResolver(cities, padding=config.city.bbox_padding)
        places_enriched, places_unresolved = resolver.enrich(places, query.city_id)
        events_enriched, events_unresolved = resolver.enrich(events, query.city_id)
        trace.event(
            "city_enrichment",
            places_enriched=places_enriched,
            places_unresolved=places_unresolved,
            events_enriched=events_enriched,
            events_unresolved=events_unresolved,
        )

    persist = PersistService(
        deps.session_factory,
        DedupService(config.dedup),
        config,
        trace=trace,
        rand=deps.rand,
    )

    place_stats = IngestStats()
    for source, batch in _group_by_source(places).items():
        place_stats.add(await persist.ingest_places(source, batch))

    event_stats = IngestStats()
    for source, batch in _group_by_source(events).items():
        event_stats.add(await persist.ingest_events(source, batch))

    trace.event("online_ingest_done", places=place_stats.as_dict(), events=event_stats.as_dict())
    return OnlineIngestResult(place_stats=place_stats, event_stats=event_stats, warnings=warnings)
