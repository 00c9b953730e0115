"""Search flow: cache lookup, first-page online ingest, ranked DB read.

A fresh cache hit is returned as is.  A stale hit is returned
immediately while a background task recomputes it under a per-key lock;
if another request already holds the lock the refresh is skipped.
Provider calls happen only for the first page of a query so paging
through results never re-queries external APIs.
"""

from __future__ import annotations

import asyncio
import random
import uuid

import httpx
import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from nearby_ingest.cache.keys import build_search_key_parts
from nearby_ingest.cache.service import CacheService
from nearby_ingest.config.settings import Settings
from nearby_ingest.ingestion.config import IngestionConfig
from nearby_ingest.ingestion.geo import haversine_km
from nearby_ingest.ingestion.orchestrator import OnlineIngestDeps, run_online_ingest
from nearby_ingest.ingestion.schemas import PLACE_SOURCES, EVENT_SOURCES, BaseQuery, IngestStats, to_utc_naive
from nearby_ingest.ingestion.trace import IngestTrace, build_sample_sink
from nearby_ingest.models.city import City
from nearby_ingest.providers.registry import build_event_providers, build_place_providers
from nearby_ingest.search.query import search_from_db
from nearby_ingest.search.schemas import SearchRequest, SearchResponse

logger = structlog.get_logger()

DEFAULT_SOURCES = (*EVENT_SOURCES, *PLACE_SOURCES)
MAX_WARNINGS = 10
DEFAULT_RADIUS_KM = 10.0


def _stats_line(kind: str, stats: IngestStats) -> str:
    return (
        f"ingest {kind}: total={stats.total} created={stats.created} updated={stats.updated} "
        f"unchanged={stats.unchanged} errors={stats.errors}"
    )


def _clamp_round(value: float, low: float, high: float) -> float:
    return max(low, min(high, round(value)))


class SearchService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings,
        ingestion_config: IngestionConfig,
        cache: CacheService,
        http_client: httpx.AsyncClient,
        rand: random.Random | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.settings = settings
        self.ingestion_config = ingestion_config
        self.cache = cache
        self.http_client = http_client
        self.rand = rand
        self._background: set[asyncio.Task] = set()

    async def search(self, request: SearchRequest) -> SearchResponse:
        key = self.cache.build_key("search", build_search_key_parts(request))
        ttl = self.settings.cache_ttl_search_first if request.is_first_page else self.settings.cache_ttl_search_pages
        tags = [f"city:{request.where.city.id}:search"] if request.where.city else []

        cached = await self.cache.get_json_swr(key)
        if cached is not None:
            if cached.stale:
                self._schedule_refresh(key, request, ttl, tags)
            logger.debug("search_cache_hit", key=key, stale=cached.stale)
            return SearchResponse.model_validate(cached.data)

        response = await self._compute(request)
        await self.cache.set_json_swr(
            key, response.model_dump(mode="json"), ttl, self.settings.cache_swr_search, tags
        )
        return response

    def _schedule_refresh(self, key: str, request: SearchRequest, ttl: int, tags: list[str]) -> None:
        async def refresh() -> None:
            try:
                response = await self._compute(request)
                await self.cache.set_json_swr(
                    key, response.model_dump(mode="json"), ttl, self.settings.cache_swr_search, tags
                )
                logger.info("search_cache_refreshed", key=key)
            except Exception:
                logger.warning("search_refresh_failed", key=key, exc_info=True)

        task = asyncio.create_task(self.cache.with_lock(f"{key}:lock", refresh))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def wait_background(self) -> None:
        """Wait for in-flight background refreshes (used at shutdown)."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    async def _compute(self, request: SearchRequest) -> SearchResponse:
        warnings: list[str] = []
        if request.is_first_page:
            try:
                warnings = await self._ingest(request)
            except Exception:
                logger.warning("online_ingest_failed", exc_info=True)
            city_id = request.where.city.id if request.where.city else None
            if self.settings.cache_invalidate_after_ingest and city_id:
                await self.cache.invalidate_by_city(city_id)

        async with self.session_factory() as session:
            response = await search_from_db(session, request, durations=self.ingestion_config.durations)
        response.warnings = [*response.warnings, *warnings][:MAX_WARNINGS]
        return response

    async def _ingest(self, request: SearchRequest) -> list[str]:
        filters = request.filters
        requested = filters.sources if filters and filters.sources else DEFAULT_SOURCES
        sample_sink = build_sample_sink(self.settings.save_provider_samples)
        trace = IngestTrace(request_id=uuid.uuid4().hex[:12])

        async with self.session_factory() as session:
            base_query = await self.build_base_query(session, request)

        deps = OnlineIngestDeps(
            session_factory=self.session_factory,
            config=self.ingestion_config,
            event_providers=build_event_providers(self.settings, self.http_client, requested, sample_sink),
            place_providers=build_place_providers(self.settings, self.http_client, requested, sample_sink),
            trace=trace,
            rand=self.rand,
        )
        result = await run_online_ingest(deps, base_query)
        return [
            _stats_line("places", result.place_stats),
            _stats_line("events", result.event_stats),
            *result.warnings[:5],
            *trace.lines[:5],
            *result.place_stats.warnings[:2],
            *result.event_stats.warnings[:2],
        ][:MAX_WARNINGS]

    async def build_base_query(self, session: AsyncSession, request: SearchRequest) -> BaseQuery:
        """Translate a search request into the provider-agnostic query.

        A city without explicit coordinates contributes its center and a
        radius from its bounding box half-diagonal, clamped to 2..50 km.
        A bounding box contributes its rectangle plus center and
        half-diagonal for providers that only take a circle.
        """
        where = request.where
        query = BaseQuery(
            q=request.q,
            radius_km=DEFAULT_RADIUS_KM,
            category_slugs=list(request.filters.category_slugs or []) if request.filters else [],
        )
        if request.when is not None and request.when.type == "range":
            query.from_time = to_utc_naive(request.when.from_)
            query.to_time = to_utc_naive(request.when.to)

        if where.geo is not None:
            query.lat, query.lon, query.radius_km = where.geo.lat, where.geo.lon, where.geo.radius_km
        elif where.bbox is not None:
            b = where.bbox
            query.rect = (b.west, b.south, b.east, b.north)
            query.lat, query.lon = (b.south + b.north) / 2, (b.west + b.east) / 2
            query.radius_km = _clamp_round(haversine_km(b.south, b.west, b.north, b.east) / 2, 1, 50)

        if where.city is not None:
            query.city_id = where.city.id
            query.city_name = where.city.name
            query.country_code = where.city.country_code
            city = await session.get(City, where.city.id)
            if city is not None:
                query.city_name = query.city_name or city.name
                query.country_code = query.country_code or city.country_code
                if query.lat is None or query.lon is None:
                    query.lat, query.lon = city.lat, city.lng
                    if city.max_lat is not None and city.max_lng is not None:
                        half_diagonal = haversine_km(city.lat, city.lng, city.max_lat, city.max_lng)
                        query.radius_km = _clamp_round(half_diagonal, 2, 50)
        return query
