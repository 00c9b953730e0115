"""Per-item persistence of normalized candidates.

For every candidate, in order:

1. checksum the candidate
2. dedup-match to a canonical id
3. load the canonical row
4. merge (fill-only-if-missing, freshness gate)
5. refresh the deterministic score triple
6. union provider categories and link taxonomy categories
7. write the combined canonical update, if any
8. (events) upsert the occurrence for the candidate's start time
9. upsert the source snapshot row

Each candidate runs in its own transaction.  A failure rolls back that
candidate only and is counted as an error.
"""

from __future__ import annotations

import datetime as dt
import random
from dataclasses import dataclass

import sqlalchemy as sa
import structlog
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from nearby_ingest.errors import IngestError, PreconditionError
from nearby_ingest.ingestion.config import IngestionConfig
from nearby_ingest.ingestion.dedup import DedupService, new_id
from nearby_ingest.ingestion.duration import resolve_expected_duration_for_event
from nearby_ingest.ingestion.merge import build_event_update, build_place_update, compute_checksum
from nearby_ingest.ingestion.schemas import IngestStats, NormalizedEvent, NormalizedPlace, utcnow
from nearby_ingest.ingestion.scoring import ScoreTriple, apply_quality_boost, score_by_canonical_id
from nearby_ingest.ingestion.trace import IngestTrace
from nearby_ingest.models.category import EventCategory, EventToCategory, PlaceCategory, PlaceToCategory
from nearby_ingest.models.event import Event, EventOccurrence, EventSource
from nearby_ingest.models.place import Place, PlaceSource

logger = structlog.get_logger()

# Dialects with INSERT ... ON CONFLICT DO UPDATE
_UPSERT_INSERTS = {"postgresql": postgresql.insert, "sqlite": sqlite.insert}


@dataclass
class _ItemOutcome:
    canonical_created: bool
    canonical_updated: bool
    source_existed: bool


def _classify(stats: IngestStats, outcome: _ItemOutcome) -> None:
    if outcome.canonical_updated and not outcome.canonical_created:
        stats.updated += 1
        if not outcome.source_existed:
            stats.created += 1
    elif outcome.source_existed:
        stats.unchanged += 1
    else:
        stats.created += 1


def _score_changes(existing, scores: ScoreTriple) -> dict:
    return {
        name: value
        for name, value in scores.as_dict().items()
        if getattr(existing, name) is None or getattr(existing, name) != value
    }


def union_provider_categories(current: str | None, incoming: list[str]) -> str | None:
    """Return the comma-separated union of both category lists, or ``None`` if unchanged."""
    fresh = [s.strip() for s in incoming if isinstance(s, str) and s.strip()]
    if not fresh:
        return None
    existing = [s.strip() for s in (current or "").split(",") if s.strip()]
    union = ", ".join(dict.fromkeys(existing + fresh))
    return None if union == (current or "") else union


def _upsert(session: AsyncSession, model):
    dialect = session.get_bind().dialect.name
    try:
        return _UPSERT_INSERTS[dialect](model)
    except KeyError:
        raise IngestError(f"upsert not supported on dialect {dialect}") from None


async def upsert_source_snapshot(session: AsyncSession, model, owner_fk: str, values: dict) -> None:
    """Insert a source row, or refresh the row already holding ``(source, external_id)``."""
    stmt = _upsert(session, model).values(**values)
    refreshed = (owner_fk, "url", "payload", "checksum", "fetched_at", "source_updated_at")
    await session.execute(
        stmt.on_conflict_do_update(
            index_elements=["source", "external_id"],
            set_={name: stmt.excluded[name] for name in refreshed},
        )
    )


async def upsert_occurrence(session: AsyncSession, values: dict, provider_end: bool) -> None:
    """Insert an occurrence, merging into an existing ``(event_id, start_time)`` row.

    On conflict non-null incoming fields win.  The end time is replaced
    only when it came from the provider; a synthesized end fills a null.
    """
    table = EventOccurrence.__table__
    stmt = _upsert(session, EventOccurrence).values(**values)
    merged = {
        name: sa.func.coalesce(stmt.excluded[name], table.c[name])
        for name in ("timezone", "url", "lat", "lng", "place_id")
    }
    if provider_end:
        merged["end_time"] = stmt.excluded.end_time
    else:
        merged["end_time"] = sa.func.coalesce(table.c.end_time, stmt.excluded.end_time)
    await session.execute(stmt.on_conflict_do_update(index_elements=["event_id", "start_time"], set_=merged))


def _error_message(kind: str, item: NormalizedPlace | NormalizedEvent, exc: Exception) -> str:
    if isinstance(exc, PreconditionError):
        return f"{kind} error: {exc}"
    ref = item.source
    return f"{kind} error: {exc} (source={ref.source.value} externalId={ref.external_id})"


class PersistService:
    def __init__(
        self,
        session_factory: async_sessionmaker,
        dedup: DedupService,
        config: IngestionConfig,
        trace: IngestTrace | None = None,
        rand: random.Random | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.dedup = dedup
        self.config = config
        self.trace = trace
        self.rand = rand

    def _event(self, name: str, **fields) -> None:
        if self.trace is not None:
            self.trace.event(name, **fields)
        else:
            logger.debug(name, **fields)

    # ---------- places ----------

    async def ingest_places(self, source: str, items: list[NormalizedPlace]) -> IngestStats:
        source = getattr(source, "value", source)
        stats = IngestStats(total=len(items))
        self._event("persist_places_start", source=source, total=len(items))
        for item in items:
            try:
                async with self.session_factory() as session, session.begin():
                    outcome = await self._persist_place(session, source, item)
            except Exception as exc:
                stats.errors += 1
                stats.warnings.append(_error_message("place", item, exc))
                logger.warning(
                    "persist_place_failed",
                    source=item.source.source.value,
                    external_id=item.source.external_id,
                    error=str(exc),
                )
                continue
            _classify(stats, outcome)
        self._event("persist_places_done", source=source, **stats.as_dict())
        return stats

    async def _persist_place(self, session: AsyncSession, source: str, item: NormalizedPlace) -> _ItemOutcome:
        checksum = compute_checksum(item)
        match = await self.dedup.match_or_create_place(session, item)

        existing = await session.get(Place, match.id)
        if existing is None:
            raise IngestError(f"Place not found after match: {match.id}")

        update = build_place_update(existing, item, source, item.source_updated_at) or {}
        update.update(_score_changes(existing, score_by_canonical_id(existing.id, self.config.scoring.salt)))
        categories = union_provider_categories(existing.provider_categories, item.provider_categories_raw)
        if categories is not None:
            update["provider_categories"] = categories
        if existing.provider is None:
            update["provider"] = source

        primary_id = await self._link_categories(
            session,
            owner_model=Place,
            category_model=PlaceCategory,
            link_model=PlaceToCategory,
            owner_fk="place_id",
            owner_id=existing.id,
            slugs=item.categories,
            current_main=existing.main_category_id,
        )

        if update:
            update["updated_at"] = utcnow()
            await session.execute(sa.update(Place).where(Place.id == existing.id).values(**update))

        source_existed = await self._upsert_source(
            session, PlaceSource, "place_id", existing.id, item, checksum
        )
        return _ItemOutcome(
            canonical_created=match.created,
            canonical_updated=bool(update) or primary_id is not None,
            source_existed=source_existed,
        )

    # ---------- events ----------

    async def ingest_events(self, source: str, items: list[NormalizedEvent]) -> IngestStats:
        source = getattr(source, "value", source)
        stats = IngestStats(total=len(items))
        self._event("persist_events_start", source=source, total=len(items))
        for item in items:
            try:
                async with self.session_factory() as session, session.begin():
                    outcome = await self._persist_event(session, source, item)
            except Exception as exc:
                stats.errors += 1
                stats.warnings.append(_error_message("event", item, exc))
                logger.warning(
                    "persist_event_failed",
                    source=item.source.source.value,
                    external_id=item.source.external_id,
                    error=str(exc),
                )
                continue
            _classify(stats, outcome)
        self._event("persist_events_done", source=source, **stats.as_dict())
        return stats

    async def _persist_event(self, session: AsyncSession, source: str, item: NormalizedEvent) -> _ItemOutcome:
        checksum = compute_checksum(item)
        match = await self.dedup.match_or_create_event(session, item)

        existing = await session.get(Event, match.id)
        if existing is None:
            raise IngestError(f"Event not found after match: {match.id}")

        update = build_event_update(existing, item, source, item.source_updated_at) or {}
        scores = apply_quality_boost(
            score_by_canonical_id(existing.id, self.config.scoring.salt),
            self.config.scoring.event_quality_boost,
        )
        update.update(_score_changes(existing, scores))
        categories = union_provider_categories(existing.provider_categories, item.provider_categories_raw)
        if categories is not None:
            update["provider_categories"] = categories
        if existing.provider is None:
            update["provider"] = source

        current_main = existing.main_category_id
        primary_id = await self._link_categories(
            session,
            owner_model=Event,
            category_model=EventCategory,
            link_model=EventToCategory,
            owner_fk="event_id",
            owner_id=existing.id,
            slugs=item.categories,
            current_main=current_main,
        )

        if update:
            update["updated_at"] = utcnow()
            await session.execute(sa.update(Event).where(Event.id == existing.id).values(**update))

        primary_slug = await self._primary_event_slug(session, primary_id or current_main, item)
        await self._upsert_occurrence(session, existing.id, item, primary_slug)

        source_existed = await self._upsert_source(
            session, EventSource, "event_id", existing.id, item, checksum
        )
        return _ItemOutcome(
            canonical_created=match.created,
            canonical_updated=bool(update) or primary_id is not None,
            source_existed=source_existed,
        )

    async def _primary_event_slug(
        self, session: AsyncSession, main_category_id: str | None, item: NormalizedEvent
    ) -> str | None:
        if main_category_id is not None:
            key = await session.scalar(sa.select(EventCategory.key).where(EventCategory.id == main_category_id))
            if key:
                return key
        return item.categories[0] if item.categories else None

    async def _upsert_occurrence(
        self, session: AsyncSession, event_id: str, item: NormalizedEvent, primary_slug: str | None
    ) -> None:
        slot = item.time
        if slot is None:
            return
        start = slot.start
        provider_end = slot.end if slot.end is not None and slot.end > start else None

        place_id = None
        lat = lng = None
        if item.location is not None:
            lat, lng = item.location.lat, item.location.lon
            nearest = await self.dedup.find_nearest_place(
                session,
                lat,
                lng,
                name=None,
                city_id=None,
                limit=self.config.dedup.occurrence_place_candidate_limit,
            )
            place_id = nearest[0] if nearest else None

        occurrence = await session.scalar(
            sa.select(EventOccurrence).where(
                EventOccurrence.event_id == event_id,
                EventOccurrence.start_time == start,
            )
        )

        if occurrence is None:
            # A concurrent writer may insert the same (event, start) first
            end = provider_end or self._synthesized_end(start, primary_slug)
            values = {
                "id": new_id(),
                "event_id": event_id,
                "start_time": start,
                "end_time": end,
                "timezone": slot.timezone,
                "url": item.url,
                "lat": lat,
                "lng": lng,
                "place_id": place_id,
            }
            await upsert_occurrence(session, values, provider_end=provider_end is not None)
            return

        # Provider end always wins; a synthesized end never replaces an existing one
        if provider_end is not None:
            if occurrence.end_time != provider_end:
                occurrence.end_time = provider_end
        elif occurrence.end_time is None:
            occurrence.end_time = self._synthesized_end(start, primary_slug)

        for attr, value in (
            ("timezone", slot.timezone),
            ("url", item.url),
            ("lat", lat),
            ("lng", lng),
            ("place_id", place_id),
        ):
            if value is not None and getattr(occurrence, attr) != value:
                setattr(occurrence, attr, value)
        await session.flush()

    def _synthesized_end(self, start: dt.datetime, slug: str | None) -> dt.datetime:
        minutes = resolve_expected_duration_for_event(slug, self.config.durations, self.rand)
        self._event("occurrence_end_synthesized", category=slug or "event.other", minutes=minutes)
        return start + dt.timedelta(minutes=minutes)

    # ---------- shared helpers ----------

    async def _link_categories(
        self,
        session: AsyncSession,
        *,
        owner_model,
        category_model,
        link_model,
        owner_fk: str,
        owner_id: str,
        slugs: list[str],
        current_main: str | None,
    ) -> str | None:
        """Link resolved taxonomy categories; return the category id made primary, if any.

        The primary assignment is a conditional ``UPDATE ... WHERE
        main_category_id IS NULL`` in the item's transaction, so two
        writers racing on the same new record cannot both claim it.
        """
        wanted = list(dict.fromkeys(s for s in slugs if s))
        if not wanted:
            return None
        rows = (
            await session.execute(
                sa.select(category_model.id, category_model.key).where(category_model.key.in_(wanted))
            )
        ).all()
        by_key = {row.key: row.id for row in rows}
        resolved = [by_key[slug] for slug in wanted if slug in by_key]
        if not resolved:
            return None

        owner_col = getattr(link_model, owner_fk)
        links = {
            row.category_id: row.is_primary
            for row in (
                await session.execute(
                    sa.select(link_model.category_id, link_model.is_primary).where(owner_col == owner_id)
                )
            ).all()
        }

        assigned: str | None = None
        if current_main is None and not any(links.values()):
            first = resolved[0]
            result = await session.execute(
                sa.update(owner_model)
                .where(owner_model.id == owner_id, owner_model.main_category_id.is_(None))
                .values(main_category_id=first)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                assigned = first
                if first in links:
                    await session.execute(
                        sa.update(link_model)
                        .where(owner_col == owner_id, link_model.category_id == first)
                        .values(is_primary=True)
                        .execution_options(synchronize_session=False)
                    )
                else:
                    session.add(link_model(**{owner_fk: owner_id, "category_id": first, "is_primary": True}))
                links[first] = True

        for category_id in resolved:
            if category_id not in links:
                session.add(link_model(**{owner_fk: owner_id, "category_id": category_id, "is_primary": False}))
                links[category_id] = False
        await session.flush()
        return assigned

    async def _upsert_source(
        self,
        session: AsyncSession,
        model,
        owner_fk: str,
        owner_id: str,
        item: NormalizedPlace | NormalizedEvent,
        checksum: str,
    ) -> bool:
        """Insert or refresh the snapshot row; return whether it already existed."""
        ref = item.source
        row = await session.scalar(
            sa.select(model).where(model.source == ref.source.value, model.external_id == ref.external_id)
        )
        payload = {"snapshot": item.model_dump(mode="json")}
        now = utcnow()
        if row is None:
            values = {
                "id": new_id(),
                "source": ref.source.value,
                "external_id": ref.external_id,
                "url": ref.url,
                "payload": payload,
                "checksum": checksum,
                "fetched_at": now,
                "source_updated_at": item.source_updated_at,
                owner_fk: owner_id,
            }
            await upsert_source_snapshot(session, model, owner_fk, values)
            return False

        setattr(row, owner_fk, owner_id)
        row.url = ref.url
        row.payload = payload
        row.checksum = checksum
        row.fetched_at = now
        row.source_updated_at = item.source_updated_at
        await session.flush()
        return True
