"""Field-level conflict resolution between incoming candidates and canonical rows.

The policy is fill-only-if-missing: an incoming value is written only
where the canonical field is empty, so a populated field is never
replaced by a blank one.  A provider timestamp strictly older than the
canonical record's watermark rejects the whole update.
"""

from __future__ import annotations

import datetime as dt
import hashlib
import json
from enum import IntEnum
from typing import Any

from nearby_ingest.ingestion.schemas import NormalizedEvent, NormalizedPlace, to_utc_naive


class SourcePriority(IntEnum):
    """Relative trust of each source.

    Not consulted by the fill-only-if-missing rule; kept as the tie-break
    ordering for overwrite policies between sources.
    """

    MANUAL = 100
    PARTNER = 90
    GOOGLE_PLACES = 80
    TICKETMASTER = 75
    PREDICTHQ = 70
    FOURSQUARE = 65
    GEOAPIFY = 60
    OTHER = 50


def source_priority_of(source: str) -> int:
    key = getattr(source, "value", source)
    try:
        return SourcePriority[key]
    except KeyError:
        return SourcePriority.OTHER


def compute_checksum(candidate: NormalizedPlace | NormalizedEvent | dict | None) -> str:
    """SHA-256 of the sort-keyed JSON form of the full candidate."""
    if candidate is None:
        data: Any = {}
    elif isinstance(candidate, dict):
        data = candidate
    else:
        data = candidate.model_dump(mode="json")
    content = json.dumps(data, sort_keys=True, ensure_ascii=False, default=str)
    return hashlib.sha256(content.encode()).hexdigest()


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and len(value) == 0)


def _fill(update: dict, existing: Any, attr: str, incoming: Any) -> None:
    if _blank(getattr(existing, attr, None)) and not _blank(incoming):
        update[attr] = incoming


def _is_stale(existing: Any, source_updated_at: dt.datetime | None) -> bool:
    watermark = getattr(existing, "last_source_updated_at", None)
    incoming = to_utc_naive(source_updated_at)
    return incoming is not None and watermark is not None and incoming < watermark


def _advance_watermark(update: dict, existing: Any, source_updated_at: dt.datetime | None) -> None:
    incoming = to_utc_naive(source_updated_at)
    if incoming is None:
        return
    watermark = getattr(existing, "last_source_updated_at", None)
    if watermark is None or incoming > watermark:
        update["last_source_updated_at"] = incoming


def build_place_update(
    existing: Any,
    candidate: NormalizedPlace,
    source_type: str,
    source_updated_at: dt.datetime | None = None,
) -> dict | None:
    """Return the column changes ``candidate`` proposes for ``existing``, or ``None``.

    ``source_type`` is accepted for priority-aware policies; the current
    rule does not depend on it.
    """
    if _is_stale(existing, source_updated_at):
        return None

    update: dict[str, Any] = {}
    _fill(update, existing, "name", candidate.name)
    _fill(update, existing, "address", candidate.address)
    if candidate.location is not None and getattr(existing, "lat", None) is None:
        update["lat"] = candidate.location.lat
        update["lng"] = candidate.location.lon
    _fill(update, existing, "image_url", candidate.image_url)
    _fill(update, existing, "url", candidate.url)
    if getattr(existing, "rating", None) is None and candidate.rating is not None:
        update["rating"] = candidate.rating
    if not getattr(existing, "review_count", None) and candidate.review_count is not None:
        review_count = max(0, int(candidate.review_count))
        if review_count != getattr(existing, "review_count", None):
            update["review_count"] = review_count

    _advance_watermark(update, existing, source_updated_at)
    return update or None


def build_event_update(
    existing: Any,
    candidate: NormalizedEvent,
    source_type: str,
    source_updated_at: dt.datetime | None = None,
) -> dict | None:
    if _is_stale(existing, source_updated_at):
        return None

    update: dict[str, Any] = {}
    _fill(update, existing, "title", candidate.title)
    _fill(update, existing, "description", candidate.description)
    _fill(update, existing, "image_url", candidate.image_url)

    # Commercial fields follow the same fill-if-missing rule
    _fill(update, existing, "price_from", candidate.price_from)
    _fill(update, existing, "price_to", candidate.price_to)
    _fill(update, existing, "currency", candidate.currency)
    _fill(update, existing, "is_online", candidate.is_online)
    _fill(update, existing, "age_limit", candidate.age_limit)
    _fill(update, existing, "tickets_url", candidate.tickets_url)
    if not getattr(existing, "languages", None) and candidate.languages:
        update["languages"] = list(candidate.languages)

    _advance_watermark(update, existing, source_updated_at)
    return update or None
