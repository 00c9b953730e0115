"""Expected visit/attendance durations by taxonomy slug."""

from __future__ import annotations

import random

from nearby_ingest.ingestion.config import DurationConfig, DurationRange

EVENT_OTHER = "event.other"
PLACE_OTHER = "place.other"


def _fallback_minutes(rng: DurationRange, randomize: bool, rand: random.Random | None) -> int:
    steps = (rng.max - rng.min) // rng.step + 1
    if randomize:
        idx = (rand or random).randrange(steps)
    else:
        idx = (steps - 1) // 2
    return rng.min + idx * rng.step


def resolve_expected_duration_for_event(
    slug: str | None, config: DurationConfig, rand: random.Random | None = None
) -> int:
    """Minutes an event with primary category ``slug`` is expected to last.

    Unknown slugs, ``None`` and ``event.other`` use the fallback range.
    """
    if slug and slug != EVENT_OTHER and slug in config.events:
        return config.events[slug]
    return _fallback_minutes(config.event_fallback, config.randomize_fallback, rand)


def resolve_expected_duration_for_place(
    slug: str | None, config: DurationConfig, rand: random.Random | None = None
) -> int:
    if slug and slug != PLACE_OTHER and slug in config.places:
        return config.places[slug]
    return _fallback_minutes(config.place_fallback, config.randomize_fallback, rand)
