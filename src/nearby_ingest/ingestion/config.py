"""Ingestion pipeline configuration with sensible defaults.

All parameters can be overridden via ``config/ingestion.yaml``.
If the file does not exist, defaults are used.  The loaded object is
built once at startup and passed into every pipeline component.
"""

from __future__ import annotations

from pathlib import Path

import structlog
import yaml
from pydantic import BaseModel, model_validator


def _default_provider_limits() -> dict[str, int]:
    return {
        "TICKETMASTER": 100,
        "PREDICTHQ": 100,
        "GEOAPIFY": 100,
        "GOOGLE_PLACES": 100,
        "FOURSQUARE": 100,
        # Curated sources are never queried online
        "PARTNER": 0,
        "MANUAL": 0,
    }


class DedupConfig(BaseModel):
    """Geo+name matching parameters."""

    radius_m: float = 50.0
    place_candidate_limit: int = 30
    occurrence_place_candidate_limit: int = 20
    name_mismatch_penalty: float = 1.2


class ScoringConfig(BaseModel):
    """Deterministic score triple parameters."""

    salt: str = "v1"
    event_quality_boost: float = 0.08


class DurationRange(BaseModel):
    """Inclusive minute range with a fixed step for fallback durations."""

    min: int
    max: int
    step: int = 10

    @model_validator(mode="after")
    def check_bounds(self) -> "DurationRange":
        if self.step <= 0 or self.max < self.min:
            raise ValueError(f"invalid duration range {self.min}-{self.max}/{self.step}")
        return self


class DurationConfig(BaseModel):
    """Expected durations in minutes keyed by taxonomy slug.

    ``randomize_fallback`` draws a random step value from the fallback
    range when no configured duration exists.  When off (the default) the
    fallback is the range midpoint rounded down to the step.
    """

    events: dict[str, int] = {
        "event.concert_show": 120,
        "event.theatre_performing_arts": 150,
        "event.cinema_screening": 120,
        "event.museum_exhibition": 90,
        "event.festival_city_event": 180,
        "event.sport_match_fan": 120,
        "event.sport_race_endurance": 180,
        "event.activity_class": 60,
        "event.tour_excursion": 120,
        "event.workshop_course": 120,
        "event.conference_meetup": 180,
        "event.community_club_series": 90,
        "event.kids_family": 90,
        "event.nightlife_party": 240,
        "event.online_event": 60,
    }
    places: dict[str, int] = {
        "place.food_restaurant": 90,
        "place.food_cafe_coffee": 60,
        "place.food_fast_street": 30,
        "place.food_dessert_bakery": 40,
        "place.bar_pub": 120,
        "place.nightlife_club": 180,
        "place.culture_museum_gallery": 120,
        "place.culture_theatre_venue": 60,
        "place.culture_cinema": 90,
        "place.family_zoo_aqua_theme": 240,
        "place.fun_bowling_arcade_escape": 90,
        "place.outdoor_park_garden": 90,
        "place.outdoor_nature_hiking": 240,
        "place.outdoor_beach_waterfront": 180,
        "place.sport_fitness_stadium": 90,
        "place.spa_wellness_sauna": 150,
        "place.shopping_mall_department": 120,
        "place.shopping_market_souvenir": 90,
        "place.sight_landmark_historic": 60,
        "place.sight_religion_worship": 40,
        "place.kids_playground": 90,
    }
    event_fallback: DurationRange = DurationRange(min=90, max=180, step=10)
    place_fallback: DurationRange = DurationRange(min=60, max=120, step=10)
    randomize_fallback: bool = False


class CityResolutionConfig(BaseModel):
    """Point-in-city resolution parameters."""

    bbox_padding: float = 0.05  # fraction of span added on each side


class IngestionConfig(BaseModel):
    """Top-level ingestion configuration combining all sub-configs."""

    provider_limits: dict[str, int] = _default_provider_limits()
    global_limit: int = 500
    provider_timeout_seconds: float = 10.0
    dedup: DedupConfig = DedupConfig()
    scoring: ScoringConfig = ScoringConfig()
    durations: DurationConfig = DurationConfig()
    city: CityResolutionConfig = CityResolutionConfig()

    @model_validator(mode="after")
    def fill_missing_limits(self) -> "IngestionConfig":
        """Keep defaults for providers the YAML file does not mention."""
        merged = _default_provider_limits()
        merged.update(self.provider_limits)
        unknown = set(merged) - set(_default_provider_limits())
        if unknown:
            structlog.get_logger().warning("unknown_provider_limits", sources=sorted(unknown))
        self.provider_limits = merged
        return self

    def limit_for(self, source: str) -> int:
        return self.provider_limits.get(source, 0)


def load_ingestion_config(path: Path) -> IngestionConfig:
    """Load ingestion configuration from a YAML file.

    If the file does not exist, returns an ``IngestionConfig`` with all
    default values.  Partial overrides are supported -- only the keys
    present in the YAML file will override defaults.
    """
    if not path.exists():
        return IngestionConfig()

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    return IngestionConfig(**data)
