"""CLI entry point: python -m nearby_ingest.cli <command>"""

import argparse
import asyncio
import sys
from pathlib import Path

import structlog
import yaml
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from nearby_ingest.cache.service import CacheService, create_redis
from nearby_ingest.config.settings import get_settings
from nearby_ingest.db.session import dispose_engine, get_session_factory
from nearby_ingest.logging_config import configure_logging
from nearby_ingest.models.category import EventCategory, PlaceCategory
from nearby_ingest.models.city import City
from nearby_ingest.taxonomy.categories import EVENT_CATEGORIES, PLACE_CATEGORIES


async def seed_categories(session_factory: async_sessionmaker[AsyncSession]) -> dict[str, int]:
    """Upsert taxonomy rows; the row id and key are both the slug.

    Existing rows only get their title refreshed, so links and primary
    categories already pointing at them stay valid.
    """
    counts = {"created": 0, "updated": 0}
    async with session_factory() as session, session.begin():
        for model, categories in ((PlaceCategory, PLACE_CATEGORIES), (EventCategory, EVENT_CATEGORIES)):
            for slug, title in categories.items():
                row = await session.get(model, slug)
                if row is None:
                    session.add(model(id=slug, key=slug, title=title))
                    counts["created"] += 1
                elif row.title != title:
                    row.title = title
                    counts["updated"] += 1
    return counts


async def seed_cities(session_factory: async_sessionmaker[AsyncSession], path: Path) -> int:
    """Upsert cities from a YAML list of ``{id, name, country_code, lat, lng, bbox?}``."""
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or []
    async with session_factory() as session, session.begin():
        for entry in data:
            bbox = entry.get("bbox") or {}
            values = {
                "name": entry["name"],
                "country_code": entry.get("country_code"),
                "timezone": entry.get("timezone"),
                "lat": float(entry["lat"]),
                "lng": float(entry["lng"]),
                "min_lat": bbox.get("min_lat"),
                "min_lng": bbox.get("min_lng"),
                "max_lat": bbox.get("max_lat"),
                "max_lng": bbox.get("max_lng"),
            }
            city = await session.get(City, str(entry["id"]))
            if city is None:
                session.add(City(id=str(entry["id"]), **values))
            else:
                for field, value in values.items():
                    setattr(city, field, value)
    return len(data)


async def _with_db(command, *args):
    try:
        return await command(get_session_factory(), *args)
    finally:
        await dispose_engine()


async def flush_cache() -> int:
    settings = get_settings()
    cache = CacheService(create_redis(settings), settings)
    try:
        return await cache.flush_namespace()
    finally:
        await cache.aclose()


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="nearby_ingest.cli",
        description="Nearby ingest administration CLI",
    )
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("seed-categories", help="Create or refresh taxonomy category rows")

    cities_parser = subparsers.add_parser("seed-cities", help="Create or refresh cities from a YAML file")
    cities_parser.add_argument("--file", type=str, required=True, help="Path to the cities YAML file")

    subparsers.add_parser("cache-flush", help="Delete every cache key in the current namespace")

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    settings = get_settings()
    configure_logging(json_output=settings.log_json, log_level=settings.log_level)
    log = structlog.get_logger()

    if args.command == "seed-categories":
        counts = asyncio.run(_with_db(seed_categories))
        log.info("categories_seeded", **counts)
    elif args.command == "seed-cities":
        count = asyncio.run(_with_db(seed_cities, Path(args.file)))
        log.info("cities_seeded", count=count)
    elif args.command == "cache-flush":
        deleted = asyncio.run(flush_cache())
        log.info("cache_flush_complete", deleted=deleted, namespace=settings.cache_namespace)


if __name__ == "__main__":
    main()
