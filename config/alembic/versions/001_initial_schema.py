"""Initial schema: cities, taxonomy, places, events, occurrences and source snapshots.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None

_NOW = sa.text("CURRENT_TIMESTAMP")


def _scores() -> list[sa.Column]:
    return [
        sa.Column("popularity_score", sa.Float(), nullable=True),
        sa.Column("quality_score", sa.Float(), nullable=True),
        sa.Column("freshness_score", sa.Float(), nullable=True),
    ]


def _audit() -> list[sa.Column]:
    return [
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("moderation", sa.String(), nullable=False, server_default="APPROVED"),
        sa.Column("last_source_updated_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=_NOW),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=_NOW),
    ]


def _source_table(name: str, owner_col: str, owner_table: str) -> None:
    op.create_table(
        name,
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(owner_col, sa.String(36), sa.ForeignKey(f"{owner_table}.id", ondelete="CASCADE"), nullable=False),
        sa.Column("source", sa.String(), nullable=False),
        sa.Column("external_id", sa.String(), nullable=False),
        sa.Column("url", sa.String(), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("checksum", sa.String(64), nullable=False),
        sa.Column("fetched_at", sa.DateTime(), nullable=False),
        sa.Column("source_updated_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("source", "external_id", name=f"uq_{name}_source_external_id"),
    )
    op.create_index(f"ix_{name}_{owner_col}", name, [owner_col])


def upgrade() -> None:
    op.create_table(
        "cities",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("country_code", sa.String(2), nullable=True),
        sa.Column("timezone", sa.String(), nullable=True),
        sa.Column("lat", sa.Float(), nullable=False),
        sa.Column("lng", sa.Float(), nullable=False),
        sa.Column("min_lat", sa.Float(), nullable=True),
        sa.Column("min_lng", sa.Float(), nullable=True),
        sa.Column("max_lat", sa.Float(), nullable=True),
        sa.Column("max_lng", sa.Float(), nullable=True),
    )

    for table in ("place_categories", "event_categories"):
        op.create_table(
            table,
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("key", sa.String(), nullable=False),
            sa.Column("title", sa.String(), nullable=False),
        )
        op.create_index(f"ix_{table}_key", table, ["key"], unique=True)

    op.create_table(
        "places",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("address", sa.String(), nullable=True),
        sa.Column("url", sa.String(), nullable=True),
        sa.Column("image_url", sa.String(), nullable=True),
        sa.Column("rating", sa.Float(), nullable=True),
        sa.Column("review_count", sa.Integer(), nullable=True),
        sa.Column("lat", sa.Float(), nullable=False),
        sa.Column("lng", sa.Float(), nullable=False),
        sa.Column("city_id", sa.String(36), sa.ForeignKey("cities.id"), nullable=False),
        sa.Column("main_category_id", sa.String(36), sa.ForeignKey("place_categories.id"), nullable=True),
        sa.Column("provider", sa.String(), nullable=True),
        sa.Column("provider_categories", sa.Text(), nullable=True),
        *_scores(),
        *_audit(),
    )
    op.create_index("ix_places_city_id", "places", ["city_id"])
    op.create_index("ix_places_lat_lng", "places", ["lat", "lng"])

    op.create_table(
        "events",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("image_url", sa.String(), nullable=True),
        sa.Column("city_id", sa.String(36), sa.ForeignKey("cities.id"), nullable=False),
        sa.Column("main_category_id", sa.String(36), sa.ForeignKey("event_categories.id"), nullable=True),
        sa.Column("provider", sa.String(), nullable=True),
        sa.Column("provider_categories", sa.Text(), nullable=True),
        *_scores(),
        sa.Column("price_from", sa.Float(), nullable=True),
        sa.Column("price_to", sa.Float(), nullable=True),
        sa.Column("currency", sa.String(3), nullable=True),
        sa.Column("is_online", sa.Boolean(), nullable=True),
        sa.Column("age_limit", sa.Integer(), nullable=True),
        sa.Column("languages", sa.JSON(), nullable=True),
        sa.Column("tickets_url", sa.String(), nullable=True),
        *_audit(),
    )
    op.create_index("ix_events_city_id", "events", ["city_id"])

    op.create_table(
        "event_occurrences",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("event_id", sa.String(36), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        sa.Column("start_time", sa.DateTime(), nullable=False),
        sa.Column("end_time", sa.DateTime(), nullable=True),
        sa.Column("timezone", sa.String(), nullable=True),
        sa.Column("url", sa.String(), nullable=True),
        sa.Column("lat", sa.Float(), nullable=True),
        sa.Column("lng", sa.Float(), nullable=True),
        sa.Column("place_id", sa.String(36), sa.ForeignKey("places.id", ondelete="SET NULL"), nullable=True),
        sa.UniqueConstraint("event_id", "start_time", name="uq_event_occurrences_event_start"),
    )
    op.create_index("ix_event_occurrences_event_id", "event_occurrences", ["event_id"])
    op.create_index("ix_event_occurrences_start_time", "event_occurrences", ["start_time"])

    _source_table("place_sources", "place_id", "places")
    _source_table("event_sources", "event_id", "events")

    op.create_table(
        "place_to_category",
        sa.Column("place_id", sa.String(36), sa.ForeignKey("places.id", ondelete="CASCADE"), primary_key=True),
        sa.Column(
            "category_id", sa.String(36), sa.ForeignKey("place_categories.id", ondelete="CASCADE"), primary_key=True
        ),
        sa.Column("is_primary", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_table(
        "event_to_category",
        sa.Column("event_id", sa.String(36), sa.ForeignKey("events.id", ondelete="CASCADE"), primary_key=True),
        sa.Column(
            "category_id", sa.String(36), sa.ForeignKey("event_categories.id", ondelete="CASCADE"), primary_key=True
        ),
        sa.Column("is_primary", sa.Boolean(), nullable=False, server_default=sa.false()),
    )


def downgrade() -> None:
    op.drop_table("event_to_category")
    op.drop_table("place_to_category")
    op.drop_table("event_sources")
    op.drop_table("place_sources")
    op.drop_table("event_occurrences")
    op.drop_table("events")
    op.drop_table("places")
    op.drop_table("event_categories")
    op.drop_table("place_categories")
    op.drop_table("cities")
