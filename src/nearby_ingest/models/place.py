"""Canonical place model and its per-provider source snapshots."""

from __future__ import annotations

from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from nearby_ingest.models.base import Base


class Place(Base):
    """A deduplicated place that one or more provider listings resolve to.

    ``provider`` records the first source that created the row;
    ``provider_categories`` is a comma-separated union of every raw
    category string any source has reported.
    """

    __tablename__ = "places"

    id: Mapped[str] = mapped_column(sa.String(36), primary_key=True)
    name: Mapped[str] = mapped_column(sa.String)
    address: Mapped[str | None] = mapped_column(sa.String, nullable=True)
    url: Mapped[str | None] = mapped_column(sa.String, nullable=True)
    image_url: Mapped[str | None] = mapped_column(sa.String, nullable=True)
    rating: Mapped[float | None] = mapped_column(sa.Float, nullable=True)
    review_count: Mapped[int | None] = mapped_column(sa.Integer, nullable=True)

    # Geo
    lat: Mapped[float] = mapped_column(sa.Float)
    lng: Mapped[float] = mapped_column(sa.Float)
    city_id: Mapped[str] = mapped_column(sa.String(36), sa.ForeignKey("cities.id"), index=True)

    # Taxonomy
    main_category_id: Mapped[str | None] = mapped_column(
        sa.String(36), sa.ForeignKey("place_categories.id"), nullable=True
    )
    provider: Mapped[str | None] = mapped_column(sa.String, nullable=True)
    provider_categories: Mapped[str | None] = mapped_column(sa.Text, nullable=True)

    # Ranking
    popularity_score: Mapped[float | None] = mapped_column(sa.Float, nullable=True)
    quality_score: Mapped[float | None] = mapped_column(sa.Float, nullable=True)
    freshness_score: Mapped[float | None] = mapped_column(sa.Float, nullable=True)

    # Moderation
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    moderation: Mapped[str] = mapped_column(sa.String, default="APPROVED")

    # Timestamps
    last_source_updated_at: Mapped[datetime | None] = mapped_column(sa.DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(sa.DateTime, server_default=sa.text("CURRENT_TIMESTAMP"))
    updated_at: Mapped[datetime] = mapped_column(sa.DateTime, server_default=sa.text("CURRENT_TIMESTAMP"))

    __table_args__ = (sa.Index("ix_places_lat_lng", "lat", "lng"),)


class PlaceSource(Base):
    __tablename__ = "place_sources"

    id: Mapped[str] = mapped_column(sa.String(36), primary_key=True)
    place_id: Mapped[str] = mapped_column(
        sa.String(36), sa.ForeignKey("places.id", ondelete="CASCADE"), index=True
    )
    source: Mapped[str] = mapped_column(sa.String)
    external_id: Mapped[str] = mapped_column(sa.String)
    url: Mapped[str | None] = mapped_column(sa.String, nullable=True)
    payload: Mapped[dict | None] = mapped_column(sa.JSON, nullable=True)
    checksum: Mapped[str] = mapped_column(sa.String(64))
    fetched_at: Mapped[datetime] = mapped_column(sa.DateTime)
    source_updated_at: Mapped[datetime | None] = mapped_column(sa.DateTime, nullable=True)

    __table_args__ = (sa.UniqueConstraint("source", "external_id", name="uq_place_sources_source_external_id"),)
