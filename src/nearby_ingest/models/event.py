"""Canonical event model, its time occurrences and source snapshots."""

from __future__ import annotations

from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from nearby_ingest.models.base import Base


class Event(Base):
    __tablename__ = "events"

    id: Mapped[str] = mapped_column(sa.String(36), primary_key=True)
    title: Mapped[str] = mapped_column(sa.String)
    description: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    image_url: Mapped[str | None] = mapped_column(sa.String, nullable=True)
    city_id: Mapped[str] = mapped_column(sa.String(36), sa.ForeignKey("cities.id"), index=True)

    # Taxonomy
    main_category_id: Mapped[str | None] = mapped_column(
        sa.String(36), sa.ForeignKey("event_categories.id"), nullable=True
    )
    provider: Mapped[str | None] = mapped_column(sa.String, nullable=True)
    provider_categories: Mapped[str | None] = mapped_column(sa.Text, nullable=True)

    # Ranking
    popularity_score: Mapped[float | None] = mapped_column(sa.Float, nullable=True)
    quality_score: Mapped[float | None] = mapped_column(sa.Float, nullable=True)
    freshness_score: Mapped[float | None] = mapped_column(sa.Float, nullable=True)

    # Commercial / audience
    price_from: Mapped[float | None] = mapped_column(sa.Float, nullable=True)
    price_to: Mapped[float | None] = mapped_column(sa.Float, nullable=True)
    currency: Mapped[str | None] = mapped_column(sa.String(3), nullable=True)
    is_online: Mapped[bool | None] = mapped_column(sa.Boolean, nullable=True)
    age_limit: Mapped[int | None] = mapped_column(sa.Integer, nullable=True)
    languages: Mapped[list | None] = mapped_column(sa.JSON, nullable=True)
    tickets_url: Mapped[str | None] = mapped_column(sa.String, nullable=True)

    # Moderation
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    moderation: Mapped[str] = mapped_column(sa.String, default="APPROVED")

    # Timestamps
    last_source_updated_at: Mapped[datetime | None] = mapped_column(sa.DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(sa.DateTime, server_default=sa.text("CURRENT_TIMESTAMP"))
    updated_at: Mapped[datetime] = mapped_column(sa.DateTime, server_default=sa.text("CURRENT_TIMESTAMP"))


class EventOccurrence(Base):
    """One time slot of an event. Unique per (event_id, start_time)."""

    __tablename__ = "event_occurrences"

    id: Mapped[str] = mapped_column(sa.String(36), primary_key=True)
    event_id: Mapped[str] = mapped_column(
        sa.String(36), sa.ForeignKey("events.id", ondelete="CASCADE"), index=True
    )
    start_time: Mapped[datetime] = mapped_column(sa.DateTime)
    end_time: Mapped[datetime | None] = mapped_column(sa.DateTime, nullable=True)
    timezone: Mapped[str | None] = mapped_column(sa.String, nullable=True)
    url: Mapped[str | None] = mapped_column(sa.String, nullable=True)
    lat: Mapped[float | None] = mapped_column(sa.Float, nullable=True)
    lng: Mapped[float | None] = mapped_column(sa.Float, nullable=True)
    place_id: Mapped[str | None] = mapped_column(
        sa.String(36), sa.ForeignKey("places.id", ondelete="SET NULL"), nullable=True
    )

    __table_args__ = (
        sa.UniqueConstraint("event_id", "start_time", name="uq_event_occurrences_event_start"),
        sa.Index("ix_event_occurrences_start_time", "start_time"),
    )


class EventSource(Base):
    __tablename__ = "event_sources"

    id: Mapped[str] = mapped_column(sa.String(36), primary_key=True)
    event_id: Mapped[str] = mapped_column(
        sa.String(36), sa.ForeignKey("events.id", ondelete="CASCADE"), index=True
    )
    source: Mapped[str] = mapped_column(sa.String)
    external_id: Mapped[str] = mapped_column(sa.String)
    url: Mapped[str | None] = mapped_column(sa.String, nullable=True)
    payload: Mapped[dict | None] = mapped_column(sa.JSON, nullable=True)
    checksum: Mapped[str] = mapped_column(sa.String(64))
    fetched_at: Mapped[datetime] = mapped_column(sa.DateTime)
    source_updated_at: Mapped[datetime | None] = mapped_column(sa.DateTime, nullable=True)

    __table_args__ = (sa.UniqueConstraint("source", "external_id", name="uq_event_sources_source_external_id"),)
