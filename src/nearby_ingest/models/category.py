"""Taxonomy category rows and the many-to-many links to canonical records."""

from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from nearby_ingest.models.base import Base


class PlaceCategory(Base):
    __tablename__ = "place_categories"

    id: Mapped[str] = mapped_column(sa.String(36), primary_key=True)
    key: Mapped[str] = mapped_column(sa.String, unique=True, index=True)  # taxonomy slug
    title: Mapped[str] = mapped_column(sa.String)


class EventCategory(Base):
    __tablename__ = "event_categories"

    id: Mapped[str] = mapped_column(sa.String(36), primary_key=True)
    key: Mapped[str] = mapped_column(sa.String, unique=True, index=True)
    title: Mapped[str] = mapped_column(sa.String)


class PlaceToCategory(Base):
    __tablename__ = "place_to_category"

    place_id: Mapped[str] = mapped_column(
        sa.String(36), sa.ForeignKey("places.id", ondelete="CASCADE"), primary_key=True
    )
    category_id: Mapped[str] = mapped_column(
        sa.String(36), sa.ForeignKey("place_categories.id", ondelete="CASCADE"), primary_key=True
    )
    is_primary: Mapped[bool] = mapped_column(sa.Boolean, default=False)


class EventToCategory(Base):
    __tablename__ = "event_to_category"

    event_id: Mapped[str] = mapped_column(
        sa.String(36), sa.ForeignKey("events.id", ondelete="CASCADE"), primary_key=True
    )
    category_id: Mapped[str] = mapped_column(
        sa.String(36), sa.ForeignKey("event_categories.id", ondelete="CASCADE"), primary_key=True
    )
    is_primary: Mapped[bool] = mapped_column(sa.Boolean, default=False)
