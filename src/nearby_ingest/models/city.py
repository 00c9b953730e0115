"""City model -- reference data used to resolve a candidate's city."""

from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from nearby_ingest.models.base import Base


class City(Base):
    __tablename__ = "cities"

    id: Mapped[str] = mapped_column(sa.String(36), primary_key=True)
    name: Mapped[str] = mapped_column(sa.String)
    country_code: Mapped[str | None] = mapped_column(sa.String(2), nullable=True)
    timezone: Mapped[str | None] = mapped_column(sa.String, nullable=True)

    # Center
    lat: Mapped[float] = mapped_column(sa.Float)
    lng: Mapped[float] = mapped_column(sa.Float)

    # Bounding box (optional; nearest-center fallback applies without it)
    min_lat: Mapped[float | None] = mapped_column(sa.Float, nullable=True)
    min_lng: Mapped[float | None] = mapped_column(sa.Float, nullable=True)
    max_lat: Mapped[float | None] = mapped_column(sa.Float, nullable=True)
    max_lng: Mapped[float | None] = mapped_column(sa.Float, nullable=True)
