"""Catalog ORM models."""

from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from backend.tripgen.db.base import Base


def _new_id() -> str:
    return uuid4().hex


class CityRow(Base):
    """Catalog city table."""

    __tablename__ = "catalog_city"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    name_en: Mapped[str | None] = mapped_column(Text, nullable=True)
    name_local: Mapped[str | None] = mapped_column(Text, nullable=True)
    aliases: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    country_code: Mapped[str | None] = mapped_column(Text, nullable=True)
    currency: Mapped[str | None] = mapped_column(Text, nullable=True)
    lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    lon: Mapped[float | None] = mapped_column(Float, nullable=True)

    def __repr__(self) -> str:
        return f"<CityRow(id={self.id}, name={self.name!r})>"


class PlaceRow(Base):
    """Catalog place table - curated places per city."""

    __tablename__ = "catalog_place"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=_new_id)
    city_id: Mapped[str] = mapped_column(
        ForeignKey("catalog_city.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    display_name_local: Mapped[str | None] = mapped_column(Text, nullable=True)
    aliases: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    lon: Mapped[float | None] = mapped_column(Float, nullable=True)
    photo_refs: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    rating: Mapped[float | None] = mapped_column(Float, nullable=True)
    review_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    editorial_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    external_id: Mapped[str | None] = mapped_column(Text, nullable=True, unique=True)
    maps_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    entrance_fee: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    buzz_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

    __table_args__ = (
        UniqueConstraint("city_id", "name", name="uq_catalog_place_city_name"),
    )

    def __repr__(self) -> str:
        return f"<PlaceRow(id={self.id}, name={self.name!r}, city_id={self.city_id})>"
