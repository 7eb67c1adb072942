"""SQLAlchemy-backed catalog store."""

from __future__ import annotations

import asyncio
import logging

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from backend.tripgen.catalog.store import merge_alias
from backend.tripgen.db.base import get_session
from backend.tripgen.db.models import CityRow, PlaceRow
from backend.tripgen.models.common import Geo
from backend.tripgen.models.places import CatalogCity, CatalogPlace

logger = logging.getLogger(__name__)


def _geo(lat: float | None, lon: float | None) -> Geo | None:
    if lat is None or lon is None:
        return None
    return Geo(lat=lat, lon=lon)


def city_from_row(row: CityRow) -> CatalogCity:
    return CatalogCity(
        id=row.id,
        name=row.name,
        name_en=row.name_en,
        name_local=row.name_local,
        aliases=list(row.aliases or []),
        country_code=row.country_code,
        currency=row.currency,
        geo=_geo(row.lat, row.lon),
    )


def place_from_row(row: PlaceRow) -> CatalogPlace:
    return CatalogPlace(
        id=row.id,
        city_id=row.city_id,
        name=row.name,
        display_name_local=row.display_name_local,
        aliases=list(row.aliases or []),
        geo=_geo(row.lat, row.lon),
        photo_refs=list(row.photo_refs or []),
        rating=row.rating,
        review_count=row.review_count,
        editorial_summary=row.editorial_summary,
        tags=list(row.tags or []),
        external_id=row.external_id,
        maps_url=row.maps_url,
        entrance_fee=row.entrance_fee or 0.0,
        buzz_score=row.buzz_score,
    )


def row_from_place(place: CatalogPlace) -> PlaceRow:
    return PlaceRow(
        id=place.id,
        city_id=place.city_id,
        name=place.name,
        display_name_local=place.display_name_local,
        aliases=list(place.aliases),
        lat=place.geo.lat if place.geo else None,
        lon=place.geo.lon if place.geo else None,
        photo_refs=list(place.photo_refs),
        rating=place.rating,
        review_count=place.review_count,
        editorial_summary=place.editorial_summary,
        tags=list(place.tags),
        external_id=place.external_id,
        maps_url=place.maps_url,
        entrance_fee=place.entrance_fee,
        buzz_score=place.buzz_score,
    )


class SqlCatalogStore:
    """Catalog store over the ``catalog_city`` / ``catalog_place`` tables.

    SQLAlchemy sessions are synchronous; each operation runs in a worker
    thread so the event loop is never blocked.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self.session_factory = session_factory

    def _find_city(self, name: str) -> CatalogCity | None:
        folded = name.strip().lower()
        with get_session(self.session_factory) as session:
            row = session.scalars(
                select(CityRow).where(
                    or_(
                        func.lower(CityRow.name) == folded,
                        func.lower(CityRow.name_en) == folded,
                        func.lower(CityRow.name_local) == folded,
                    )
                )
            ).first()
            if row is not None:
                return city_from_row(row)
            # Aliases live in a JSON list; match them in Python
            for candidate in session.scalars(select(CityRow)):
                if any(alias.lower() == folded for alias in candidate.aliases or []):
                    return city_from_row(candidate)
        return None

    def _list_cities(self) -> list[CatalogCity]:
        with get_session(self.session_factory) as session:
            return [city_from_row(row) for row in session.scalars(select(CityRow))]

    def _list_places(self, city_id: str) -> list[CatalogPlace]:
        with get_session(self.session_factory) as session:
            rows = session.scalars(
                select(PlaceRow).where(PlaceRow.city_id == city_id).order_by(PlaceRow.name)
            )
            return [place_from_row(row) for row in rows]

    def _add_alias(self, place_id: str, alias: str) -> bool:
        with get_session(self.session_factory) as session:
            row = session.get(PlaceRow, place_id)
            if row is None:
                raise KeyError(f"Unknown place {place_id}")
            merged = merge_alias(list(row.aliases or []), alias, row.name)
            if merged is None:
                return False
            # Reassign so the JSON column is flagged dirty
            row.aliases = merged
            return True

    def _insert_place_if_absent(self, place: CatalogPlace) -> bool:
        try:
            with get_session(self.session_factory) as session:
                conditions = [
                    (PlaceRow.city_id == place.city_id)
                    & (func.lower(PlaceRow.name) == place.name.lower())
                ]
                if place.external_id:
                    conditions.append(PlaceRow.external_id == place.external_id)
                existing = session.scalars(select(PlaceRow).where(or_(*conditions))).first()
                if existing is not None:
                    return False
                session.add(row_from_place(place))
            return True
        except IntegrityError:
            # Concurrent insert won the race
            logger.info(f"Place {place.name!r} already inserted concurrently")
            return False

    async def find_city(self, name: str) -> CatalogCity | None:
        return await asyncio.to_thread(self._find_city, name)

    async def list_cities(self) -> list[CatalogCity]:
        return await asyncio.to_thread(self._list_cities)

    async def list_places(self, city_id: str) -> list[CatalogPlace]:
        return await asyncio.to_thread(self._list_places, city_id)

    async def add_alias(self, place_id: str, alias: str) -> bool:
        return await asyncio.to_thread(self._add_alias, place_id, alias)

    async def insert_place_if_absent(self, place: CatalogPlace) -> bool:
        return await asyncio.to_thread(self._insert_place_if_absent, place)

    def add_city(self, city: CatalogCity) -> None:
        """Insert a city synchronously (seeding and tests)."""
        with get_session(self.session_factory) as session:
            session.add(
                CityRow(
                    id=city.id,
                    name=city.name,
                    name_en=city.name_en,
                    name_local=city.name_local,
                    aliases=list(city.aliases),
                    country_code=city.country_code,
                    currency=city.currency,
                    lat=city.geo.lat if city.geo else None,
                    lon=city.geo.lon if city.geo else None,
                )
            )
