"""Catalog seeding script for local development.

Creates the catalog tables and loads the Paris fixture catalog. Idempotent -
safe to run multiple times.

Usage:
    python scripts/seed_catalog.py
"""

import asyncio

from sqlalchemy import select

from backend.tripgen.catalog.fixtures import paris_city, paris_places
from backend.tripgen.catalog.sql_store import SqlCatalogStore
from backend.tripgen.config import get_settings
from backend.tripgen.db.base import Base, get_engine, get_session, get_session_factory
from backend.tripgen.db.models import CityRow


async def seed_catalog() -> None:
    """Seed the catalog database with fixture data."""
    settings = get_settings()
    engine = get_engine(settings)
    Base.metadata.create_all(engine)
    session_factory = get_session_factory(engine)
    store = SqlCatalogStore(session_factory)

    city = paris_city()
    with get_session(session_factory) as session:
        existing = session.execute(select(CityRow).where(CityRow.id == city.id)).scalar_one_or_none()
    if existing:
        print(f"✓ City '{city.name}' already exists (ID: {city.id})")
    else:
        store.add_city(city)
        print(f"✓ Created city '{city.name}' (ID: {city.id})")

    inserted = 0
    for place in paris_places():
        if await store.insert_place_if_absent(place):
            inserted += 1
    print(f"✓ Inserted {inserted} places into {settings.catalog_db_url}")


if __name__ == "__main__":
    asyncio.run(seed_catalog())
