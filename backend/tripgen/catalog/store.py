"""Catalog store interface and in-memory implementation."""

from __future__ import annotations

from typing import Protocol

from backend.tripgen.models.places import CatalogCity, CatalogPlace


def merge_alias(aliases: list[str], alias: str, canonical: str) -> list[str] | None:
    """Return the alias list extended by ``alias``, or None if nothing changes.

    Blank aliases, the canonical name and case-insensitive duplicates are
    ignored, so repeated calls are idempotent and the list only grows.
    """
    alias = alias.strip()
    if not alias:
        return None
    folded = alias.casefold()
    if folded == canonical.strip().casefold():
        return None
    if any(existing.casefold() == folded for existing in aliases):
        return None
    return [*aliases, alias]


class CatalogStore(Protocol):
    """Persistent catalog of cities and places."""

    async def find_city(self, name: str) -> CatalogCity | None:
        """Find a city by any of its names (case-insensitive)."""
        ...

    async def list_cities(self) -> list[CatalogCity]:
        """List all cities."""
        ...

    async def list_places(self, city_id: str) -> list[CatalogPlace]:
        """List all places of a city."""
        ...

    async def add_alias(self, place_id: str, alias: str) -> bool:
        """Append an alias to a place.

        Returns:
            True if the alias was added, False if it was already present.
        """
        ...

    async def insert_place_if_absent(self, place: CatalogPlace) -> bool:
        """Insert a place unless one with the same external id (or name in
        the same city) exists.

        Returns:
            True if inserted.
        """
        ...


class InMemoryCatalogStore:
    """Dictionary-backed catalog store.

    This implementation is suitable for development and testing.
    Reads return copies so callers never mutate stored records.
    """

    def __init__(
        self,
        cities: list[CatalogCity] | None = None,
        places: list[CatalogPlace] | None = None,
    ) -> None:
        self._cities: dict[str, CatalogCity] = {c.id: c for c in cities or []}
        self._places: dict[str, CatalogPlace] = {p.id: p for p in places or []}

    async def find_city(self, name: str) -> CatalogCity | None:
        folded = name.strip().casefold()
        for city in self._cities.values():
            if any(variant.casefold() == folded for variant in city.name_variants()):
                return city.model_copy(deep=True)
        return None

    async def list_cities(self) -> list[CatalogCity]:
        return [city.model_copy(deep=True) for city in self._cities.values()]

    async def list_places(self, city_id: str) -> list[CatalogPlace]:
        return [
            place.model_copy(deep=True)
            for place in self._places.values()
            if place.city_id == city_id
        ]

    async def add_alias(self, place_id: str, alias: str) -> bool:
        place = self._places.get(place_id)
        if place is None:
            raise KeyError(f"Unknown place {place_id}")
        merged = merge_alias(place.aliases, alias, place.name)
        if merged is None:
            return False
        self._places[place_id] = place.model_copy(update={"aliases": merged})
        return True

    async def insert_place_if_absent(self, place: CatalogPlace) -> bool:
        folded = place.name.casefold()
        for existing in self._places.values():
            if place.external_id and existing.external_id == place.external_id:
                return False
            if existing.city_id == place.city_id and existing.name.casefold() == folded:
                return False
        self._places[place.id] = place.model_copy(deep=True)
        return True

    def get_place(self, place_id: str) -> CatalogPlace | None:
        """Synchronous accessor for inspection in tests and scripts."""
        place = self._places.get(place_id)
        return place.model_copy(deep=True) if place else None
