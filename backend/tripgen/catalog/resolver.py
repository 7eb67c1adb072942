"""Catalog resolver: destination to city and a case-folded place index."""

from __future__ import annotations

import logging
import math

from backend.tripgen.catalog.store import CatalogStore, merge_alias
from backend.tripgen.models.common import Geo
from backend.tripgen.models.places import CatalogCity, CatalogPlace

logger = logging.getLogger(__name__)


def fold(text: str) -> str:
    """Case-fold and trim a lookup key."""
    return " ".join(text.casefold().split())


class CatalogIndex:
    """Run-scoped view of one city's catalog.

    Keys are case-folded canonical names, localized names, aliases and
    external ids. The index is owned by a single pipeline run; aliases
    registered during matching are visible to later candidates of the same
    run while persistence happens in the background.
    """

    def __init__(self, city: CatalogCity | None, places: list[CatalogPlace]) -> None:
        self.city = city
        self._places: dict[str, CatalogPlace] = {}
        self._keys: dict[str, str] = {}
        self._name_keys: dict[str, str] = {}
        self._external_ids: dict[str, str] = {}
        for place in places:
            self._add(place)

    def _add(self, place: CatalogPlace) -> None:
        self._places[place.id] = place
        for name in (place.name, place.display_name_local, *place.aliases):
            if name and fold(name):
                key = fold(name)
                # First writer wins so a later alias cannot steal a canonical name
                self._keys.setdefault(key, place.id)
                self._name_keys.setdefault(key, place.id)
        if place.external_id:
            key = fold(place.external_id)
            self._keys.setdefault(key, place.id)
            self._external_ids.setdefault(key, place.id)

    @property
    def city_id(self) -> str | None:
        return self.city.id if self.city else None

    @property
    def city_name(self) -> str | None:
        return self.city.name if self.city else None

    def __len__(self) -> int:
        return len(self._places)

    def lookup(self, key: str) -> CatalogPlace | None:
        """Exact lookup by any key (names, aliases, external ids)."""
        place_id = self._keys.get(fold(key))
        return self._places.get(place_id) if place_id else None

    def is_external_id_key(self, key: str) -> bool:
        """Whether ``key`` resolves only through an external id."""
        folded = fold(key)
        return folded in self._external_ids and folded not in self._name_keys

    def name_keys(self) -> list[tuple[str, CatalogPlace]]:
        """Name-like keys (no external ids) with their places, in insertion order."""
        return [(key, self._places[pid]) for key, pid in self._name_keys.items()]

    def by_external_id(self, external_id: str) -> CatalogPlace | None:
        place_id = self._external_ids.get(fold(external_id))
        return self._places.get(place_id) if place_id else None

    def get(self, place_id: str) -> CatalogPlace | None:
        return self._places.get(place_id)

    def register_alias(self, place_id: str, alias: str) -> bool:
        """Record a learned alias in the run-local view.

        Returns:
            True if the alias was new for this place.
        """
        place = self._places.get(place_id)
        if place is None:
            return False
        merged = merge_alias(place.aliases, alias, place.name)
        if merged is None:
            return False
        place = place.model_copy(update={"aliases": merged})
        self._places[place_id] = place
        key = fold(alias)
        self._keys.setdefault(key, place_id)
        self._name_keys.setdefault(key, place_id)
        return True


def clean_destination(destination: str) -> str:
    """Keep the part before the first comma ("Paris, France" -> "Paris")."""
    return destination.split(",")[0].strip()


def nearest_city(
    cities: list[CatalogCity], coords: list[Geo], max_distance: float
) -> CatalogCity | None:
    """Pick the city whose centroid is closest to the coordinates' centroid.

    Distance is planar in degrees; the city must be within ``max_distance``.
    """
    valid = [geo for geo in coords if geo.is_valid()]
    if not valid:
        return None
    lat = sum(geo.lat for geo in valid) / len(valid)
    lon = sum(geo.lon for geo in valid) / len(valid)

    best: CatalogCity | None = None
    best_distance = max_distance
    for city in cities:
        if city.geo is None or not city.geo.is_valid():
            continue
        distance = math.hypot(city.geo.lat - lat, city.geo.lon - lon)
        if distance < best_distance:
            best, best_distance = city, distance
    return best


class CatalogResolver:
    """Resolves a destination to a catalog city and preloads its places."""

    def __init__(self, store: CatalogStore, max_city_distance: float = 0.5) -> None:
        self.store = store
        self.max_city_distance = max_city_distance

    async def resolve_city(
        self, destination: str, candidate_coords: list[Geo] | None = None
    ) -> CatalogCity | None:
        """Resolve by name variants, then by nearest centroid when coordinates exist."""
        variants = [destination.strip(), clean_destination(destination)]
        for variant in dict.fromkeys(v for v in variants if v):
            city = await self.store.find_city(variant)
            if city is not None:
                return city

        if candidate_coords:
            city = nearest_city(
                await self.store.list_cities(), candidate_coords, self.max_city_distance
            )
            if city is not None:
                logger.info(f"Resolved '{destination}' to {city.name} by coordinates")
                return city
        return None

    async def preload(
        self, destination: str, candidate_coords: list[Geo] | None = None
    ) -> CatalogIndex:
        """Build the run's catalog index.

        Store failures degrade to an empty index with no city.
        """
        try:
            city = await self.resolve_city(destination, candidate_coords)
            if city is None:
                logger.warning(f"No catalog city for destination '{destination}'")
                return CatalogIndex(None, [])
            places = await self.store.list_places(city.id)
        except Exception as e:
            logger.warning(f"Catalog preload for '{destination}' failed: {e}")
            return CatalogIndex(None, [])

        logger.info(f"Preloaded {len(places)} catalog places for {city.name}")
        return CatalogIndex(city, places)
