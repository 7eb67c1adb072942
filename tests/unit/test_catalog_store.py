"""Tests for the in-memory and SQLAlchemy catalog stores."""

import pytest
import pytest_asyncio

from backend.tripgen.catalog.fixtures import PARIS_CITY_ID, paris_city, paris_places
from backend.tripgen.catalog.sql_store import SqlCatalogStore
from backend.tripgen.catalog.store import InMemoryCatalogStore, merge_alias
from backend.tripgen.models.common import Geo
from backend.tripgen.models.places import CatalogPlace


def _new_place(**overrides) -> CatalogPlace:
    fields = {
        "id": "place-janou",
        "city_id": PARIS_CITY_ID,
        "name": "Chez Janou",
        "aliases": ["Janou bistro"],
        "geo": Geo(lat=48.8573, lon=2.3674),
        "external_id": "ChIJjanou",
        "tags": ["restaurant"],
    }
    fields.update(overrides)
    return CatalogPlace(**fields)


@pytest.fixture
def memory_store() -> InMemoryCatalogStore:
    return InMemoryCatalogStore([paris_city()], paris_places())


@pytest_asyncio.fixture
async def sql_store(session_factory) -> SqlCatalogStore:
    store = SqlCatalogStore(session_factory)
    store.add_city(paris_city())
    for place in paris_places():
        assert await store.insert_place_if_absent(place) is True
    return store


@pytest_asyncio.fixture(params=["memory", "sql"])
async def store(request, memory_store, sql_store):
    """Both store implementations must behave the same."""
    return memory_store if request.param == "memory" else sql_store


@pytest.mark.unit
class TestMergeAlias:
    """Tests for merge_alias."""

    def test_appends_new_alias(self):
        assert merge_alias(["Eiffel Tower"], "Tour Eiffel", "Eiffel Tower") == [
            "Eiffel Tower",
            "Tour Eiffel",
        ]

    @pytest.mark.parametrize("alias", ["", "   ", "eiffel tower", "EIFFEL TOWER", "Tour Eiffel "])
    def test_ignores_blank_duplicate_and_canonical(self, alias):
        """Nothing changes for blanks, the canonical name or known aliases."""
        assert merge_alias(["Tour Eiffel"], alias, "Eiffel Tower") is None


@pytest.mark.unit
class TestCatalogStore:
    """Behaviour shared by every catalog store."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["Paris", "paris", " PARIS ", "Paree"])
    async def test_find_city_by_any_name(self, store, name):
        city = await store.find_city(name)

        assert city is not None
        assert city.id == PARIS_CITY_ID
        assert city.currency == "EUR"

    @pytest.mark.asyncio
    async def test_unknown_city(self, store):
        assert await store.find_city("Atlantis") is None

    @pytest.mark.asyncio
    async def test_list_places(self, store):
        places = await store.list_places(PARIS_CITY_ID)

        assert {p.id for p in places} == {p.id for p in paris_places()}
        eiffel = next(p for p in places if p.id == "place-eiffel")
        assert eiffel.geo == Geo(lat=48.8584, lon=2.2945)
        assert eiffel.entrance_fee == 29.4
        assert await store.list_places("city-unknown") == []

    @pytest.mark.asyncio
    async def test_add_alias_is_idempotent(self, store):
        assert await store.add_alias("place-eiffel", "Tour Eiffel") is True
        assert await store.add_alias("place-eiffel", "tour eiffel") is False
        assert await store.add_alias("place-eiffel", "Eiffel Tower") is False

        places = await store.list_places(PARIS_CITY_ID)
        eiffel = next(p for p in places if p.id == "place-eiffel")
        assert eiffel.aliases == ["Eiffel Tower", "Tour Eiffel"]

    @pytest.mark.asyncio
    async def test_add_alias_unknown_place(self, store):
        with pytest.raises(KeyError):
            await store.add_alias("place-missing", "Anything")

    @pytest.mark.asyncio
    async def test_insert_place_if_absent(self, store):
        assert await store.insert_place_if_absent(_new_place()) is True

        places = await store.list_places(PARIS_CITY_ID)
        janou = next(p for p in places if p.external_id == "ChIJjanou")
        assert janou.name == "Chez Janou"
        assert janou.aliases == ["Janou bistro"]
        assert janou.tags == ["restaurant"]

    @pytest.mark.asyncio
    async def test_insert_dedupes_by_external_id(self, store):
        await store.insert_place_if_absent(_new_place())

        duplicate = _new_place(id="place-other", name="Janou Restaurant")

        assert await store.insert_place_if_absent(duplicate) is False

    @pytest.mark.asyncio
    async def test_insert_dedupes_by_name_in_city(self, store):
        """A second record with the same name in the city is skipped."""
        duplicate = _new_place(id="place-other", name="eiffel tower", external_id="ChIJother")

        assert await store.insert_place_if_absent(duplicate) is False
        assert len(await store.list_places(PARIS_CITY_ID)) == len(paris_places())

    @pytest.mark.asyncio
    async def test_reads_are_copies(self, store):
        """Mutating a returned record never changes the store."""
        places = await store.list_places(PARIS_CITY_ID)
        places[0].aliases.append("Scribble")

        again = await store.list_places(PARIS_CITY_ID)
        assert all("Scribble" not in p.aliases for p in again)


@pytest.mark.unit
class TestSqlCatalogStore:
    """SQL-specific behaviour."""

    @pytest.mark.asyncio
    async def test_list_cities(self, sql_store):
        cities = await sql_store.list_cities()

        assert [c.name for c in cities] == ["Paris"]
        assert cities[0].geo == Geo(lat=48.8566, lon=2.3522)
        assert cities[0].aliases == ["Paree"]

    @pytest.mark.asyncio
    async def test_places_ordered_by_name(self, sql_store):
        names = [p.name for p in await sql_store.list_places(PARIS_CITY_ID)]

        assert names == sorted(names)

    @pytest.mark.asyncio
    async def test_place_without_geo_round_trips(self, sql_store):
        await sql_store.insert_place_if_absent(_new_place(geo=None))

        places = await sql_store.list_places(PARIS_CITY_ID)
        janou = next(p for p in places if p.name == "Chez Janou")
        assert janou.geo is None
