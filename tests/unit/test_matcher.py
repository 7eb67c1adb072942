"""Tests for the matcher/enricher cascade and alias learning."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from backend.tripgen.catalog.fixtures import PARIS_CITY_ID, paris_city, paris_places
from backend.tripgen.catalog.resolver import CatalogIndex
from backend.tripgen.catalog.store import InMemoryCatalogStore
from backend.tripgen.models.common import ConfidenceTier, Geo, MatchProvenance
from backend.tripgen.models.places import CandidatePlace, PlaceSearchResult
from backend.tripgen.planning.matcher import (
    Matcher,
    catalog_confidence,
    match_catalog,
    token_overlap,
    tokenize,
)

LOUVRE_EXTERNAL_ID = "ChIJD3uTd9hx5kcR1IQvGfr8dbk"
EIFFEL_EXTERNAL_ID = "ChIJLU7jZClu5kcR4PcOOO6p3I0"


def _candidate(name: str, meal: bool = False) -> CandidatePlace:
    return CandidatePlace(name=name, reason=f"Because {name}", is_meal_venue=meal)


def _search(result: PlaceSearchResult | None = None, side_effect=None) -> AsyncMock:
    search = AsyncMock()
    search.search.return_value = result
    if side_effect is not None:
        search.search.side_effect = side_effect
    return search


async def _fresh_index(store: InMemoryCatalogStore) -> CatalogIndex:
    return CatalogIndex(paris_city(), await store.list_places(PARIS_CITY_ID))


@pytest.mark.unit
class TestTokens:
    """Tests for tokenization and overlap."""

    def test_tokenize_drops_short_tokens_and_punctuation(self):
        assert tokenize("Musée d'Orsay, Paris!") == {"musée", "orsay", "paris"}

    def test_overlap_uses_larger_set(self):
        assert token_overlap("Tour Eiffel", "Eiffel Tower") == 0.5
        assert token_overlap("Eiffel Tower", "Eiffel Tower at night in Paris") == 0.5
        assert token_overlap("", "Eiffel Tower") == 0.0

    def test_catalog_confidence_floor_and_cap(self):
        place = paris_places()[0]

        assert catalog_confidence(place) == pytest.approx(9.4)
        assert catalog_confidence(place.model_copy(update={"rating": None, "buzz_score": None})) == 7.0
        assert catalog_confidence(place.model_copy(update={"rating": 5.0})) == 10.0


@pytest.mark.unit
class TestMatchCatalog:
    """Tests for the in-catalog part of the cascade."""

    def test_exact_is_case_insensitive(self, paris_index):
        hit = match_catalog("eIFFEL tOWER", paris_index)

        assert hit is not None
        assert hit.provenance == MatchProvenance.catalog_exact
        assert hit.place.id == "place-eiffel"

    def test_localized_name_is_exact(self, paris_index):
        hit = match_catalog("Jardin du Luxembourg", paris_index)

        assert hit.provenance == MatchProvenance.catalog_exact
        assert hit.place.id == "place-luxembourg"

    def test_external_id_key(self, paris_index):
        hit = match_catalog(EIFFEL_EXTERNAL_ID, paris_index)

        assert hit.provenance == MatchProvenance.catalog_by_external_id
        assert hit.place.id == "place-eiffel"

    def test_substring_prefers_longest_key(self, paris_index):
        hit = match_catalog("Bouillon Chartier Grands Boulevards", paris_index)

        assert hit.provenance == MatchProvenance.catalog_fuzzy
        assert hit.place.id == "place-bouillon"
        assert hit.score is None

    def test_fuzzy_resolves_single_candidate(self, paris_index):
        """At least half the tokens shared with one entry picks that entry."""
        hit = match_catalog("Gardens of Luxembourg", paris_index)

        assert hit.provenance == MatchProvenance.catalog_fuzzy
        assert hit.place.id == "place-luxembourg"
        assert hit.score == 1.0

    def test_below_threshold_misses(self, paris_index):
        assert match_catalog("Le Grand Musée Parisien", paris_index) is None

    def test_blank_name_misses(self, paris_index):
        assert match_catalog("   ", paris_index) is None

    def test_empty_index_misses(self):
        assert match_catalog("Eiffel Tower", CatalogIndex(None, [])) is None


@pytest.mark.unit
class TestMatcher:
    """Tests for Matcher.match and backfill."""

    @pytest.mark.asyncio
    async def test_exact_match_enriches_from_catalog(self, paris_store, paris_index, writer, settings):
        matcher = Matcher(paris_store, None, writer, settings)

        [place] = await matcher.match([_candidate("Eiffel Tower")], paris_index)

        assert place.provenance == MatchProvenance.catalog_exact
        assert place.catalog_place_id == "place-eiffel"
        assert place.geo == Geo(lat=48.8584, lon=2.2945)
        assert place.confidence_tier == ConfidenceTier.high
        assert place.entrance_fee == 29.4
        assert place.reason == "Because Eiffel Tower"
        assert any("Catalog match" in reason for reason in place.selection_reasons)

    @pytest.mark.asyncio
    async def test_tour_eiffel_learns_alias(self, paris_store, paris_index, writer, settings):
        """A fuzzy hit appends the authored name to the place's aliases."""
        matcher = Matcher(paris_store, None, writer, settings)

        [place] = await matcher.match([_candidate("Tour Eiffel")], paris_index)
        await writer.drain()

        assert place.provenance == MatchProvenance.catalog_fuzzy
        assert place.catalog_place_id == "place-eiffel"
        assert place.match_score == 0.5
        assert paris_store.get_place("place-eiffel").aliases == ["Eiffel Tower", "Tour Eiffel"]
        # Visible to later candidates of the same run
        assert paris_index.get("place-eiffel").aliases == ["Eiffel Tower", "Tour Eiffel"]

    @pytest.mark.asyncio
    async def test_learned_alias_matches_exactly_next_run(self, paris_store, writer, settings):
        matcher = Matcher(paris_store, None, writer, settings)
        await matcher.match([_candidate("Tour Eiffel")], await _fresh_index(paris_store))
        await writer.drain()

        [place] = await matcher.match([_candidate("tour eiffel")], await _fresh_index(paris_store))

        assert place.provenance == MatchProvenance.catalog_exact

    @pytest.mark.asyncio
    async def test_alias_monotonicity_across_runs(self, paris_store, writer, settings):
        """Each distinct authored name is recorded exactly once."""
        matcher = Matcher(paris_store, None, writer, settings)
        names = ["Tour Eiffel", "The Eiffel Tower", "Eiffel Tower Paris"]

        for _ in range(2):
            for name in names:
                index = await _fresh_index(paris_store)
                [place] = await matcher.match([_candidate(name)], index)
                assert place.catalog_place_id == "place-eiffel"
                await writer.drain()

        aliases = paris_store.get_place("place-eiffel").aliases
        assert aliases == ["Eiffel Tower", *names]
        assert len({alias.casefold() for alias in aliases}) == len(aliases)

    @pytest.mark.asyncio
    async def test_matching_is_deterministic(self, settings, writer):
        """Fresh catalogs always give the same provenance and place."""
        candidates = [_candidate("Louvre Museum"), _candidate("Gardens of Luxembourg")]
        outcomes = []
        for _ in range(3):
            store = InMemoryCatalogStore([paris_city()], paris_places())
            matcher = Matcher(store, None, writer, settings)
            places = await matcher.match(candidates, await _fresh_index(store))
            outcomes.append([(p.provenance, p.catalog_place_id) for p in places])

        assert outcomes[0] == [
            (MatchProvenance.catalog_exact, "place-louvre"),
            (MatchProvenance.catalog_fuzzy, "place-luxembourg"),
        ]
        assert outcomes[0] == outcomes[1] == outcomes[2]

    @pytest.mark.asyncio
    async def test_external_id_hit_does_not_learn_alias(self, paris_store, paris_index, writer, settings):
        matcher = Matcher(paris_store, None, writer, settings)

        [place] = await matcher.match([_candidate(EIFFEL_EXTERNAL_ID)], paris_index)
        await writer.drain()

        assert place.provenance == MatchProvenance.catalog_by_external_id
        assert paris_store.get_place("place-eiffel").aliases == ["Eiffel Tower"]

    @pytest.mark.asyncio
    async def test_search_reverse_lookup_reconciles(self, paris_store, paris_index, writer, settings):
        """A search hit whose id is catalogued resolves to the catalog record."""
        search = _search(PlaceSearchResult(external_id=LOUVRE_EXTERNAL_ID, name="Louvre"))
        matcher = Matcher(paris_store, search, writer, settings)

        [place] = await matcher.match([_candidate("Le Grand Musée Parisien")], paris_index)
        await writer.drain()

        assert place.provenance == MatchProvenance.external_search_reconciled
        assert place.catalog_place_id == "place-louvre"
        assert place.canonical_name == "Louvre Museum"
        search.search.assert_awaited_once_with("Le Grand Musée Parisien Paris")
        assert "Le Grand Musée Parisien" in paris_store.get_place("place-louvre").aliases

    @pytest.mark.asyncio
    async def test_search_new_place_and_backfill(self, paris_store, paris_index, writer, settings):
        result = PlaceSearchResult(
            external_id="ChIJnew",
            name="Chez Janou",
            geo=Geo(lat=48.8573, lon=2.3674),
            rating=4.4,
        )
        matcher = Matcher(paris_store, _search(result), writer, settings)

        [place] = await matcher.match([_candidate("Janou bistro", meal=True)], paris_index)

        assert place.provenance == MatchProvenance.external_search_new
        assert place.confidence == 5.0
        assert place.confidence_tier == ConfidenceTier.medium
        assert place.canonical_name == "Chez Janou"
        assert place.catalog_place_id is None

        assert matcher.queue_backfill([place], paris_index) == 1
        await writer.drain()

        stored = [p for p in await paris_store.list_places(PARIS_CITY_ID) if p.external_id == "ChIJnew"]
        assert len(stored) == 1
        assert stored[0].name == "Chez Janou"
        assert stored[0].aliases == ["Janou bistro"]
        assert stored[0].tags == ["restaurant"]

    @pytest.mark.asyncio
    async def test_backfill_skips_unusable_places(self, paris_store, paris_index, writer, settings):
        no_geo = PlaceSearchResult(external_id="ChIJnogeo", name="Somewhere")
        matcher = Matcher(paris_store, _search(no_geo), writer, settings)
        places = await matcher.match(
            [_candidate("Somewhere nice"), _candidate("Eiffel Tower")], paris_index
        )

        assert matcher.queue_backfill(places, paris_index) == 0
        assert matcher.queue_backfill(places, CatalogIndex(None, [])) == 0

    @pytest.mark.asyncio
    async def test_unresolved_when_search_finds_nothing(self, paris_store, paris_index, writer, settings):
        matcher = Matcher(paris_store, _search(None), writer, settings)

        [place] = await matcher.match([_candidate("Imaginary Place")], paris_index)

        assert place.provenance == MatchProvenance.unresolved
        assert place.geo is None
        assert place.confidence_tier == ConfidenceTier.low

    @pytest.mark.asyncio
    async def test_search_errors_degrade_to_unresolved(self, paris_store, paris_index, writer, settings):
        matcher = Matcher(paris_store, _search(side_effect=RuntimeError("quota")), writer, settings)

        [place] = await matcher.match([_candidate("Imaginary Place")], paris_index)

        assert place.provenance == MatchProvenance.unresolved

    @pytest.mark.asyncio
    async def test_no_city_uses_destination_in_query(self, paris_store, writer, settings):
        search = _search(None)
        matcher = Matcher(paris_store, search, writer, settings)

        await matcher.match([_candidate("Somewhere")], CatalogIndex(None, []), "Lyon, France")

        search.search.assert_awaited_once_with("Somewhere Lyon")

    @pytest.mark.asyncio
    async def test_preserves_order_and_length(self, paris_store, paris_index, writer, settings, metrics):
        matcher = Matcher(paris_store, _search(None), writer, settings, metrics)
        names = ["Imaginary A", "Louvre Museum", "Imaginary B", "Tour Eiffel"]

        places = await matcher.match([_candidate(n) for n in names], paris_index)

        assert [p.name for p in places] == names
        assert [p.provenance for p in places] == [
            MatchProvenance.unresolved,
            MatchProvenance.catalog_exact,
            MatchProvenance.unresolved,
            MatchProvenance.catalog_fuzzy,
        ]
        assert metrics.match_provenance["unresolved"] == 2
        assert metrics.match_provenance["catalog_exact"] == 1

    @pytest.mark.asyncio
    async def test_fallback_search_concurrency_is_bounded(self, paris_store, paris_index, writer, settings):
        active = 0
        peak = 0

        async def slow_search(query: str):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return None

        matcher = Matcher(paris_store, _search(side_effect=slow_search), writer, settings)

        places = await matcher.match(
            [_candidate(f"Imaginary {i}") for i in range(10)], paris_index
        )

        assert len(places) == 10
        assert peak <= settings.fallback_search_concurrency
