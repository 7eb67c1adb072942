"""Matcher/enricher: reconcile recommended names with the catalog."""

from __future__ import annotations

import asyncio
import logging
import re
from collections import Counter
from uuid import uuid4

from backend.tripgen.adapters.places import PlaceSearchAdapter
from backend.tripgen.catalog.background import BackgroundWriter
from backend.tripgen.catalog.resolver import CatalogIndex, clean_destination, fold
from backend.tripgen.catalog.store import CatalogStore
from backend.tripgen.config import Settings
from backend.tripgen.metrics.registry import MetricsClient
from backend.tripgen.models.common import ConfidenceTier, MatchProvenance
from backend.tripgen.models.places import (
    CandidatePlace,
    CatalogPlace,
    EnrichedPlace,
    PlaceSearchResult,
)

logger = logging.getLogger(__name__)

FUZZY_THRESHOLD = 0.5
MIN_SUBSTRING_KEY = 3

CATALOG_FLOOR_CONFIDENCE = 7.0
EXTERNAL_CONFIDENCE = 5.0
UNRESOLVED_CONFIDENCE = 2.0

_PUNCT_RE = re.compile(r"[^\w\s]", re.UNICODE)


def tokenize(text: str) -> set[str]:
    """Lower-case word tokens longer than two characters, punctuation removed."""
    cleaned = _PUNCT_RE.sub(" ", text.casefold()).replace("_", " ")
    return {token for token in cleaned.split() if len(token) > 2}


def token_overlap(a: str, b: str) -> float:
    """Shared tokens over the larger token set; 0.0 when either side is empty."""
    tokens_a, tokens_b = tokenize(a), tokenize(b)
    if not tokens_a or not tokens_b:
        return 0.0
    return len(tokens_a & tokens_b) / max(len(tokens_a), len(tokens_b))


def confidence_tier(confidence: float) -> ConfidenceTier:
    if confidence >= 8.0:
        return ConfidenceTier.high
    if confidence >= 5.0:
        return ConfidenceTier.medium
    return ConfidenceTier.low


def catalog_confidence(place: CatalogPlace) -> float:
    """Confidence inherited from catalog rating, else popularity."""
    if place.rating:
        signal = place.rating * 2
    elif place.buzz_score:
        signal = place.buzz_score
    else:
        signal = 0.0
    return min(10.0, max(CATALOG_FLOOR_CONFIDENCE, signal))


class CatalogHit:
    """A catalog match with how it was found."""

    __slots__ = ("place", "provenance", "score", "how")

    def __init__(
        self,
        place: CatalogPlace,
        provenance: MatchProvenance,
        how: str,
        score: float | None = None,
    ) -> None:
        self.place = place
        self.provenance = provenance
        self.how = how
        self.score = score


def match_catalog(name: str, index: CatalogIndex) -> CatalogHit | None:
    """Run the catalog part of the cascade: exact, substring, then fuzzy."""
    key = fold(name)
    if not key:
        return None

    place = index.lookup(key)
    if place is not None:
        if index.is_external_id_key(key):
            return CatalogHit(place, MatchProvenance.catalog_by_external_id, "external id")
        return CatalogHit(place, MatchProvenance.catalog_exact, "exact name")

    name_keys = index.name_keys()

    if len(key) >= MIN_SUBSTRING_KEY:
        best_key: str | None = None
        best_place: CatalogPlace | None = None
        for catalog_key, catalog_place in name_keys:
            if len(catalog_key) < MIN_SUBSTRING_KEY:
                continue
            if catalog_key in key or key in catalog_key:
                # Prefer the most specific (longest) key
                if best_key is None or len(catalog_key) > len(best_key):
                    best_key, best_place = catalog_key, catalog_place
        if best_place is not None:
            return CatalogHit(best_place, MatchProvenance.catalog_fuzzy, "partial name")

    best_score = 0.0
    fuzzy_place: CatalogPlace | None = None
    for catalog_key, catalog_place in name_keys:
        score = token_overlap(key, catalog_key)
        if score > best_score:
            best_score, fuzzy_place = score, catalog_place
    if fuzzy_place is not None and best_score >= FUZZY_THRESHOLD:
        return CatalogHit(
            fuzzy_place, MatchProvenance.catalog_fuzzy, "similar name", score=best_score
        )
    return None


class Matcher:
    """Resolves candidates to enriched places, learning aliases as it goes."""

    def __init__(
        self,
        store: CatalogStore,
        search: PlaceSearchAdapter | None,
        writer: BackgroundWriter,
        settings: Settings,
        metrics: MetricsClient | None = None,
    ) -> None:
        self.store = store
        self.search = search
        self.writer = writer
        self.settings = settings
        self.metrics = metrics

    def _learn_alias(self, candidate: CandidatePlace, place: CatalogPlace, index: CatalogIndex) -> None:
        if fold(candidate.name) == fold(place.name):
            return
        if index.register_alias(place.id, candidate.name):
            logger.info(f"Learning alias '{candidate.name}' for '{place.name}'")
            self.writer.submit("alias", self.store.add_alias, place.id, candidate.name)

    def _from_catalog(self, candidate: CandidatePlace, hit: CatalogHit) -> EnrichedPlace:
        place = hit.place
        confidence = catalog_confidence(place)
        reasons = [candidate.reason] if candidate.reason else []
        reasons.append(f"Catalog match ({hit.how}: {place.name})")
        if place.rating:
            reviews = f" from {place.review_count} reviews" if place.review_count else ""
            reasons.append(f"Rated {place.rating:.1f}{reviews}")
        if place.buzz_score:
            reasons.append(f"Popularity {place.buzz_score:.1f}/10")
        return EnrichedPlace(
            name=candidate.name,
            reason=candidate.reason,
            is_meal_venue=candidate.is_meal_venue,
            time_hint=candidate.time_hint,
            geo=place.geo,
            confidence=confidence,
            confidence_tier=confidence_tier(confidence),
            provenance=hit.provenance,
            selection_reasons=reasons,
            catalog_place_id=place.id,
            external_id=place.external_id,
            canonical_name=place.name,
            description=place.editorial_summary,
            photo_ref=place.photo_refs[0] if place.photo_refs else None,
            maps_url=place.maps_url,
            rating=place.rating,
            review_count=place.review_count,
            entrance_fee=place.entrance_fee,
            match_score=hit.score,
        )

    @staticmethod
    def _from_search(candidate: CandidatePlace, result: PlaceSearchResult) -> EnrichedPlace:
        reasons = [candidate.reason] if candidate.reason else []
        reasons.append(f"Found by place search: {result.name}")
        return EnrichedPlace(
            name=candidate.name,
            reason=candidate.reason,
            is_meal_venue=candidate.is_meal_venue,
            time_hint=candidate.time_hint,
            geo=result.geo,
            confidence=EXTERNAL_CONFIDENCE,
            confidence_tier=confidence_tier(EXTERNAL_CONFIDENCE),
            provenance=MatchProvenance.external_search_new,
            selection_reasons=reasons,
            external_id=result.external_id,
            canonical_name=result.name,
            description=result.summary,
            photo_ref=result.photo_ref,
            maps_url=result.maps_url,
            rating=result.rating,
            review_count=result.review_count,
        )

    @staticmethod
    def _unresolved(candidate: CandidatePlace) -> EnrichedPlace:
        reasons = [candidate.reason] if candidate.reason else []
        reasons.append("Not found in catalog or place search")
        return EnrichedPlace(
            name=candidate.name,
            reason=candidate.reason,
            is_meal_venue=candidate.is_meal_venue,
            time_hint=candidate.time_hint,
            confidence=UNRESOLVED_CONFIDENCE,
            confidence_tier=confidence_tier(UNRESOLVED_CONFIDENCE),
            provenance=MatchProvenance.unresolved,
            selection_reasons=reasons,
        )

    async def _search(self, query: str) -> PlaceSearchResult | None:
        if self.search is None:
            return None
        try:
            return await self.search.search(query)
        except Exception as e:
            logger.warning(f"Place search for '{query}' failed: {e}")
            return None

    async def match(
        self,
        candidates: list[CandidatePlace],
        index: CatalogIndex,
        destination: str = "",
    ) -> list[EnrichedPlace]:
        """Resolve every candidate, preserving input order and length.

        Args:
            candidates: Recommended places.
            index: Run-scoped catalog index.
            destination: Destination text used when no city was resolved.

        Returns:
            One EnrichedPlace per candidate.
        """
        results: list[EnrichedPlace | None] = [None] * len(candidates)
        misses: list[int] = []

        for i, candidate in enumerate(candidates):
            hit = match_catalog(candidate.name, index)
            if hit is None:
                misses.append(i)
                continue
            logger.debug(
                f"'{candidate.name}' -> '{hit.place.name}' ({hit.provenance.value})"
            )
            results[i] = self._from_catalog(candidate, hit)
            if hit.provenance != MatchProvenance.catalog_by_external_id:
                self._learn_alias(candidate, hit.place, index)

        if misses:
            city = index.city_name or clean_destination(destination)
            semaphore = asyncio.Semaphore(max(1, self.settings.fallback_search_concurrency))

            async def lookup(i: int) -> PlaceSearchResult | None:
                async with semaphore:
                    query = f"{candidates[i].name} {city}".strip()
                    return await self._search(query)

            found = await asyncio.gather(*(lookup(i) for i in misses))

            for i, result in zip(misses, found, strict=True):
                candidate = candidates[i]
                if result is None:
                    results[i] = self._unresolved(candidate)
                    continue
                known = index.by_external_id(result.external_id)
                if known is not None:
                    hit = CatalogHit(
                        known, MatchProvenance.external_search_reconciled, "place search id"
                    )
                    results[i] = self._from_catalog(candidate, hit)
                    self._learn_alias(candidate, known, index)
                else:
                    results[i] = self._from_search(candidate, result)

        enriched = [place for place in results if place is not None]
        counts = Counter(place.provenance.value for place in enriched)
        if self.metrics is not None:
            for provenance, count in counts.items():
                self.metrics.inc_match_provenance(provenance, count)
        logger.info(f"Matched {len(enriched)} candidates: {dict(counts)}")
        return enriched

    def queue_backfill(self, places: list[EnrichedPlace], index: CatalogIndex) -> int:
        """Queue catalog inserts for newly discovered places.

        Only external-search-new places with valid coordinates are inserted,
        and only when the run resolved a city.

        Returns:
            Number of places queued.
        """
        if index.city_id is None:
            return 0
        queued = 0
        seen: set[str] = set()
        for place in places:
            if place.provenance != MatchProvenance.external_search_new:
                continue
            if not place.has_valid_geo or not place.external_id:
                continue
            if place.external_id in seen:
                continue
            seen.add(place.external_id)
            record = CatalogPlace(
                id=uuid4().hex,
                city_id=index.city_id,
                name=place.canonical_name or place.name,
                aliases=[place.name],
                geo=place.geo,
                photo_refs=[place.photo_ref] if place.photo_ref else [],
                rating=place.rating,
                review_count=place.review_count,
                editorial_summary=place.description,
                tags=["restaurant"] if place.is_meal_venue else [],
                external_id=place.external_id,
                maps_url=place.maps_url,
            )
            self.writer.submit("backfill", self.store.insert_place_if_absent, record)
            queued += 1
        if queued:
            logger.info(f"Queued {queued} new places for catalog backfill")
        return queued
