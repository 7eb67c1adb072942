"""Shared builders for planning tests."""

from datetime import time

from backend.tripgen.models.common import ConfidenceTier, Geo, MatchProvenance, MealType
from backend.tripgen.models.itinerary import ScheduleSlot
from backend.tripgen.models.places import EnrichedPlace

PARIS_GEO = Geo(lat=48.8566, lon=2.3522)


def make_place(
    name: str,
    *,
    meal: bool = False,
    hint: str | None = None,
    geo: Geo | None = PARIS_GEO,
    provenance: MatchProvenance = MatchProvenance.catalog_exact,
    entrance_fee: float = 0.0,
) -> EnrichedPlace:
    """Create an enriched place with sensible defaults."""
    return EnrichedPlace(
        name=name,
        is_meal_venue=meal,
        time_hint=hint,
        geo=geo,
        confidence=8.0,
        confidence_tier=ConfidenceTier.high,
        provenance=provenance,
        entrance_fee=entrance_fee,
    )


def make_slot(
    place: EnrichedPlace,
    *,
    day: int = 1,
    start: time = time(10, 0),
    end: time = time(12, 0),
    meal_type: MealType = MealType.none,
    meal_cost: float = 0.0,
    entrance_cost: float = 0.0,
) -> ScheduleSlot:
    """Create a schedule slot for a place."""
    return ScheduleSlot(
        day=day,
        start_time=start,
        end_time=end,
        place=place,
        meal_type=meal_type,
        meal_cost=meal_cost,
        entrance_cost=entrance_cost,
        coords_valid=place.has_valid_geo,
    )
