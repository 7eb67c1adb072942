"""Pydantic models for trip requests, places and itineraries."""

from backend.tripgen.models.common import (
    BudgetTier,
    ConfidenceTier,
    Geo,
    MatchProvenance,
    MealType,
    MobilityStyle,
    Pace,
    PartyType,
    TravelMode,
)
from backend.tripgen.models.itinerary import (
    Accommodation,
    DailyCost,
    Itinerary,
    ItineraryDay,
    PipelineStats,
    ScheduleSlot,
    TransitLeg,
    TripCost,
)
from backend.tripgen.models.places import (
    CandidatePlace,
    CatalogCity,
    CatalogPlace,
    EnrichedPlace,
    PlaceSearchResult,
)
from backend.tripgen.models.request import DayLodging, Lodging, TripRequest
from backend.tripgen.models.skeleton import DaySlotConfig, Skeleton, WeightedTag

__all__ = [
    "Accommodation",
    "BudgetTier",
    "CandidatePlace",
    "CatalogCity",
    "CatalogPlace",
    "ConfidenceTier",
    "DailyCost",
    "DayLodging",
    "DaySlotConfig",
    "EnrichedPlace",
    "Geo",
    "Itinerary",
    "ItineraryDay",
    "Lodging",
    "MatchProvenance",
    "MealType",
    "MobilityStyle",
    "Pace",
    "PartyType",
    "PipelineStats",
    "PlaceSearchResult",
    "ScheduleSlot",
    "Skeleton",
    "TransitLeg",
    "TravelMode",
    "TripCost",
    "TripRequest",
    "WeightedTag",
]
