"""Itinerary output models."""

from __future__ import annotations

from datetime import UTC, date, datetime, time
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from backend.tripgen.models.common import Geo, MatchProvenance, MealType, TravelMode
from backend.tripgen.models.places import EnrichedPlace
from backend.tripgen.models.skeleton import WeightedTag


class ScheduleSlot(BaseModel):
    """A place bound to a time window on a trip day."""

    model_config = ConfigDict(frozen=True)

    day: int = Field(ge=1, description="1-based trip day")
    start_time: time = Field(description="Slot start")
    end_time: time = Field(description="Slot end")
    place: EnrichedPlace = Field(description="Scheduled place")
    meal_type: MealType = Field(default=MealType.none, description="Meal slot kind")
    meal_cost: float = Field(
        default=0.0, ge=0, description="Estimated meal cost for the whole party"
    )
    entrance_cost: float = Field(
        default=0.0, ge=0, description="Entrance fees for the whole party"
    )
    coords_valid: bool = Field(
        default=True, description="False when the place lacks usable coordinates"
    )


class TransitLeg(BaseModel):
    """Movement between two consecutive stops."""

    model_config = ConfigDict(frozen=True)

    from_label: str = Field(description="Origin name")
    to_label: str = Field(description="Destination name")
    mode: TravelMode = Field(description="Travel mode")
    duration_min: int = Field(ge=0, description="Duration in minutes")
    distance_m: int = Field(ge=0, description="Distance in metres")
    cost: float = Field(default=0.0, ge=0, description="Cost in destination currency")
    source: Literal["routes_api", "estimate", "fallback"] = Field(
        description="How the leg was computed"
    )


class Accommodation(BaseModel):
    """The day's anchor point for first and last legs."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Anchor name")
    geo: Geo | None = Field(default=None, description="Anchor coordinates")
    source: Literal["day_lodging", "trip_lodging", "city_center", "first_stop", "none"] = (
        Field(description="Which rule selected the anchor")
    )


class DailyCost(BaseModel):
    """Cost breakdown of one day."""

    model_config = ConfigDict(frozen=True)

    meal: float = Field(ge=0, description="Meal costs, destination currency")
    entrance: float = Field(ge=0, description="Entrance fees, destination currency")
    transport: float = Field(ge=0, description="Transit costs, destination currency")
    total: float = Field(ge=0, description="Day total, destination currency")
    per_person: float = Field(ge=0, description="Total divided by party size")
    total_home: float = Field(ge=0, description="Day total, home currency")
    per_person_home: float = Field(ge=0, description="Per-person, home currency")


class ItineraryDay(BaseModel):
    """A fully scheduled trip day."""

    model_config = ConfigDict(frozen=True)

    day: int = Field(ge=1, description="1-based trip day")
    day_date: date = Field(description="Calendar date")
    start_time: time = Field(description="Activity window start")
    end_time: time = Field(description="Activity window end")
    slots: list[ScheduleSlot] = Field(default_factory=list, description="Ordered slots")
    accommodation: Accommodation = Field(description="Anchor for the day")
    transit: list[TransitLeg] = Field(default_factory=list, description="Ordered legs")
    cost: DailyCost = Field(description="Cost breakdown")
    weather: str | None = Field(default=None, description="Weather overlay text")


class TripCost(BaseModel):
    """Trip-level cost totals."""

    model_config = ConfigDict(frozen=True)

    currency: str = Field(description="Destination currency")
    home_currency: str = Field(description="Home currency")
    exchange_rate: float = Field(gt=0, description="Home units per destination unit")
    rate_source: Literal["live", "cache", "fallback"] = Field(
        description="Where the rate came from"
    )
    total: float = Field(ge=0, description="Trip total, destination currency")
    per_person: float = Field(ge=0, description="Per-person, destination currency")
    total_home: float = Field(ge=0, description="Trip total, home currency")
    per_person_home: float = Field(ge=0, description="Per-person, home currency")


class PipelineStats(BaseModel):
    """Diagnostics of a pipeline run."""

    candidate_count: int = Field(default=0, description="Candidates recommended")
    provenance_counts: dict[MatchProvenance, int] = Field(
        default_factory=dict, description="Matched places per provenance"
    )
    invalid_coordinates: int = Field(
        default=0, description="Scheduled places flagged for bad coordinates"
    )
    stage_ms: dict[str, int] = Field(default_factory=dict, description="Stage timings")
    total_ms: int = Field(default=0, description="End-to-end time")


class Itinerary(BaseModel):
    """Final, immutable itinerary."""

    model_config = ConfigDict(frozen=True)

    title: str = Field(description="Display title")
    destination: str = Field(description="Destination as requested")
    city_id: str | None = Field(default=None, description="Resolved catalog city")
    city_name: str | None = Field(default=None, description="Resolved city name")
    start_date: date = Field(description="First day")
    end_date: date = Field(description="Last day")
    days: list[ItineraryDay] = Field(description="Days in skeleton order")
    cost: TripCost = Field(description="Trip cost totals")
    advisories: list[str] = Field(
        default_factory=list, description="Safety advisories for the destination"
    )
    weighted_tags: list[WeightedTag] = Field(
        default_factory=list, description="Preference weighting used"
    )
    sentiment_bonus: float | None = Field(
        default=None, description="Destination sentiment bonus"
    )
    party_size: int = Field(ge=1, description="Party size used for per-person costs")
    stats: PipelineStats = Field(default_factory=PipelineStats, description="Run stats")
    generated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="Generation time"
    )
