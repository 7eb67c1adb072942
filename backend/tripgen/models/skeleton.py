"""Skeleton models: the time-slot structure of a trip."""

from __future__ import annotations

from datetime import date, time

from pydantic import BaseModel, ConfigDict, Field

from backend.tripgen.models.common import Pace
from backend.tripgen.models.request import TripRequest


class DaySlotConfig(BaseModel):
    """Active window and slot budget of one trip day."""

    model_config = ConfigDict(frozen=True)

    day: int = Field(ge=1, description="1-based trip day")
    day_date: date = Field(description="Calendar date of the day")
    start_time: time = Field(description="Activity window start")
    end_time: time = Field(description="Activity window end")
    slot_count: int = Field(ge=0, description="Activity slots available")


class WeightedTag(BaseModel):
    """A preference tag with its normalized weight."""

    model_config = ConfigDict(frozen=True)

    tag: str = Field(description="Preference tag")
    weight: float = Field(description="Weight in 0-1")
    percentage: int = Field(description="Weight as a rounded percentage")


class Skeleton(BaseModel):
    """Derived trip structure shared read-only by every stage."""

    model_config = ConfigDict(frozen=True)

    request: TripRequest = Field(description="Originating trip request")
    days: list[DaySlotConfig] = Field(description="Per-day slot configuration")
    total_slots: int = Field(description="Sum of per-day slot counts")
    required_count: int = Field(
        description="Candidates to request: total slots plus buffer"
    )
    party_size: int = Field(ge=1, description="Resolved party size")
    weighted_tags: list[WeightedTag] = Field(description="Priority-weighted tags")
    pace: Pace = Field(description="Pacing level")
    slot_minutes: int = Field(description="Minutes per activity slot")
    sentiment_bonus: float | None = Field(
        default=None, description="Destination sentiment bonus, when available"
    )

    def with_sentiment(self, bonus: float | None) -> Skeleton:
        """Return a copy carrying the sentiment bonus."""
        return self.model_copy(update={"sentiment_bonus": bonus})

    def day_config(self, day: int) -> DaySlotConfig | None:
        """Look up a day's configuration by number."""
        for config in self.days:
            if config.day == day:
                return config
        return None
