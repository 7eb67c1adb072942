"""Trip request models."""

from __future__ import annotations

from datetime import date, time
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from backend.tripgen.models.common import (
    BudgetTier,
    Geo,
    MobilityStyle,
    Pace,
    PartyType,
    coerce_enum,
    parse_hhmm,
)

DEFAULT_PREFERENCE_TAGS = ["Foodie", "Culture", "Healing"]


class Lodging(BaseModel):
    """A fixed place to stay."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Lodging display name")
    geo: Geo | None = Field(default=None, description="Lodging coordinates")


class DayLodging(Lodging):
    """Lodging pinned to a specific trip day."""

    day: int = Field(ge=1, description="1-based trip day")


class TripRequest(BaseModel):
    """User-supplied trip parameters.

    Immutable once accepted; every pipeline stage reads it, none changes it.
    """

    model_config = ConfigDict(frozen=True)

    destination: str = Field(min_length=1, description="Destination as typed")
    destination_geo: Geo | None = Field(
        default=None, description="Destination coordinates, when known"
    )
    start_date: date = Field(description="First trip day")
    end_date: date = Field(description="Last trip day (inclusive)")
    start_time: time = Field(
        default=time(9, 0), description="Activity start on the first day"
    )
    end_time: time = Field(
        default=time(21, 0), description="Activity end on the last day"
    )
    party_type: PartyType = Field(
        default=PartyType.couple, description="Party composition"
    )
    party_count: int | None = Field(
        default=None, ge=1, description="Explicit party size, overrides party_type"
    )
    companion_ages: str | None = Field(
        default=None, description="Free-text ages of companions"
    )
    preference_tags: list[str] = Field(
        default_factory=list,
        validate_default=True,
        description="Preference tags in priority order",
    )
    pace: Pace = Field(default=Pace.normal, description="Pacing level")
    mobility: MobilityStyle = Field(
        default=MobilityStyle.moderate, description="Mobility style"
    )
    budget_tier: BudgetTier = Field(
        default=BudgetTier.reasonable, description="Budget tier"
    )
    lodging: Lodging | None = Field(default=None, description="Trip-level lodging")
    day_lodging: list[DayLodging] = Field(
        default_factory=list, description="Per-day lodging overrides"
    )
    home_currency: str | None = Field(
        default=None, description="ISO 4217 currency for home-currency totals"
    )

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def _parse_clock(cls, value: Any) -> Any:
        if isinstance(value, str):
            return parse_hhmm(value)
        return value

    @field_validator("party_type", mode="before")
    @classmethod
    def _coerce_party(cls, value: Any) -> Any:
        return coerce_enum(PartyType, value)

    @field_validator("pace", mode="before")
    @classmethod
    def _coerce_pace(cls, value: Any) -> Any:
        return coerce_enum(Pace, value)

    @field_validator("mobility", mode="before")
    @classmethod
    def _coerce_mobility(cls, value: Any) -> Any:
        return coerce_enum(MobilityStyle, value)

    @field_validator("budget_tier", mode="before")
    @classmethod
    def _coerce_budget(cls, value: Any) -> Any:
        return coerce_enum(BudgetTier, value)

    @field_validator("preference_tags", mode="after")
    @classmethod
    def _default_tags(cls, value: list[str]) -> list[str]:
        """Drop blanks; fall back to the default tag set when nothing is left."""
        tags = [tag.strip() for tag in value if tag and tag.strip()]
        return tags or list(DEFAULT_PREFERENCE_TAGS)

    @field_validator("home_currency", mode="after")
    @classmethod
    def _upper_currency(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip().upper()
        if len(value) != 3 or not value.isalpha():
            raise ValueError(f"Invalid currency code '{value}'")
        return value

    @model_validator(mode="after")
    def _check_window(self) -> TripRequest:
        """Reject date ranges and clock windows that yield no usable time."""
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        if self.end_time == time(0, 0):
            raise ValueError("end_time must be after 00:00")
        if self.start_time >= time(23, 59):
            raise ValueError("start_time must be before 23:59")
        if self.start_date == self.end_date and self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time on a single-day trip")
        return self

    @property
    def day_count(self) -> int:
        """Inclusive number of trip days."""
        return max(1, (self.end_date - self.start_date).days + 1)

    def lodging_for_day(self, day: int) -> Lodging | None:
        """Per-day lodging if pinned, else trip-level lodging."""
        for entry in self.day_lodging:
            if entry.day == day:
                return entry
        return self.lodging
