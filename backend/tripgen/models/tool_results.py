"""Models for tool results from external data sources."""

from __future__ import annotations

from datetime import date
from typing import Literal

from pydantic import BaseModel, Field

from .common import Provenance, TravelMode


class FxQuote(BaseModel):
    """Exchange rate between two currencies."""

    from_currency: str = Field(description="Source currency (ISO 4217)")
    to_currency: str = Field(description="Target currency (ISO 4217)")
    rate: float = Field(gt=0, description="Units of to_currency per from_currency")
    source: Literal["live", "cache", "fallback"] = Field(
        description="Whether the rate is live, cached, or a hard-coded fallback"
    )
    provenance: Provenance = Field(description="Data source information")


class RouteEstimate(BaseModel):
    """Route between two coordinates."""

    mode: TravelMode = Field(description="Travel mode")
    duration_min: int = Field(ge=0, description="Duration in minutes")
    distance_m: int = Field(ge=0, description="Distance in metres")
    cost: float = Field(ge=0, description="Estimated cost, destination currency")
    source: Literal["routes_api", "estimate"] = Field(
        description="Routing service result or distance-based estimate"
    )


class WeatherSummary(BaseModel):
    """Forecast summary for one date."""

    forecast_date: date = Field(description="Forecast date")
    conditions: str = Field(description="Dominant condition")
    temp_c_high: float = Field(description="High temperature (Celsius)")
    temp_c_low: float = Field(description="Low temperature (Celsius)")
    precip_prob: float = Field(ge=0, le=1, description="Max precipitation probability")

    def to_text(self) -> str:
        """Render as a one-line overlay."""
        text = (
            f"{self.conditions}, {self.temp_c_low:.0f}-{self.temp_c_high:.0f}°C"
        )
        if self.precip_prob >= 0.5:
            text += f", {self.precip_prob:.0%} chance of rain"
        return text


class TravelOverlay(BaseModel):
    """Weather and safety information attached to an itinerary."""

    weather_by_date: dict[date, str] = Field(
        default_factory=dict, description="Overlay text per date"
    )
    advisories: list[str] = Field(
        default_factory=list, description="Safety advisories for the destination"
    )
