"""Common data types and enums used across the application."""

from __future__ import annotations

import re
from datetime import UTC, datetime, time
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class Geo(BaseModel):
    """Geographic coordinates in WGS84 decimal degrees."""

    lat: float = Field(description="Latitude in decimal degrees")
    lon: float = Field(description="Longitude in decimal degrees")

    def is_valid(self) -> bool:
        """Return True when the pair is in bounds and not the null island."""
        return is_valid_coordinate(self.lat, self.lon)


def is_valid_coordinate(lat: float | None, lon: float | None) -> bool:
    """Check a coordinate pair is within WGS84 bounds and non-zero."""
    if lat is None or lon is None:
        return False
    if lat == 0 or lon == 0:
        return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0


class Pace(str, Enum):
    """Pacing levels; each maps to a slot duration and daily cap."""

    packed = "packed"
    normal = "normal"
    relaxed = "relaxed"


class MobilityStyle(str, Enum):
    """How the party prefers to move between stops."""

    walk_more = "walk_more"
    moderate = "moderate"
    minimal = "minimal"


class BudgetTier(str, Enum):
    """Spending tiers used for meal price estimates."""

    economic = "economic"
    reasonable = "reasonable"
    premium = "premium"
    luxury = "luxury"


class PartyType(str, Enum):
    """Travel party composition."""

    solo = "solo"
    couple = "couple"
    family = "family"
    extended_family = "extended_family"
    group = "group"


class TravelMode(str, Enum):
    """Transportation modes."""

    walk = "walk"
    transit = "transit"
    drive = "drive"
    taxi = "taxi"


class MealType(str, Enum):
    """Meal assignment of a schedule slot."""

    none = "none"
    lunch = "lunch"
    dinner = "dinner"


class MatchProvenance(str, Enum):
    """How a recommended place was resolved."""

    catalog_exact = "catalog_exact"
    catalog_fuzzy = "catalog_fuzzy"
    catalog_by_external_id = "catalog_by_external_id"
    external_search_new = "external_search_new"
    external_search_reconciled = "external_search_reconciled"
    unresolved = "unresolved"


class ConfidenceTier(str, Enum):
    """Coarse confidence bucket shown to callers."""

    high = "high"
    medium = "medium"
    low = "low"


class Provenance(BaseModel):
    """Tracks the source and freshness of data."""

    source: str = Field(description="Data source type: tool, fixture, estimate")
    ref_id: str | None = Field(
        default=None, description="Reference ID for the data source"
    )
    source_url: str | None = Field(default=None, description="URL of the data source")
    fetched_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="When the data was fetched"
    )
    cache_hit: bool | None = Field(
        default=None, description="Whether data came from cache"
    )


_PARTY_ALIASES = {"single": PartyType.solo}


def coerce_enum(enum_cls: type[Enum], value: Any) -> Any:
    """Map loosely formatted labels ("WalkMore", "walk-more") onto enum values.

    Args:
        enum_cls: Target enum class.
        value: Raw value from user input.

    Returns:
        Matching enum member, or the raw value so pydantic reports the error.
    """
    if not isinstance(value, str):
        return value
    folded = re.sub(r"[^a-z0-9]", "", value.lower())
    if enum_cls is PartyType and folded in _PARTY_ALIASES:
        return _PARTY_ALIASES[folded]
    for member in enum_cls:
        if re.sub(r"[^a-z0-9]", "", str(member.value)) == folded:
            return member
    return value


def parse_hhmm(value: str) -> time:
    """Parse an ``HH:MM`` string into a time.

    Raises:
        ValueError: If the string is not a valid 24h clock time.
    """
    match = re.fullmatch(r"\s*(\d{1,2}):(\d{2})(?::\d{2})?\s*", value)
    if not match:
        raise ValueError(f"Invalid time '{value}', expected HH:MM")
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ValueError(f"Invalid time '{value}', out of range")
    return time(hour, minute)


def minutes_of(value: time) -> int:
    """Minutes since midnight."""
    return value.hour * 60 + value.minute


def time_from_minutes(minutes: int) -> time:
    """Inverse of minutes_of, clamped to the same day."""
    minutes = max(0, min(minutes, 23 * 60 + 59))
    return time(minutes // 60, minutes % 60)
