"""Place models: recommendations, catalog records and enriched results."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from backend.tripgen.models.common import ConfidenceTier, Geo, MatchProvenance

TimeHint = Literal["morning", "lunch", "afternoon", "evening"]


class CandidatePlace(BaseModel):
    """A place name proposed by the recommendation service."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1, description="Place name as authored")
    reason: str = Field(default="", description="Short rationale")
    is_meal_venue: bool = Field(default=False, description="Restaurant or cafe")
    time_hint: TimeHint | None = Field(
        default=None, description="Preferred time of day"
    )


class CatalogCity(BaseModel):
    """A city known to the catalog."""

    id: str = Field(description="Catalog city id")
    name: str = Field(description="Canonical city name")
    name_en: str | None = Field(default=None, description="English name")
    name_local: str | None = Field(default=None, description="Local-script name")
    aliases: list[str] = Field(default_factory=list, description="Alternate names")
    country_code: str | None = Field(default=None, description="ISO country code")
    currency: str | None = Field(default=None, description="ISO 4217 currency")
    geo: Geo | None = Field(default=None, description="City centroid")

    def name_variants(self) -> list[str]:
        """All names the city is known by."""
        names = [self.name, self.name_en, self.name_local, *self.aliases]
        return [name for name in names if name]


class CatalogPlace(BaseModel):
    """A curated place record from the catalog."""

    id: str = Field(description="Catalog place id")
    city_id: str = Field(description="Owning city id")
    name: str = Field(description="Canonical name")
    display_name_local: str | None = Field(
        default=None, description="Localized display name"
    )
    aliases: list[str] = Field(default_factory=list, description="Learned aliases")
    geo: Geo | None = Field(default=None, description="Coordinates")
    photo_refs: list[str] = Field(default_factory=list, description="Photo references")
    rating: float | None = Field(default=None, description="Rating 0-5")
    review_count: int | None = Field(default=None, description="Number of reviews")
    editorial_summary: str | None = Field(default=None, description="Short summary")
    tags: list[str] = Field(default_factory=list, description="Category tags")
    external_id: str | None = Field(
        default=None, description="External place-search identifier"
    )
    maps_url: str | None = Field(default=None, description="Map link")
    entrance_fee: float = Field(
        default=0.0, ge=0, description="Entrance fee in destination currency"
    )
    buzz_score: float | None = Field(default=None, description="Popularity 0-10")


class PlaceSearchResult(BaseModel):
    """Best match returned by the external place search."""

    external_id: str = Field(description="External place identifier")
    name: str = Field(description="Display name")
    geo: Geo | None = Field(default=None, description="Coordinates")
    address: str | None = Field(default=None, description="Formatted address")
    photo_ref: str | None = Field(default=None, description="First photo reference")
    rating: float | None = Field(default=None, description="Rating 0-5")
    review_count: int | None = Field(default=None, description="Number of reviews")
    maps_url: str | None = Field(default=None, description="Map link")
    summary: str | None = Field(default=None, description="Editorial summary")


class EnrichedPlace(BaseModel):
    """A candidate merged with what the matcher learned about it."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Name as authored by the recommender")
    reason: str = Field(default="", description="Recommender rationale")
    is_meal_venue: bool = Field(default=False, description="Restaurant or cafe")
    time_hint: TimeHint | None = Field(default=None, description="Preferred time")
    geo: Geo | None = Field(default=None, description="Coordinates")
    confidence: float = Field(ge=0, le=10, description="Confidence score 0-10")
    confidence_tier: ConfidenceTier = Field(description="Confidence bucket")
    provenance: MatchProvenance = Field(description="How the place was resolved")
    selection_reasons: list[str] = Field(
        default_factory=list, description="Human-readable selection reasons"
    )
    catalog_place_id: str | None = Field(default=None, description="Catalog id")
    external_id: str | None = Field(default=None, description="External id")
    canonical_name: str | None = Field(default=None, description="Catalog name")
    description: str | None = Field(default=None, description="Summary text")
    photo_ref: str | None = Field(default=None, description="Photo reference")
    maps_url: str | None = Field(default=None, description="Map link")
    rating: float | None = Field(default=None, description="Rating 0-5")
    review_count: int | None = Field(default=None, description="Number of reviews")
    entrance_fee: float = Field(default=0.0, ge=0, description="Entrance fee")
    match_score: float | None = Field(
        default=None, description="Fuzzy token-overlap score, when fuzzy matched"
    )

    @property
    def display_name(self) -> str:
        """Canonical name when resolved, authored name otherwise."""
        return self.canonical_name or self.name

    @property
    def has_valid_geo(self) -> bool:
        return self.geo is not None and self.geo.is_valid()
