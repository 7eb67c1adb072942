"""LangGraph state definition for the itinerary pipeline."""

import operator
from datetime import UTC, datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from backend.tripgen.catalog.resolver import CatalogIndex
from backend.tripgen.models.itinerary import Itinerary
from backend.tripgen.models.places import CandidatePlace, EnrichedPlace
from backend.tripgen.models.request import TripRequest
from backend.tripgen.models.skeleton import Skeleton


class PipelineState(BaseModel):
    """Typed state passed through the stage graph.

    Each stage writes only its own keys; ``stage_ms`` is merged across the
    concurrent branches.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    request: TripRequest = Field(description="Validated trip request")
    skeleton: Skeleton | None = Field(default=None, description="Trip skeleton")
    sentiment_bonus: float | None = Field(
        default=None, description="Destination sentiment bonus"
    )
    candidates: list[CandidatePlace] = Field(
        default_factory=list, description="Recommended candidates"
    )
    index: CatalogIndex | None = Field(
        default=None, description="Preloaded catalog index of the destination"
    )
    places: list[EnrichedPlace] = Field(
        default_factory=list, description="Matched and enriched places"
    )
    itinerary: Itinerary | None = Field(default=None, description="Final itinerary")
    stage_ms: Annotated[dict[str, int], operator.or_] = Field(
        default_factory=dict, description="Per-stage latency in milliseconds"
    )
    started_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the run started",
    )
