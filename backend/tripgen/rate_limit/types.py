"""Rate limiting types."""

from datetime import date

from pydantic import BaseModel, Field


class GateStatus(BaseModel):
    """Snapshot of the daily search quota."""

    day: date = Field(description="Day the counters belong to")
    used: int = Field(description="Search calls admitted today")
    limit: int = Field(description="Daily search call ceiling")
    blocked: int = Field(description="Search calls refused today")
    remaining: int = Field(description="Search calls still available today")
    percent_used: float = Field(description="Usage as a percentage of the limit")
    by_source: dict[str, int] = Field(
        default_factory=dict, description="Admitted calls per source tag"
    )
