"""Skeleton builder: trip parameters to per-day slot configuration."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING

from backend.tripgen.config import Settings, get_settings
from backend.tripgen.models.common import (
    Pace,
    PartyType,
    minutes_of,
    parse_hhmm,
    time_from_minutes,
)
from backend.tripgen.models.request import TripRequest
from backend.tripgen.models.skeleton import DaySlotConfig, Skeleton, WeightedTag

if TYPE_CHECKING:
    from backend.tripgen.adapters.sentiment import SentimentAdapter

logger = logging.getLogger(__name__)

# pace -> (minutes per slot, max slots per day)
PACE_CONFIG: dict[Pace, tuple[int, int]] = {
    Pace.packed: (90, 8),
    Pace.normal: (120, 6),
    Pace.relaxed: (150, 4),
}

PARTY_SIZES: dict[PartyType, int] = {
    PartyType.solo: 1,
    PartyType.couple: 2,
    PartyType.family: 4,
    PartyType.extended_family: 8,
    PartyType.group: 10,
}

_WEIGHT_TABLE: dict[int, list[float]] = {
    1: [100.0],
    2: [60.0, 40.0],
    3: [50.0, 30.0, 20.0],
}

_LATEST_MINUTE = 23 * 60 + 59


def tag_weights(count: int) -> list[float]:
    """Percentages for ``count`` priority-ordered tags.

    Lists longer than three extend the three-tag table by halving the
    previous weight for each extra tag, then renormalise to 100.
    """
    if count <= 0:
        return []
    if count in _WEIGHT_TABLE:
        return list(_WEIGHT_TABLE[count])
    weights = list(_WEIGHT_TABLE[3])
    while len(weights) < count:
        weights.append(weights[-1] / 2)
    total = sum(weights)
    return [w * 100.0 / total for w in weights]


def weight_tags(tags: list[str]) -> list[WeightedTag]:
    """Attach priority weights to tags, dropping case-insensitive repeats."""
    unique: list[str] = []
    seen: set[str] = set()
    for tag in tags:
        if tag.casefold() not in seen:
            seen.add(tag.casefold())
            unique.append(tag)
    return [
        WeightedTag(tag=tag, weight=pct / 100.0, percentage=round(pct))
        for tag, pct in zip(unique, tag_weights(len(unique)), strict=True)
    ]


def party_size(request: TripRequest) -> int:
    """Explicit party count, else the size implied by the party type."""
    if request.party_count:
        return request.party_count
    return PARTY_SIZES.get(request.party_type, 2)


def build_skeleton(request: TripRequest, settings: Settings | None = None) -> Skeleton:
    """Build the time-slot skeleton for a trip.

    Args:
        request: Validated trip request.
        settings: Settings supplying default day bounds and the candidate buffer.

    Returns:
        Immutable skeleton without a sentiment bonus.
    """
    settings = settings or get_settings()
    slot_minutes, max_slots = PACE_CONFIG[request.pace]
    default_start = minutes_of(parse_hhmm(settings.default_day_start))
    default_end = minutes_of(parse_hhmm(settings.default_day_end))
    user_start = minutes_of(request.start_time)
    user_end = minutes_of(request.end_time)

    day_count = request.day_count
    days: list[DaySlotConfig] = []
    for index in range(day_count):
        if day_count == 1:
            start, end = user_start, user_end
        elif index == 0:
            start, end = user_start, default_end
            if end <= start:
                # Late arrival: leave a single slot-length window
                end = min(start + slot_minutes, _LATEST_MINUTE)
        elif index == day_count - 1:
            start, end = default_start, user_end
            if start >= end:
                # Early departure: pull the start back before the end time
                start = max(0, end - slot_minutes)
        else:
            start, end = default_start, default_end

        slot_count = min((end - start) // slot_minutes, max_slots)
        days.append(
            DaySlotConfig(
                day=index + 1,
                day_date=request.start_date + timedelta(days=index),
                start_time=time_from_minutes(start),
                end_time=time_from_minutes(end),
                slot_count=max(0, slot_count),
            )
        )

    total_slots = sum(day.slot_count for day in days)
    skeleton = Skeleton(
        request=request,
        days=days,
        total_slots=total_slots,
        required_count=total_slots + settings.candidate_buffer,
        party_size=party_size(request),
        weighted_tags=weight_tags(request.preference_tags),
        pace=request.pace,
        slot_minutes=slot_minutes,
    )
    logger.info(
        f"Skeleton for {request.destination}: {day_count} days, "
        f"{total_slots} slots, {skeleton.required_count} candidates requested"
    )
    return skeleton


async def fetch_sentiment_bonus(
    adapter: SentimentAdapter | None, destination: str
) -> float | None:
    """Best-effort destination sentiment bonus; any failure yields None."""
    if adapter is None:
        return None
    try:
        return await adapter.destination_bonus(destination)
    except Exception as e:
        logger.warning(f"Sentiment bonus for '{destination}' unavailable: {e}")
        return None
