"""Binds enriched places into per-day time slots."""

from __future__ import annotations

import logging

from backend.tripgen.adapters.fx import fallback_rate
from backend.tripgen.models.common import BudgetTier, MealType, minutes_of, time_from_minutes
from backend.tripgen.models.itinerary import ScheduleSlot
from backend.tripgen.models.places import EnrichedPlace
from backend.tripgen.models.skeleton import DaySlotConfig, Skeleton

logger = logging.getLogger(__name__)

# Per-person meal prices in EUR: tier -> (lunch, dinner)
MEAL_BUDGET: dict[BudgetTier, tuple[float, float]] = {
    BudgetTier.economic: (8.0, 15.0),
    BudgetTier.reasonable: (21.0, 39.0),
    BudgetTier.premium: (39.0, 72.0),
    BudgetTier.luxury: (56.0, 104.0),
}

LUNCH_WINDOW = (12 * 60, 13 * 60 + 30)
DINNER_WINDOW = (18 * 60 + 30, 20 * 60)


def meal_allowance(slot_count: int) -> int:
    """How many of a day's slots may go to meals."""
    if slot_count >= 4:
        return 2
    if slot_count >= 2:
        return 1
    return 0


def _part_of_day(minute: int) -> str:
    if minute < 12 * 60:
        return "morning"
    if minute < 17 * 60:
        return "afternoon"
    return "evening"


class _Pool:
    """Ordered pick list preferring places with usable coordinates."""

    def __init__(self, places: list[EnrichedPlace]) -> None:
        self.items = [p for p in places if p.has_valid_geo] + [
            p for p in places if not p.has_valid_geo
        ]

    def __bool__(self) -> bool:
        return bool(self.items)

    def take(self, *hints: str) -> EnrichedPlace | None:
        """Pop the first place whose time hint matches, else the first place."""
        if not self.items:
            return None
        for hint in hints:
            for i, place in enumerate(self.items):
                if place.time_hint == hint:
                    return self.items.pop(i)
        return self.items.pop(0)


def _meal_blocks(config: DaySlotConfig, allowance: int, meals: _Pool) -> list[tuple[int, int, MealType]]:
    start = minutes_of(config.start_time)
    end = minutes_of(config.end_time)
    blocks: list[tuple[int, int, MealType]] = []
    for (meal_start, meal_end), kind in ((LUNCH_WINDOW, MealType.lunch), (DINNER_WINDOW, MealType.dinner)):
        if len(blocks) >= allowance or len(blocks) >= len(meals.items):
            break
        if start <= meal_start and meal_end <= end:
            blocks.append((meal_start, meal_end, kind))
    return blocks


def bind_schedule(
    places: list[EnrichedPlace],
    skeleton: Skeleton,
    currency: str = "EUR",
) -> list[ScheduleSlot]:
    """Greedily fill each day's slots with places.

    Meal slots (lunch, dinner) are placed first when they fit inside the day's
    window and a meal venue is left; activities fill the gaps in
    ``slot_minutes`` steps. A day never holds more than its ``slot_count``
    slots. When activities run out, leftover meal venues fill activity slots.

    Args:
        places: Enriched places in recommendation order.
        skeleton: Trip skeleton.
        currency: Destination currency for meal prices.

    Returns:
        Slots ordered by day, then start time.
    """
    meals = _Pool([p for p in places if p.is_meal_venue])
    activities = _Pool([p for p in places if not p.is_meal_venue])
    lunch_eur, dinner_eur = MEAL_BUDGET[skeleton.request.budget_tier]
    rate = fallback_rate("EUR", currency)
    party = skeleton.party_size

    schedule: list[ScheduleSlot] = []
    for config in skeleton.days:
        if config.slot_count <= 0:
            continue
        day_slots: list[ScheduleSlot] = []

        blocks = _meal_blocks(config, meal_allowance(config.slot_count), meals)
        for meal_start, meal_end, kind in blocks:
            hints = ("lunch",) if kind == MealType.lunch else ("evening",)
            place = meals.take(*hints)
            if place is None:
                continue
            price = lunch_eur if kind == MealType.lunch else dinner_eur
            day_slots.append(
                ScheduleSlot(
                    day=config.day,
                    start_time=time_from_minutes(meal_start),
                    end_time=time_from_minutes(meal_end),
                    place=place,
                    meal_type=kind,
                    meal_cost=price * rate * party,
                    coords_valid=place.has_valid_geo,
                )
            )

        # Free gaps between the day bounds and the meal blocks
        gaps: list[tuple[int, int]] = []
        cursor = minutes_of(config.start_time)
        for meal_start, meal_end, _ in blocks:
            gaps.append((cursor, meal_start))
            cursor = meal_end
        gaps.append((cursor, minutes_of(config.end_time)))

        for gap_start, gap_end in gaps:
            minute = gap_start
            while minute + skeleton.slot_minutes <= gap_end:
                if len(day_slots) >= config.slot_count:
                    break
                part = _part_of_day(minute)
                place = activities.take(part) if activities else meals.take(part)
                if place is None:
                    break
                day_slots.append(
                    ScheduleSlot(
                        day=config.day,
                        start_time=time_from_minutes(minute),
                        end_time=time_from_minutes(minute + skeleton.slot_minutes),
                        place=place,
                        entrance_cost=place.entrance_fee * party,
                        coords_valid=place.has_valid_geo,
                    )
                )
                minute += skeleton.slot_minutes

        day_slots.sort(key=lambda slot: slot.start_time)
        schedule.extend(day_slots)

    unused = len(meals.items) + len(activities.items)
    logger.info(f"Scheduled {len(schedule)} slots ({unused} places left unused)")
    return schedule
