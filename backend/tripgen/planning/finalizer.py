"""Finalizer: anchors, transit legs, cost roll-up and overlays."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict

from backend.tripgen.adapters.fx import ExchangeRateAdapter
from backend.tripgen.adapters.routes import RouteAdapter, travel_mode_for
from backend.tripgen.adapters.weather import OverlayAdapter
from backend.tripgen.catalog.resolver import CatalogIndex, clean_destination
from backend.tripgen.config import Settings
from backend.tripgen.models.common import Geo, MatchProvenance, MealType, TravelMode
from backend.tripgen.models.itinerary import (
    Accommodation,
    DailyCost,
    Itinerary,
    ItineraryDay,
    PipelineStats,
    ScheduleSlot,
    TransitLeg,
    TripCost,
)
from backend.tripgen.models.request import DayLodging
from backend.tripgen.models.skeleton import DaySlotConfig, Skeleton
from backend.tripgen.models.tool_results import TravelOverlay

logger = logging.getLogger(__name__)

# Fares charged per traveller; other modes are per vehicle
_PER_PERSON_MODES = {TravelMode.transit}


def destination_currency(index: CatalogIndex, settings: Settings) -> str:
    """Currency of the resolved city, else the configured default."""
    if index.city is not None and index.city.currency:
        return index.city.currency.upper()
    return settings.default_destination_currency.upper()


def resolve_anchor(
    skeleton: Skeleton,
    day: int,
    index: CatalogIndex,
    day_slots: list[ScheduleSlot],
) -> Accommodation:
    """Pick the day's anchor.

    Order: per-day lodging, trip lodging, city centre (catalog centroid or the
    request's destination coordinates), the day's first stop with valid
    coordinates.
    """
    request = skeleton.request
    lodging = request.lodging_for_day(day)
    if lodging is not None:
        source = "day_lodging" if isinstance(lodging, DayLodging) else "trip_lodging"
        return Accommodation(name=lodging.name, geo=lodging.geo, source=source)

    center = index.city.geo if index.city is not None else None
    if center is None or not center.is_valid():
        center = request.destination_geo
    if center is not None and center.is_valid():
        label = index.city_name or clean_destination(request.destination)
        return Accommodation(name=f"{label} city centre", geo=center, source="city_center")

    for slot in day_slots:
        if slot.place.has_valid_geo:
            return Accommodation(name=slot.place.display_name, geo=slot.place.geo, source="first_stop")
    return Accommodation(name="No accommodation", source="none")


def roll_up_day(
    slots: list[ScheduleSlot],
    legs: list[TransitLeg],
    party_size: int,
    exchange_rate: float,
) -> DailyCost:
    """Sum meal, entrance and transit costs for one day.

    Entrance fees are only counted on non-meal slots.
    """
    meal = sum(slot.meal_cost for slot in slots)
    entrance = sum(slot.entrance_cost for slot in slots if slot.meal_type == MealType.none)
    transport = sum(leg.cost for leg in legs)
    total = meal + entrance + transport
    per_person = total / max(1, party_size)
    return DailyCost(
        meal=meal,
        entrance=entrance,
        transport=transport,
        total=total,
        per_person=per_person,
        total_home=total * exchange_rate,
        per_person_home=per_person * exchange_rate,
    )


class Finalizer:
    """Turns bound slots into the final itinerary."""

    def __init__(
        self,
        routes: RouteAdapter,
        fx: ExchangeRateAdapter,
        overlay: OverlayAdapter | None,
        settings: Settings,
    ) -> None:
        self.routes = routes
        self.fx = fx
        self.overlay = overlay
        self.settings = settings
        self._semaphore = asyncio.Semaphore(max(1, settings.transit_concurrency))

    def fallback_leg(self, from_label: str, to_label: str) -> TransitLeg:
        """Static leg used when routing is impossible or fails."""
        return TransitLeg(
            from_label=from_label,
            to_label=to_label,
            mode=TravelMode.walk,
            duration_min=self.settings.fallback_leg_minutes,
            distance_m=self.settings.fallback_leg_meters,
            cost=0.0,
            source="fallback",
        )

    async def _leg(
        self,
        from_label: str,
        origin: Geo | None,
        to_label: str,
        destination: Geo | None,
        mode: TravelMode,
        city: str | None,
        currency: str,
        party_size: int,
    ) -> TransitLeg:
        if origin is None or destination is None or not origin.is_valid() or not destination.is_valid():
            return self.fallback_leg(from_label, to_label)
        try:
            async with self._semaphore:
                estimate = await self.routes.compute(origin, destination, mode, city, currency)
        except Exception as e:
            logger.warning(f"Transit {from_label} -> {to_label} failed, using fallback: {e}")
            return self.fallback_leg(from_label, to_label)
        cost = estimate.cost * party_size if estimate.mode in _PER_PERSON_MODES else estimate.cost
        return TransitLeg(
            from_label=from_label,
            to_label=to_label,
            mode=estimate.mode,
            duration_min=estimate.duration_min,
            distance_m=estimate.distance_m,
            cost=cost,
            source=estimate.source,
        )

    async def _day_legs(
        self,
        anchor: Accommodation,
        slots: list[ScheduleSlot],
        mode: TravelMode,
        city: str | None,
        currency: str,
        party_size: int,
    ) -> list[TransitLeg]:
        stops: list[tuple[str, Geo | None]] = [(s.place.display_name, s.place.geo) for s in slots]
        if not stops:
            return []
        if anchor.source not in ("first_stop", "none"):
            stops = [(anchor.name, anchor.geo), *stops, (anchor.name, anchor.geo)]
        pairs = list(zip(stops, stops[1:]))
        return list(
            await asyncio.gather(
                *(
                    self._leg(a_label, a_geo, b_label, b_geo, mode, city, currency, party_size)
                    for (a_label, a_geo), (b_label, b_geo) in pairs
                )
            )
        )

    async def _overlay(self, skeleton: Skeleton, index: CatalogIndex) -> TravelOverlay:
        if self.overlay is None:
            return TravelOverlay()
        request = skeleton.request
        city = index.city_name or clean_destination(request.destination)
        geo = index.city.geo if index.city is not None else request.destination_geo
        try:
            return await self.overlay.get_overlay(city, geo, request.start_date, request.end_date)
        except Exception as e:
            logger.warning(f"Overlay for {city} unavailable: {e}")
            return TravelOverlay()

    async def finalize(
        self,
        skeleton: Skeleton,
        slots: list[ScheduleSlot],
        index: CatalogIndex,
        stats: PipelineStats | None = None,
    ) -> Itinerary:
        """Assemble the itinerary.

        Args:
            skeleton: Trip skeleton (carries the request and sentiment bonus).
            slots: Bound schedule slots.
            index: Catalog index of the run (city, currency, centroid).
            stats: Run statistics to attach; invalid coordinates are counted here.

        Returns:
            Immutable itinerary with one day per skeleton day.
        """
        stats = stats or PipelineStats()
        request = skeleton.request
        currency = destination_currency(index, self.settings)
        home_currency = (request.home_currency or self.settings.default_home_currency).upper()
        city = index.city_name or clean_destination(request.destination)
        mode = travel_mode_for(request.mobility)

        quote, overlay = await asyncio.gather(
            self.fx.get_rate(currency, home_currency), self._overlay(skeleton, index)
        )
        rate = quote.rate

        by_day: dict[int, list[ScheduleSlot]] = defaultdict(list)
        for slot in slots:
            by_day[slot.day].append(slot)

        invalid = [slot for slot in slots if not slot.coords_valid]
        for slot in invalid:
            geo = slot.place.geo
            where = f"({geo.lat}, {geo.lon})" if geo else "(none)"
            logger.warning(f"Invalid coordinates {where} for '{slot.place.display_name}' on day {slot.day}")
        stats.invalid_coordinates = len(invalid)

        async def build_day(config: DaySlotConfig) -> ItineraryDay:
            day_slots = sorted(by_day.get(config.day, []), key=lambda s: s.start_time)
            anchor = resolve_anchor(skeleton, config.day, index, day_slots)
            legs = await self._day_legs(anchor, day_slots, mode, city, currency, skeleton.party_size)
            return ItineraryDay(
                day=config.day,
                day_date=config.day_date,
                start_time=config.start_time,
                end_time=config.end_time,
                slots=day_slots,
                accommodation=anchor,
                transit=legs,
                cost=roll_up_day(day_slots, legs, skeleton.party_size, rate),
                weather=overlay.weather_by_date.get(config.day_date),
            )

        days = list(await asyncio.gather(*(build_day(config) for config in skeleton.days)))

        total = sum(day.cost.total for day in days)
        per_person = total / skeleton.party_size
        cost = TripCost(
            currency=currency,
            home_currency=home_currency,
            exchange_rate=rate,
            rate_source=quote.source,
            total=total,
            per_person=per_person,
            total_home=total * rate,
            per_person_home=per_person * rate,
        )

        if not stats.provenance_counts:
            counts: dict[MatchProvenance, int] = defaultdict(int)
            for slot in slots:
                counts[slot.place.provenance] += 1
            stats.provenance_counts = dict(counts)

        logger.info(
            f"Finalized {len(days)} days, {len(slots)} slots, total {total:.2f} {currency} "
            f"({total * rate:.2f} {home_currency}, rate {quote.source})"
        )
        return Itinerary(
            title=f"{request.day_count}-day trip to {city}",
            destination=request.destination,
            city_id=index.city_id,
            city_name=index.city_name,
            start_date=request.start_date,
            end_date=request.end_date,
            days=days,
            cost=cost,
            advisories=overlay.advisories,
            weighted_tags=skeleton.weighted_tags,
            sentiment_bonus=skeleton.sentiment_bonus,
            party_size=skeleton.party_size,
            stats=stats,
        )
