"""Route adapter: Google Routes API with a distance-based estimate."""

from __future__ import annotations

import logging
import math
from typing import Any

from backend.tripgen.adapters.exceptions import AdapterError, AdapterResponseError
from backend.tripgen.adapters.fx import fallback_rate
from backend.tripgen.adapters.http import HttpJsonClient
from backend.tripgen.config import Settings
from backend.tripgen.exec.executor import ToolExecutor
from backend.tripgen.exec.types import CachePolicy
from backend.tripgen.models.common import Geo, MobilityStyle, TravelMode
from backend.tripgen.models.tool_results import RouteEstimate

logger = logging.getLogger(__name__)

# Estimate tables are denominated in EUR
_COST_PER_KM = {
    TravelMode.drive: 0.5,
    TravelMode.taxi: 2.0,
    TravelMode.transit: 0.15,
    TravelMode.walk: 0.0,
}
_BASE_FARE = {
    TravelMode.drive: 0.0,
    TravelMode.taxi: 4.0,
    TravelMode.transit: 2.0,
    TravelMode.walk: 0.0,
}
_SPEED_KMH = {
    TravelMode.drive: 30,
    TravelMode.taxi: 25,
    TravelMode.transit: 20,
    TravelMode.walk: 5,
}
_CITY_COST_MULTIPLIER = {
    "paris": 1.2,
    "london": 1.5,
    "tokyo": 1.0,
    "seoul": 0.8,
    "rome": 1.0,
    "barcelona": 0.9,
}
_API_MODE = {
    TravelMode.walk: "WALK",
    TravelMode.transit: "TRANSIT",
    TravelMode.drive: "DRIVE",
    TravelMode.taxi: "DRIVE",
}


def travel_mode_for(mobility: MobilityStyle) -> TravelMode:
    """Map a mobility preference to the travel mode used for legs."""
    if mobility == MobilityStyle.walk_more:
        return TravelMode.walk
    if mobility == MobilityStyle.minimal:
        return TravelMode.drive
    return TravelMode.transit


def haversine_m(a: Geo, b: Geo) -> float:
    """Great-circle distance in metres."""
    radius = 6371000.0
    d_lat = math.radians(b.lat - a.lat)
    d_lon = math.radians(b.lon - a.lon)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(a.lat)) * math.cos(math.radians(b.lat)) * math.sin(d_lon / 2) ** 2
    )
    return radius * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def estimate_route(
    origin: Geo,
    destination: Geo,
    mode: TravelMode,
    city: str | None = None,
    currency: str = "EUR",
) -> RouteEstimate:
    """Estimate a leg from straight-line distance and per-mode tables."""
    distance_m = haversine_m(origin, destination)
    speed_ms = _SPEED_KMH[mode] * 1000 / 3600
    duration_min = max(1, round(distance_m / speed_ms / 60))
    return RouteEstimate(
        mode=mode,
        duration_min=duration_min,
        distance_m=round(distance_m),
        cost=estimate_fare(distance_m, mode, city, currency),
        source="estimate",
    )


def estimate_fare(
    distance_m: float, mode: TravelMode, city: str | None = None, currency: str = "EUR"
) -> float:
    """Base fare plus per-km cost, scaled by city and converted from EUR."""
    multiplier = _CITY_COST_MULTIPLIER.get((city or "").lower(), 1.0)
    cost_eur = (_BASE_FARE[mode] + distance_m / 1000 * _COST_PER_KM[mode]) * multiplier
    return cost_eur * fallback_rate("EUR", currency)


class RouteAdapter:
    """Computes legs between coordinates.

    Uses the routes service when a Maps key is configured and the
    distance-based estimate otherwise. Service failures raise AdapterError;
    the caller decides on the fallback.
    """

    def __init__(
        self,
        executor: ToolExecutor,
        settings: Settings,
        http: HttpJsonClient | None = None,
    ) -> None:
        self.executor = executor
        self.settings = settings
        self.http = http or HttpJsonClient(timeout=settings.hard_timeout_s)

    @property
    def live(self) -> bool:
        return bool(self.settings.google_maps_api_key)

    async def _fetch_route(self, args: dict[str, Any]) -> dict[str, Any]:
        body = {
            "origin": {
                "location": {
                    "latLng": {"latitude": args["from_lat"], "longitude": args["from_lon"]}
                }
            },
            "destination": {
                "location": {
                    "latLng": {"latitude": args["to_lat"], "longitude": args["to_lon"]}
                }
            },
            "travelMode": args["mode"],
        }
        data = await self.http.post_json(
            self.settings.routes_url,
            json=body,
            headers={
                "X-Goog-Api-Key": self.settings.google_maps_api_key,
                "X-Goog-FieldMask": (
                    "routes.duration,routes.distanceMeters,routes.travelAdvisory.transitFare"
                ),
            },
        )
        routes = data.get("routes") if isinstance(data, dict) else None
        if not routes:
            raise AdapterResponseError("Routes service returned no route")
        return routes[0]

    async def compute(
        self,
        origin: Geo,
        destination: Geo,
        mode: TravelMode,
        city: str | None = None,
        currency: str = "EUR",
    ) -> RouteEstimate:
        """Compute a leg.

        Args:
            origin: Start coordinates.
            destination: End coordinates.
            mode: Travel mode.
            city: City name, used for estimate cost multipliers.
            currency: Currency the cost should be expressed in.

        Returns:
            Route estimate.

        Raises:
            AdapterError: If the routes service fails.
        """
        if not self.live:
            return estimate_route(origin, destination, mode, city, currency)

        result = await self.executor.execute(
            tool=self._fetch_route,
            name="routes",
            args={
                "from_lat": round(origin.lat, 6),
                "from_lon": round(origin.lon, 6),
                "to_lat": round(destination.lat, 6),
                "to_lon": round(destination.lon, 6),
                "mode": _API_MODE[mode],
            },
            cache_policy=CachePolicy(enabled=True, ttl_seconds=24 * 3600),
        )
        if not result.ok or result.data is None:
            raise AdapterError(f"Routes lookup failed: {result.status} {result.error}")

        route = result.data
        try:
            duration_s = int(str(route.get("duration", "0s")).rstrip("s") or 0)
            distance_m = int(route.get("distanceMeters", 0))
        except ValueError as e:
            raise AdapterResponseError(f"Malformed route payload: {e}") from e

        cost = estimate_fare(distance_m, mode, city, currency)
        fare = (route.get("travelAdvisory") or {}).get("transitFare")
        if fare:
            amount = int(fare.get("units", 0)) + fare.get("nanos", 0) / 1e9
            fare_currency = fare.get("currencyCode") or currency
            cost = amount * fallback_rate(fare_currency, currency)

        return RouteEstimate(
            mode=mode,
            duration_min=max(1, round(duration_s / 60)),
            distance_m=distance_m,
            cost=cost,
            source="routes_api",
        )
