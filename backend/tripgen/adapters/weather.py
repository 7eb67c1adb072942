"""Weather and safety overlay adapter (OpenWeatherMap forecast + advisories)."""

from __future__ import annotations

import logging
from collections import Counter, defaultdict
from datetime import UTC, date, datetime
from typing import Any, Protocol

from backend.tripgen.adapters.http import HttpJsonClient
from backend.tripgen.config import Settings
from backend.tripgen.exec.executor import ToolExecutor
from backend.tripgen.exec.types import CachePolicy
from backend.tripgen.models.common import Geo
from backend.tripgen.models.tool_results import TravelOverlay, WeatherSummary

logger = logging.getLogger(__name__)


class AdvisorySource(Protocol):
    """Source of safety advisories (crisis alerts) for a city."""

    async def advisories(self, city: str, start: date, end: date) -> list[str]:
        """Return advisory texts active for the city during the dates."""
        ...


def summarize_forecast(
    entries: list[dict[str, Any]], start: date, end: date
) -> dict[date, WeatherSummary]:
    """Collapse 3-hourly forecast entries into one summary per date.

    Args:
        entries: ``list`` items of an OpenWeatherMap forecast response.
        start: First date to keep.
        end: Last date to keep.

    Returns:
        Summaries keyed by date, only for dates inside the range.
    """
    by_date: dict[date, list[dict[str, Any]]] = defaultdict(list)
    for entry in entries:
        stamp = entry.get("dt_txt")
        if stamp:
            day = datetime.strptime(stamp, "%Y-%m-%d %H:%M:%S").date()
        elif "dt" in entry:
            day = datetime.fromtimestamp(entry["dt"], UTC).date()
        else:
            continue
        if start <= day <= end:
            by_date[day].append(entry)

    summaries: dict[date, WeatherSummary] = {}
    for day, items in by_date.items():
        mains = [item.get("main") or {} for item in items]
        highs = [m["temp_max"] for m in mains if "temp_max" in m]
        lows = [m["temp_min"] for m in mains if "temp_min" in m]
        conditions = Counter(
            (item.get("weather") or [{}])[0].get("main", "Clear") for item in items
        )
        summaries[day] = WeatherSummary(
            forecast_date=day,
            conditions=conditions.most_common(1)[0][0],
            temp_c_high=max(highs) if highs else 0.0,
            temp_c_low=min(lows) if lows else 0.0,
            precip_prob=min(1.0, max((item.get("pop", 0.0) for item in items), default=0.0)),
        )
    return summaries


class OverlayAdapter:
    """Builds weather and safety overlays for an itinerary."""

    def __init__(
        self,
        executor: ToolExecutor,
        settings: Settings,
        http: HttpJsonClient | None = None,
        advisory_source: AdvisorySource | None = None,
    ) -> None:
        self.executor = executor
        self.settings = settings
        self.http = http or HttpJsonClient(timeout=settings.hard_timeout_s)
        self.advisory_source = advisory_source

    @property
    def weather_enabled(self) -> bool:
        key = self.settings.weather_api_key
        return bool(key) and not key.startswith("dummy-")

    async def _fetch_forecast(self, args: dict[str, Any]) -> dict[str, Any]:
        params: dict[str, Any] = {"appid": self.settings.weather_api_key, "units": "metric"}
        if args.get("lat") is not None:
            params["lat"] = args["lat"]
            params["lon"] = args["lon"]
        else:
            params["q"] = args["city"]
        data = await self.http.get_json(self.settings.weather_api_url, params=params)
        if not isinstance(data, dict):
            raise ValueError("Forecast response is not an object")
        return {"list": data.get("list") or []}

    async def _weather(
        self, city: str, geo: Geo | None, start: date, end: date
    ) -> dict[date, str]:
        if not self.weather_enabled:
            return {}
        args: dict[str, Any] = {"city": city}
        if geo is not None and geo.is_valid():
            args.update(lat=round(geo.lat, 3), lon=round(geo.lon, 3))
        result = await self.executor.execute(
            tool=self._fetch_forecast,
            name="weather",
            args=args,
            cache_policy=CachePolicy(
                enabled=True, ttl_seconds=self.settings.weather_ttl_hours * 3600
            ),
        )
        if not result.ok or result.data is None:
            logger.warning(f"Weather overlay for {city} unavailable: {result.status}")
            return {}
        summaries = summarize_forecast(result.data["list"], start, end)
        return {day: summary.to_text() for day, summary in summaries.items()}

    async def _advisories(self, city: str, start: date, end: date) -> list[str]:
        if self.advisory_source is None:
            return []
        try:
            return list(await self.advisory_source.advisories(city, start, end))
        except Exception as e:
            logger.warning(f"Advisory lookup for {city} failed: {e}")
            return []

    async def get_overlay(
        self, city: str, geo: Geo | None, start: date, end: date
    ) -> TravelOverlay:
        """Weather per date plus advisories. Failures yield empty parts."""
        weather = await self._weather(city, geo, start, end)
        advisories = await self._advisories(city, start, end)
        return TravelOverlay(weather_by_date=weather, advisories=advisories)
