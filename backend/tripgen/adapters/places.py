"""Place search adapter (Google Places text search)."""

from __future__ import annotations

import logging
from typing import Any

from backend.tripgen.adapters.http import HttpJsonClient
from backend.tripgen.config import Settings
from backend.tripgen.exec.executor import ToolExecutor
from backend.tripgen.exec.types import CachePolicy
from backend.tripgen.models.common import Geo
from backend.tripgen.models.places import PlaceSearchResult

logger = logging.getLogger(__name__)

_FIELD_MASK = ",".join(
    [
        "places.id",
        "places.displayName",
        "places.formattedAddress",
        "places.location",
        "places.rating",
        "places.userRatingCount",
        "places.photos",
        "places.googleMapsUri",
        "places.editorialSummary",
    ]
)


def parse_place(raw: dict[str, Any]) -> PlaceSearchResult | None:
    """Convert one Places API record into a PlaceSearchResult."""
    place_id = raw.get("id")
    if not place_id:
        return None
    display = raw.get("displayName") or {}
    name = display.get("text") if isinstance(display, dict) else str(display)
    location = raw.get("location") or {}
    geo = None
    if "latitude" in location and "longitude" in location:
        geo = Geo(lat=location["latitude"], lon=location["longitude"])
    photos = raw.get("photos") or []
    summary = raw.get("editorialSummary") or {}
    return PlaceSearchResult(
        external_id=place_id,
        name=name or place_id,
        geo=geo,
        address=raw.get("formattedAddress"),
        photo_ref=photos[0].get("name") if photos else None,
        rating=raw.get("rating"),
        review_count=raw.get("userRatingCount"),
        maps_url=raw.get("googleMapsUri"),
        summary=summary.get("text") if isinstance(summary, dict) else None,
    )


class PlaceSearchAdapter:
    """Free-text place lookup used when the catalog has no match."""

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
    def enabled(self) -> bool:
        return bool(self.settings.google_maps_api_key)

    async def _search(self, args: dict[str, Any]) -> dict[str, Any]:
        data = await self.http.post_json(
            self.settings.places_search_url,
            json={"textQuery": args["query"], "maxResultCount": 1},
            headers={
                "X-Goog-Api-Key": self.settings.google_maps_api_key,
                "X-Goog-FieldMask": _FIELD_MASK,
            },
        )
        places = data.get("places") if isinstance(data, dict) else None
        return {"place": places[0] if places else None}

    async def search(self, query: str) -> PlaceSearchResult | None:
        """Return the best match for a query, or None.

        A missing key, an empty result, or a service failure all yield None.
        """
        if not self.enabled:
            logger.debug(f"Place search disabled, skipping '{query}'")
            return None

        result = await self.executor.execute(
            tool=self._search,
            name="places",
            args={"query": query},
            cache_policy=CachePolicy(
                enabled=True, ttl_seconds=self.settings.places_ttl_hours * 3600
            ),
        )
        if not result.ok or result.data is None:
            logger.warning(f"Place search for '{query}' failed: {result.status} {result.error}")
            return None

        raw = result.data.get("place")
        if not raw:
            logger.info(f"Place search for '{query}' returned no result")
            return None
        return parse_place(raw)
