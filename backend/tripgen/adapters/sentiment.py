"""Destination sentiment adapter."""

from __future__ import annotations

import logging
from typing import Any

from backend.tripgen.adapters.exceptions import AdapterError, AdapterResponseError
from backend.tripgen.adapters.http import HttpJsonClient
from backend.tripgen.config import Settings
from backend.tripgen.exec.executor import ToolExecutor
from backend.tripgen.exec.types import CachePolicy

logger = logging.getLogger(__name__)


class SentimentAdapter:
    """Reads a destination-level sentiment bonus from an external service.

    The bonus is an opaque score; this adapter only transports it.
    """

    def __init__(
        self,
        executor: ToolExecutor,
        settings: Settings,
        http: HttpJsonClient | None = None,
    ) -> None:
        self.executor = executor
        self.settings = settings
        self.http = http or HttpJsonClient(timeout=settings.soft_timeout_s)

    async def _fetch(self, args: dict[str, Any]) -> dict[str, Any]:
        data = await self.http.get_json(
            self.settings.sentiment_api_url, params={"destination": args["destination"]}
        )
        if not isinstance(data, dict):
            raise AdapterResponseError("Sentiment response is not an object")
        return data

    async def destination_bonus(self, destination: str) -> float | None:
        """Return the sentiment bonus for a destination.

        Returns:
            Bonus value, or None when no service is configured.

        Raises:
            AdapterError: If the service call fails or returns no usable bonus.
        """
        if not self.settings.sentiment_api_url:
            return None

        result = await self.executor.execute(
            tool=self._fetch,
            name="sentiment",
            args={"destination": destination.strip().lower()},
            cache_policy=CachePolicy(enabled=True, ttl_seconds=6 * 3600),
        )
        if not result.ok or result.data is None:
            raise AdapterError(f"Sentiment lookup failed: {result.status} {result.error}")

        bonus = result.data.get("bonus")
        if bonus is None:
            return None
        try:
            return float(bonus)
        except (TypeError, ValueError) as e:
            raise AdapterResponseError(f"Invalid sentiment bonus {bonus!r}") from e
