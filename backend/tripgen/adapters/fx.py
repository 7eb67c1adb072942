"""Foreign exchange adapter with a hard-coded fallback table."""

from __future__ import annotations

import logging
from typing import Any

from backend.tripgen.adapters.http import HttpJsonClient
from backend.tripgen.config import Settings
from backend.tripgen.exec.executor import ToolExecutor
from backend.tripgen.exec.types import BreakerPolicy, CachePolicy
from backend.tripgen.models.common import Provenance
from backend.tripgen.models.tool_results import FxQuote

logger = logging.getLogger(__name__)

# Fallback FX rates (relative to USD)
# Rates are approximate; used only when the live service is unavailable
_FX_RATES = {
    "USD": 1.0,
    "EUR": 0.92,
    "GBP": 0.79,
    "JPY": 149.5,
    "CAD": 1.36,
    "AUD": 1.53,
    "KRW": 1380.0,
    "CNY": 7.24,
    "THB": 35.8,
    "VND": 24500.0,
    "SGD": 1.34,
    "CHF": 0.88,
}


def fallback_rate(from_currency: str, to_currency: str) -> float:
    """Cross rate from the fallback table; 1.0 for unknown pairs."""
    from_rate = _FX_RATES.get(from_currency.upper())
    to_rate = _FX_RATES.get(to_currency.upper())
    if from_rate is None or to_rate is None:
        return 1.0
    # 1 from_curr = (1 / from_rate) USD = (to_rate / from_rate) to_curr
    return to_rate / from_rate


class ExchangeRateAdapter:
    """Reads exchange rates from the Frankfurter API."""

    def __init__(
        self,
        executor: ToolExecutor,
        settings: Settings,
        http: HttpJsonClient | None = None,
    ) -> None:
        self.executor = executor
        self.settings = settings
        self.http = http or HttpJsonClient(timeout=settings.hard_timeout_s)

    async def _fetch_rate(self, args: dict[str, Any]) -> dict[str, Any]:
        from_curr = args["from_currency"]
        to_curr = args["to_currency"]
        data = await self.http.get_json(
            self.settings.fx_api_url, params={"from": from_curr, "to": to_curr}
        )
        rate = (data.get("rates") or {}).get(to_curr) if isinstance(data, dict) else None
        if not isinstance(rate, int | float) or rate <= 0:
            raise ValueError(f"No {from_curr}->{to_curr} rate in response")
        return {"from_currency": from_curr, "to_currency": to_curr, "rate": float(rate)}

    async def get_rate(self, from_currency: str, to_currency: str) -> FxQuote:
        """
        Get the exchange rate between two currencies.

        Never raises: a failed lookup yields the fallback table rate.

        Args:
            from_currency: Source currency code (ISO 4217, e.g., "EUR")
            to_currency: Target currency code (ISO 4217, e.g., "KRW")

        Returns:
            FxQuote with provenance
        """
        from_curr = from_currency.upper()
        to_curr = to_currency.upper()

        if from_curr == to_curr:
            return FxQuote(
                from_currency=from_curr,
                to_currency=to_curr,
                rate=1.0,
                source="live",
                provenance=Provenance(source="identity", ref_id=f"fx:{from_curr}"),
            )

        result = await self.executor.execute(
            tool=self._fetch_rate,
            name="fx",
            args={"from_currency": from_curr, "to_currency": to_curr},
            cache_policy=CachePolicy(
                enabled=True, ttl_seconds=self.settings.fx_ttl_hours * 3600
            ),
            breaker_policy=BreakerPolicy(
                failure_threshold=5,
                window_seconds=60,
                cooldown_seconds=30,
            ),
        )

        if result.ok and result.data is not None:
            return FxQuote(
                from_currency=from_curr,
                to_currency=to_curr,
                rate=result.data["rate"],
                source="cache" if result.from_cache else "live",
                provenance=Provenance(
                    source="tool",
                    ref_id=f"fx:{from_curr}-{to_curr}",
                    source_url=self.settings.fx_api_url,
                    cache_hit=result.from_cache,
                ),
            )

        rate = fallback_rate(from_curr, to_curr)
        logger.warning(
            f"FX lookup {from_curr}->{to_curr} failed ({result.status}: {result.error}); "
            f"using fallback rate {rate:.4f}"
        )
        return FxQuote(
            from_currency=from_curr,
            to_currency=to_curr,
            rate=rate,
            source="fallback",
            provenance=Provenance(
                source="fixture",
                ref_id=f"fx:{from_curr}-{to_curr}",
                source_url="fixture://fx",
            ),
        )
