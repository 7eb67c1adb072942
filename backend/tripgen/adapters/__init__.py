"""Adapters for external services.

All adapters:
- Return typed Pydantic models
- Use ToolExecutor for resilience (timeout, retry, breaker, cache)
- Are catalog-agnostic (no DB access)
"""

from .fx import ExchangeRateAdapter
from .llm import LLMClient
from .places import PlaceSearchAdapter
from .routes import RouteAdapter
from .sentiment import SentimentAdapter
from .weather import AdvisorySource, OverlayAdapter

__all__ = [
    "AdvisorySource",
    "ExchangeRateAdapter",
    "LLMClient",
    "OverlayAdapter",
    "PlaceSearchAdapter",
    "RouteAdapter",
    "SentimentAdapter",
]
