"""LangGraph runner for the itinerary pipeline."""

import asyncio
import logging
import time
from collections import Counter
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any, TypeVar

from langgraph.graph import END, START, StateGraph
from openai import AsyncOpenAI
from pydantic import ValidationError

from backend.tripgen.adapters.fx import ExchangeRateAdapter
from backend.tripgen.adapters.http import HttpJsonClient
from backend.tripgen.adapters.llm import LLMClient
from backend.tripgen.adapters.places import PlaceSearchAdapter
from backend.tripgen.adapters.routes import RouteAdapter
from backend.tripgen.adapters.sentiment import SentimentAdapter
from backend.tripgen.adapters.weather import AdvisorySource, OverlayAdapter
from backend.tripgen.catalog.background import BackgroundWriter
from backend.tripgen.catalog.resolver import CatalogResolver
from backend.tripgen.catalog.sql_store import SqlCatalogStore
from backend.tripgen.catalog.store import CatalogStore
from backend.tripgen.config import Settings, get_settings
from backend.tripgen.db.base import Base, get_engine, get_session_factory
from backend.tripgen.errors import (
    InvalidTripRequestError,
    PipelineError,
    PipelineTimeoutError,
)
from backend.tripgen.exec.executor import ToolExecutor
from backend.tripgen.metrics.core import record_stage_timing
from backend.tripgen.metrics.registry import MetricsClient
from backend.tripgen.models.itinerary import Itinerary, PipelineStats
from backend.tripgen.models.request import TripRequest
from backend.tripgen.planning.finalizer import Finalizer, destination_currency
from backend.tripgen.planning.matcher import Matcher
from backend.tripgen.planning.recommender import RecommendationStage
from backend.tripgen.planning.scheduler import bind_schedule
from backend.tripgen.planning.skeleton import build_skeleton, fetch_sentiment_bonus
from backend.tripgen.rate_limit.core import SearchGate, get_search_gate

from .state import PipelineState

logger = logging.getLogger(__name__)

MIN_RECOMMEND_TIMEOUT_S = 0.5

NodeFn = Callable[[PipelineState], Awaitable[dict[str, Any]]]
T = TypeVar("T")


class ItineraryPipeline:
    """Runs the stage graph for one trip request at a time.

    Graph flow:
        skeleton → {sentiment, recommend, preload}
        {recommend, preload} → match
        {match, sentiment} → finalize → END
    """

    def __init__(
        self,
        settings: Settings,
        recommender: RecommendationStage,
        resolver: CatalogResolver,
        matcher: Matcher,
        finalizer: Finalizer,
        sentiment: SentimentAdapter | None = None,
        writer: BackgroundWriter | None = None,
        metrics: MetricsClient | None = None,
        http: HttpJsonClient | None = None,
    ) -> None:
        self.settings = settings
        self.recommender = recommender
        self.resolver = resolver
        self.matcher = matcher
        self.finalizer = finalizer
        self.sentiment = sentiment
        self.writer = writer or matcher.writer
        self.metrics = metrics
        self._http = http
        self._graph = self._build_graph()

    def _timed(self, name: str, node: NodeFn) -> NodeFn:
        """Wrap a node so its wall time lands in ``stage_ms``."""

        async def wrapper(state: PipelineState) -> dict[str, Any]:
            start = time.monotonic()
            update = await node(state)
            elapsed_ms = int((time.monotonic() - start) * 1000)
            record_stage_timing(name, elapsed_ms)
            if self.metrics is not None:
                self.metrics.observe_stage(name, elapsed_ms)
            return {**update, "stage_ms": {name: elapsed_ms}}

        return wrapper

    def _build_graph(self) -> Any:
        """Build the LangGraph stage graph.

        Returns:
            Compiled LangGraph graph
        """
        graph = StateGraph(PipelineState)

        graph.add_node("skeleton", self._timed("skeleton", self._skeleton_node))
        graph.add_node("sentiment", self._timed("sentiment", self._sentiment_node))
        graph.add_node("recommend", self._timed("recommend", self._recommend_node))
        graph.add_node("preload", self._timed("preload", self._preload_node))
        graph.add_node("match", self._timed("match", self._match_node))
        graph.add_node("finalize", self._timed("finalize", self._finalize_node))

        graph.add_edge(START, "skeleton")
        # Fan out
        graph.add_edge("skeleton", "sentiment")
        graph.add_edge("skeleton", "recommend")
        graph.add_edge("skeleton", "preload")
        # Joins
        graph.add_edge(["recommend", "preload"], "match")
        graph.add_edge(["match", "sentiment"], "finalize")
        graph.add_edge("finalize", END)

        return graph.compile()

    @staticmethod
    def _require(value: T | None, what: str) -> T:
        """Return a value an upstream stage must have produced."""
        if value is None:
            raise PipelineError(f"Pipeline state is missing the {what}")
        return value

    async def _skeleton_node(self, state: PipelineState) -> dict[str, Any]:
        return {"skeleton": build_skeleton(state.request, self.settings)}

    async def _sentiment_node(self, state: PipelineState) -> dict[str, Any]:
        bonus = await fetch_sentiment_bonus(self.sentiment, state.request.destination)
        return {"sentiment_bonus": bonus}

    async def _recommend_node(self, state: PipelineState) -> dict[str, Any]:
        skeleton = self._require(state.skeleton, "skeleton")
        # Never spend more than what is left of the target budget
        elapsed = (datetime.now(UTC) - state.started_at).total_seconds()
        remaining = max(MIN_RECOMMEND_TIMEOUT_S, self.settings.e2e_target_s - elapsed)
        timeout = min(self.settings.recommend_timeout_s, remaining)
        return {"candidates": await self.recommender.recommend(skeleton, timeout_s=timeout)}

    async def _preload_node(self, state: PipelineState) -> dict[str, Any]:
        request = state.request
        coords = [request.destination_geo] if request.destination_geo else None
        return {"index": await self.resolver.preload(request.destination, coords)}

    async def _match_node(self, state: PipelineState) -> dict[str, Any]:
        index = self._require(state.index, "catalog index")
        places = await self.matcher.match(state.candidates, index, state.request.destination)
        return {"places": places}

    async def _finalize_node(self, state: PipelineState) -> dict[str, Any]:
        index = self._require(state.index, "catalog index")
        skeleton = self._require(state.skeleton, "skeleton").with_sentiment(
            state.sentiment_bonus
        )
        currency = destination_currency(index, self.settings)
        slots = bind_schedule(state.places, skeleton, currency)
        stats = PipelineStats(
            candidate_count=len(state.candidates),
            provenance_counts=dict(Counter(place.provenance for place in state.places)),
        )
        itinerary = await self.finalizer.finalize(skeleton, slots, index, stats)
        return {"itinerary": itinerary}

    @staticmethod
    def _validate(request: TripRequest | dict[str, Any]) -> TripRequest:
        if isinstance(request, TripRequest):
            return request
        try:
            return TripRequest.model_validate(request)
        except ValidationError as e:
            raise InvalidTripRequestError(f"Invalid trip request: {e}") from e

    async def run(self, request: TripRequest | dict[str, Any]) -> Itinerary:
        """Plan one trip.

        Args:
            request: Trip request, or its dict form.

        Returns:
            Complete itinerary; low-confidence entries are flagged, not dropped.

        Raises:
            InvalidTripRequestError: If the request does not validate.
            MissingCredentialsError: If the recommendation service has no key.
            PipelineTimeoutError: If the run exceeds the hard ceiling.
            PipelineError: For any other unrecoverable failure.
        """
        trip = self._validate(request)
        start = time.monotonic()
        hard_timeout = self.settings.e2e_hard_timeout_s

        try:
            result = await asyncio.wait_for(
                self._graph.ainvoke(PipelineState(request=trip)), hard_timeout
            )
        except PipelineError:
            raise
        except TimeoutError as e:
            raise PipelineTimeoutError(
                f"Planning {trip.destination} exceeded {hard_timeout:.1f}s"
            ) from e
        except Exception as e:
            logger.exception(f"Pipeline failed for {trip.destination}")
            raise PipelineError(f"Pipeline failed: {e}") from e

        itinerary: Itinerary = result["itinerary"]
        total_ms = int((time.monotonic() - start) * 1000)
        stats = itinerary.stats.model_copy(
            update={"stage_ms": dict(result["stage_ms"]), "total_ms": total_ms}
        )
        itinerary = itinerary.model_copy(update={"stats": stats})

        over_budget = total_ms > self.settings.e2e_target_s * 1000
        if over_budget:
            logger.warning(
                f"Planning {trip.destination} took {total_ms}ms, "
                f"over the {self.settings.e2e_target_s:.1f}s target"
            )
        if self.metrics is not None:
            self.metrics.observe_run(total_ms, over_budget)

        self.matcher.queue_backfill(result["places"], result["index"])
        logger.info(f"Planned {trip.destination} in {total_ms}ms: {stats.stage_ms}")
        return itinerary

    async def aclose(self) -> None:
        """Stop the background writer and close the shared HTTP client."""
        await self.writer.aclose()
        if self._http is not None:
            await self._http.close()


def build_pipeline(
    settings: Settings | None = None,
    *,
    store: CatalogStore | None = None,
    openai_client: AsyncOpenAI | None = None,
    gate: SearchGate | None = None,
    advisory_source: AdvisorySource | None = None,
    metrics: MetricsClient | None = None,
    http: HttpJsonClient | None = None,
) -> ItineraryPipeline:
    """Wire the default adapters into a pipeline.

    Args:
        settings: Application settings (defaults to ``get_settings()``).
        store: Catalog store; defaults to the SQL catalog at ``catalog_db_url``.
        openai_client: Preconfigured OpenAI client.
        gate: Search gate; defaults to the process-wide gate.
        advisory_source: Optional source of safety advisories.
        metrics: Metrics client.
        http: Shared HTTP client for the external adapters.

    Returns:
        Ready-to-run pipeline.
    """
    settings = settings or get_settings()
    metrics = metrics or MetricsClient()

    if store is None:
        engine = get_engine(settings)
        Base.metadata.create_all(engine)
        store = SqlCatalogStore(get_session_factory(engine))

    executor = ToolExecutor(settings, metrics=metrics)
    http = http or HttpJsonClient(timeout=settings.hard_timeout_s)
    writer = BackgroundWriter(metrics)

    recommender = RecommendationStage(
        LLMClient(settings, client=openai_client),
        gate or get_search_gate(settings),
        settings,
    )
    matcher = Matcher(
        store, PlaceSearchAdapter(executor, settings, http), writer, settings, metrics
    )
    finalizer = Finalizer(
        RouteAdapter(executor, settings, http),
        ExchangeRateAdapter(executor, settings, http),
        OverlayAdapter(executor, settings, http, advisory_source=advisory_source),
        settings,
    )
    return ItineraryPipeline(
        settings,
        recommender,
        CatalogResolver(store, settings.city_match_max_distance),
        matcher,
        finalizer,
        sentiment=SentimentAdapter(executor, settings, http),
        writer=writer,
        metrics=metrics,
        http=http,
    )


async def plan_trip(
    request: TripRequest | dict[str, Any],
    settings: Settings | None = None,
    **kwargs: Any,
) -> Itinerary:
    """Plan a trip with default adapters.

    Background catalog writes are awaited before the adapters are released.
    """
    pipeline = build_pipeline(settings, **kwargs)
    try:
        itinerary = await pipeline.run(request)
        await pipeline.writer.drain()
        return itinerary
    finally:
        await pipeline.aclose()
