"""Recommendation stage: one generative call for a minimal candidate list."""

from __future__ import annotations

import asyncio
import logging
import math
import time

from backend.tripgen.adapters.llm import LLMClient
from backend.tripgen.config import Settings
from backend.tripgen.errors import MissingCredentialsError
from backend.tripgen.models.common import PartyType
from backend.tripgen.models.places import CandidatePlace
from backend.tripgen.models.skeleton import Skeleton
from backend.tripgen.planning.json_repair import parse_candidates
from backend.tripgen.rate_limit.core import SearchGate

logger = logging.getLogger(__name__)

MEAL_SHARE = 0.4

_PARTY_LABELS = {
    PartyType.solo: "solo traveller",
    PartyType.couple: "couple",
    PartyType.family: "family",
    PartyType.extended_family: "extended family",
    PartyType.group: "group of friends",
}

_EXAMPLE = (
    '{"places":[{"name":"Louvre Museum","reason":"World-class art collection",'
    '"time":"morning","isFood":false},'
    '{"name":"Le Comptoir du Relais","reason":"Classic bistro lunch",'
    '"time":"lunch","isFood":true}]}'
)


def split_counts(required: int) -> tuple[int, int]:
    """Split the required count into (meal venues, other places)."""
    meals = math.ceil(required * MEAL_SHARE)
    return meals, required - meals


def build_prompt(skeleton: Skeleton, sentiment_bonus: float | None = None) -> str:
    """Compose the compact recommendation prompt.

    ``sentiment_bonus`` is for callers that already hold one; the pipeline
    graph fetches sentiment concurrently and leaves it unset.
    """
    request = skeleton.request
    meals, others = split_counts(skeleton.required_count)
    tags = ", ".join(f"{wt.tag}({wt.percentage}%)" for wt in skeleton.weighted_tags)
    party = f"{_PARTY_LABELS.get(request.party_type, 'travellers')}, {skeleton.party_size} people"
    if request.companion_ages:
        party += f", ages {request.companion_ages}"

    lines = [
        f"Recommend places to visit in {request.destination}.",
        f"Preferences: {tags} | Party: {party} | Pace: {request.pace.value} "
        f"| Budget: {request.budget_tier.value}",
    ]
    if sentiment_bonus is not None:
        lines.append(f"Destination popularity signal: {sentiment_bonus:+.1f}")
    lines += [
        "",
        f"1. {others} sights or experiences (real, existing places only)",
        f"2. {meals} restaurants or cafes popular with locals and visitors",
        "",
        "For each place give: exact name as found on a map, a one-line reason, "
        "best time (morning/lunch/afternoon/evening), and isFood.",
        "Answer with this JSON only:",
        _EXAMPLE,
        f"Return exactly {skeleton.required_count} places.",
    ]
    return "\n".join(lines)


class RecommendationStage:
    """Asks the generative service for candidate places.

    Any failure (timeout, service error, unparseable output) yields an empty
    list; only missing credentials abort the run.
    """

    def __init__(self, llm: LLMClient, gate: SearchGate, settings: Settings) -> None:
        self.llm = llm
        self.gate = gate
        self.settings = settings

    async def recommend(
        self,
        skeleton: Skeleton,
        sentiment_bonus: float | None = None,
        timeout_s: float | None = None,
    ) -> list[CandidatePlace]:
        """Return candidate places for the skeleton, possibly empty.

        Args:
            skeleton: Trip skeleton.
            sentiment_bonus: Destination bonus to mention in the prompt, for
                callers that already have one. The pipeline graph leaves it
                unset because sentiment runs alongside this stage.
            timeout_s: Override of the hard per-call timeout.

        Raises:
            MissingCredentialsError: If the service has no usable API key.
        """
        self.llm.ensure_credentials()

        timeout = timeout_s if timeout_s is not None else self.settings.recommend_timeout_s
        use_search = self.gate.try_acquire("recommend")
        prompt = build_prompt(skeleton, sentiment_bonus)
        start = time.monotonic()

        try:
            text = await asyncio.wait_for(
                self.llm.complete(prompt, search=use_search, timeout_s=timeout), timeout
            )
        except MissingCredentialsError:
            raise
        except TimeoutError:
            logger.warning(f"Recommendation timed out after {timeout:.1f}s")
            return []
        except Exception as e:
            logger.warning(f"Recommendation call failed: {e}")
            return []

        candidates = parse_candidates(text)
        elapsed_ms = int((time.monotonic() - start) * 1000)
        if not candidates:
            logger.warning(
                f"Recommendation returned no usable candidates ({len(text)} chars)"
            )
        else:
            meals = sum(1 for c in candidates if c.is_meal_venue)
            logger.info(
                f"Recommendation returned {len(candidates)} candidates "
                f"({meals} meal venues, search={use_search}, {elapsed_ms}ms)"
            )
        return candidates
