"""Tests for the recommendation stage."""

import asyncio
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from backend.tripgen.adapters.llm import LLMClient
from backend.tripgen.config import Settings
from backend.tripgen.errors import MissingCredentialsError
from backend.tripgen.planning.recommender import (
    RecommendationStage,
    build_prompt,
    split_counts,
)
from backend.tripgen.planning.skeleton import build_skeleton
from backend.tripgen.rate_limit.core import SearchQuotaGate


def _response(content: str) -> SimpleNamespace:
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(prompt_tokens=120, completion_tokens=80),
    )


def _openai_client(content: str = "", side_effect=None) -> MagicMock:
    client = MagicMock()
    client.chat.completions.create = AsyncMock(
        return_value=_response(content), side_effect=side_effect
    )
    return client


PAYLOAD = json.dumps(
    {
        "places": [
            {"name": "Louvre Museum", "reason": "Art", "time": "morning", "isFood": False},
            {"name": "Bouillon Chartier", "reason": "Classic", "time": "lunch", "isFood": True},
        ]
    }
)


@pytest.fixture
def skeleton(paris_request, settings):
    return build_skeleton(paris_request, settings)


@pytest.mark.unit
class TestPrompt:
    """Tests for prompt construction."""

    def test_split_counts(self):
        """Roughly 40% of the requested places are meal venues."""
        assert split_counts(19) == (8, 11)
        assert split_counts(4) == (2, 2)

    def test_prompt_mentions_request(self, skeleton):
        prompt = build_prompt(skeleton, sentiment_bonus=0.5)

        assert "Paris" in prompt
        assert "Foodie(60%)" in prompt
        assert "Return exactly 19 places." in prompt
        assert "+0.5" in prompt
        assert '"places"' in prompt


@pytest.mark.unit
class TestRecommendationStage:
    """Tests for RecommendationStage.recommend."""

    @pytest.mark.asyncio
    async def test_uses_search_model_while_quota_lasts(self, skeleton, settings: Settings):
        client = _openai_client(PAYLOAD)
        gate = SearchQuotaGate(daily_limit=5)
        stage = RecommendationStage(LLMClient(settings, client=client), gate, settings)

        candidates = await stage.recommend(skeleton)

        assert [c.name for c in candidates] == ["Louvre Museum", "Bouillon Chartier"]
        kwargs = client.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == settings.openai_search_model
        assert kwargs["web_search_options"] == {}
        assert gate.status().by_source == {"recommend": 1}

    @pytest.mark.asyncio
    async def test_falls_back_to_plain_model_when_quota_exhausted(self, skeleton, settings):
        client = _openai_client(PAYLOAD)
        gate = SearchQuotaGate(daily_limit=0)
        stage = RecommendationStage(LLMClient(settings, client=client), gate, settings)

        candidates = await stage.recommend(skeleton)

        assert len(candidates) == 2
        kwargs = client.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == settings.openai_model
        assert kwargs["response_format"] == {"type": "json_object"}
        assert "web_search_options" not in kwargs

    @pytest.mark.asyncio
    async def test_timeout_returns_empty_list(self, skeleton, settings):
        """A call that outlives the timeout degrades to no candidates."""

        async def slow(**kwargs):
            await asyncio.sleep(5)
            return _response(PAYLOAD)

        client = _openai_client(side_effect=slow)
        stage = RecommendationStage(
            LLMClient(settings, client=client), SearchQuotaGate(daily_limit=5), settings
        )

        assert await stage.recommend(skeleton, timeout_s=0.05) == []

    @pytest.mark.asyncio
    async def test_service_error_returns_empty_list(self, skeleton, settings):
        client = _openai_client(side_effect=RuntimeError("503 from upstream"))
        stage = RecommendationStage(
            LLMClient(settings, client=client), SearchQuotaGate(daily_limit=5), settings
        )

        assert await stage.recommend(skeleton) == []

    @pytest.mark.asyncio
    async def test_truncated_response_is_repaired(self, skeleton, settings):
        truncated = (
            '{"places":[{"name":"Louvre Museum","reason":"Art","time":"morning",'
            '"isFood":false},{"name":"Bouillon Chartier","reason":"Classic chea'
        )
        client = _openai_client(truncated)
        stage = RecommendationStage(
            LLMClient(settings, client=client), SearchQuotaGate(daily_limit=5), settings
        )

        candidates = await stage.recommend(skeleton)

        assert [c.name for c in candidates] == ["Louvre Museum"]

    @pytest.mark.asyncio
    async def test_empty_content_returns_empty_list(self, skeleton, settings):
        client = _openai_client("")
        stage = RecommendationStage(
            LLMClient(settings, client=client), SearchQuotaGate(daily_limit=5), settings
        )

        assert await stage.recommend(skeleton) == []

    @pytest.mark.asyncio
    async def test_missing_credentials_is_fatal(self, skeleton):
        """Without a key the stage raises before touching the quota."""
        settings = Settings(_env_file=None, openai_api_key="")
        gate = SearchQuotaGate(daily_limit=5)
        stage = RecommendationStage(LLMClient(settings), gate, settings)

        with pytest.raises(MissingCredentialsError):
            await stage.recommend(skeleton)

        assert gate.status().used == 0

    @pytest.mark.asyncio
    async def test_placeholder_key_is_fatal(self, skeleton):
        settings = Settings(_env_file=None, openai_api_key="dummy-openai-api-key-for-tests")
        stage = RecommendationStage(LLMClient(settings), SearchQuotaGate(daily_limit=5), settings)

        with pytest.raises(MissingCredentialsError):
            await stage.recommend(skeleton)
