"""Generative service client (OpenAI chat completions)."""

from __future__ import annotations

import logging
import time
from typing import Any

from openai import AsyncOpenAI

from backend.tripgen.config import Settings, get_openai_api_key
from backend.tripgen.metrics.core import record_tool_call

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = (
    "You are a travel curator. Recommend real, currently operating places that "
    "can be found on a map. Answer with a single JSON object and nothing else."
)


class LLMClient:
    """Single-shot completion client with plain and search-augmented modes."""

    def __init__(self, settings: Settings, client: AsyncOpenAI | None = None) -> None:
        """Initialize the client.

        Args:
            settings: Application settings.
            client: Optional preconfigured OpenAI client (tests inject a mock).
        """
        self.settings = settings
        self._client = client

    def ensure_credentials(self) -> None:
        """Raise MissingCredentialsError unless a usable key is configured."""
        if self._client is None:
            get_openai_api_key(self.settings)

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=get_openai_api_key(self.settings),
                max_retries=0,
            )
        return self._client

    async def complete(self, prompt: str, *, search: bool = False, timeout_s: float) -> str:
        """Run one completion and return the raw text.

        Args:
            prompt: User prompt.
            search: Use the search-augmented model.
            timeout_s: Request timeout in seconds.

        Returns:
            The message content, possibly empty.
        """
        client = self._get_client()
        kwargs: dict[str, Any] = {
            "messages": [
                {"role": "system", "content": _SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "max_tokens": 2048,
            "timeout": timeout_s,
        }
        if search:
            kwargs["model"] = self.settings.openai_search_model
            kwargs["web_search_options"] = {}
        else:
            kwargs["model"] = self.settings.openai_model
            kwargs["temperature"] = 0.7
            kwargs["response_format"] = {"type": "json_object"}

        start = time.monotonic()
        response = await client.chat.completions.create(**kwargs)
        latency_ms = int((time.monotonic() - start) * 1000)

        usage = getattr(response, "usage", None)
        record_tool_call(
            tool="llm_search" if search else "llm",
            latency_ms=latency_ms,
            ok=True,
            from_cache=False,
            retries=0,
            error_kind=None,
            tokens_in=getattr(usage, "prompt_tokens", None),
            tokens_out=getattr(usage, "completion_tokens", None),
        )

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""
