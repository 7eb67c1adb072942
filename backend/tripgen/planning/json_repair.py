"""Lenient JSON extraction and truncation repair for generated text."""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import ValidationError

from backend.tripgen.models.places import CandidatePlace

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)
_DANGLING_COMMA_RE = re.compile(r",\s*([\]}])")
_PLACES_ARRAY_RE = re.compile(r'"places"\s*:\s*\[')
_TIME_HINTS = {"morning", "lunch", "afternoon", "evening"}


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences around a JSON payload."""
    return _FENCE_RE.sub("", text).strip()


def extract_json_object(text: str) -> str | None:
    """Return the first balanced ``{...}`` substring.

    If the object never closes (truncated output), the tail starting at the
    first ``{`` is returned so the repair pass can work on it.
    """
    text = strip_code_fences(text)
    start = text.find("{")
    if start < 0:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]
    return text[start:]


def _last_closed_object(text: str, array_start: int) -> int:
    """Index just past the last array element object that closed completely."""
    depth = 0
    in_string = False
    escaped = False
    last_end = -1
    for i in range(array_start + 1, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in "{[":
            depth += 1
        elif ch in "}]":
            depth -= 1
            if depth == 0 and ch == "}":
                last_end = i + 1
            elif depth < 0:
                # The array itself closed
                break
    return last_end


def _loads_dict(text: str) -> dict[str, Any] | None:
    try:
        parsed = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return None
    return parsed if isinstance(parsed, dict) else None


def repair_truncated_json(text: str) -> dict[str, Any] | None:
    """Parse a JSON object, repairing output cut off mid-array.

    Well-formed input is returned as parsed. Otherwise the ``places`` array
    (or the first array when there is no ``places`` key) is truncated after
    its last fully closed object, closed with ``]}`` and re-parsed; a
    dangling comma is dropped on the retry. Never raises.

    Args:
        text: Raw or extracted model output.

    Returns:
        The parsed object, or None if it could not be recovered.
    """
    if not text:
        return None
    candidate = extract_json_object(text) or ""
    parsed = _loads_dict(candidate)
    if parsed is not None:
        return parsed

    match = _PLACES_ARRAY_RE.search(candidate)
    array_start = match.end() - 1 if match else candidate.find("[")
    if array_start < 0:
        return None
    end = _last_closed_object(candidate, array_start)
    if end < 0:
        # No element survived; keep the object shape with an empty array
        repaired = candidate[: array_start + 1] + "]}"
    else:
        repaired = candidate[:end] + "]}"

    parsed = _loads_dict(repaired)
    if parsed is None:
        parsed = _loads_dict(_DANGLING_COMMA_RE.sub(r"\1", repaired))
    if parsed is None:
        logger.warning("JSON repair failed; discarding response")
    else:
        logger.info("Recovered truncated JSON response")
    return parsed


def parse_candidates(text: str) -> list[CandidatePlace]:
    """Turn model output into candidate places.

    The parsed tree is checked explicitly: a top-level shape other than an
    object with a ``places`` list yields an empty list; items without a
    usable name are skipped; repeated names (case-insensitive) are dropped.
    """
    tree = repair_truncated_json(text)
    if tree is None:
        return []
    places = tree.get("places")
    if not isinstance(places, list):
        logger.warning("Recommendation payload has no 'places' list")
        return []

    candidates: list[CandidatePlace] = []
    seen: set[str] = set()
    for item in places:
        if not isinstance(item, dict):
            continue
        name = item.get("name")
        if not isinstance(name, str) or not name.strip():
            continue
        name = name.strip()
        if name.casefold() in seen:
            continue

        reason = item.get("reason")
        hint = item.get("time")
        is_food = item.get("isFood", item.get("is_food", False))
        try:
            candidate = CandidatePlace(
                name=name,
                reason=reason.strip() if isinstance(reason, str) else "",
                is_meal_venue=is_food is True or str(is_food).lower() == "true",
                time_hint=hint.lower() if isinstance(hint, str) and hint.lower() in _TIME_HINTS else None,
            )
        except ValidationError:
            continue
        seen.add(name.casefold())
        candidates.append(candidate)
    return candidates
