"""In-process metrics registry for tool execution and pipeline runs."""

from collections import defaultdict
from typing import Literal


class MetricsClient:
    """
    Simple in-process metrics client for tracking pipeline runs.

    Stores metrics in memory for testing and internal monitoring.
    Can be replaced with Prometheus/OpenTelemetry in the future.
    """

    def __init__(self) -> None:
        # Tool latency observations: tool -> list of (status, latency_ms)
        self.tool_latencies: dict[str, list[tuple[str, int]]] = defaultdict(list)

        # Retry counts: tool -> count
        self.tool_retries: dict[str, int] = defaultdict(int)

        # Error counts: tool -> reason -> count
        self.tool_errors: dict[str, dict[str, int]] = defaultdict(
            lambda: defaultdict(int)
        )

        # Cache hits: tool -> count
        self.tool_cache_hits: dict[str, int] = defaultdict(int)

        # Breaker open events: tool -> count
        self.breaker_opens: dict[str, int] = defaultdict(int)

        # Breaker states: tool -> current state
        self.breaker_states: dict[str, Literal["open", "closed", "half_open"]] = {}

        # Stage timings: stage -> list of latency_ms
        self.stage_latencies: dict[str, list[int]] = defaultdict(list)

        # Match provenance: provenance tag -> count
        self.match_provenance: dict[str, int] = defaultdict(int)

        # Background writes: label -> (ok, failed)
        self.background_ok: dict[str, int] = defaultdict(int)
        self.background_failed: dict[str, int] = defaultdict(int)

        # End-to-end runs
        self.run_latencies: list[int] = []
        self.budget_overruns: int = 0

    def observe_tool_latency(self, tool: str, status: str, latency_ms: int) -> None:
        """Record a tool latency observation."""
        self.tool_latencies[tool].append((status, latency_ms))

    def inc_tool_retries(self, tool: str, count: int = 1) -> None:
        """Increment retry counter for a tool."""
        self.tool_retries[tool] += count

    def inc_tool_errors(self, tool: str, reason: str) -> None:
        """Increment error counter for a tool and reason."""
        self.tool_errors[tool][reason] += 1

    def inc_tool_cache_hit(self, tool: str) -> None:
        """Increment cache hit counter for a tool."""
        self.tool_cache_hits[tool] += 1

    def inc_breaker_open(self, tool: str) -> None:
        """Increment breaker open event counter."""
        self.breaker_opens[tool] += 1

    def set_breaker_state(
        self, tool: str, state: Literal["open", "closed", "half_open"]
    ) -> None:
        """Set current breaker state for a tool."""
        self.breaker_states[tool] = state

    def observe_stage(self, stage: str, latency_ms: int) -> None:
        """Record a stage duration."""
        self.stage_latencies[stage].append(latency_ms)

    def inc_match_provenance(self, provenance: str, count: int = 1) -> None:
        """Increment the counter of matched places for a provenance tag."""
        self.match_provenance[provenance] += count

    def observe_background(self, label: str, ok: bool) -> None:
        """Record the outcome of a background write."""
        if ok:
            self.background_ok[label] += 1
        else:
            self.background_failed[label] += 1

    def observe_run(self, latency_ms: int, over_budget: bool) -> None:
        """Record an end-to-end run."""
        self.run_latencies.append(latency_ms)
        if over_budget:
            self.budget_overruns += 1

    def get_tool_latency_stats(self, tool: str) -> dict[str, float]:
        """Get latency statistics for a tool."""
        latencies = [lat for _, lat in self.tool_latencies.get(tool, [])]
        if not latencies:
            return {"count": 0, "min": 0, "max": 0, "avg": 0}

        return {
            "count": len(latencies),
            "min": min(latencies),
            "max": max(latencies),
            "avg": sum(latencies) / len(latencies),
        }

    def get_tool_error_count(self, tool: str, reason: str | None = None) -> int:
        """Get error count for a tool, optionally filtered by reason."""
        if reason:
            return self.tool_errors.get(tool, {}).get(reason, 0)
        return sum(self.tool_errors.get(tool, {}).values())

    def reset(self) -> None:
        """Reset all metrics (useful for testing)."""
        self.tool_latencies.clear()
        self.tool_retries.clear()
        self.tool_errors.clear()
        self.tool_cache_hits.clear()
        self.breaker_opens.clear()
        self.breaker_states.clear()
        self.stage_latencies.clear()
        self.match_provenance.clear()
        self.background_ok.clear()
        self.background_failed.clear()
        self.run_latencies.clear()
        self.budget_overruns = 0
