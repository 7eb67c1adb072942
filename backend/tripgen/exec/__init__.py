"""Tool execution module with timeouts, retries, circuit breaking, and caching."""

from backend.tripgen.exec.executor import CircuitBreaker, InMemoryCache, ToolExecutor
from backend.tripgen.exec.types import (
    BreakerPolicy,
    CachePolicy,
    CircuitBreakerState,
    ToolCallable,
    ToolResult,
)

__all__ = [
    "ToolExecutor",
    "ToolCallable",
    "ToolResult",
    "CachePolicy",
    "BreakerPolicy",
    "CircuitBreaker",
    "CircuitBreakerState",
    "InMemoryCache",
]
