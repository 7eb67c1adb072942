"""Async tool executor with timeout, retry, circuit breaker, and cache support."""

import asyncio
import hashlib
import inspect
import json
import logging
import random
import threading
import time
from collections import deque
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol

from backend.tripgen.config import Settings
from backend.tripgen.exec.types import (
    BreakerPolicy,
    CachePolicy,
    CircuitBreakerState,
    ExecutorErrorKind,
    ToolCallable,
    ToolResult,
)
from backend.tripgen.metrics.core import record_tool_call
from backend.tripgen.metrics.registry import MetricsClient

logger = logging.getLogger(__name__)


class SimpleCache(Protocol):
    """Simple cache interface for tool results."""

    def get(self, key: str) -> dict[str, Any] | None:
        """Get value from cache.

        Args:
            key: Cache key.

        Returns:
            Cached value or None if not found/expired.
        """
        ...

    def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        """Set value in cache with TTL.

        Args:
            key: Cache key.
            value: Value to cache.
            ttl_seconds: Time-to-live in seconds.
        """
        ...


class InMemoryCache:
    """Simple in-memory cache with TTL support."""

    def __init__(self) -> None:
        """Initialize cache."""
        self._store: dict[str, tuple[dict[str, Any], datetime]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> dict[str, Any] | None:
        """Get value from cache if not expired."""
        with self._lock:
            if key not in self._store:
                return None
            value, expires_at = self._store[key]
            if datetime.now(UTC) > expires_at:
                del self._store[key]
                return None
            return value

    def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        """Set value in cache with TTL."""
        with self._lock:
            expires_at = datetime.now(UTC) + timedelta(seconds=ttl_seconds)
            self._store[key] = (value, expires_at)


class CircuitBreaker:
    """Circuit breaker for a single tool."""

    def __init__(
        self,
        failure_threshold: int,
        timeout_seconds: int,
        half_open_timeout_seconds: int = 30,
    ) -> None:
        """Initialize circuit breaker.

        Args:
            failure_threshold: Number of failures before opening.
            timeout_seconds: Window size for counting failures.
            half_open_timeout_seconds: Time before allowing probe in half-open state.
        """
        self.failure_threshold = failure_threshold
        self.timeout_seconds = timeout_seconds
        self.half_open_timeout_seconds = half_open_timeout_seconds
        self.failures: deque[datetime] = deque()
        self.state: str = "closed"  # closed, open, half_open
        self.opened_at: datetime | None = None
        self.lock = threading.Lock()

    def _clean_old_failures(self) -> None:
        """Remove failures outside the timeout window."""
        cutoff = datetime.now(UTC) - timedelta(seconds=self.timeout_seconds)
        while self.failures and self.failures[0] < cutoff:
            self.failures.popleft()

    def is_open(self) -> bool:
        """Check if circuit breaker is open."""
        with self.lock:
            if self.state == "closed":
                return False

            if self.state == "open":
                # Check if we should transition to half-open
                if self.opened_at and datetime.now(UTC) - self.opened_at >= timedelta(
                    seconds=self.half_open_timeout_seconds
                ):
                    self.state = "half_open"
                    return False
                return True

            # half_open state: allow probe
            return False

    def retry_after_seconds(self) -> int:
        """Seconds until the next probe is allowed."""
        with self.lock:
            if self.opened_at is None:
                return 0
            elapsed = (datetime.now(UTC) - self.opened_at).total_seconds()
            return max(0, int(self.half_open_timeout_seconds - elapsed))

    def record_failure(self) -> bool:
        """Record a failure.

        Returns:
            True if this failure opened the breaker.
        """
        with self.lock:
            self.failures.append(datetime.now(UTC))
            self._clean_old_failures()

            if self.state == "half_open":
                # Failed probe, go back to open
                self.state = "open"
                self.opened_at = datetime.now(UTC)
                return True
            if self.state == "closed" and len(self.failures) >= self.failure_threshold:
                self.state = "open"
                self.opened_at = datetime.now(UTC)
                return True
            return False

    def record_success(self) -> None:
        """Record a success."""
        with self.lock:
            if self.state == "half_open":
                # Successful probe, close the breaker
                self.state = "closed"
                self.failures.clear()
                self.opened_at = None

    def snapshot(self) -> CircuitBreakerState:
        """Return the breaker state as a model."""
        with self.lock:
            return CircuitBreakerState(
                failures=len(self.failures),
                opened_at=self.opened_at,
                state=self.state,  # type: ignore[arg-type]
            )


class ToolExecutor:
    """Async tool executor with timeout, retry, circuit breaker, and cache.

    Tools are plain callables taking an args dict; coroutine functions are
    awaited directly and sync functions run in a worker thread so timeouts
    still apply. Tool exceptions never escape: they are reported through
    ``ToolResult.status`` and ``ToolResult.error``.
    """

    def __init__(
        self,
        settings: Settings,
        cache: SimpleCache | None = None,
        rng: random.Random | None = None,
        metrics: MetricsClient | None = None,
    ) -> None:
        """Initialize tool executor.

        Args:
            settings: Application settings.
            cache: Optional cache for tool results.
            rng: Optional random number generator for jitter (for testing).
            metrics: Optional in-process metrics client.
        """
        self.settings = settings
        self.cache = cache if cache is not None else InMemoryCache()
        self.rng = rng or random.Random()
        self.metrics = metrics
        self.breakers: dict[str, CircuitBreaker] = {}

    def _breaker_for(self, name: str, policy: BreakerPolicy | None) -> CircuitBreaker:
        if name not in self.breakers:
            if policy is None:
                policy = BreakerPolicy(
                    failure_threshold=self.settings.breaker_failure_threshold,
                    window_seconds=self.settings.breaker_timeout_s,
                )
            self.breakers[name] = CircuitBreaker(
                failure_threshold=policy.failure_threshold,
                timeout_seconds=policy.window_seconds,
                half_open_timeout_seconds=policy.cooldown_seconds,
            )
        return self.breakers[name]

    @staticmethod
    def compute_cache_key(name: str, args: dict[str, Any]) -> str:
        """Compute deterministic cache key for a call.

        Args:
            name: Tool name.
            args: Tool arguments.

        Returns:
            SHA256 hex digest of sorted JSON.
        """
        cache_obj = {"name": name, "args": args}
        # Sort keys for deterministic JSON
        sorted_json = json.dumps(cache_obj, sort_keys=True, ensure_ascii=True, default=str)
        return hashlib.sha256(sorted_json.encode("utf-8")).hexdigest()

    async def _invoke(self, tool: ToolCallable, args: dict[str, Any]) -> dict[str, Any]:
        if inspect.iscoroutinefunction(tool):
            return await tool(args)
        result = await asyncio.to_thread(tool, args)
        if inspect.isawaitable(result):
            return await result
        return result

    def _record(
        self,
        name: str,
        start: float,
        ok: bool,
        from_cache: bool,
        retries: int,
        error_kind: ExecutorErrorKind | None,
    ) -> int:
        latency_ms = int((time.monotonic() - start) * 1000)
        record_tool_call(
            tool=name,
            latency_ms=latency_ms,
            ok=ok,
            from_cache=from_cache,
            retries=retries,
            error_kind=error_kind,
        )
        if self.metrics is not None:
            status = "ok" if ok else (error_kind or "error")
            self.metrics.observe_tool_latency(name, status, latency_ms)
            if retries:
                self.metrics.inc_tool_retries(name, retries)
            if from_cache:
                self.metrics.inc_tool_cache_hit(name)
            if error_kind is not None:
                self.metrics.inc_tool_errors(name, error_kind)
        return latency_ms

    async def execute(
        self,
        tool: ToolCallable,
        name: str,
        args: dict[str, Any],
        cache_policy: CachePolicy | None = None,
        breaker_policy: BreakerPolicy | None = None,
        soft_timeout_s: float | None = None,
        hard_timeout_s: float | None = None,
    ) -> ToolResult:
        """Execute a tool call with all policies applied.

        Args:
            tool: Callable taking the args dict and returning a result dict.
            name: Tool name used for breaker, cache and metrics.
            args: Arguments passed to the tool (must be JSON-serializable).
            cache_policy: Optional caching policy.
            breaker_policy: Optional breaker policy for a first-seen tool.
            soft_timeout_s: Per-attempt timeout (defaults to settings).
            hard_timeout_s: Overall timeout across attempts (defaults to settings).

        Returns:
            Tool result. Never raises for tool failures.
        """
        start = time.monotonic()
        breaker = self._breaker_for(name, breaker_policy)

        if breaker.is_open():
            latency_ms = self._record(name, start, False, False, 0, "breaker_open")
            return ToolResult(
                status="breaker_open",
                error={
                    "reason": "circuit_open",
                    "retry_after_seconds": breaker.retry_after_seconds(),
                },
                latency_ms=latency_ms,
            )

        cache_key: str | None = None
        if cache_policy is not None and cache_policy.enabled:
            cache_key = self.compute_cache_key(name, args)
            cached = self.cache.get(cache_key)
            if cached is not None:
                latency_ms = self._record(name, start, True, True, 0, None)
                return ToolResult(
                    status="success", data=cached, from_cache=True, latency_ms=latency_ms
                )

        soft = soft_timeout_s if soft_timeout_s is not None else self.settings.soft_timeout_s
        hard = hard_timeout_s if hard_timeout_s is not None else self.settings.hard_timeout_s

        result_data: dict[str, Any] | None = None
        error_msg: str | None = None
        error_kind: ExecutorErrorKind | None = None
        retries = 0

        for attempt in range(2):  # Initial + 1 retry = 2 total
            if time.monotonic() - start >= hard:
                error_msg = "hard_timeout"
                error_kind = "timeout_hard"
                break

            if attempt > 0:
                jitter_ms = self.rng.randint(
                    self.settings.retry_jitter_min_ms,
                    self.settings.retry_jitter_max_ms,
                )
                await asyncio.sleep(jitter_ms / 1000.0)

            remaining = hard - (time.monotonic() - start)
            if remaining <= 0:
                error_msg = "hard_timeout"
                error_kind = "timeout_hard"
                break
            timeout = min(soft, remaining)
            retries = attempt

            try:
                result_data = await asyncio.wait_for(self._invoke(tool, args), timeout)
            except TimeoutError:
                error_msg = "timeout"
                elapsed = time.monotonic() - start
                error_kind = "timeout_hard" if elapsed >= hard else "timeout_soft"
                continue
            except Exception as e:
                error_msg = str(e) or e.__class__.__name__
                error_kind = "tool_error"
                logger.debug(f"Tool {name} attempt {attempt + 1} failed: {error_msg}")
                continue

            breaker.record_success()
            error_msg = None
            error_kind = None
            break

        ok = result_data is not None
        if not ok:
            if breaker.record_failure():
                logger.warning(f"Circuit breaker opened for tool {name}")
                if self.metrics is not None:
                    self.metrics.inc_breaker_open(name)
            if self.metrics is not None:
                self.metrics.set_breaker_state(name, breaker.snapshot().state)

        latency_ms = self._record(name, start, ok, False, retries, error_kind)

        if ok and cache_key is not None and cache_policy is not None:
            self.cache.set(cache_key, result_data, cache_policy.ttl_seconds)

        if ok:
            return ToolResult(
                status="success", data=result_data, latency_ms=latency_ms, retries=retries
            )
        status = "timeout" if error_kind in ("timeout_soft", "timeout_hard") else "error"
        return ToolResult(
            status=status,
            error={"kind": error_kind, "message": error_msg},
            latency_ms=latency_ms,
            retries=retries,
        )
