"""Daily quota gate for the paid search-augmented generation path."""

import logging
import threading
from collections import defaultdict
from collections.abc import Callable
from datetime import date
from typing import Protocol

from backend.tripgen.config import Settings, get_settings
from backend.tripgen.rate_limit.types import GateStatus

logger = logging.getLogger(__name__)


class SearchGate(Protocol):
    """Protocol for search quota implementations."""

    def try_acquire(self, source_tag: str) -> bool:
        """Consume one unit of today's quota if any is left.

        Args:
            source_tag: Caller label used for per-source accounting.

        Returns:
            True if the caller may use the search-augmented path.
        """
        ...


class SearchQuotaGate:
    """In-process daily counter with reset on date rollover.

    One instance is shared by every pipeline run in the process; tests
    construct their own.
    """

    def __init__(
        self,
        daily_limit: int,
        warn_ratio: float = 0.8,
        today: Callable[[], date] = date.today,
    ) -> None:
        """Initialize the gate.

        Args:
            daily_limit: Calls admitted per calendar day.
            warn_ratio: Usage ratio at which a warning is logged once.
            today: Clock used to detect rollover (injectable for tests).
        """
        self.daily_limit = daily_limit
        self.warn_ratio = warn_ratio
        self._today = today
        self._lock = threading.Lock()
        self._day = today()
        self._used = 0
        self._blocked = 0
        self._by_source: dict[str, int] = defaultdict(int)
        self._warned = False

    def _roll_over(self) -> None:
        """Reset counters if the calendar day changed. Caller holds the lock."""
        current = self._today()
        if current != self._day:
            logger.info(
                f"Search quota reset for {current.isoformat()} "
                f"(yesterday used={self._used}, blocked={self._blocked})"
            )
            self._day = current
            self._used = 0
            self._blocked = 0
            self._by_source.clear()
            self._warned = False

    def try_acquire(self, source_tag: str) -> bool:
        """Atomically check and consume one unit of today's quota."""
        with self._lock:
            self._roll_over()

            if self._used >= self.daily_limit:
                self._blocked += 1
                if self._blocked == 1:
                    logger.warning(
                        f"Search quota exhausted ({self._used}/{self.daily_limit}); "
                        f"refusing '{source_tag}'"
                    )
                return False

            self._used += 1
            self._by_source[source_tag] += 1

            if (
                not self._warned
                and self.daily_limit > 0
                and self._used >= self.daily_limit * self.warn_ratio
            ):
                self._warned = True
                logger.warning(
                    f"Search quota at {self._used}/{self.daily_limit} "
                    f"({self._used / self.daily_limit:.0%})"
                )
            return True

    def status(self) -> GateStatus:
        """Return a snapshot of today's counters."""
        with self._lock:
            self._roll_over()
            percent = (
                self._used / self.daily_limit * 100 if self.daily_limit > 0 else 100.0
            )
            return GateStatus(
                day=self._day,
                used=self._used,
                limit=self.daily_limit,
                blocked=self._blocked,
                remaining=max(0, self.daily_limit - self._used),
                percent_used=round(percent, 1),
                by_source=dict(self._by_source),
            )


_gate: SearchQuotaGate | None = None


def get_search_gate(settings: Settings | None = None) -> SearchQuotaGate:
    """Get the process-wide search gate, creating it on first use."""
    global _gate
    if _gate is None:
        settings = settings or get_settings()
        _gate = SearchQuotaGate(
            daily_limit=settings.search_daily_limit,
            warn_ratio=settings.search_warn_ratio,
        )
    return _gate
