"""Tests for the daily search quota gate."""

import logging
import threading
from datetime import date, timedelta

import pytest

from backend.tripgen.rate_limit.core import SearchQuotaGate


class FakeToday:
    """Controllable calendar for rollover tests."""

    def __init__(self, start: date) -> None:
        self.current = start

    def __call__(self) -> date:
        return self.current

    def advance(self, days: int = 1) -> None:
        self.current += timedelta(days=days)


@pytest.mark.unit
class TestSearchQuotaGate:
    """Tests for SearchQuotaGate."""

    def test_allows_calls_within_limit(self):
        """Calls under the daily limit are admitted."""
        gate = SearchQuotaGate(daily_limit=3)

        assert [gate.try_acquire("recommend") for _ in range(3)] == [True, True, True]
        assert gate.status().remaining == 0

    def test_blocks_after_limit(self):
        """The call after the limit is refused and counted as blocked."""
        gate = SearchQuotaGate(daily_limit=2)
        gate.try_acquire("recommend")
        gate.try_acquire("recommend")

        assert gate.try_acquire("recommend") is False
        assert gate.try_acquire("recommend") is False

        status = gate.status()
        assert status.used == 2
        assert status.blocked == 2
        assert status.percent_used == 100.0

    def test_zero_limit_blocks_everything(self):
        """A zero quota never admits a call."""
        gate = SearchQuotaGate(daily_limit=0)

        assert gate.try_acquire("recommend") is False

    def test_resets_on_new_day(self):
        """Counters reset when the calendar day changes."""
        today = FakeToday(date(2026, 5, 1))
        gate = SearchQuotaGate(daily_limit=1, today=today)
        assert gate.try_acquire("recommend") is True
        assert gate.try_acquire("recommend") is False

        today.advance()

        assert gate.try_acquire("recommend") is True
        status = gate.status()
        assert status.day == date(2026, 5, 2)
        assert status.used == 1
        assert status.blocked == 0

    def test_counts_by_source(self):
        """Usage is attributed to the caller's source tag."""
        gate = SearchQuotaGate(daily_limit=10)
        gate.try_acquire("recommend")
        gate.try_acquire("recommend")
        gate.try_acquire("refresh")

        assert gate.status().by_source == {"recommend": 2, "refresh": 1}

    def test_warns_once_at_ratio(self, caplog):
        """A single warning is logged when usage crosses the warn ratio."""
        gate = SearchQuotaGate(daily_limit=10, warn_ratio=0.8)

        with caplog.at_level(logging.WARNING, logger="backend.tripgen.rate_limit.core"):
            for _ in range(10):
                gate.try_acquire("recommend")

        quota_warnings = [r for r in caplog.records if "Search quota at" in r.getMessage()]
        assert len(quota_warnings) == 1
        assert "8/10" in quota_warnings[0].getMessage()

    def test_concurrent_acquire_never_exceeds_limit(self):
        """Concurrent callers cannot overshoot the limit."""
        gate = SearchQuotaGate(daily_limit=50)
        admitted: list[bool] = []
        lock = threading.Lock()

        def worker() -> None:
            for _ in range(20):
                ok = gate.try_acquire("recommend")
                with lock:
                    admitted.append(ok)

        threads = [threading.Thread(target=worker) for _ in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sum(admitted) == 50
        assert gate.status().blocked == 50
