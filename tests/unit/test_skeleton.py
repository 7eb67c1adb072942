"""Tests for the skeleton builder."""

from datetime import date, time, timedelta
from unittest.mock import AsyncMock

import pytest

from backend.tripgen.adapters.exceptions import AdapterError
from backend.tripgen.config import Settings
from backend.tripgen.models.request import TripRequest
from backend.tripgen.planning.skeleton import (
    build_skeleton,
    fetch_sentiment_bonus,
    party_size,
    tag_weights,
    weight_tags,
)


def _request(**overrides) -> TripRequest:
    fields = {
        "destination": "Paris",
        "start_date": date(2026, 5, 1),
        "end_date": date(2026, 5, 3),
    }
    fields.update(overrides)
    return TripRequest(**fields)


@pytest.mark.unit
class TestBuildSkeleton:
    """Tests for build_skeleton."""

    def test_paris_three_day_scenario(self, paris_request: TripRequest, settings: Settings):
        """First day starts and last day ends at the user's times."""
        skeleton = build_skeleton(paris_request, settings)

        assert len(skeleton.days) == 3
        assert skeleton.days[0].start_time == time(10, 0)
        assert skeleton.days[0].end_time == time(21, 0)
        assert skeleton.days[1].start_time == time(9, 0)
        assert skeleton.days[1].end_time == time(21, 0)
        assert skeleton.days[2].start_time == time(9, 0)
        assert skeleton.days[2].end_time == time(18, 0)
        # 660 / 120, 720 / 120, 540 / 120
        assert [d.slot_count for d in skeleton.days] == [5, 6, 4]
        assert skeleton.total_slots == 15
        assert skeleton.required_count == 19
        assert skeleton.party_size == 2
        assert skeleton.slot_minutes == 120
        assert [d.day_date for d in skeleton.days] == [
            date(2026, 5, 1),
            date(2026, 5, 2),
            date(2026, 5, 3),
        ]

    @pytest.mark.parametrize("pace", ["packed", "normal", "relaxed"])
    @pytest.mark.parametrize(
        "start_time,end_time,days",
        [
            ("09:00", "21:00", 1),
            ("06:00", "23:30", 2),
            ("22:30", "08:00", 2),
            ("23:00", "00:30", 3),
            ("13:15", "17:45", 5),
        ],
    )
    def test_slot_count_invariant(self, pace, start_time, end_time, days, settings):
        """Slots sum to required minus buffer and every window is forward."""
        request = _request(
            pace=pace,
            start_time=start_time,
            end_time=end_time,
            end_date=date(2026, 5, 1) + timedelta(days=days - 1),
        )

        skeleton = build_skeleton(request, settings)

        assert len(skeleton.days) == days
        assert sum(d.slot_count for d in skeleton.days) <= skeleton.required_count - 4
        for day in skeleton.days:
            assert time(0, 0) <= day.start_time < day.end_time
            assert day.slot_count >= 0

    def test_single_day_uses_both_user_times(self, settings: Settings):
        """A one-day trip uses the user's start and end."""
        request = _request(end_date=date(2026, 5, 1), start_time="11:00", end_time="15:00")

        skeleton = build_skeleton(request, settings)

        assert len(skeleton.days) == 1
        assert skeleton.days[0].start_time == time(11, 0)
        assert skeleton.days[0].end_time == time(15, 0)
        assert skeleton.days[0].slot_count == 2

    def test_late_arrival_stretches_first_day(self, settings: Settings):
        """A start after the default end still yields a forward window."""
        request = _request(start_time="22:00")

        skeleton = build_skeleton(request, settings)

        first = skeleton.days[0]
        assert first.start_time == time(22, 0)
        assert first.end_time == time(23, 59)
        assert first.slot_count == 0

    def test_early_departure_pulls_last_day_start(self, settings: Settings):
        """An end before the default start moves the last day's start back."""
        request = _request(end_time="08:00")

        skeleton = build_skeleton(request, settings)

        last = skeleton.days[-1]
        assert last.start_time == time(6, 0)
        assert last.end_time == time(8, 0)
        assert last.slot_count == 1

    def test_daily_cap_applies(self, settings: Settings):
        """Slots never exceed the pace's daily maximum."""
        request = _request(pace="relaxed", start_time="00:30", end_time="23:30")

        skeleton = build_skeleton(request, settings)

        assert all(d.slot_count <= 4 for d in skeleton.days)

    def test_buffer_comes_from_settings(self):
        """The candidate buffer is configurable."""
        settings = Settings(_env_file=None, candidate_buffer=6)

        skeleton = build_skeleton(_request(), settings)

        assert skeleton.required_count == skeleton.total_slots + 6


@pytest.mark.unit
class TestWeights:
    """Tests for tag weighting and party size."""

    @pytest.mark.parametrize(
        "count,expected",
        [(1, [100.0]), (2, [60.0, 40.0]), (3, [50.0, 30.0, 20.0])],
    )
    def test_table_weights(self, count, expected):
        assert tag_weights(count) == expected

    def test_long_lists_halve_and_normalise(self):
        """Extra tags get half the previous weight, renormalised to 100."""
        weights = tag_weights(5)

        assert sum(weights) == pytest.approx(100.0)
        assert weights == sorted(weights, reverse=True)
        assert weights[3] == pytest.approx(weights[2] / 2)
        assert weights[4] == pytest.approx(weights[3] / 2)

    def test_weight_tags_dedupes(self):
        """Case-insensitive repeats keep the first spelling."""
        weighted = weight_tags(["Foodie", "Culture", "foodie"])

        assert [w.tag for w in weighted] == ["Foodie", "Culture"]
        assert [w.percentage for w in weighted] == [60, 40]
        assert weighted[0].weight == pytest.approx(0.6)

    def test_default_tags_when_none_given(self, settings: Settings):
        """Requests without tags use the default set."""
        skeleton = build_skeleton(_request(preference_tags=[]), settings)

        assert [w.tag for w in skeleton.weighted_tags] == ["Foodie", "Culture", "Healing"]

    def test_omitted_tags_use_default_weights(self, settings: Settings):
        request = TripRequest(
            destination="Paris", start_date=date(2026, 5, 1), end_date=date(2026, 5, 3)
        )

        skeleton = build_skeleton(request, settings)

        assert [w.tag for w in skeleton.weighted_tags] == ["Foodie", "Culture", "Healing"]
        assert [w.percentage for w in skeleton.weighted_tags] == [50, 30, 20]

    @pytest.mark.parametrize(
        "party_type,expected",
        [("solo", 1), ("single", 1), ("couple", 2), ("Family", 4), ("extended_family", 8), ("group", 10)],
    )
    def test_party_size_from_type(self, party_type, expected):
        assert party_size(_request(party_type=party_type)) == expected

    def test_explicit_party_count_wins(self):
        assert party_size(_request(party_type="group", party_count=3)) == 3


@pytest.mark.unit
class TestSentimentBonus:
    """Tests for fetch_sentiment_bonus."""

    @pytest.mark.asyncio
    async def test_no_adapter(self):
        assert await fetch_sentiment_bonus(None, "Paris") is None

    @pytest.mark.asyncio
    async def test_returns_adapter_value(self):
        adapter = AsyncMock()
        adapter.destination_bonus.return_value = 1.5

        assert await fetch_sentiment_bonus(adapter, "Paris") == 1.5
        adapter.destination_bonus.assert_awaited_once_with("Paris")

    @pytest.mark.asyncio
    async def test_failure_yields_none(self):
        """Sentiment failures degrade to no bonus."""
        adapter = AsyncMock()
        adapter.destination_bonus.side_effect = AdapterError("down")

        assert await fetch_sentiment_bonus(adapter, "Paris") is None

    def test_with_sentiment_copies(self, paris_request, settings):
        """Attaching the bonus leaves the original skeleton untouched."""
        skeleton = build_skeleton(paris_request, settings)

        updated = skeleton.with_sentiment(0.7)

        assert updated.sentiment_bonus == 0.7
        assert skeleton.sentiment_bonus is None
        assert updated.days == skeleton.days
