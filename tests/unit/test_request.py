"""Tests for trip request validation."""

from datetime import date, time

import pytest
from pydantic import ValidationError

from backend.tripgen.models.common import (
    BudgetTier,
    MobilityStyle,
    Pace,
    PartyType,
    parse_hhmm,
    time_from_minutes,
)
from backend.tripgen.models.request import DayLodging, Lodging, TripRequest


def _request(**overrides) -> TripRequest:
    fields = {
        "destination": "Paris",
        "start_date": date(2026, 5, 1),
        "end_date": date(2026, 5, 3),
    }
    fields.update(overrides)
    return TripRequest(**fields)


@pytest.mark.unit
class TestTripRequest:
    """Tests for TripRequest parsing and validation."""

    def test_defaults(self):
        request = _request()

        assert request.start_time == time(9, 0)
        assert request.end_time == time(21, 0)
        assert request.party_type == PartyType.couple
        assert request.pace == Pace.normal
        assert request.mobility == MobilityStyle.moderate
        assert request.budget_tier == BudgetTier.reasonable
        assert request.preference_tags == ["Foodie", "Culture", "Healing"]
        assert request.day_count == 3

    def test_loose_labels_are_coerced(self):
        """Labels in other casings or separators map onto the enums."""
        request = _request(
            party_type="Extended-Family",
            pace="RELAXED",
            mobility="WalkMore",
            budget_tier="Luxury",
            start_time="8:30",
        )

        assert request.party_type == PartyType.extended_family
        assert request.pace == Pace.relaxed
        assert request.mobility == MobilityStyle.walk_more
        assert request.budget_tier == BudgetTier.luxury
        assert request.start_time == time(8, 30)

    def test_blank_tags_fall_back_to_defaults(self):
        assert _request(preference_tags=["", "  "]).preference_tags == [
            "Foodie",
            "Culture",
            "Healing",
        ]

    def test_home_currency_normalised(self):
        assert _request(home_currency=" krw ").home_currency == "KRW"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"end_date": date(2026, 4, 30)},
            {"end_time": "00:00"},
            {"start_time": "23:59"},
            {"end_date": date(2026, 5, 1), "start_time": "15:00", "end_time": "14:00"},
            {"start_time": "25:00"},
            {"pace": "sprint"},
            {"home_currency": "EURO"},
            {"party_count": 0},
            {"destination": ""},
        ],
    )
    def test_rejects_invalid_requests(self, overrides):
        with pytest.raises(ValidationError):
            _request(**overrides)

    def test_request_is_immutable(self):
        request = _request()

        with pytest.raises(ValidationError):
            request.destination = "Lyon"

    def test_lodging_for_day(self):
        request = _request(
            lodging=Lodging(name="Hotel du Louvre"),
            day_lodging=[DayLodging(day=3, name="Airport Hotel")],
        )

        assert request.lodging_for_day(1).name == "Hotel du Louvre"
        assert request.lodging_for_day(3).name == "Airport Hotel"
        assert _request().lodging_for_day(1) is None


@pytest.mark.unit
class TestClockHelpers:
    """Tests for clock parsing helpers."""

    @pytest.mark.parametrize(
        "text,expected",
        [("09:00", time(9, 0)), ("9:05", time(9, 5)), (" 23:59 ", time(23, 59)), ("10:30:00", time(10, 30))],
    )
    def test_parse_hhmm(self, text, expected):
        assert parse_hhmm(text) == expected

    @pytest.mark.parametrize("text", ["9", "24:00", "12:60", "noon"])
    def test_parse_hhmm_rejects(self, text):
        with pytest.raises(ValueError):
            parse_hhmm(text)

    def test_time_from_minutes_clamps(self):
        assert time_from_minutes(-5) == time(0, 0)
        assert time_from_minutes(24 * 60 + 30) == time(23, 59)
        assert time_from_minutes(810) == time(13, 30)
