"""Unit tests for distance math."""

import pytest

from decision_maker.core.geo import haversine_miles, parse_coordinate, sort_by_distance, within_radius

from tests.fakes.event_stubs import AUSTIN, NEAR_AUSTIN, NEW_YORK


class TestHaversine:
    def test_same_point(self):
        assert haversine_miles(*AUSTIN, *AUSTIN) == 0

    def test_nearby_point(self):
        assert haversine_miles(*AUSTIN, *NEAR_AUSTIN) == pytest.approx(0.027, abs=0.01)

    def test_austin_to_new_york(self):
        assert haversine_miles(*AUSTIN, *NEW_YORK) > 1500

    def test_symmetric(self):
        assert haversine_miles(*AUSTIN, *NEW_YORK) == pytest.approx(haversine_miles(*NEW_YORK, *AUSTIN))


class TestWithinRadius:
    def test_radius_filter(self):
        """An event next door is kept, one across the country is not."""
        events = [{"id": "near", "at": NEAR_AUSTIN}, {"id": "far", "at": NEW_YORK}, {"id": "nowhere", "at": None}]
        kept = within_radius(AUSTIN, events, 300, lambda e: e["at"])
        assert [e["id"] for e, _ in kept] == ["near"]
        assert kept[0][1] < 0.1


class TestParseCoordinate:
    def test_values(self):
        assert parse_coordinate("30.5") == 30.5
        assert parse_coordinate(-97) == -97.0
        assert parse_coordinate("") is None
        assert parse_coordinate("north") is None
        assert parse_coordinate(None) is None
        assert parse_coordinate(False) is None
        assert parse_coordinate("inf") is None


class TestSortByDistance:
    def test_missing_distance_last_and_stable(self):
        items = [
            {"id": "a", "d": None, "o": 0},
            {"id": "b", "d": 5.0, "o": 1},
            {"id": "c", "d": 1.0, "o": 2},
            {"id": "d", "d": 5.0, "o": 3},
        ]
        ordered = sort_by_distance(items, lambda i: i["d"], lambda i: i["o"])
        assert [i["id"] for i in ordered] == ["c", "b", "d", "a"]
