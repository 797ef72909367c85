"""Unit tests for Yelp query building and business simplification."""

import pytest

from decision_maker.core.exceptions import ValidationError
from decision_maker.integrations.yelp import (
    build_restaurant_query,
    cache_key_parts,
    derive_service_options,
    parse_yelp_boolean,
    simplify_business,
)

from tests.fakes.food_stubs import DETAILS, business


class TestBuildRestaurantQuery:
    def test_requires_city_or_coordinates(self):
        with pytest.raises(ValidationError) as exc:
            build_restaurant_query(city="  ")
        assert exc.value.user_message == "missing_location"

    def test_half_coordinates_are_dropped(self):
        q = build_restaurant_query(city="Austin", latitude="30.2")
        assert not q.has_coords
        assert q.latitude is None and q.longitude is None

    def test_limits_and_radius(self):
        q = build_restaurant_query(latitude=30.2672, longitude=-97.7431, limit="500", radius="40")
        assert q.limit == 200
        assert q.radius_miles == 25.0
        assert q.radius_meters == 40000

        assert build_restaurant_query(city="Austin").limit == 120
        assert build_restaurant_query(city="Austin", radius="0").radius_miles is None
        assert build_restaurant_query(city="Austin", radius="10").radius_meters == 16093


class TestCacheKeyParts:
    def test_coordinates_and_lowercased_terms(self):
        q = build_restaurant_query(city="Austin", cuisine="Tacos", latitude=30.26721, longitude=-97.74309, limit=60)
        assert cache_key_parts(q) == [
            "yelp",
            "coords",
            "30.2672,-97.7431",
            "city:austin",
            "cuisine:tacos",
            "limit:60",
            "radius:none",
        ]

    def test_city_only(self):
        q = build_restaurant_query(city="Austin", radius=25)
        assert cache_key_parts(q) == ["yelp", "coords:none", "city:austin", "limit:120", "radius:25"]


class TestParseYelpBoolean:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (True, True),
            (1, True),
            ("Yes", True),
            (" y ", True),
            (False, False),
            (0, False),
            ("no", False),
            ("N", False),
            (2, None),
            ("maybe", None),
            (None, None),
            ({}, None),
        ],
    )
    def test_values(self, value, expected):
        assert parse_yelp_boolean(value) is expected


class TestDeriveServiceOptions:
    def test_unknown_when_nothing_is_said(self):
        assert derive_service_options({}, None) == {"takeout": None, "sitDown": None}

    def test_transactions(self):
        options = derive_service_options({"transactions": ["Pickup", "restaurant_reservation"]})
        assert options == {"takeout": True, "sitDown": True}

    def test_true_is_sticky(self):
        """A later False cannot override an earlier True."""
        details = {"transactions": ["delivery"], "attributes": {"RestaurantsTakeOut": False}}
        assert derive_service_options({}, details)["takeout"] is True

    def test_false_from_attributes(self):
        options = derive_service_options({"attributes": {"RestaurantsTableService": "false"}})
        assert options == {"takeout": None, "sitDown": False}

    def test_service_options_dine_in_camel_case(self):
        options = derive_service_options({}, {"service_options": {"dineIn": "1"}})
        assert options["sitDown"] is True


class TestSimplifyBusiness:
    def test_fields(self):
        simplified = simplify_business(business("b1", "Taco Stand", rating=4.5, review_count=320))
        assert simplified["id"] == "b1"
        assert simplified["address"] == "1 Main St, Austin, TX 78701"
        assert simplified["zip"] == "78701"
        assert simplified["phone"] == "(512) 555-0100"
        assert simplified["categories"] == ["Tacos", "Mexican"]
        assert simplified["reviewCount"] == 320
        assert simplified["distance"] == 1200.0
        assert "serviceOptions" not in simplified

    def test_service_options_from_details(self):
        simplified = simplify_business(business("b1", "Taco Stand"), DETAILS)
        assert simplified["serviceOptions"] == {"takeout": True, "sitDown": True}

    def test_non_numeric_coordinates_become_none(self):
        biz = business("b2", "Somewhere", distance=None)
        biz["coordinates"] = {"latitude": "30.1", "longitude": True}
        simplified = simplify_business(biz)
        assert simplified["latitude"] is None
        assert simplified["longitude"] is None
        assert simplified["distance"] is None

    def test_not_a_dict(self):
        assert simplify_business("b1") is None
