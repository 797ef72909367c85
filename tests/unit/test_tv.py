"""Unit tests for the TV feed filters."""

import pytest

from decision_maker.core.constants import KEY_TV_FEED_FILTERS
from decision_maker.panels.tv import (
    FeedFilters,
    apply_feed_filters,
    clear_feed_filters,
    load_feed_filters,
    sanitize_feed_filters,
    update_feed_filters,
)
from decision_maker.storage.kv import MemoryStore, get_json


def _show(show_id, rating=7.0, votes=100, first_air_date="2015-01-01", genre_ids=None, genres=None):
    show = {"id": show_id, "vote_average": rating, "vote_count": votes, "first_air_date": first_air_date}
    if genre_ids is not None:
        show["genre_ids"] = genre_ids
    if genres is not None:
        show["genres"] = genres
    return show


class TestSanitize:
    def test_comma_decimal_rating(self):
        assert sanitize_feed_filters({"minRating": "7,5"}).min_rating == 7.5

    @pytest.mark.parametrize("raw, expected", [(12, 10.0), (-1, 0.0), ("abc", None), (None, None)])
    def test_rating_is_clamped_or_dropped(self, raw, expected):
        assert sanitize_feed_filters({"minRating": raw}).min_rating == expected

    def test_negative_votes_become_zero(self):
        assert sanitize_feed_filters({"minVotes": "-20"}).min_votes == 0

    def test_unparseable_values_are_dropped(self):
        filters = sanitize_feed_filters({"startYear": "soon", "genreId": "", "minVotes": []})
        assert filters == FeedFilters()
        assert not filters.active

    @pytest.mark.parametrize("raw", ["80, 16,x,80", [80, "16", None, 80]])
    def test_excluded_ids(self, raw):
        assert sanitize_feed_filters({"excludedGenreIds": raw}).excluded_genre_ids == (16, 80)

    def test_not_a_dict(self):
        assert sanitize_feed_filters(["minRating", 5]) == FeedFilters()


class TestYearRange:
    def test_reversed_range_is_swapped(self):
        assert FeedFilters(start_year=2020, end_year=2010).year_range() == (2010, 2020)

    def test_clamped(self):
        assert FeedFilters(start_year=12, end_year=99999).year_range() == (1800, 3000)

    def test_open_ended(self):
        assert FeedFilters(end_year=2000).year_range() == (None, 2000)


def test_discover_params():
    assert FeedFilters().discover_params() == []
    assert FeedFilters(min_rating=8, genre_id=18, excluded_genre_ids=(16, 99)).discover_params() == [
        ("with_genres", "18"),
        ("without_genres", "16,99"),
    ]


class TestApply:
    def test_inactive_filters_keep_everything(self):
        shows = [_show(1), _show(2, rating=None)]
        assert apply_feed_filters(shows, FeedFilters()) == shows

    def test_rating_and_votes(self):
        shows = [_show(1, rating=8.1), _show(2, rating=6.9), _show(3, rating=9, votes=3), _show(4, rating=None)]
        kept = apply_feed_filters(shows, FeedFilters(min_rating=7, min_votes=10))
        assert [s["id"] for s in kept] == [1]

    def test_years_need_a_first_air_date(self):
        shows = [_show(1, first_air_date="2019-05-01"), _show(2, first_air_date=""), _show(3, first_air_date="2001-01-01")]
        kept = apply_feed_filters(shows, FeedFilters(start_year=2020, end_year=2015))
        assert [s["id"] for s in kept] == [1]

    def test_genre_objects_count(self):
        shows = [
            _show(1, genres=[{"id": 18, "name": "Drama"}]),
            _show(2, genre_ids=[35]),
            _show(3, genre_ids=[18, 80]),
        ]
        kept = apply_feed_filters(shows, FeedFilters(genre_id=18, excluded_genre_ids=(80,)))
        assert [s["id"] for s in kept] == [1]


class TestStoredFilters:
    def test_update_merges_with_stored_values(self):
        store = MemoryStore()
        update_feed_filters(store, {"minRating": 7})

        filters = update_feed_filters(store, {"genreId": "35"})

        assert (filters.min_rating, filters.genre_id) == (7.0, 35)
        assert load_feed_filters(store) == filters
        assert get_json(store, KEY_TV_FEED_FILTERS)["genreId"] == 35

    def test_none_clears_a_single_filter(self):
        store = MemoryStore()
        update_feed_filters(store, {"minRating": 7, "genreId": 35})

        filters = update_feed_filters(store, {"genreId": None})

        assert (filters.min_rating, filters.genre_id) == (7.0, None)

    def test_clear(self):
        store = MemoryStore()
        update_feed_filters(store, {"minVotes": 50})

        assert clear_feed_filters(store) == FeedFilters()
        assert get_json(store, KEY_TV_FEED_FILTERS) is None
        assert load_feed_filters(store) == FeedFilters()
