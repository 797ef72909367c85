"""Unit tests for constants."""

from decision_maker.core import constants


class TestConstants:
    """Test that constants are defined and have expected types."""

    def test_status_constants(self):
        """Test status constants are strings."""
        assert constants.EVENT_STATUSES == ("interested", "notInterested")
        assert set(constants.MOVIE_STATUSES) == {"interested", "notInterested", "watched"}

    def test_shows_radius_bounds(self):
        assert constants.MIN_SHOWS_RADIUS_MILES < constants.DEFAULT_SHOWS_RADIUS_MILES < constants.MAX_SHOWS_RADIUS_MILES
        assert isinstance(constants.DEFAULT_ARTIST_LIMIT, int)
        assert 1 <= constants.DEFAULT_ARTIST_LIMIT <= constants.MAX_ARTIST_SCAN_LIMIT

    def test_cache_ttls(self):
        """Test cache lifetimes are positive."""
        assert constants.TICKETMASTER_CACHE_TTL_SECONDS == 15 * 60
        assert constants.EVENTBRITE_CACHE_TTL_SECONDS == 24 * 60 * 60
        assert constants.YELP_CACHE_TTL_SECONDS == 30 * 60
        assert constants.TMDB_CACHE_TTL_SECONDS > 0
        assert constants.SPOONACULAR_CACHE_TTL_SECONDS > 0

    def test_yelp_limits(self):
        assert constants.YELP_MAX_PAGE_LIMIT <= constants.YELP_DEFAULT_TOTAL_LIMIT <= constants.YELP_ABSOLUTE_MAX_LIMIT
        assert constants.YELP_MAX_RADIUS_METERS == 40000

    def test_movie_constants(self):
        """Test movie feed constants."""
        assert constants.INITIAL_DISCOVER_PAGES <= constants.MAX_DISCOVER_PAGES <= constants.MAX_DISCOVER_PAGES_LIMIT
        assert isinstance(constants.MIN_VOTE_AVERAGE, float)
        assert constants.MIN_USER_RATING < constants.MAX_USER_RATING
