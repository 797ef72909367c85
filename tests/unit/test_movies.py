"""Unit tests for movie ranking, credits and the saved lists."""

from datetime import datetime, timezone

import pytest

from decision_maker.integrations.tmdb import TmdbProxy
from decision_maker.panels.movies import (
    DirectSource,
    ProxySource,
    apply_credits,
    apply_priority_ordering,
    effective_rating,
    feed_movies,
    get_name_list,
    interested_list,
    meets_quality_threshold,
    priority_score,
    resolve_source,
    restore_into_feed,
    select_priority_candidates,
    summarize_movie,
    suppressed_ids,
    watched_list,
)

from tests.fakes.tmdb_stub import GOOD_MOVIES, credits, movie

NOW = datetime(2026, 10, 19, tzinfo=timezone.utc)


class TestQualityThresholds:
    def test_meets_quality_threshold(self):
        assert meets_quality_threshold(movie(1, "A", vote_average=7.0, vote_count=50))
        assert not meets_quality_threshold(movie(1, "A", vote_average=6.9, vote_count=500))
        assert not meets_quality_threshold(movie(1, "A", vote_average=9.0, vote_count=49))
        assert not meets_quality_threshold("not a movie")

    def test_strict_bar_when_enough_pass(self):
        weak = movie(1, "Weak", vote_average=6.2, vote_count=20)
        assert select_priority_candidates(GOOD_MOVIES + [weak]) == GOOD_MOVIES

    def test_first_non_empty_step_wins(self):
        """Relaxing further does not help when nothing reaches twelve."""
        decent = movie(1, "Decent", vote_average=7.2, vote_count=60)
        weak = movie(2, "Weak", vote_average=6.2, vote_count=20)
        assert select_priority_candidates([decent, weak]) == [decent]

    def test_any_numeric_movie_when_every_step_is_empty(self):
        poor = movie(1, "Poor", vote_average=5.0, vote_count=5)
        broken = {"id": 2, "title": "Broken", "vote_average": None, "vote_count": 3}
        assert select_priority_candidates([poor, broken]) == [poor]

    def test_empty(self):
        assert select_priority_candidates([]) == []


class TestPriority:
    def test_perfect_recent_movie_scores_one(self):
        perfect = movie(1, "Perfect", vote_average=10, vote_count=999, release_date="2026-10-19")
        assert priority_score(perfect, 999, NOW) == pytest.approx(1.0)

    def test_unknown_release_date_is_neutral(self):
        undated = movie(1, "Undated", vote_average=10, vote_count=999, release_date="")
        assert priority_score(undated, 999, NOW) == pytest.approx(0.9)

    def test_ordering_is_best_first_and_tagged(self):
        ranked = apply_priority_ordering(GOOD_MOVIES, now=NOW)
        priorities = [m["priority"] for m in ranked]
        assert priorities == sorted(priorities, reverse=True)
        assert ranked[0]["id"] == GOOD_MOVIES[-1]["id"]
        assert "priority" not in GOOD_MOVIES[0]

    def test_restore_into_feed_skips_quality_filter(self):
        feed = apply_priority_ordering(GOOD_MOVIES, now=NOW)
        obscure = movie(5, "Obscure", vote_average=4.0, vote_count=3)
        restored = restore_into_feed(obscure, feed, now=NOW)
        assert len(restored) == len(feed) + 1
        assert restored[-1]["id"] == 5
        assert "priority" in restored[-1]


class TestCredits:
    def test_top_five_cast_and_unique_directors(self):
        enriched = apply_credits(movie(1, "A"), credits(1))
        assert enriched["topCast"] == ["Actor One", "Actor Two", "Actor Three", "Actor Four", "Actor Five"]
        assert enriched["directors"] == ["Director A"]

    def test_no_credits(self):
        original = movie(1, "A")
        assert apply_credits(original, None) is original

    def test_get_name_list(self):
        assert get_name_list("A, B ,") == ["A", "B"]
        assert get_name_list([" A ", {"name": "B"}, {"job": "x"}, 3]) == ["A", "B"]
        assert get_name_list(None) == []

    def test_summarize_movie(self):
        summary = summarize_movie(dict(movie(1, "A"), topCast="X, Y", directors=["D1", "D2", "D3", "D4"]))
        assert summary["title"] == "A"
        assert summary["topCast"] == ["X", "Y"]
        assert summary["directors"] == ["D1", "D2", "D3"]
        assert summary["genre_ids"] == [18]


def _pref(status, updated, rating=None, average=None, count=None, interest=None, genres=None):
    snapshot = {"id": updated, "vote_average": average, "vote_count": count, "genre_ids": genres or []}
    entry = {"status": status, "updatedAt": updated, "movie": snapshot}
    if rating is not None:
        entry["userRating"] = rating
    if interest is not None:
        entry["interest"] = interest
    return entry


class TestSavedLists:
    PREFS = {
        "1": _pref("watched", 1, rating=9, average=5, count=100),
        "2": _pref("watched", 2, average=8, count=10),
        "3": _pref("watched", 3, average=8, count=300),
        "4": _pref("watched", 4),
        "5": {"status": "notInterested", "updatedAt": 5},
        "6": _pref("interested", 6, interest=2, genres=[35]),
        "7": _pref("interested", 7, interest=5, genres=[18]),
        "8": _pref("interested", 8, interest=5, genres=[35]),
    }

    def _ids(self, entries):
        return [e["updatedAt"] for e in entries]

    def test_watched_recent(self):
        assert self._ids(watched_list(self.PREFS)) == [4, 3, 2, 1]

    def test_watched_rating_desc(self):
        """User rating wins over the TMDB average; ties fall back to vote count."""
        assert self._ids(watched_list(self.PREFS, "ratingDesc")) == [1, 3, 2, 4]

    def test_watched_rating_asc_keeps_unrated_last(self):
        assert self._ids(watched_list(self.PREFS, "ratingAsc")) == [2, 3, 1, 4]

    def test_interested_by_interest_then_recency(self):
        assert self._ids(interested_list(self.PREFS)) == [8, 7, 6]

    def test_interested_genre_filter(self):
        genres = {18: "Drama", 35: "Comedy"}
        assert self._ids(interested_list(self.PREFS, "Comedy", genres)) == [8, 6]

    def test_effective_rating(self):
        assert effective_rating(self.PREFS["1"]) == 9
        assert effective_rating(self.PREFS["2"]) == 8
        assert effective_rating(self.PREFS["4"]) is None

    def test_feed_hides_every_status(self):
        assert suppressed_ids(self.PREFS) == {"1", "2", "3", "4", "5", "6", "7", "8"}
        feed = [{"id": 5}, {"id": 99}]
        assert feed_movies(feed, self.PREFS) == [{"id": 99}]


class TestResolveSource:
    def test_proxy_with_server_key(self, session_state):
        source = resolve_source(session_state, TmdbProxy(api_key="server"))
        assert isinstance(source, ProxySource)

    def test_user_key_is_remembered(self, session_state):
        source = resolve_source(session_state, TmdbProxy(api_key=""), " user-key ")
        assert isinstance(source, DirectSource)
        assert source.api_key == "user-key"
        again = resolve_source(session_state, None)
        assert isinstance(again, DirectSource)
        assert again.api_key == "user-key"

    def test_no_key(self, session_state):
        assert resolve_source(session_state, TmdbProxy(api_key="")) is None
