"""
TV panel.

Runs the movie feed machinery against TMDB's TV endpoints with its own
preference domain. On top of that the feed can be narrowed by rating, vote
count, first-air year range, a required genre and excluded genres; the genre
filters are also sent to ``discover/tv`` so the pages fetched already match.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Iterable

from decision_maker.core.constants import (
    DOMAIN_TV,
    KEY_MOVIES_API_KEY,
    KEY_TV_API_KEY,
    KEY_TV_FEED_FILTERS,
    KEY_TV_PREFS,
    MAX_FILTER_YEAR,
    MIN_FILTER_YEAR,
)
from decision_maker.core.validation import clamp, parse_float, parse_int
from decision_maker.integrations import tmdb
from decision_maker.panels import movies
from decision_maker.panels.movies import Catalog, MoviesResult
from decision_maker.services.session import SessionState
from decision_maker.storage.kv import KeyValueStore, get_json, set_json

logger = logging.getLogger(__name__)

MSG_FAILED = "Failed to load TV shows."

TV = Catalog(
    media="tv",
    domain=DOMAIN_TV,
    prefs_key=KEY_TV_PREFS,
    api_key_keys=(KEY_TV_API_KEY, KEY_MOVIES_API_KEY),
    feed_attr="tv_feed",
    discover_endpoint="discover_tv",
    genres_endpoint="tv_genres",
    credits_endpoint="tv_credits",
    credits_id_param="tv_id",
    details_endpoint="tv_details",
    failed_message=MSG_FAILED,
)


# -------------------------
# Feed filters
# -------------------------

@dataclass(frozen=True)
class FeedFilters:
    min_rating: float | None = None
    min_votes: int | None = None
    start_year: int | None = None
    end_year: int | None = None
    genre_id: int | None = None
    excluded_genre_ids: tuple[int, ...] = ()

    @property
    def active(self) -> bool:
        return self != FeedFilters()

    def year_range(self) -> tuple[int | None, int | None]:
        """Clamped to ``MIN_FILTER_YEAR``..``MAX_FILTER_YEAR``; a reversed range is swapped."""
        start, end = (
            int(clamp(year, MIN_FILTER_YEAR, MAX_FILTER_YEAR)) if year is not None else None
            for year in (self.start_year, self.end_year)
        )
        if start is not None and end is not None and end < start:
            start, end = end, start
        return start, end

    def discover_params(self) -> list[tuple[str, str]]:
        params: list[tuple[str, str]] = []
        if self.genre_id is not None:
            params.append(("with_genres", str(self.genre_id)))
        if self.excluded_genre_ids:
            params.append(("without_genres", ",".join(str(g) for g in self.excluded_genre_ids)))
        return params

    def to_dict(self) -> dict[str, Any]:
        return {
            "minRating": self.min_rating,
            "minVotes": self.min_votes,
            "startYear": self.start_year,
            "endYear": self.end_year,
            "genreId": self.genre_id,
            "excludedGenreIds": list(self.excluded_genre_ids),
        }


def _parse_rating(value: Any) -> float | None:
    if isinstance(value, str):
        value = value.strip().replace(",", ".")
    number = parse_float(value)
    return clamp(number, 0.0, 10.0) if number is not None else None


def _parse_id_list(value: Any) -> tuple[int, ...]:
    if value is None:
        return ()
    entries = value if isinstance(value, (list, tuple)) else str(value).split(",")
    ids = {parse_int(entry) for entry in entries}
    return tuple(sorted(i for i in ids if i is not None))


def sanitize_feed_filters(raw: Any) -> FeedFilters:
    """Unparseable values are dropped rather than rejected."""
    if not isinstance(raw, dict):
        return FeedFilters()
    votes = parse_int(raw.get("minVotes"))
    return FeedFilters(
        min_rating=_parse_rating(raw.get("minRating")),
        min_votes=max(0, votes) if votes is not None else None,
        start_year=parse_int(raw.get("startYear")),
        end_year=parse_int(raw.get("endYear")),
        genre_id=parse_int(raw.get("genreId")),
        excluded_genre_ids=_parse_id_list(raw.get("excludedGenreIds")),
    )


def load_feed_filters(store: KeyValueStore) -> FeedFilters:
    return sanitize_feed_filters(get_json(store, KEY_TV_FEED_FILTERS, None))


def update_feed_filters(store: KeyValueStore, partial: dict[str, Any]) -> FeedFilters:
    merged = {**load_feed_filters(store).to_dict(), **partial}
    filters = sanitize_feed_filters(merged)
    set_json(store, KEY_TV_FEED_FILTERS, filters.to_dict())
    return filters


def clear_feed_filters(store: KeyValueStore) -> FeedFilters:
    store.remove(KEY_TV_FEED_FILTERS)
    return FeedFilters()


def _first_air_year(show: dict[str, Any]) -> int | None:
    raw = str(show.get("first_air_date") or show.get("release_date") or "").strip()
    return parse_int(raw[:4]) if raw else None


def _genre_ids(show: dict[str, Any]) -> set[int]:
    raw = list(show.get("genre_ids") or [])
    raw += [g.get("id") for g in show.get("genres") or [] if isinstance(g, dict)]
    return {i for i in (parse_int(g) for g in raw) if i is not None}


def matches_feed_filters(show: dict[str, Any], filters: FeedFilters) -> bool:
    if filters.min_rating is not None:
        rating = parse_float(show.get("vote_average"))
        if rating is None or rating < filters.min_rating:
            return False
    if filters.min_votes is not None:
        votes = parse_float(show.get("vote_count"))
        if votes is None or votes < filters.min_votes:
            return False

    start, end = filters.year_range()
    if start is not None or end is not None:
        year = _first_air_year(show)
        if year is None:
            return False
        if start is not None and year < start:
            return False
        if end is not None and year > end:
            return False

    if filters.genre_id is not None or filters.excluded_genre_ids:
        ids = _genre_ids(show)
        if filters.genre_id is not None and filters.genre_id not in ids:
            return False
        if ids.intersection(filters.excluded_genre_ids):
            return False
    return True


def apply_feed_filters(shows: list[dict[str, Any]], filters: FeedFilters) -> list[dict[str, Any]]:
    if not filters.active:
        return list(shows)
    return [s for s in shows if matches_feed_filters(s, filters)]


# -------------------------
# Panel operations
# -------------------------

async def load_tv(
    session: SessionState,
    proxy: tmdb.TmdbProxy | None = None,
    api_key: str | None = None,
    watched_sort: str = "recent",
    selected_genres: Iterable[str] | None = None,
    filters: FeedFilters | None = None,
) -> MoviesResult:
    """The session keeps the unfiltered feed; the filters only shape what is returned."""
    filters = filters if filters is not None else load_feed_filters(session.store)
    result = await movies.load_movies(
        session,
        proxy,
        api_key=api_key,
        watched_sort=watched_sort,
        selected_genres=selected_genres,
        catalog=TV,
        discover_params=filters.discover_params(),
    )
    feed = apply_feed_filters(result.feed, filters)
    if len(feed) != len(result.feed):
        logger.info("TV feed filters kept %d of %d shows", len(feed), len(result.feed))
    return replace(result, feed=feed)


def resolve_source(session: SessionState, proxy: tmdb.TmdbProxy | None) -> movies.MovieSource | None:
    return movies.resolve_source(session, proxy, catalog=TV)


async def set_status(
    session: SessionState,
    show: dict[str, Any],
    status: str,
    interest: int | None = None,
    source: movies.MovieSource | None = None,
) -> dict[str, Any]:
    return await movies.set_status(session, show, status, interest=interest, source=source, catalog=TV)


async def set_user_rating(session: SessionState, show_id: Any, rating: Any) -> dict[str, Any] | None:
    return await movies.set_user_rating(session, show_id, rating, catalog=TV)


async def clear_status(session: SessionState, show_id: Any) -> list[dict[str, Any]]:
    feed = await movies.clear_status(session, show_id, catalog=TV)
    return apply_feed_filters(feed, load_feed_filters(session.store))


async def saved_shows(
    session: SessionState,
    proxy: tmdb.TmdbProxy | None = None,
    selected_genres: Iterable[str] | None = None,
) -> dict[str, list[dict[str, Any]]]:
    return await movies.saved_movies(session, proxy, selected_genres, catalog=TV)
