"""
Movies panel.

The feed is built from TMDB ``discover/movie`` pages, filtered against the
user's preferences, ranked by a priority score and enriched with credits.
Preferences hold a snapshot of each movie so the interested and watched
lists render without another TMDB round trip.

TMDB is reached either through the in-process ``TmdbProxy`` (server key) or
directly with the user's own key; a failing proxy falls back to the direct
API when a user key is available.

Everything here is parametrized by a ``Catalog``; the TV panel reuses it with
the TV endpoints and its own preference domain.
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from functools import cmp_to_key
from typing import Any, Iterable, Protocol

from sqlalchemy.exc import SQLAlchemyError

from decision_maker.core.config import get_settings
from decision_maker.core.constants import (
    DEFAULT_INTEREST,
    DOMAIN_MOVIES,
    INITIAL_DISCOVER_PAGES,
    KEY_MOVIE_PREFS,
    KEY_MOVIES_API_KEY,
    MAX_CREDIT_REQUESTS,
    MAX_DISCOVER_PAGES,
    MAX_DISCOVER_PAGES_LIMIT,
    MIN_FEED_RESULTS,
    MIN_PRIORITY_RESULTS,
    MIN_VOTE_AVERAGE,
    MIN_VOTE_COUNT,
    MOVIE_STATUSES,
    STATUS_INTERESTED,
    STATUS_NOT_INTERESTED,
    STATUS_WATCHED,
)
from decision_maker.core.exceptions import DecisionMakerError, UpstreamError, ValidationError
from decision_maker.core.validation import clamp_user_rating, validate_status
from decision_maker.db.repositories import preferences as pref_repo
from decision_maker.db.session import get_sessionmaker
from decision_maker.integrations import tmdb
from decision_maker.services.session import SessionState
from decision_maker.storage.kv import get_json, get_text, set_json
from decision_maker.storage.preferences import now_ms

logger = logging.getLogger(__name__)

MSG_KEY_REQUIRED = "TMDB API key not provided."
MSG_PROXY_UNAVAILABLE = "TMDB proxy is unavailable. Please enter your TMDB API key to continue."
MSG_FAILED = "Failed to load movies."

SUPPRESSED_STATUSES = frozenset(MOVIE_STATUSES)
WATCHED_SORT_MODES = ("recent", "ratingDesc", "ratingAsc")

_YEAR_SECONDS = 365 * 24 * 60 * 60
_QUALITY_THRESHOLDS = (
    (MIN_VOTE_AVERAGE, MIN_VOTE_COUNT),
    (max(6.5, MIN_VOTE_AVERAGE - 0.5), max(25, MIN_VOTE_COUNT // 2)),
    (6.0, 10),
)


def _number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return result if math.isfinite(result) else None


def get_name_list(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [n.strip() for n in value.split(",") if n.strip()]
    if isinstance(value, list):
        names = []
        for entry in value:
            if isinstance(entry, str):
                names.append(entry.strip())
            elif isinstance(entry, dict) and isinstance(entry.get("name"), str):
                names.append(entry["name"].strip())
        return [n for n in names if n]
    return []


def meets_quality_threshold(movie: Any, min_average: float = MIN_VOTE_AVERAGE, min_votes: int = MIN_VOTE_COUNT) -> bool:
    if not isinstance(movie, dict):
        return False
    average = _number(movie.get("vote_average") or 0)
    votes = _number(movie.get("vote_count") or 0)
    if average is None or votes is None:
        return False
    return average >= min_average and votes >= min_votes


def select_priority_candidates(movies: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """
    Relax the quality bar step by step until at least ``MIN_PRIORITY_RESULTS``
    movies pass. If no step reaches that, the first non-empty step wins; if
    every step is empty, any movie with numeric vote fields is kept.
    """
    if not movies:
        return []

    best_fallback: list[dict[str, Any]] = []
    for min_average, min_votes in _QUALITY_THRESHOLDS:
        filtered = [m for m in movies if meets_quality_threshold(m, min_average, min_votes)]
        if len(filtered) >= MIN_PRIORITY_RESULTS:
            return filtered
        if filtered and not best_fallback:
            best_fallback = filtered

    if best_fallback:
        return best_fallback
    return [
        m for m in movies
        if _number(m.get("vote_average")) is not None and _number(m.get("vote_count")) is not None
    ]


def _recency(release_date: Any, now: datetime) -> float:
    if not release_date:
        return 0.5
    try:
        released = datetime.combine(date.fromisoformat(str(release_date)[:10]), datetime.min.time(), timezone.utc)
    except ValueError:
        return 0.5
    diff = (now - released).total_seconds()
    if diff <= 0:
        return 1.0
    if diff >= _YEAR_SECONDS:
        return 0.0
    return 1 - diff / _YEAR_SECONDS


def priority_score(movie: dict[str, Any], max_votes: float, now: datetime) -> float:
    raw_average = min(10.0, max(0.0, _number(movie.get("vote_average")) or 0.0)) / 10
    votes = max(0.0, _number(movie.get("vote_count")) or 0.0)
    vote_volume = math.log10(votes + 1) / math.log10(max_votes + 1)

    confidence = min(1.0, votes / 150)
    adjusted_average = raw_average * confidence + 0.6 * (1 - confidence)

    recency = _recency(movie.get("release_date") or movie.get("first_air_date"), now)
    return adjusted_average * 0.3 + math.sqrt(max(0.0, vote_volume)) * 0.5 + recency * 0.2


def apply_priority_ordering(movies: list[dict[str, Any]], now: datetime | None = None) -> list[dict[str, Any]]:
    """Copies of the quality candidates, each tagged with ``priority``, best first."""
    candidates = select_priority_candidates(movies)
    if not candidates:
        return []
    now = now or datetime.now(timezone.utc)
    max_votes = max(max((max(0.0, _number(m.get("vote_count")) or 0.0) for m in candidates), default=0.0), 1.0)
    scored = [dict(m, priority=priority_score(m, max_votes, now)) for m in candidates]
    return sorted(scored, key=lambda m: -m["priority"])


def apply_credits(movie: dict[str, Any], credits: dict[str, Any] | None) -> dict[str, Any]:
    if not credits:
        return movie
    cast = credits.get("cast") if isinstance(credits.get("cast"), list) else []
    crew = credits.get("crew") if isinstance(credits.get("crew"), list) else []

    top_cast = [
        p["name"].strip() for p in cast[:5]
        if isinstance(p, dict) and isinstance(p.get("name"), str) and p["name"].strip()
    ]
    directors = [
        p["name"].strip() for p in crew
        if isinstance(p, dict) and p.get("job") == "Director" and isinstance(p.get("name"), str) and p["name"].strip()
    ]

    updated = dict(movie)
    if top_cast:
        updated["topCast"] = list(dict.fromkeys(top_cast))
    if directors:
        updated["directors"] = list(dict.fromkeys(directors))
    return updated


def summarize_movie(movie: dict[str, Any]) -> dict[str, Any]:
    genre_ids = movie.get("genre_ids")
    return {
        "id": movie.get("id"),
        "title": movie.get("title") or movie.get("name") or "",
        "release_date": movie.get("release_date") or movie.get("first_air_date") or "",
        "poster_path": movie.get("poster_path") or "",
        "overview": movie.get("overview") or "",
        "vote_average": movie.get("vote_average"),
        "vote_count": movie.get("vote_count"),
        "genre_ids": genre_ids if isinstance(genre_ids, list) else [],
        "topCast": get_name_list(movie.get("topCast"))[:5],
        "directors": get_name_list(movie.get("directors"))[:3],
    }


# -------------------------
# TMDB sources
# -------------------------

@dataclass(frozen=True)
class Catalog:
    """The TMDB media type a panel browses, and where its state is kept."""

    media: str
    domain: str
    prefs_key: str
    api_key_keys: tuple[str, ...]
    feed_attr: str
    discover_endpoint: str
    genres_endpoint: str
    credits_endpoint: str
    credits_id_param: str
    details_endpoint: str | None = None
    failed_message: str = MSG_FAILED


MOVIES = Catalog(
    media="movie",
    domain=DOMAIN_MOVIES,
    prefs_key=KEY_MOVIE_PREFS,
    api_key_keys=(KEY_MOVIES_API_KEY,),
    feed_attr="movie_feed",
    discover_endpoint="discover",
    genres_endpoint="genres",
    credits_endpoint="credits",
    credits_id_param="movie_id",
)

DiscoverParams = list[tuple[str, str]]


class MovieSource(Protocol):
    async def discover(self, page: int) -> tmdb.DiscoverPage: ...

    async def genres(self) -> dict[int, str]: ...

    async def credits(self, movie_id: Any) -> dict[str, Any] | None: ...


class DirectSource:
    """TMDB v3 with the caller's own key."""

    def __init__(self, api_key: str, catalog: Catalog = MOVIES, discover_params: DiscoverParams | None = None):
        self.api_key = api_key
        self.catalog = catalog
        self.discover_params = list(discover_params or [])

    async def discover(self, page: int) -> tmdb.DiscoverPage:
        return await tmdb.discover_page(self.api_key, page, media=self.catalog.media, extra_params=self.discover_params)

    async def genres(self) -> dict[int, str]:
        return await tmdb.genre_map(self.api_key, media=self.catalog.media)

    async def credits(self, movie_id: Any) -> dict[str, Any] | None:
        return await tmdb.fetch_credits(movie_id, self.api_key, media=self.catalog.media)


class ProxySource:
    """The allow-listed TMDB proxy, which holds the server key."""

    def __init__(self, proxy: tmdb.TmdbProxy, catalog: Catalog = MOVIES, discover_params: DiscoverParams | None = None):
        self.proxy = proxy
        self.catalog = catalog
        self.discover_params = list(discover_params or [])

    async def _get(self, endpoint: str, params: list[tuple[str, str]]) -> dict[str, Any]:
        resp = await self.proxy.fetch(endpoint, params)
        if not resp.ok:
            raise UpstreamError(tmdb.SERVICE, f"TMDB proxy {endpoint} HTTP {resp.status}", status=resp.status)
        try:
            data = json.loads(resp.text)
        except ValueError as e:
            raise UpstreamError(tmdb.SERVICE, f"TMDB proxy {endpoint} returned invalid JSON") from e
        if not isinstance(data, dict):
            raise UpstreamError(tmdb.SERVICE, f"TMDB proxy {endpoint} returned a non-object")
        return data

    async def discover(self, page: int) -> tmdb.DiscoverPage:
        data = await self._get(self.catalog.discover_endpoint, tmdb.discover_params(page, self.discover_params))
        return tmdb.DiscoverPage.from_payload(data)

    async def genres(self) -> dict[int, str]:
        try:
            data = await self._get(self.catalog.genres_endpoint, [("language", get_settings().tmdb_language)])
        except DecisionMakerError as e:
            logger.warning("Failed to load TMDB genres through the proxy: %s", e)
            return {}
        return tmdb.parse_genres(data)

    async def credits(self, movie_id: Any) -> dict[str, Any] | None:
        """Credits endpoint first, then the details endpoint with credits appended."""
        if movie_id is None:
            return None
        id_param = (self.catalog.credits_id_param, str(movie_id))
        try:
            return await self._get(self.catalog.credits_endpoint, [id_param])
        except DecisionMakerError as e:
            logger.warning("Failed to fetch credits for %s %s through the proxy: %s", self.catalog.media, movie_id, e)
        if not self.catalog.details_endpoint:
            return None
        try:
            details = await self._get(self.catalog.details_endpoint, [id_param, ("append_to_response", "credits")])
        except DecisionMakerError as e:
            logger.warning("Failed to fetch details for %s %s through the proxy: %s", self.catalog.media, movie_id, e)
            return None
        credits = details.get("credits")
        return credits if isinstance(credits, dict) else None


async def fetch_movies(
    source: MovieSource,
    suppressed_ids: set[str],
    min_feed_size: int = MIN_FEED_RESULTS,
) -> list[dict[str, Any]]:
    """
    Walk discover pages until the prioritized feed holds ``min_feed_size``
    unsuppressed movies (checked from page ``INITIAL_DISCOVER_PAGES`` on).

    The page limit starts at ``MAX_DISCOVER_PAGES`` and grows by
    ``INITIAL_DISCOVER_PAGES`` up to ``MAX_DISCOVER_PAGES_LIMIT``.
    """
    seen: set[str] = set()
    collected: list[dict[str, Any]] = []
    prioritized: list[dict[str, Any]] = []
    page = 1
    total_pages: int | None = None
    allowed_pages = MAX_DISCOVER_PAGES

    while page <= allowed_pages and (total_pages is None or page <= total_pages):
        result = await source.discover(page)
        if result.total_pages:
            total_pages = result.total_pages

        for movie in result.results:
            id_key = str(movie.get("id"))
            if id_key in seen:
                continue
            seen.add(id_key)
            if id_key not in suppressed_ids:
                collected.append(movie)

        prioritized = apply_priority_ordering(collected)
        if page >= INITIAL_DISCOVER_PAGES and len(prioritized) >= min_feed_size:
            return prioritized

        if not result.results and (total_pages is None or page >= total_pages):
            break

        page += 1
        if page > allowed_pages and allowed_pages < MAX_DISCOVER_PAGES_LIMIT:
            allowed_pages = min(MAX_DISCOVER_PAGES_LIMIT, allowed_pages + INITIAL_DISCOVER_PAGES)

    return prioritized


async def enrich_with_credits(movies: list[dict[str, Any]], source: MovieSource) -> list[dict[str, Any]]:
    """Attach ``topCast`` and ``directors`` to the first ``MAX_CREDIT_REQUESTS`` movies."""
    targets = [m for m in movies[:MAX_CREDIT_REQUESTS] if m.get("id") is not None]
    if not targets:
        return movies
    credits = await asyncio.gather(*(source.credits(m["id"]) for m in targets))
    enriched = {str(m["id"]): apply_credits(m, c) for m, c in zip(targets, credits)}
    return [enriched.get(str(m.get("id")), m) for m in movies]


# -------------------------
# Preferences
# -------------------------

class MoviePreferences:
    """
    ``{movie_id: {"status", "updatedAt", "interest"?, "userRating"?, "movie"?}}``.

    Kept in the document store when the session has a user id and a database
    is configured, otherwise in the session's key/value store.
    """

    def __init__(self, session: SessionState, catalog: Catalog = MOVIES):
        self.session = session
        self.catalog = catalog

    def _use_database(self) -> bool:
        return bool(self.session.user_id) and get_sessionmaker() is not None

    @property
    def feed(self) -> list[dict[str, Any]]:
        return getattr(self.session, self.catalog.feed_attr)

    @feed.setter
    def feed(self, value: list[dict[str, Any]]) -> None:
        setattr(self.session, self.catalog.feed_attr, value)

    async def load(self) -> dict[str, dict[str, Any]]:
        if self._use_database():
            factory = get_sessionmaker()
            try:
                async with factory() as db:
                    return await pref_repo.load_preferences(db, self.session.user_id, self.catalog.domain)
            except SQLAlchemyError as e:
                logger.error(f"Failed to load {self.catalog.media} preferences: {e}", exc_info=True)
                return {}
        loaded = get_json(self.session.store, self.catalog.prefs_key, {})
        return loaded if isinstance(loaded, dict) else {}

    async def save(self, prefs: dict[str, dict[str, Any]]) -> None:
        if self._use_database():
            factory = get_sessionmaker()
            try:
                async with factory() as db:
                    await pref_repo.save_preferences(db, self.session.user_id, self.catalog.domain, prefs)
            except SQLAlchemyError as e:
                logger.error(f"Failed to save {self.catalog.media} preferences: {e}", exc_info=True)
            return
        set_json(self.session.store, self.catalog.prefs_key, prefs)


def suppressed_ids(prefs: dict[str, dict[str, Any]]) -> set[str]:
    return {mid for mid, p in prefs.items() if isinstance(p, dict) and p.get("status") in SUPPRESSED_STATUSES}


def feed_movies(movies: list[dict[str, Any]], prefs: dict[str, dict[str, Any]]) -> list[dict[str, Any]]:
    hidden = suppressed_ids(prefs)
    return [m for m in movies if str(m.get("id")) not in hidden]


def genre_names(movie: dict[str, Any], genres: dict[int, str]) -> list[str]:
    return [genres[g] for g in movie.get("genre_ids") or [] if g in genres]


def _interested_entries(prefs: dict[str, dict[str, Any]]) -> list[dict[str, Any]]:
    entries = [p for p in prefs.values() if isinstance(p, dict) and p.get("status") == STATUS_INTERESTED and p.get("movie")]
    return sorted(entries, key=lambda p: (-(p.get("interest") or 0), -(p.get("updatedAt") or 0)))


def interested_genres(prefs: dict[str, dict[str, Any]], genres: dict[int, str]) -> list[str]:
    """Genre names present on at least one interested entry."""
    names = {name for p in _interested_entries(prefs) for name in genre_names(p["movie"], genres)}
    return sorted(names)


def interested_list(
    prefs: dict[str, dict[str, Any]],
    selected: Iterable[str] | str | None = None,
    genres: dict[int, str] | None = None,
) -> list[dict[str, Any]]:
    """
    Interested entries, most wanted first. With ``selected`` genre names an
    entry is kept when it has any of them; names no entry carries are ignored,
    and a selection left empty by that keeps every entry.
    """
    entries = _interested_entries(prefs)
    if not selected or genres is None:
        return entries
    wanted = {selected} if isinstance(selected, str) else set(selected)
    active = wanted & set(interested_genres(prefs, genres))
    if not active:
        return entries
    return [p for p in entries if active & set(genre_names(p["movie"], genres))]


def effective_rating(pref: dict[str, Any]) -> float | None:
    if pref.get("userRating") is not None:
        rating = clamp_user_rating(pref["userRating"])
        if rating is not None:
            return rating
    return _number((pref.get("movie") or {}).get("vote_average"))


def _compare_watched(a: dict[str, Any], b: dict[str, Any], descending: bool) -> int:
    def by_updated() -> int:
        return (b.get("updatedAt") or 0) - (a.get("updatedAt") or 0)

    sign = -1 if descending else 1
    for getter in (effective_rating, lambda p: _number((p.get("movie") or {}).get("vote_count"))):
        va, vb = getter(a), getter(b)
        if va is None and vb is None:
            return by_updated()
        if va is None:
            return 1
        if vb is None:
            return -1
        if va != vb:
            return sign * (1 if va > vb else -1)
    return by_updated()


def watched_list(prefs: dict[str, dict[str, Any]], sort_mode: str = "recent") -> list[dict[str, Any]]:
    entries = [p for p in prefs.values() if isinstance(p, dict) and p.get("status") == STATUS_WATCHED and p.get("movie")]
    if sort_mode == "ratingDesc":
        return sorted(entries, key=cmp_to_key(lambda a, b: _compare_watched(a, b, True)))
    if sort_mode == "ratingAsc":
        return sorted(entries, key=cmp_to_key(lambda a, b: _compare_watched(a, b, False)))
    return sorted(entries, key=lambda p: -(p.get("updatedAt") or 0))


# -------------------------
# Panel operations
# -------------------------

@dataclass
class MoviesResult:
    feed: list[dict[str, Any]] = field(default_factory=list)
    interested: list[dict[str, Any]] = field(default_factory=list)
    watched: list[dict[str, Any]] = field(default_factory=list)
    genres: dict[int, str] = field(default_factory=dict)
    interested_genres: list[str] = field(default_factory=list)
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "feed": self.feed,
            "interested": self.interested,
            "watched": self.watched,
            "genres": {str(k): v for k, v in self.genres.items()},
            "interestedGenres": self.interested_genres,
            "message": self.message,
        }


def _stored_api_key(session: SessionState, catalog: Catalog) -> str:
    for key in catalog.api_key_keys:
        value = get_text(session.store, key)
        if value:
            return value
    return ""


def resolve_source(
    session: SessionState,
    proxy: tmdb.TmdbProxy | None,
    api_key: str | None = None,
    catalog: Catalog = MOVIES,
    discover_params: DiscoverParams | None = None,
) -> MovieSource | None:
    """Prefer the proxy when it holds a key; otherwise the user's key (remembered per session)."""
    typed = (api_key or "").strip()
    if typed:
        for key in catalog.api_key_keys:
            session.store.set(key, typed)
    if proxy is not None and proxy.api_key:
        return ProxySource(proxy, catalog, discover_params)
    user_key = typed or _stored_api_key(session, catalog)
    return DirectSource(user_key, catalog, discover_params) if user_key else None


async def load_movies(
    session: SessionState,
    proxy: tmdb.TmdbProxy | None = None,
    api_key: str | None = None,
    watched_sort: str = "recent",
    selected_genres: Iterable[str] | None = None,
    catalog: Catalog = MOVIES,
    discover_params: DiscoverParams | None = None,
) -> MoviesResult:
    source = resolve_source(session, proxy, api_key, catalog, discover_params)
    if source is None:
        return MoviesResult(message=MSG_KEY_REQUIRED)

    prefs_store = MoviePreferences(session, catalog)
    prefs = await prefs_store.load()

    try:
        movies = await fetch_movies(source, suppressed_ids(prefs))
    except DecisionMakerError as e:
        if not isinstance(source, ProxySource):
            logger.error(f"Failed to load {catalog.media} feed: {e}", exc_info=True)
            return MoviesResult(message=catalog.failed_message)
        logger.warning("TMDB proxy unavailable, falling back to direct API: %s", e)
        user_key = (api_key or "").strip() or _stored_api_key(session, catalog)
        if not user_key:
            return MoviesResult(message=MSG_PROXY_UNAVAILABLE)
        source = DirectSource(user_key, catalog, discover_params)
        try:
            movies = await fetch_movies(source, suppressed_ids(prefs))
        except DecisionMakerError as e2:
            logger.error(f"Failed to load {catalog.media} feed: {e2}", exc_info=True)
            return MoviesResult(message=catalog.failed_message)

    movies = await enrich_with_credits(movies, source)
    genres = await source.genres()
    prefs_store.feed = movies
    return MoviesResult(
        feed=feed_movies(movies, prefs),
        interested=interested_list(prefs, selected_genres, genres),
        watched=watched_list(prefs, watched_sort),
        genres=genres,
        interested_genres=interested_genres(prefs, genres),
    )


async def set_status(
    session: SessionState,
    movie: dict[str, Any],
    status: str,
    interest: int | None = None,
    source: MovieSource | None = None,
    catalog: Catalog = MOVIES,
) -> dict[str, Any]:
    """Record ``status`` for ``movie`` together with a snapshot of it; returns the entry."""
    status = validate_status(status, MOVIE_STATUSES)
    if status is None or not isinstance(movie, dict) or movie.get("id") is None:
        raise ValidationError("Movie and status are required", user_message="Movie and status are required.")

    if source is not None and (not get_name_list(movie.get("directors")) or not get_name_list(movie.get("topCast"))):
        movie = apply_credits(movie, await source.credits(movie["id"]))

    prefs_store = MoviePreferences(session, catalog)
    prefs = await prefs_store.load()
    movie_id = str(movie["id"])
    entry = dict(prefs.get(movie_id) or {})
    entry["status"] = status
    entry["updatedAt"] = now_ms()

    if status == STATUS_INTERESTED:
        entry["interest"] = interest if interest is not None else entry.get("interest", DEFAULT_INTEREST)
        entry["movie"] = summarize_movie(movie)
        entry.pop("userRating", None)
    elif status == STATUS_WATCHED:
        entry["movie"] = summarize_movie(movie)
        entry.pop("interest", None)
    elif status == STATUS_NOT_INTERESTED:
        entry.pop("movie", None)
        entry.pop("interest", None)
        entry.pop("userRating", None)

    prefs[movie_id] = entry
    await prefs_store.save(prefs)
    prefs_store.feed = [m for m in prefs_store.feed if str(m.get("id")) != movie_id]
    return entry


async def set_user_rating(
    session: SessionState, movie_id: Any, rating: Any, catalog: Catalog = MOVIES
) -> dict[str, Any] | None:
    """Only watched entries carry a rating; ``None`` clears it."""
    prefs_store = MoviePreferences(session, catalog)
    prefs = await prefs_store.load()
    entry = prefs.get(str(movie_id))
    if not isinstance(entry, dict) or entry.get("status") != STATUS_WATCHED:
        return None

    entry = dict(entry)
    if rating is None:
        entry.pop("userRating", None)
    else:
        clamped = clamp_user_rating(rating)
        if clamped is None:
            raise ValidationError(f"Invalid rating {rating!r}", user_message="Rating must be a number.")
        entry["userRating"] = clamped
    entry["updatedAt"] = now_ms()
    prefs[str(movie_id)] = entry
    await prefs_store.save(prefs)
    return entry


def restore_into_feed(movie: dict[str, Any], feed: list[dict[str, Any]], now: datetime | None = None) -> list[dict[str, Any]]:
    """Score ``movie`` against the feed it rejoins; no quality filter is applied."""
    now = now or datetime.now(timezone.utc)
    max_votes = max([max(0.0, _number(m.get("vote_count")) or 0.0) for m in (movie, *feed)] + [1.0])
    restored = dict(movie, priority=priority_score(movie, max_votes, now))
    return sorted([restored, *feed], key=lambda m: -(_number(m.get("priority")) or 0.0))


async def clear_status(session: SessionState, movie_id: Any, catalog: Catalog = MOVIES) -> list[dict[str, Any]]:
    """Forget the preference and put its snapshot back into the feed; returns the new feed."""
    prefs_store = MoviePreferences(session, catalog)
    prefs = await prefs_store.load()
    removed = prefs.pop(str(movie_id), None)
    await prefs_store.save(prefs)

    feed = prefs_store.feed
    if isinstance(removed, dict) and removed.get("movie"):
        if not any(str(m.get("id")) == str(movie_id) for m in feed):
            feed = restore_into_feed(dict(removed["movie"]), feed)
    prefs_store.feed = feed_movies(feed, prefs)
    return prefs_store.feed


async def saved_movies(
    session: SessionState,
    proxy: tmdb.TmdbProxy | None = None,
    selected_genres: Iterable[str] | None = None,
    catalog: Catalog = MOVIES,
) -> dict[str, list[dict[str, Any]]]:
    """
    The interested and watched lists. Filtering by genre needs the TMDB genre
    map, so a source is only consulted when ``selected_genres`` is given.
    """
    prefs = await MoviePreferences(session, catalog).load()
    genres: dict[int, str] | None = None
    if selected_genres:
        source = resolve_source(session, proxy, catalog=catalog)
        genres = await source.genres() if source is not None else None
    return {"interested": interested_list(prefs, selected_genres, genres), "watched": watched_list(prefs)}
