"""
Per-session state.

Everything the browser kept in module globals and ``localStorage`` lives on
one ``SessionState``: the key/value store, the preference maps, the last
reported location and the in-flight Eventbrite search.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable

from decision_maker.cache.memory import PersistedResponseCache
from decision_maker.core.constants import (
    EVENT_STATUSES,
    EVENTBRITE_CACHE_TTL_SECONDS,
    EVENTBRITE_CLIENT_CACHE_MAX_ENTRIES,
    KEY_COMEDY_PREFS,
    KEY_EVENTBRITE_CACHE,
    KEY_SHOWS_PREFS,
)
from decision_maker.core.exceptions import LocationUnavailableError
from decision_maker.storage.kv import JsonFileStore, KeyValueStore, MemoryStore
from decision_maker.storage.preferences import PreferenceMap

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float


LocationProvider = Callable[[], Awaitable["Location | None"]]


class LocationMemo:
    """
    Asks ``provider`` for the user's location once and remembers the answer.

    A successful lookup is reused forever. A failed lookup is reused too,
    unless the caller passes ``allow_retry=True`` (a user-triggered reload).
    Concurrent callers share the same pending lookup.
    """

    def __init__(self, provider: LocationProvider):
        self._provider = provider
        self._location: Location | None = None
        self._pending: asyncio.Future[Location | None] | None = None
        self._failed = False

    @property
    def location(self) -> Location | None:
        return self._location

    async def _lookup(self) -> Location | None:
        try:
            return await self._provider()
        except LocationUnavailableError as e:
            logger.warning("Unable to retrieve current location: %s", e)
            return None

    async def get(self, allow_retry: bool = False) -> Location | None:
        if self._location is not None:
            return self._location
        if self._failed and not allow_retry:
            return None
        if self._pending is None:
            self._pending = asyncio.ensure_future(self._lookup())
        pending = self._pending
        try:
            result = await asyncio.shield(pending)
        finally:
            if pending.done() and self._pending is pending:
                self._pending = None
        if result is not None:
            self._location = result
            self._failed = False
        else:
            self._failed = True
        return result

    def reset(self) -> None:
        self._location = None
        self._failed = False


class SessionState:
    def __init__(self, session_id: str, store: KeyValueStore, user_id: str | None = None):
        self.session_id = session_id
        self.store = store
        self.user_id = user_id
        self.reported_location: Location | None = None
        self.location_denied = False

        self.shows_prefs = PreferenceMap(store, KEY_SHOWS_PREFS, EVENT_STATUSES)
        self.comedy_prefs = PreferenceMap(store, KEY_COMEDY_PREFS, EVENT_STATUSES)
        self.eventbrite_cache = PersistedResponseCache(
            store, KEY_EVENTBRITE_CACHE, EVENTBRITE_CACHE_TTL_SECONDS, EVENTBRITE_CLIENT_CACHE_MAX_ENTRIES
        )

        self.shows_location = LocationMemo(self._current_location)
        self.comedy_location = LocationMemo(self._current_location)

        self.eventbrite_search: asyncio.Task | None = None
        self.movie_feed: list[dict[str, Any]] = []
        self.tv_feed: list[dict[str, Any]] = []

    async def _current_location(self) -> Location | None:
        if self.location_denied:
            raise LocationUnavailableError("Location access denied")
        return self.reported_location

    def report_location(self, latitude: float, longitude: float) -> Location:
        """Record coordinates from the client; memos that failed may now succeed."""
        self.reported_location = Location(latitude, longitude)
        self.location_denied = False
        for memo in (self.shows_location, self.comedy_location):
            if memo.location != self.reported_location:
                memo.reset()
        return self.reported_location

    def deny_location(self) -> None:
        self.reported_location = None
        self.location_denied = True
        self.shows_location.reset()
        self.comedy_location.reset()


class SessionRegistry:
    """
    ``session_id -> SessionState``.

    Sessions are backed by a ``JsonFileStore`` under ``storage_dir``, or by a
    ``MemoryStore`` when no directory is given.
    """

    def __init__(self, storage_dir: str | Path | None = None):
        self._storage_dir = storage_dir
        self._sessions: dict[str, SessionState] = {}

    def _make_store(self, session_id: str) -> KeyValueStore:
        if self._storage_dir is None:
            return MemoryStore()
        return JsonFileStore.for_session(self._storage_dir, session_id)

    def get(self, session_id: str) -> SessionState:
        session = self._sessions.get(session_id)
        if session is None:
            session = SessionState(session_id, self._make_store(session_id))
            self._sessions[session_id] = session
        return session

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
