"""
Response cache documents in the database, and the purge script.
"""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from decision_maker.cache.keys import build_cache_id
from decision_maker.cache.response_cache import ResponseCache
from decision_maker.core.constants import TMDB_CACHE_COLLECTION, YELP_CACHE_COLLECTION, YELP_CACHE_TTL_SECONDS
from decision_maker.core.exceptions import DatabaseError
from decision_maker.db.repositories.response_cache import get_entry
from decision_maker.db.utils import get_session
from decision_maker.scripts.purge_cache import purge

T0 = 1_800_000_000.0


class Clock:
    def __init__(self, now: float = T0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestDatabaseCache:
    @pytest.mark.asyncio
    async def test_entries_outlive_the_process_cache(self, database):
        writer = ResponseCache(TMDB_CACHE_COLLECTION, 60, clock=Clock())
        await writer.write(["tmdb", "/3/genre/movie/list", "language=en-US"], '{"genres": []}', metadata={"path": "x"})

        reader = ResponseCache(TMDB_CACHE_COLLECTION, 60, clock=Clock(T0 + 30))
        hit = await reader.read(["tmdb", "/3/genre/movie/list", "language=en-US"])

        assert hit.body == '{"genres": []}'
        assert hit.content_type == "application/json"
        assert hit.metadata == {"path": "x"}
        assert reader.memory_size() == 1

    @pytest.mark.asyncio
    async def test_expired_entries_are_ignored(self, database):
        await ResponseCache(TMDB_CACHE_COLLECTION, 60, clock=Clock()).write(["k"], "body")

        reader = ResponseCache(TMDB_CACHE_COLLECTION, 60, clock=Clock(T0 + 61))

        assert await reader.read(["k"]) is None

    @pytest.mark.asyncio
    async def test_collections_are_separate(self, database):
        await ResponseCache(TMDB_CACHE_COLLECTION, 60, clock=Clock()).write(["k"], "body")
        assert await ResponseCache(YELP_CACHE_COLLECTION, 60, clock=Clock()).read(["k"]) is None

    @pytest.mark.asyncio
    async def test_empty_bodies_are_not_written(self, database):
        await ResponseCache(TMDB_CACHE_COLLECTION, 60, clock=Clock()).write(["k"], "")

        async with get_session() as session:
            assert await get_entry(session, TMDB_CACHE_COLLECTION, build_cache_id(["k"])) is None

    @pytest.mark.asyncio
    async def test_rewrite_refreshes_the_entry(self, database):
        clock = Clock()
        cache = ResponseCache(TMDB_CACHE_COLLECTION, 60, clock=clock)
        await cache.write(["k"], "old")
        clock.now = T0 + 50
        await cache.write(["k"], "new", status=203)

        reader = ResponseCache(TMDB_CACHE_COLLECTION, 60, clock=Clock(T0 + 100))
        hit = await reader.read(["k"])

        assert (hit.body, hit.status) == ("new", 203)

    @pytest.mark.asyncio
    async def test_reads_do_not_save_old_entries_from_eviction(self, database):
        clock = Clock()
        cache = ResponseCache(TMDB_CACHE_COLLECTION, 600, max_memory_entries=2, clock=clock)
        await cache.write(["a"], "first")
        clock.now = T0 + 10
        await cache.write(["b"], "second")
        clock.now = T0 + 20
        assert (await cache.read(["a"])).body == "first"

        clock.now = T0 + 30
        await cache.write(["c"], "third")

        assert cache.memory_size() == 2
        assert build_cache_id(["a"]) not in cache._memory
        assert build_cache_id(["b"]) in cache._memory
        assert build_cache_id(["c"]) in cache._memory


class TestPurge:
    @pytest.mark.asyncio
    async def test_only_stale_documents_are_deleted(self, database):
        await ResponseCache(YELP_CACHE_COLLECTION, 0, clock=Clock(T0)).write(["old"], "a")
        await ResponseCache(YELP_CACHE_COLLECTION, 0, clock=Clock(T0 + 3600)).write(["fresh"], "b")
        await ResponseCache(TMDB_CACHE_COLLECTION, 0, clock=Clock(T0)).write(["other"], "c")
        now = datetime.fromtimestamp(T0 + 3600 + YELP_CACHE_TTL_SECONDS - 60, tz=timezone.utc)

        removed = await purge([YELP_CACHE_COLLECTION], now=now)

        assert removed == {YELP_CACHE_COLLECTION: 1}
        async with get_session() as session:
            assert await get_entry(session, YELP_CACHE_COLLECTION, build_cache_id(["old"])) is None
            assert await get_entry(session, YELP_CACHE_COLLECTION, build_cache_id(["fresh"])) is not None
            assert await get_entry(session, TMDB_CACHE_COLLECTION, build_cache_id(["other"])) is not None

    @pytest.mark.asyncio
    async def test_requires_a_database(self):
        with pytest.raises(DatabaseError):
            await purge([YELP_CACHE_COLLECTION])
