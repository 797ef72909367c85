"""
Server-side response cache.

Entries live in the ``response_cache`` table when a database is configured
and in a bounded in-process map either way. The database is the source of
truth for ``fetched_at``; the map keeps the service useful without one.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from decision_maker.cache.keys import build_cache_id, normalize_parts
from decision_maker.core.constants import RESPONSE_CACHE_MAX_MEMORY_ENTRIES
from decision_maker.db.repositories.response_cache import get_entry, upsert_entry
from decision_maker.db.session import get_sessionmaker

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/json"

SessionFactory = Callable[[], async_sessionmaker[AsyncSession] | None]


@dataclass(frozen=True)
class CachedResponse:
    body: str
    status: int = 200
    content_type: str = DEFAULT_CONTENT_TYPE
    metadata: dict[str, Any] | None = field(default=None)

    @classmethod
    def normalized(
        cls,
        body: str,
        status: Any = 200,
        content_type: Any = None,
        metadata: Any = None,
    ) -> "CachedResponse":
        return cls(
            body=body,
            status=status if isinstance(status, int) and not isinstance(status, bool) else 200,
            content_type=content_type if isinstance(content_type, str) and content_type else DEFAULT_CONTENT_TYPE,
            metadata=metadata if isinstance(metadata, dict) else None,
        )


def _to_epoch(value: datetime) -> float:
    # SQLite hands back naive datetimes; they are stored as UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


class ResponseCache:
    def __init__(
        self,
        collection: str,
        ttl_seconds: float,
        session_factory: SessionFactory = get_sessionmaker,
        max_memory_entries: int = RESPONSE_CACHE_MAX_MEMORY_ENTRIES,
        clock: Callable[[], float] = time.time,
    ):
        self.collection = collection
        self.ttl_seconds = ttl_seconds
        self._session_factory = session_factory
        self._max_memory_entries = max_memory_entries
        self._clock = clock
        self._memory: OrderedDict[str, tuple[CachedResponse, float]] = OrderedDict()

    def _expired(self, fetched_at: float) -> bool:
        return self.ttl_seconds > 0 and self._clock() - fetched_at > self.ttl_seconds

    def _remember(self, doc_id: str, payload: CachedResponse, fetched_at: float | None = None) -> None:
        if not payload.body:
            return
        if doc_id in self._memory and fetched_at is not None:
            # a store hit refreshes the payload but keeps its slot
            self._memory[doc_id] = (payload, fetched_at)
            return
        self._memory.pop(doc_id, None)
        self._memory[doc_id] = (payload, self._clock() if fetched_at is None else fetched_at)
        while len(self._memory) > self._max_memory_entries:
            oldest = min(self._memory, key=lambda key: self._memory[key][1])
            del self._memory[oldest]

    def _read_memory(self, doc_id: str) -> CachedResponse | None:
        hit = self._memory.get(doc_id)
        if hit is None:
            return None
        payload, fetched_at = hit
        if self._expired(fetched_at):
            del self._memory[doc_id]
            return None
        return payload

    def memory_size(self) -> int:
        return len(self._memory)

    async def read(self, parts: Any) -> CachedResponse | None:
        doc_id = build_cache_id(parts)
        factory = self._session_factory()
        if factory is None:
            return self._read_memory(doc_id)

        try:
            async with factory() as session:
                entry = await get_entry(session, self.collection, doc_id)
                if entry is None or entry.fetched_at is None:
                    return self._read_memory(doc_id)
                fetched_at = _to_epoch(entry.fetched_at)
                if self._expired(fetched_at):
                    self._memory.pop(doc_id, None)
                    return None
                if not entry.body:
                    return self._read_memory(doc_id)
                payload = CachedResponse.normalized(
                    entry.body, entry.status, entry.content_type, entry.metadata_json
                )
        except Exception as e:
            logger.error(f"Failed to read cache entry {self.collection}/{doc_id}: {e}", exc_info=True)
            return self._read_memory(doc_id)

        self._remember(doc_id, payload, fetched_at)
        return payload

    async def write(
        self,
        parts: Any,
        body: str | None,
        status: int = 200,
        content_type: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        if not isinstance(body, str) or not body:
            return
        doc_id = build_cache_id(parts)
        payload = CachedResponse.normalized(body, status, content_type, metadata)
        self._remember(doc_id, payload)

        factory = self._session_factory()
        if factory is None:
            return
        try:
            async with factory() as session:
                await upsert_entry(
                    session,
                    self.collection,
                    doc_id,
                    key_parts=normalize_parts(parts),
                    status=payload.status,
                    content_type=payload.content_type,
                    body=payload.body,
                    metadata=payload.metadata,
                    fetched_at=datetime.fromtimestamp(self._clock(), tz=timezone.utc),
                )
        except Exception as e:
            logger.error(f"Failed to write cache entry {self.collection}/{doc_id}: {e}", exc_info=True)
