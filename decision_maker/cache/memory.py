from __future__ import annotations

import logging
import time
from collections import OrderedDict
from typing import Any, Callable, Generic, TypeVar

from decision_maker.storage.kv import KeyValueStore, get_json, set_json

logger = logging.getLogger(__name__)

V = TypeVar("V")


class TTLCache(Generic[V]):
    """
    Bounded in-process map with per-entry expiry.

    ``get`` refreshes recency; ``set`` evicts the least recently used entry
    once ``max_entries`` is exceeded.
    """

    def __init__(self, ttl_seconds: float, max_entries: int, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._data: OrderedDict[str, tuple[float, V]] = OrderedDict()

    def get(self, key: str) -> V | None:
        hit = self._data.get(key)
        if hit is None:
            return None
        stored_at, value = hit
        if self._clock() - stored_at >= self.ttl_seconds:
            del self._data[key]
            return None
        self._data.move_to_end(key)
        return value

    def set(self, key: str, value: V) -> None:
        self._data.pop(key, None)
        self._data[key] = (self._clock(), value)
        while len(self._data) > self.max_entries:
            self._data.popitem(last=False)

    def clear(self) -> None:
        self._data.clear()

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: str) -> bool:
        return key in self._data


def _now_ms() -> int:
    return int(time.time() * 1000)


class PersistedResponseCache:
    """
    ``{key: {"timestamp": epoch_ms, "data": ...}}`` persisted as one JSON blob.

    A memory layer sits in front of the blob. Every write purges expired
    entries and then drops the oldest timestamps beyond ``max_entries``.
    """

    def __init__(
        self,
        store: KeyValueStore,
        key: str,
        ttl_seconds: float,
        max_entries: int,
        clock_ms: Callable[[], int] = _now_ms,
    ):
        self._store = store
        self._key = key
        self._ttl_ms = ttl_seconds * 1000
        self._max_entries = max_entries
        self._clock_ms = clock_ms
        self._memory: dict[str, dict[str, Any]] = {}
        loaded = get_json(store, key, {})
        self._entries: dict[str, dict[str, Any]] = loaded if isinstance(loaded, dict) else {}

    def _fresh(self, entry: Any, now: int) -> bool:
        return isinstance(entry, dict) and isinstance(entry.get("timestamp"), (int, float)) and (
            now - entry["timestamp"] < self._ttl_ms
        )

    def get(self, key: str) -> Any | None:
        now = self._clock_ms()
        entry = self._memory.get(key)
        if self._fresh(entry, now):
            return entry["data"]
        entry = self._entries.get(key)
        if self._fresh(entry, now):
            self._memory[key] = entry
            return entry["data"]
        return None

    def set(self, key: str, data: Any) -> None:
        now = self._clock_ms()
        entry = {"timestamp": now, "data": data}
        self._memory[key] = entry
        self._entries[key] = entry

        for existing in list(self._entries):
            if not self._fresh(self._entries[existing], now):
                del self._entries[existing]

        overflow = len(self._entries) - self._max_entries
        if overflow > 0:
            oldest = sorted(self._entries, key=lambda k: self._entries[k]["timestamp"])[:overflow]
            for old_key in oldest:
                del self._entries[old_key]

        for cached in [k for k in self._memory if k not in self._entries]:
            del self._memory[cached]

        try:
            set_json(self._store, self._key, self._entries)
        except (TypeError, ValueError) as e:
            logger.warning("Unable to persist %s: %s", self._key, e)

    def keys(self) -> list[str]:
        return list(self._entries)

    def memory_keys(self) -> list[str]:
        return list(self._memory)
