from __future__ import annotations

import time
from typing import Any, Iterable

from decision_maker.core.validation import validate_status
from decision_maker.storage.kv import KeyValueStore, get_json, set_json


def now_ms() -> int:
    return int(time.time() * 1000)


class PreferenceMap:
    """
    ``{item_id: {"status": ..., "updatedAt": epoch_ms, ...}}`` for one domain.

    Every mutation rewrites the whole map into the store.
    """

    def __init__(self, store: KeyValueStore, key: str, allowed: Iterable[str]):
        self._store = store
        self._key = key
        self._allowed = tuple(allowed)
        loaded = get_json(store, key, {})
        self._prefs: dict[str, dict[str, Any]] = loaded if isinstance(loaded, dict) else {}

    @property
    def key(self) -> str:
        return self._key

    def _save(self) -> None:
        set_json(self._store, self._key, self._prefs)

    def get(self, item_id: str) -> dict[str, Any] | None:
        entry = self._prefs.get(str(item_id))
        return dict(entry) if isinstance(entry, dict) else None

    def get_status(self, item_id: str) -> str | None:
        entry = self._prefs.get(str(item_id))
        if not isinstance(entry, dict):
            return None
        return entry.get("status") or None

    def set_status(self, item_id: str, status: str | None, **extra: Any) -> dict[str, Any] | None:
        status = validate_status(status, self._allowed)
        item_id = str(item_id)
        if status is None:
            self._prefs.pop(item_id, None)
            self._save()
            return None
        entry = {"status": status, "updatedAt": now_ms()}
        entry.update({k: v for k, v in extra.items() if v is not None})
        self._prefs[item_id] = entry
        self._save()
        return dict(entry)

    def toggle(self, item_id: str, status: str) -> str | None:
        """Apply ``status``; choosing the current status again clears it."""
        next_status = None if self.get_status(item_id) == status else status
        self.set_status(item_id, next_status)
        return next_status

    def replace(self, prefs: dict[str, dict[str, Any]]) -> None:
        self._prefs = dict(prefs)
        self._save()

    def entries(self) -> dict[str, dict[str, Any]]:
        return {k: dict(v) for k, v in self._prefs.items() if isinstance(v, dict)}

    def ids_with_status(self, status: str) -> list[str]:
        return [k for k, v in self._prefs.items() if isinstance(v, dict) and v.get("status") == status]
