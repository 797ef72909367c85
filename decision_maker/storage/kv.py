"""
Key/value persistence for per-session state.

Every panel reads and writes tokens, last searches, config blobs and
preference maps through one ``KeyValueStore``. Values are strings; JSON
blobs go through ``get_json`` / ``set_json``.
"""

from __future__ import annotations

import json
import logging
import re
import threading
from pathlib import Path
from typing import Any, Protocol

logger = logging.getLogger(__name__)

_SAFE_NAME = re.compile(r"[^A-Za-z0-9_.-]")


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryStore:
    """Process-local store. Used in tests and when no storage dir is wanted."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileStore:
    """
    One JSON object per session on disk.

    Each ``set``/``remove`` rewrites the file synchronously, so a crash never
    loses an acknowledged write.
    """

    def __init__(self, path: Path):
        self._path = path
        self._lock = threading.Lock()
        self._data: dict[str, str] = {}
        self._load()

    @classmethod
    def for_session(cls, storage_dir: str | Path, session_id: str) -> "JsonFileStore":
        name = _SAFE_NAME.sub("_", session_id) or "default"
        return cls(Path(storage_dir) / f"{name}.json")

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> None:
        if not self._path.exists():
            return
        try:
            content = self._path.read_text(encoding="utf-8").strip()
            if content:
                loaded = json.loads(content)
                if isinstance(loaded, dict):
                    self._data = {str(k): str(v) for k, v in loaded.items()}
        except (OSError, ValueError) as e:
            logger.warning("Could not load session store %s: %s", self._path, e)

    def _save(self) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(self._data, ensure_ascii=False), encoding="utf-8")
        except OSError as e:
            logger.warning("Could not save session store %s: %s", self._path, e)

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value
            self._save()

    def remove(self, key: str) -> None:
        with self._lock:
            if self._data.pop(key, None) is not None:
                self._save()


def get_json(store: KeyValueStore, key: str, default: Any = None) -> Any:
    raw = store.get(key)
    if raw is None or raw == "":
        return default
    try:
        return json.loads(raw)
    except ValueError:
        logger.warning("Ignoring unreadable JSON under %s", key)
        return default


def set_json(store: KeyValueStore, key: str, value: Any) -> None:
    store.set(key, json.dumps(value, ensure_ascii=False))


def get_text(store: KeyValueStore, key: str) -> str:
    return (store.get(key) or "").strip()


def set_text(store: KeyValueStore, key: str, value: str | None) -> None:
    """Store a trimmed string, or remove the key when it is empty."""
    value = (value or "").strip()
    if value:
        store.set(key, value)
    else:
        store.remove(key)
