"""Key/value persistence adapters.

The core only needs ``get``/``set``/``remove`` on string keys. ``JsonFileStore``
keeps every key in one JSON document on disk; ``MemoryStore`` is used by tests
and by callers that do not need durability.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Dict, Protocol

from contractor_sync.errors import StorageError

logger = logging.getLogger(__name__)

# Persisted keys, each read and written independently
CONTRACTORS_KEY = "contractor_sync.contractors"
SESSION_KEY = "contractor_sync.session"
SELECTED_CONTRACTORS_KEY = "contractor_sync.selected_contractors"
REPORTS_KEY = "contractor_sync.reports"
REPORT_COUNTER_KEY = "contractor_sync.report_counter"
SENT_LOG_KEY = "contractor_sync.sent_sessions"
DEVICE_ID_KEY = "contractor_sync.device_id"
LAST_SYNC_KEY = "contractor_sync.last_sync"
SYNC_ENABLED_KEY = "contractor_sync.sync_enabled"


class KeyValueStore(Protocol):
    """Minimal storage contract; both calls are idempotent."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryStore:
    """Volatile store backed by a dictionary."""

    def __init__(self, initial: Dict[str, str] | None = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)


class JsonFileStore:
    """Durable store keeping all keys in a single JSON file.

    The file is read once on construction and rewritten on every mutation
    through a temporary file, so a crash mid-write leaves the previous
    document intact.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._data: Dict[str, str] = self._load()

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise StorageError(f"Cannot read store file {self.path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise StorageError(f"Store file {self.path} does not contain an object")
        return {str(k): str(v) for k, v in raw.items() if v is not None}

    def _flush(self, data: Dict[str, str]) -> None:
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except OSError as exc:
            raise StorageError(f"Cannot write store file {self.path}: {exc}") from exc

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        updated = dict(self._data)
        updated[key] = value
        self._flush(updated)
        self._data = updated

    def remove(self, key: str) -> None:
        if key not in self._data:
            return
        updated = {k: v for k, v in self._data.items() if k != key}
        self._flush(updated)
        self._data = updated


def read_json(store: KeyValueStore, key: str):
    """Return the decoded JSON value under ``key`` or ``None`` if absent.

    Raises :class:`StorageError` when the stored text is not valid JSON.
    """
    raw = store.get(key)
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise StorageError(f"Stored value for {key!r} is not valid JSON") from exc


def write_json(store: KeyValueStore, key: str, value) -> bool:
    """Persist ``value`` as JSON; log and return ``False`` on storage failure."""
    try:
        store.set(key, json.dumps(value, ensure_ascii=False))
    except StorageError as exc:
        logger.warning("Storage write failed for %s, keeping in-memory state: %s", key, exc)
        return False
    return True


__all__ = [
    "KeyValueStore",
    "MemoryStore",
    "JsonFileStore",
    "read_json",
    "write_json",
    "CONTRACTORS_KEY",
    "SESSION_KEY",
    "SELECTED_CONTRACTORS_KEY",
    "REPORTS_KEY",
    "REPORT_COUNTER_KEY",
    "SENT_LOG_KEY",
    "DEVICE_ID_KEY",
    "LAST_SYNC_KEY",
    "SYNC_ENABLED_KEY",
]
