"""Upload progress hints kept in local persistent storage.

Progress is a resumption hint for the UI, not a source of truth: records
expire 24 hours after they were written and expiry is only checked on read.
"""

from __future__ import annotations

import json
import logging
import os
import threading
import time
from pathlib import Path
from typing import Callable, Optional, Protocol

from fastapi.concurrency import run_in_threadpool

from .types import UploadProgressRecord

logger = logging.getLogger(__name__)

PROGRESS_TTL_SECONDS = 24 * 60 * 60
KEY_PREFIX = "upload_progress_"


def progress_key(track_id: str) -> str:
    return f"{KEY_PREFIX}{track_id}"


class KeyValueStore(Protocol):
    """String key/value storage with localStorage-like semantics."""

    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class InMemoryStore:
    """Process-local store, used in tests and as a fallback."""

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def __len__(self) -> int:
        return len(self._items)


class JsonFileStore:
    """All items in one JSON object on disk, rewritten atomically on change."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()

    def _load(self) -> dict[str, str]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        data = json.loads(raw) if raw.strip() else {}
        if not isinstance(data, dict):
            raise ValueError(f"{self._path} does not contain a JSON object")
        return data

    def _dump(self, items: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(items), encoding="utf-8")
        os.replace(tmp_path, self._path)

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._load().get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            items = self._load()
            items[key] = value
            self._dump(items)

    def remove_item(self, key: str) -> None:
        with self._lock:
            items = self._load()
            if items.pop(key, None) is not None:
                self._dump(items)


class ProgressTracker:
    """Save and restore per-track upload percentages.

    The `_sync` methods touch the store directly; request handlers and the
    packager use the async `save`/`get`, which run them in the threadpool.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        ttl_seconds: int = PROGRESS_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._ttl_ms = ttl_seconds * 1000
        self._clock = clock

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def save_sync(self, track_id: str, progress: float) -> None:
        """Record ``progress`` for ``track_id``; storage failures are logged, never raised."""

        payload = json.dumps({"progress": progress, "timestamp": self._now_ms()})
        try:
            self._store.set_item(progress_key(track_id), payload)
        except (OSError, ValueError):
            logger.exception("Failed to save upload progress for track %s", track_id)

    def record(self, track_id: str) -> Optional[UploadProgressRecord]:
        """Return the stored record without applying expiry."""

        try:
            raw = self._store.get_item(progress_key(track_id))
            if raw is None:
                return None
            data = json.loads(raw)
            return UploadProgressRecord(
                track_id=track_id,
                progress=data["progress"],
                timestamp_ms=int(data["timestamp"]),
            )
        except (OSError, ValueError, KeyError, TypeError):
            logger.exception("Failed to read upload progress for track %s", track_id)
            return None

    def get_sync(self, track_id: str) -> float:
        """Stored progress if it is younger than the TTL, else 0."""

        record = self.record(track_id)
        if record is None:
            return 0
        if self._now_ms() - record.timestamp_ms < self._ttl_ms:
            return record.progress

        try:
            self._store.remove_item(progress_key(track_id))
        except (OSError, ValueError):
            logger.exception("Failed to drop stale upload progress for track %s", track_id)
        return 0

    async def save(self, track_id: str, progress: float) -> None:
        await run_in_threadpool(self.save_sync, track_id, progress)

    async def get(self, track_id: str) -> float:
        return await run_in_threadpool(self.get_sync, track_id)


__all__ = [
    "InMemoryStore",
    "JsonFileStore",
    "KEY_PREFIX",
    "KeyValueStore",
    "PROGRESS_TTL_SECONDS",
    "ProgressTracker",
    "progress_key",
]
