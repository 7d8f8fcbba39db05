"""Persisted key-value state for the coordinator.

Design
- One namespace of string keys; values are JSON-compatible blobs.
- Single-key atomicity only. There are no cross-key transactions and no
  read-modify-write locking: callers read a whole blob, mutate it in memory and
  write it back as one unit.
- Values are deep-copied on the way in and out so callers never share state
  with the store.

The file backend keeps a small JSON document on disk:
- Atomic writes: write temp file then replace (best-effort `.bak` copy first).
- Missing or undecodable documents read as empty; other I/O errors raise
  `StoreError`.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
import os
import shutil
import threading
import time
from collections.abc import Iterable
from contextlib import suppress
from pathlib import Path
from typing import Any, Protocol

_LOGGER = logging.getLogger("assist.coordinator.store")


class StorageKey:
    SETTINGS = "accessibility_settings"
    WEBSITE_PREFERENCES = "website_preferences"
    USAGE_STATISTICS = "usage_statistics"
    USER_ID = "user_id"
    ACTIVE_PROFILE = "active_profile_id"
    AUTH_TOKEN = "auth_token"
    COORDINATOR_VERSION = "coordinator_version"

    # Everything owned by the signed-in user (cleared on logout / data clear).
    USER_DATA = (
        USER_ID,
        SETTINGS,
        WEBSITE_PREFERENCES,
        USAGE_STATISTICS,
        ACTIVE_PROFILE,
        AUTH_TOKEN,
    )


class StoreError(Exception):
    pass


class StateStore(Protocol):
    async def get(self, key: str) -> Any | None: ...

    async def set(self, key: str, value: Any) -> None: ...

    async def remove(self, keys: Iterable[str]) -> None: ...


class MemoryStateStore:
    """In-process store (tests, ASSIST_STATE_BACKEND=memory)."""

    def __init__(self, items: dict[str, Any] | None = None) -> None:
        self._items: dict[str, Any] = copy.deepcopy(items) if items else {}

    async def get(self, key: str) -> Any | None:
        value = self._items.get(key)
        return copy.deepcopy(value) if value is not None else None

    async def set(self, key: str, value: Any) -> None:
        self._items[key] = copy.deepcopy(value)

    async def remove(self, keys: Iterable[str]) -> None:
        for key in keys:
            self._items.pop(key, None)

    def snapshot(self) -> dict[str, Any]:
        return copy.deepcopy(self._items)


_DOCUMENT_VERSION = 1


def read_document(path: Path) -> dict[str, Any]:
    """Items from the state document.

    Only a missing file or an undecodable document reads as empty; the latter is
    logged and left for the next write to replace (the previous copy survives
    as `.bak`). Any other I/O failure propagates so callers never mistake an
    unreadable store for an empty one.
    """
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    try:
        doc = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        _LOGGER.warning("state document unreadable path=%s: %s", path, exc)
        return {}

    items = doc.get("items") if isinstance(doc, dict) else None
    if not isinstance(items, dict):
        _LOGGER.warning("state document has no items path=%s", path)
        return {}
    return {k: v for k, v in items.items() if isinstance(k, str) and k}


def write_document(path: Path, items: dict[str, Any]) -> None:
    """Replace the state document atomically (temp file + rename)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    text = json.dumps(
        {"version": _DOCUMENT_VERSION, "updatedAt": int(time.time() * 1000), "items": items},
        ensure_ascii=True,
        indent=2,
        sort_keys=True,
    )

    if path.is_file():
        try:
            shutil.copyfile(path, path.with_name(path.name + ".bak"))
        except OSError as exc:
            _LOGGER.debug("state backup skipped path=%s: %s", path, exc)

    tmp = path.with_name(path.name + ".tmp")
    tmp.write_text(text, encoding="utf-8")
    with suppress(OSError):
        os.chmod(tmp, 0o600)
    tmp.replace(path)


class JsonFileStateStore:
    """Disk-backed store: one JSON document, rewritten atomically per write."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).expanduser()
        self._lock = threading.Lock()

    def _get_sync(self, key: str) -> Any | None:
        with self._lock:
            return read_document(self.path).get(key)

    def _set_sync(self, key: str, value: Any) -> None:
        with self._lock:
            items = read_document(self.path)
            items[key] = value
            write_document(self.path, items)

    def _remove_sync(self, keys: list[str]) -> None:
        with self._lock:
            items = read_document(self.path)
            changed = False
            for key in keys:
                if key in items:
                    items.pop(key)
                    changed = True
            if changed:
                write_document(self.path, items)

    async def get(self, key: str) -> Any | None:
        try:
            return await asyncio.to_thread(self._get_sync, key)
        except Exception as exc:  # noqa: BLE001
            raise StoreError(f"state read failed: key={key}: {exc}") from exc

    async def set(self, key: str, value: Any) -> None:
        try:
            # Serialize up front so unencodable values fail before touching the file.
            encoded = json.loads(json.dumps(value, ensure_ascii=True))
        except (TypeError, ValueError) as exc:
            raise StoreError(f"state value is not JSON-serializable: key={key}: {exc}") from exc
        try:
            await asyncio.to_thread(self._set_sync, key, encoded)
        except Exception as exc:  # noqa: BLE001
            raise StoreError(f"state write failed: key={key}: {exc}") from exc

    async def remove(self, keys: Iterable[str]) -> None:
        key_list = [k for k in keys if isinstance(k, str)]
        if not key_list:
            return
        try:
            await asyncio.to_thread(self._remove_sync, key_list)
        except Exception as exc:  # noqa: BLE001
            raise StoreError(f"state remove failed: keys={key_list}: {exc}") from exc


def create_store(backend: str, state_file: str | Path) -> StateStore:
    if backend == "memory":
        return MemoryStateStore()
    return JsonFileStateStore(state_file)


__all__ = [
    "JsonFileStateStore",
    "MemoryStateStore",
    "StateStore",
    "StorageKey",
    "StoreError",
    "create_store",
    "read_document",
    "write_document",
]
