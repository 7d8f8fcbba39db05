from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest


def test_memory_store_get_set_remove_and_copies() -> None:
    from assist_servers.coordinator.store import MemoryStateStore, StorageKey

    async def _main() -> None:
        store = MemoryStateStore()
        assert await store.get(StorageKey.SETTINGS) is None

        value = {"theme": "dark", "nested": {"fontSize": 16}}
        await store.set(StorageKey.SETTINGS, value)
        value["nested"]["fontSize"] = 99

        got = await store.get(StorageKey.SETTINGS)
        assert got == {"theme": "dark", "nested": {"fontSize": 16}}
        got["theme"] = "light"
        assert (await store.get(StorageKey.SETTINGS))["theme"] == "dark"

        await store.set(StorageKey.USER_ID, "u1")
        await store.remove([StorageKey.SETTINGS, "missing-key"])
        assert await store.get(StorageKey.SETTINGS) is None
        assert await store.get(StorageKey.USER_ID) == "u1"

    asyncio.run(_main())


def test_json_file_store_persists_across_instances(tmp_path: Path) -> None:
    from assist_servers.coordinator.store import JsonFileStateStore, StorageKey

    path = tmp_path / "state.json"

    async def _main() -> None:
        first = JsonFileStateStore(path)
        await first.set(StorageKey.SETTINGS, {"theme": "dark"})
        await first.set(StorageKey.USER_ID, "u1")

        second = JsonFileStateStore(path)
        assert await second.get(StorageKey.SETTINGS) == {"theme": "dark"}
        assert await second.get(StorageKey.USER_ID) == "u1"

        await second.remove([StorageKey.USER_ID])
        assert await first.get(StorageKey.USER_ID) is None
        assert await first.get(StorageKey.SETTINGS) == {"theme": "dark"}

    asyncio.run(_main())

    doc = json.loads(path.read_text(encoding="utf-8"))
    assert doc["version"] == 1
    assert doc["items"] == {"accessibility_settings": {"theme": "dark"}}
    assert (tmp_path / "state.json.bak").exists()


def test_json_file_store_reads_corrupt_file_as_empty(tmp_path: Path) -> None:
    from assist_servers.coordinator.store import JsonFileStateStore, StorageKey

    path = tmp_path / "state.json"
    path.write_text("{not json", encoding="utf-8")

    async def _main() -> None:
        store = JsonFileStateStore(path)
        assert await store.get(StorageKey.SETTINGS) is None
        await store.set(StorageKey.SETTINGS, {"theme": "light"})
        assert await store.get(StorageKey.SETTINGS) == {"theme": "light"}

    asyncio.run(_main())


def test_json_file_store_rejects_unserializable_values(tmp_path: Path) -> None:
    from assist_servers.coordinator.store import JsonFileStateStore, StorageKey, StoreError

    async def _main() -> None:
        store = JsonFileStateStore(tmp_path / "state.json")
        with pytest.raises(StoreError):
            await store.set(StorageKey.SETTINGS, {"bad": object()})
        assert await store.get(StorageKey.SETTINGS) is None

    asyncio.run(_main())


def test_create_store_selects_backend(tmp_path: Path) -> None:
    from assist_servers.coordinator.store import JsonFileStateStore, MemoryStateStore, create_store

    assert isinstance(create_store("memory", tmp_path / "x.json"), MemoryStateStore)
    assert isinstance(create_store("file", tmp_path / "x.json"), JsonFileStateStore)


def _deny_reads(monkeypatch, path: Path) -> None:
    real_read_text = Path.read_text

    def _read_text(self, *args, **kwargs):
        if self == path:
            raise PermissionError(13, "Permission denied", str(self))
        return real_read_text(self, *args, **kwargs)

    monkeypatch.setattr(Path, "read_text", _read_text)


def test_json_file_store_read_error_is_not_an_empty_store(tmp_path: Path, monkeypatch) -> None:
    from assist_servers.coordinator.store import JsonFileStateStore, StorageKey, StoreError

    path = tmp_path / "state.json"

    async def _seed() -> None:
        await JsonFileStateStore(path).set(StorageKey.USAGE_STATISTICS, {"u1": {"featureUsage": {"zoom": 1}}})

    asyncio.run(_seed())
    before = path.read_text(encoding="utf-8")
    _deny_reads(monkeypatch, path)

    async def _main() -> None:
        store = JsonFileStateStore(path)
        with pytest.raises(StoreError, match="state read failed"):
            await store.get(StorageKey.USAGE_STATISTICS)
        # A write must not replace a document it could not read.
        with pytest.raises(StoreError, match="state write failed"):
            await store.set(StorageKey.SETTINGS, {"theme": "dark"})
        with pytest.raises(StoreError, match="state remove failed"):
            await store.remove([StorageKey.USER_ID])

    asyncio.run(_main())
    monkeypatch.undo()
    assert path.read_text(encoding="utf-8") == before


def test_json_file_store_write_error_raises_store_error(tmp_path: Path, monkeypatch) -> None:
    from assist_servers.coordinator.store import JsonFileStateStore, StorageKey, StoreError

    path = tmp_path / "state.json"

    def _replace(self, target):
        raise OSError(28, "No space left on device")

    async def _main() -> None:
        store = JsonFileStateStore(path)
        await store.set(StorageKey.USER_ID, "u1")
        monkeypatch.setattr(Path, "replace", _replace)
        with pytest.raises(StoreError, match="state write failed"):
            await store.set(StorageKey.USER_ID, "u2")
        monkeypatch.undo()
        assert await store.get(StorageKey.USER_ID) == "u1"

    asyncio.run(_main())


def test_json_file_store_read_error_becomes_failure_envelope(tmp_path: Path, monkeypatch) -> None:
    from assist_servers.coordinator.context import CoordinatorContext
    from assist_servers.coordinator.server.router import MessageRouter
    from assist_servers.coordinator.store import JsonFileStateStore

    path = tmp_path / "state.json"
    store = JsonFileStateStore(path)
    router = MessageRouter(CoordinatorContext(store))

    async def _feature_used(user_id: str, feature: str) -> dict:
        return await router.handle({"type": "FEATURE_USED", "payload": {"userId": user_id, "featureName": feature}})

    assert asyncio.run(_feature_used("u1", "zoom")) == {"success": True}

    _deny_reads(monkeypatch, path)
    res = asyncio.run(_feature_used("u2", "tts"))
    assert res["success"] is False
    assert "Permission denied" in res["error"]

    monkeypatch.undo()

    assert asyncio.run(_stats_for(router, "u1")) == {"zoom": 1}
    assert asyncio.run(_stats_for(router, "u2")) == {}


async def _stats_for(router, user_id: str) -> dict:
    res = await router.handle({"type": "SYNC_STATS", "payload": {"userId": user_id}})
    return res["data"]["featureUsage"]


def test_json_file_store_ignores_document_without_items(tmp_path: Path) -> None:
    from assist_servers.coordinator.store import JsonFileStateStore, StorageKey

    path = tmp_path / "state.json"
    path.write_text(json.dumps(["not", "a", "document"]), encoding="utf-8")

    assert asyncio.run(JsonFileStateStore(path).get(StorageKey.SETTINGS)) is None
