from __future__ import annotations

import asyncio


def test_compare_versions() -> None:
    from assist_servers.coordinator.migrations import compare_versions

    assert compare_versions("1.0.0", "1.0.0") == 0
    assert compare_versions("1.0", "1.0.0") == 0
    assert compare_versions("0.9.3", "1.0.0") < 0
    assert compare_versions("1.10.0", "1.9.9") > 0
    assert compare_versions("v2.0.0-beta", "2.0.0") == 0


def test_upgrade_from_pre_release_normalizes_statistics() -> None:
    from assist_servers.coordinator.migrations import migrate_if_needed
    from assist_servers.coordinator.store import MemoryStateStore, StorageKey

    store = MemoryStateStore(
        {
            StorageKey.COORDINATOR_VERSION: "0.9.0",
            StorageKey.USAGE_STATISTICS: {
                "u1": {"featureUsage": {"zoom": 2}, "sessionCount": -4, "totalTimeSpent": 12, "websitesVisited": 3},
            },
        }
    )

    applied = asyncio.run(migrate_if_needed(store, "1.0.0"))

    assert applied == ["statistics:1"]
    snap = store.snapshot()
    assert snap[StorageKey.COORDINATOR_VERSION] == "1.0.0"
    assert snap[StorageKey.USAGE_STATISTICS]["u1"] == {
        "featureUsage": {"zoom": 2},
        "sessionCount": 0,
        "totalTimeSpent": 12,
        "websitesVisited": 3,
        "websitesHistory": [],
    }


def test_same_version_is_a_no_op_and_newer_only_updates_marker() -> None:
    from assist_servers.coordinator.migrations import migrate_if_needed
    from assist_servers.coordinator.store import MemoryStateStore, StorageKey

    store = MemoryStateStore({StorageKey.COORDINATOR_VERSION: "1.0.0"})
    assert asyncio.run(migrate_if_needed(store, "1.0.0")) == []

    assert asyncio.run(migrate_if_needed(store, "1.2.0")) == []
    assert store.snapshot() == {StorageKey.COORDINATOR_VERSION: "1.2.0"}
