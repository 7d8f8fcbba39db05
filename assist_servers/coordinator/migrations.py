"""Data migrations between coordinator versions.

The persisted `coordinator_version` marker records which version last wrote the
store. On startup, if it differs from the running version, migrations for every
boundary crossed are applied and the marker is updated. The marker is not user
data and survives a data clear.
"""

from __future__ import annotations

import logging
from typing import Any

from . import __version__
from .stats import UsageStatistics
from .store import StateStore, StorageKey

_LOGGER = logging.getLogger("assist.coordinator.migrations")


def _version_parts(version: str) -> list[int]:
    parts: list[int] = []
    for raw in str(version or "").strip().lstrip("vV").split("."):
        digits = ""
        for ch in raw:
            if not ch.isdigit():
                break
            digits += ch
        parts.append(int(digits) if digits else 0)
    return parts


def compare_versions(v1: str, v2: str) -> int:
    """Negative if v1 < v2, zero if equal, positive if v1 > v2 (missing parts are 0)."""
    p1 = _version_parts(v1)
    p2 = _version_parts(v2)
    for i in range(max(len(p1), len(p2))):
        a = p1[i] if i < len(p1) else 0
        b = p2[i] if i < len(p2) else 0
        if a != b:
            return a - b
    return 0


async def _normalize_statistics(store: StateStore) -> int:
    raw = await store.get(StorageKey.USAGE_STATISTICS)
    if not isinstance(raw, dict):
        return 0
    migrated: dict[str, Any] = {}
    for user_id, record in raw.items():
        # from_dict backfills websitesHistory and clamps negative counters.
        migrated[user_id] = UsageStatistics.from_dict(record).to_dict()
    await store.set(StorageKey.USAGE_STATISTICS, migrated)
    return len(migrated)


async def migrate_if_needed(store: StateStore, current_version: str = __version__) -> list[str]:
    """Apply pending migrations; returns the names of the steps that ran."""
    previous = await store.get(StorageKey.COORDINATOR_VERSION)
    previous_version = str(previous) if previous else None
    if previous_version is not None and compare_versions(previous_version, current_version) == 0:
        return []

    applied: list[str] = []
    if previous_version is None or compare_versions(previous_version, "1.0.0") < 0:
        _LOGGER.info("Migrating from pre-1.0.0 version (%s)", previous_version or "unknown")
        count = await _normalize_statistics(store)
        applied.append(f"statistics:{count}")

    await store.set(StorageKey.COORDINATOR_VERSION, current_version)
    if previous_version is not None:
        _LOGGER.info("Coordinator updated from version %s to %s", previous_version, current_version)
    return applied


__all__ = ["compare_versions", "migrate_if_needed"]
