"""Per-user usage statistics.

All users share one persisted blob (`usage_statistics`: userId -> record). Every
operation reads the whole blob, mutates one record in memory and writes the blob
back. Two concurrent updates can still lose one of them (last write wins for the
whole blob); the store offers no cross-task locking.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from .store import StateStore, StorageKey

_LOGGER = logging.getLogger("assist.coordinator.stats")

MAX_WEBSITES_HISTORY = 100


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _non_negative_int(value: Any) -> int:
    if not _is_number(value):
        return 0
    return max(0, int(value))


def _non_negative_number(value: Any) -> int | float:
    if not _is_number(value):
        return 0
    return value if value > 0 else 0


@dataclass
class UsageStatistics:
    feature_usage: dict[str, int] = field(default_factory=dict)
    session_count: int = 0
    total_time_spent: int | float = 0
    websites_visited: int = 0
    websites_history: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, raw: Any) -> UsageStatistics:
        if not isinstance(raw, dict):
            return cls()
        usage_raw = raw.get("featureUsage")
        usage: dict[str, int] = {}
        if isinstance(usage_raw, dict):
            for name, count in usage_raw.items():
                if isinstance(name, str) and name:
                    usage[name] = _non_negative_int(count)
        history_raw = raw.get("websitesHistory")
        # Records written before history tracking have no websitesHistory at all.
        history = [d for d in history_raw if isinstance(d, str)] if isinstance(history_raw, list) else []
        return cls(
            feature_usage=usage,
            session_count=_non_negative_int(raw.get("sessionCount")),
            total_time_spent=_non_negative_number(raw.get("totalTimeSpent")),
            websites_visited=_non_negative_int(raw.get("websitesVisited")),
            websites_history=history[-MAX_WEBSITES_HISTORY:],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "featureUsage": dict(self.feature_usage),
            "sessionCount": self.session_count,
            "totalTimeSpent": self.total_time_spent,
            "websitesVisited": self.websites_visited,
            "websitesHistory": list(self.websites_history),
        }

    def add_feature_usage(self, feature_name: str, count: int) -> None:
        self.feature_usage[feature_name] = self.feature_usage.get(feature_name, 0) + count

    def add_website(self, domain: str) -> bool:
        if domain in self.websites_history:
            return False
        self.websites_history.append(domain)
        if len(self.websites_history) > MAX_WEBSITES_HISTORY:
            self.websites_history = self.websites_history[-MAX_WEBSITES_HISTORY:]
        self.websites_visited += 1
        return True


class StatisticsAggregator:
    """Additive merge of usage updates into per-user accumulators."""

    def __init__(self, store: StateStore) -> None:
        self._store = store

    async def _load_all(self) -> dict[str, Any]:
        raw = await self._store.get(StorageKey.USAGE_STATISTICS)
        return raw if isinstance(raw, dict) else {}

    async def _save_all(self, all_stats: dict[str, Any]) -> None:
        await self._store.set(StorageKey.USAGE_STATISTICS, all_stats)

    async def get(self, user_id: str) -> UsageStatistics:
        all_stats = await self._load_all()
        return UsageStatistics.from_dict(all_stats.get(user_id))

    async def record_feature_used(self, user_id: str, feature_name: str, count: int = 1) -> UsageStatistics:
        all_stats = await self._load_all()
        stats = UsageStatistics.from_dict(all_stats.get(user_id))
        stats.add_feature_usage(feature_name, count)
        all_stats[user_id] = stats.to_dict()
        await self._save_all(all_stats)
        return stats

    async def record_page_load(self, user_id: str, domain: str) -> bool:
        """Track a visited domain; returns True when the domain was not seen before."""
        all_stats = await self._load_all()
        stats = UsageStatistics.from_dict(all_stats.get(user_id))
        is_new = stats.add_website(domain)
        all_stats[user_id] = stats.to_dict()
        await self._save_all(all_stats)
        if is_new:
            _LOGGER.debug("new website recorded user=%s visited=%d", user_id, stats.websites_visited)
        return is_new

    async def merge_stats(self, user_id: str, partial: dict[str, Any]) -> UsageStatistics:
        """Merge a partial update.

        - featureUsage: summed key by key.
        - sessionCount / timeSpent: added when numeric.
        Absent fields are no-ops; negative or non-numeric values are ignored, so
        there is no path that decreases a counter.
        """
        all_stats = await self._load_all()
        stats = UsageStatistics.from_dict(all_stats.get(user_id))

        usage = partial.get("featureUsage")
        if isinstance(usage, dict):
            for name, count in usage.items():
                if not isinstance(name, str) or not name:
                    continue
                if not _is_number(count) or count < 0:
                    continue
                stats.add_feature_usage(name, int(count))

        session_count = partial.get("sessionCount")
        if _is_number(session_count) and session_count >= 0:
            stats.session_count += int(session_count)

        time_spent = partial.get("timeSpent")
        if _is_number(time_spent) and time_spent >= 0:
            stats.total_time_spent += time_spent

        all_stats[user_id] = stats.to_dict()
        await self._save_all(all_stats)
        return stats


__all__ = ["MAX_WEBSITES_HISTORY", "StatisticsAggregator", "UsageStatistics"]
