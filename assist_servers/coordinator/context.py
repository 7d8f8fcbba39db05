"""Coordinator context: everything a handler may touch, passed explicitly.

The active user lives here rather than in a module global. It is set at startup
when a persisted auth token and user id both exist (the token is trusted, not
verified) and cleared on logout or data clear.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from typing import Any

from .broadcast import ContextDirectory, FanOutBroadcaster
from .connections import ConnectionManager
from .preferences import PreferenceStore
from .stats import StatisticsAggregator
from .store import StateStore, StorageKey

_LOGGER = logging.getLogger("assist.coordinator.context")


def _now_ms() -> int:
    return int(time.time() * 1000)


class CoordinatorContext:
    def __init__(self, store: StateStore, *, error_log_size: int = 200) -> None:
        self.store = store
        self.stats = StatisticsAggregator(store)
        self.preferences = PreferenceStore(store)
        self.directory = ContextDirectory()
        self.broadcaster = FanOutBroadcaster(self.directory)
        self.connections = ConnectionManager()
        self.active_user: str | None = None
        self.error_log: deque[dict[str, Any]] = deque(maxlen=max(1, int(error_log_size)))

    # ─────────────────────────────────────────────────────────────────────────
    # Active user
    # ─────────────────────────────────────────────────────────────────────────

    async def bootstrap(self) -> str | None:
        """Restore the active user from a persisted token + user id pair."""
        token = await self.store.get(StorageKey.AUTH_TOKEN)
        user_id = await self.store.get(StorageKey.USER_ID)
        if token and user_id:
            self.active_user = str(user_id)
            _LOGGER.info("user is authenticated user=%s", self.active_user)
        else:
            self.active_user = None
            _LOGGER.info("user is not authenticated")
        return self.active_user

    async def set_active_user(self, user_id: str) -> None:
        await self.store.set(StorageKey.USER_ID, user_id)
        self.active_user = user_id

    async def login(self, user_id: str, token: str) -> None:
        await self.store.set(StorageKey.AUTH_TOKEN, token)
        await self.set_active_user(user_id)

    async def logout(self) -> None:
        await self.store.remove([StorageKey.AUTH_TOKEN, StorageKey.USER_ID, StorageKey.ACTIVE_PROFILE])
        self.active_user = None

    async def clear_user_data(self) -> None:
        await self.store.remove(StorageKey.USER_DATA)
        self.active_user = None
        _LOGGER.info("user data cleared")

    async def current_user(self) -> str | None:
        """Active user, falling back to the persisted id (set by another process)."""
        if self.active_user:
            return self.active_user
        user_id = await self.store.get(StorageKey.USER_ID)
        return str(user_id) if user_id else None

    # ─────────────────────────────────────────────────────────────────────────
    # Diagnostics
    # ─────────────────────────────────────────────────────────────────────────

    def record_error(self, error: Any, context: Any) -> dict[str, Any]:
        entry = {
            "ts": _now_ms(),
            "context": str(context)[:200] if context is not None else None,
            "error": str(error)[:2000] if error is not None else "",
        }
        self.error_log.append(entry)
        return entry

    def status(self) -> dict[str, Any]:
        return {
            "activeUser": self.active_user,
            "contexts": len(self.directory),
            "connections": [c.describe() for c in self.connections.active()],
            "pendingDeliveries": self.broadcaster.pending,
            "recentErrors": list(self.error_log)[-20:],
        }

    async def shutdown(self) -> None:
        await self.connections.shutdown()
        await self.broadcaster.drain()


__all__ = ["CoordinatorContext"]
