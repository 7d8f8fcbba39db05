"""
Result and reply types shared by the router and its handlers.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

_NO_DATA = object()


@dataclass(frozen=True, slots=True)
class Sender:
    """Who sent a message. Contexts that are not pages (e.g. the web app) have no id."""

    context_id: str | None = None
    url: str | None = None


@dataclass(frozen=True, slots=True)
class HandlerResult:
    """Outcome of one handler: success (optionally with data) or an error string."""

    success: bool
    data: Any = _NO_DATA
    error: str | None = None

    @classmethod
    def ok(cls, data: Any = _NO_DATA) -> HandlerResult:
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, message: str) -> HandlerResult:
        return cls(success=False, error=str(message or "unknown error"))

    @property
    def has_data(self) -> bool:
        return self.data is not _NO_DATA

    def to_envelope(self) -> dict[str, Any]:
        if not self.success:
            return {"success": False, "error": self.error or "unknown error"}
        envelope: dict[str, Any] = {"success": True}
        if self.has_data:
            envelope["data"] = self.data
        return envelope


@dataclass(slots=True)
class RouterReply:
    """Either an immediate response or a pending one (a running handler task)."""

    response: dict[str, Any] | None = None
    task: asyncio.Task | None = None

    @property
    def pending(self) -> bool:
        return self.task is not None

    async def wait(self) -> dict[str, Any]:
        if self.task is None:
            return self.response or {"success": False, "error": "no response"}
        return await self.task


__all__ = ["HandlerResult", "RouterReply", "Sender"]
