"""Long-lived named channels opened by execution contexts.

Open -> Active -> Closed. Inbound messages on one connection are processed
strictly in arrival order by a single worker task; different connections run
independently. After close nothing is delivered and nothing is buffered.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from .broadcast import MessageSender

_LOGGER = logging.getLogger("assist.coordinator.connections")

InboundHandler = Callable[["Connection", dict[str, Any]], Awaitable[None]]

_CLOSE = object()


@dataclass(eq=False)
class Connection:
    connection_id: str
    name: str
    context_id: str | None
    send: MessageSender
    url: str | None = None
    opened_at_ms: int = field(default_factory=lambda: int(time.time() * 1000))
    closed: bool = False
    received: int = 0
    pushed: int = 0
    _inbox: asyncio.Queue = field(default_factory=asyncio.Queue, repr=False)
    _worker: asyncio.Task | None = field(default=None, repr=False)

    def describe(self) -> dict[str, Any]:
        return {
            "connectionId": self.connection_id,
            "name": self.name,
            **({"contextId": self.context_id} if self.context_id else {}),
            "openedAtMs": self.opened_at_ms,
            "received": self.received,
            "pushed": self.pushed,
        }


class ConnectionManager:
    def __init__(self, on_message: InboundHandler | None = None) -> None:
        self._on_message = on_message
        self._connections: dict[str, Connection] = {}
        self._ids = itertools.count(1)

    def set_inbound_handler(self, on_message: InboundHandler) -> None:
        self._on_message = on_message

    # ─────────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────────

    def open(
        self,
        name: str,
        send: MessageSender,
        *,
        context_id: str | None = None,
        url: str | None = None,
    ) -> Connection:
        # A context re-opens its channel on navigation; the old one is done.
        for existing in list(self._connections.values()):
            if existing.name == name and existing.context_id == context_id and context_id is not None:
                self.close(existing)

        conn = Connection(
            connection_id=f"conn-{next(self._ids)}",
            name=name,
            context_id=context_id,
            send=send,
            url=url,
        )
        conn._worker = asyncio.create_task(self._drain(conn))
        self._connections[conn.connection_id] = conn
        _LOGGER.info("connection opened name=%s context=%s id=%s", name, context_id, conn.connection_id)
        return conn

    def close(self, conn: Connection) -> None:
        if conn.closed:
            return
        conn.closed = True
        self._connections.pop(conn.connection_id, None)
        # Messages already received still run; the worker exits after them.
        conn._inbox.put_nowait(_CLOSE)
        _LOGGER.info("connection closed name=%s id=%s", conn.name, conn.connection_id)

    def close_context(self, context_id: str) -> int:
        closed = 0
        for conn in list(self._connections.values()):
            if conn.context_id == context_id:
                self.close(conn)
                closed += 1
        return closed

    def find(self, name: str, *, context_id: str | None = None) -> Connection | None:
        for conn in self._connections.values():
            if conn.name == name and conn.context_id == context_id:
                return conn
        return None

    def active(self) -> list[Connection]:
        return list(self._connections.values())

    def __len__(self) -> int:
        return len(self._connections)

    # ─────────────────────────────────────────────────────────────────────────
    # Messages
    # ─────────────────────────────────────────────────────────────────────────

    def receive(self, conn: Connection, message: dict[str, Any]) -> bool:
        """Queue an inbound message; False when the connection is already closed."""
        if conn.closed:
            return False
        conn.received += 1
        conn._inbox.put_nowait(message)
        return True

    async def push(self, conn: Connection, message: dict[str, Any]) -> bool:
        """Deliver an unsolicited message; never raises."""
        if conn.closed:
            return False
        try:
            await conn.send(message)
        except Exception as exc:  # noqa: BLE001
            _LOGGER.debug("push failed id=%s: %s", conn.connection_id, exc)
            return False
        conn.pushed += 1
        return True

    async def _drain(self, conn: Connection) -> None:
        while True:
            item = await conn._inbox.get()
            try:
                if item is _CLOSE:
                    return
                handler = self._on_message
                if handler is None:
                    continue
                try:
                    await handler(conn, item)
                except Exception:  # noqa: BLE001
                    _LOGGER.exception("connection message failed id=%s", conn.connection_id)
            finally:
                conn._inbox.task_done()

    async def wait_idle(self) -> None:
        """Wait until every queued inbound message has been handled (tests, shutdown)."""
        pending = [c._inbox.join() for c in self._connections.values()]
        if pending:
            await asyncio.gather(*pending)

    async def shutdown(self) -> None:
        workers = [c._worker for c in self._connections.values() if c._worker is not None]
        for conn in list(self._connections.values()):
            self.close(conn)
        if workers:
            await asyncio.gather(*workers, return_exceptions=True)


__all__ = ["Connection", "ConnectionManager", "InboundHandler"]
