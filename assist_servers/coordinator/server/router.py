"""
Message router with dispatch tables for one-shot and connection messages.

Each message variant maps to exactly one handler; building a router with a
variant left unhandled fails immediately instead of at message time.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from .handlers import ONE_SHOT_HANDLERS, PORT_HANDLERS
from .messages import ONE_SHOT_MESSAGES, PORT_MESSAGES, message_type, parse_one_shot, parse_port
from .types import HandlerResult, RouterReply, Sender

if TYPE_CHECKING:
    from ..connections import Connection
    from ..context import CoordinatorContext

logger = logging.getLogger("assist.coordinator.router")


def unknown_type_response(mtype: str) -> dict[str, Any]:
    return {"success": False, "error": f"Unknown message type: {mtype}"}


def _check_coverage(handlers: dict[type, Any], variants: tuple[type, ...], kind: str) -> None:
    missing = [v.TYPE for v in variants if v not in handlers]
    if missing:
        raise ValueError(f"No {kind} handler for: {', '.join(missing)}")
    extra = [getattr(h, "TYPE", repr(h)) for h in handlers if h not in variants]
    if extra:
        raise ValueError(f"Handlers registered for unknown {kind} messages: {', '.join(extra)}")


class MessageRouter:
    """Routes inbound messages to handlers and normalizes their results."""

    def __init__(
        self,
        ctx: CoordinatorContext,
        *,
        handlers: dict[type, Any] | None = None,
        port_handlers: dict[type, Any] | None = None,
    ) -> None:
        self.ctx = ctx
        self._handlers = dict(ONE_SHOT_HANDLERS if handlers is None else handlers)
        self._port_handlers = dict(PORT_HANDLERS if port_handlers is None else port_handlers)
        _check_coverage(self._handlers, ONE_SHOT_MESSAGES, "one-shot")
        _check_coverage(self._port_handlers, PORT_MESSAGES, "port")
        ctx.connections.set_inbound_handler(self.handle_port_message)

    # ─────────────────────────────────────────────────────────────────────────
    # One-shot
    # ─────────────────────────────────────────────────────────────────────────

    def route(self, raw: Any, sender: Sender | None = None) -> RouterReply:
        """Answer immediately (unknown type) or start the handler and return a pending reply."""
        mtype = message_type(raw)
        message = parse_one_shot(raw)
        if message is None:
            logger.warning("unknown message type=%r context=%s", mtype, sender.context_id if sender else None)
            return RouterReply(response=unknown_type_response(mtype))

        logger.info("message type=%s context=%s", mtype, sender.context_id if sender else None)
        task = asyncio.create_task(self._invoke(message, sender or Sender()))
        return RouterReply(task=task)

    async def handle(self, raw: Any, sender: Sender | None = None) -> dict[str, Any]:
        return await self.route(raw, sender).wait()

    async def _invoke(self, message: Any, sender: Sender) -> dict[str, Any]:
        handler = self._handlers[type(message)]
        try:
            result = await handler(self.ctx, message, sender)
        except Exception as exc:
            logger.exception("message_failed type=%s", message.TYPE)
            result = HandlerResult.fail(str(exc) or type(exc).__name__)
        if not isinstance(result, HandlerResult):
            result = HandlerResult.fail(f"Handler for {message.TYPE} returned no result")
        return result.to_envelope()

    # ─────────────────────────────────────────────────────────────────────────
    # Connection messages
    # ─────────────────────────────────────────────────────────────────────────

    async def handle_port_message(self, connection: Connection, raw: Any) -> None:
        mtype = message_type(raw)
        message = parse_port(raw)
        if message is None:
            logger.warning("Unknown port message type: %s", mtype)
            return

        logger.info("port message type=%s connection=%s", mtype, connection.connection_id)
        handler = self._port_handlers[type(message)]
        try:
            await handler(self.ctx, message, connection)
        except Exception:
            logger.exception("port_message_failed type=%s", mtype)

    @property
    def message_types(self) -> list[str]:
        return [cls.TYPE for cls in self._handlers]

    @property
    def port_message_types(self) -> list[str]:
        return [cls.TYPE for cls in self._port_handlers]


__all__ = ["MessageRouter", "unknown_type_response"]
