"""
Handler plumbing shared by every message handler.

One-shot handlers follow the signature: (ctx, message, sender) -> HandlerResult
Port handlers follow the signature: (ctx, message, connection) -> None
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import TYPE_CHECKING, Any

from ...store import StoreError
from ..types import HandlerResult, Sender

if TYPE_CHECKING:
    from ...connections import Connection
    from ...context import CoordinatorContext

logger = logging.getLogger("assist.coordinator.handlers")

OneShotHandler = Callable[["CoordinatorContext", Any, Sender], Awaitable[HandlerResult]]
PortHandler = Callable[["CoordinatorContext", Any, "Connection"], Awaitable[None]]


def store_errors_as_result(action: str) -> Callable[[OneShotHandler], OneShotHandler]:
    """Turn a StoreError raised inside a handler into a failure result."""

    def decorator(func: OneShotHandler) -> OneShotHandler:
        @wraps(func)
        async def wrapper(ctx: CoordinatorContext, message: Any, sender: Sender) -> HandlerResult:
            try:
                return await func(ctx, message, sender)
            except StoreError as exc:
                logger.error("Error %s: %s", action, exc)
                return HandlerResult.fail(str(exc))

        return wrapper

    return decorator


def store_errors_logged(action: str) -> Callable[[PortHandler], PortHandler]:
    """Port handlers have no reply channel: log store failures and carry on."""

    def decorator(func: PortHandler) -> PortHandler:
        @wraps(func)
        async def wrapper(ctx: CoordinatorContext, message: Any, connection: Connection) -> None:
            try:
                await func(ctx, message, connection)
            except StoreError as exc:
                logger.error("Error %s: %s", action, exc)

        return wrapper

    return decorator


__all__ = ["OneShotHandler", "PortHandler", "logger", "store_errors_as_result", "store_errors_logged"]
