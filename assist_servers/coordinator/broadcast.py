"""Best-effort fan-out to open execution contexts.

Delivery to each target is independent: a failure (the context went away, has no
listener, the socket is closed) is recorded in that target's outcome and never
raised. Nothing is retried and nothing is buffered for later.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from .urls import domain_from_url, host_matches_domain

_LOGGER = logging.getLogger("assist.coordinator.broadcast")

MessageSender = Callable[[dict[str, Any]], Awaitable[None]]


class DeliveryError(Exception):
    pass


@dataclass(slots=True)
class ContextTarget:
    context_id: str
    send: MessageSender
    url: str | None = None
    registered_at_ms: int = field(default_factory=lambda: int(time.time() * 1000))

    @property
    def host(self) -> str | None:
        return domain_from_url(self.url)


@dataclass(frozen=True, slots=True)
class DeliveryOutcome:
    context_id: str
    delivered: bool
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"contextId": self.context_id, "delivered": self.delivered}
        if self.error:
            out["error"] = self.error
        return out


class ContextDirectory:
    """Currently addressable execution contexts (one per open page)."""

    def __init__(self) -> None:
        self._targets: dict[str, ContextTarget] = {}

    def register(self, context_id: str, send: MessageSender, *, url: str | None = None) -> ContextTarget:
        target = ContextTarget(context_id=context_id, send=send, url=url)
        self._targets[context_id] = target
        return target

    def unregister(self, context_id: str, *, send: MessageSender | None = None) -> None:
        """Forget a context; with `send`, only if it still belongs to that sender."""
        target = self._targets.get(context_id)
        if target is None:
            return
        if send is not None and target.send != send:
            return
        self._targets.pop(context_id, None)

    def update_url(self, context_id: str, url: str | None) -> None:
        target = self._targets.get(context_id)
        if target is not None:
            target.url = url

    def get(self, context_id: str) -> ContextTarget | None:
        return self._targets.get(context_id)

    def targets(self, domain: str | None = None) -> list[ContextTarget]:
        items = list(self._targets.values())
        if domain is None:
            return items
        return [t for t in items if host_matches_domain(t.host, domain)]

    async def send(self, context_id: str, message: dict[str, Any]) -> None:
        target = self._targets.get(context_id)
        if target is None:
            raise DeliveryError(f"No execution context: {context_id}")
        await target.send(message)

    def __len__(self) -> int:
        return len(self._targets)


class FanOutBroadcaster:
    def __init__(self, directory: ContextDirectory) -> None:
        self.directory = directory
        self._tasks: set[asyncio.Task] = set()

    async def deliver(self, context_id: str, message: dict[str, Any]) -> DeliveryOutcome:
        try:
            await self.directory.send(context_id, message)
        except Exception as exc:  # noqa: BLE001
            _LOGGER.debug("delivery failed context=%s: %s", context_id, exc)
            return DeliveryOutcome(context_id=context_id, delivered=False, error=str(exc) or type(exc).__name__)
        return DeliveryOutcome(context_id=context_id, delivered=True)

    async def broadcast(self, message: dict[str, Any], *, domain: str | None = None) -> list[DeliveryOutcome]:
        """Deliver to every open context (or those on `domain`) concurrently."""
        targets = self.directory.targets(domain)
        if not targets:
            return []
        outcomes = await asyncio.gather(*[self.deliver(t.context_id, message) for t in targets])
        failed = sum(1 for o in outcomes if not o.delivered)
        if failed:
            _LOGGER.debug("fan-out type=%s targets=%d failed=%d", message.get("type"), len(outcomes), failed)
        return list(outcomes)

    def _track(self, task: asyncio.Task) -> asyncio.Task:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def dispatch(self, message: dict[str, Any], *, domain: str | None = None) -> asyncio.Task:
        """Schedule a broadcast without making the caller wait for delivery."""
        return self._track(asyncio.create_task(self.broadcast(message, domain=domain)))

    def dispatch_to(self, context_id: str, message: dict[str, Any]) -> asyncio.Task:
        return self._track(asyncio.create_task(self.deliver(context_id, message)))

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for scheduled deliveries (shutdown, tests)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


__all__ = [
    "ContextDirectory",
    "ContextTarget",
    "DeliveryError",
    "DeliveryOutcome",
    "FanOutBroadcaster",
    "MessageSender",
]
