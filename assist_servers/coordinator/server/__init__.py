"""Server package for the coordinator message router.

Keep this package import light: importing `assist_servers.coordinator.server.*`
should not eagerly pull the handler tables (avoids circular imports with the
coordinator context).
"""

from __future__ import annotations

from typing import Any

__all__ = ["MessageRouter", "Sender"]


def __getattr__(name: str) -> Any:  # pragma: no cover
    if name == "MessageRouter":
        from .router import MessageRouter

        return MessageRouter
    if name == "Sender":
        from .types import Sender

        return Sender
    raise AttributeError(name)
