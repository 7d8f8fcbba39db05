"""
Message handlers organized by domain.

One-shot handlers: (ctx, message, sender) -> HandlerResult
Port handlers: (ctx, message, connection) -> None
"""

from .port import PORT_HANDLERS
from .preferences import PREFERENCE_HANDLERS
from .settings import SETTINGS_HANDLERS
from .statistics import STATISTICS_HANDLERS

# Aggregate all one-shot handlers
ONE_SHOT_HANDLERS: dict[type, object] = {
    **SETTINGS_HANDLERS,
    **STATISTICS_HANDLERS,
    **PREFERENCE_HANDLERS,
}

__all__ = [
    "ONE_SHOT_HANDLERS",
    "PORT_HANDLERS",
    "PREFERENCE_HANDLERS",
    "SETTINGS_HANDLERS",
    "STATISTICS_HANDLERS",
]
