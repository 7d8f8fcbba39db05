"""
Message variants.

Every recognized message type is one frozen dataclass. One-shot variants are
answered with a response envelope; port variants arrive over a connection and
are handled for effect only. Parsing only selects the variant and extracts its
fields; validation of required fields belongs to the handlers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar

APPLY_ACCESSIBILITY_FEATURES = "APPLY_ACCESSIBILITY_FEATURES"


def _text(value: Any) -> str | None:
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return None


def _payload(raw: dict[str, Any]) -> dict[str, Any]:
    payload = raw.get("payload")
    return payload if isinstance(payload, dict) else {}


# ─────────────────────────────────────────────────────────────────────────────
# One-shot
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class SyncSettings:
    TYPE: ClassVar[str] = "SYNC_SETTINGS"
    settings: Any = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> SyncSettings:
        return cls(settings=payload.get("settings"))


@dataclass(frozen=True, slots=True)
class SyncStats:
    TYPE: ClassVar[str] = "SYNC_STATS"
    user_id: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> SyncStats:
        return cls(user_id=_text(payload.get("userId")))


@dataclass(frozen=True, slots=True)
class ApplySettings:
    TYPE: ClassVar[str] = "APPLY_SETTINGS"
    settings: Any = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> ApplySettings:
        return cls(settings=payload.get("settings"))


@dataclass(frozen=True, slots=True)
class GetWebsitePreferences:
    TYPE: ClassVar[str] = "GET_WEBSITE_PREFERENCES"
    user_id: str | None = None
    domain: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> GetWebsitePreferences:
        return cls(user_id=_text(payload.get("userId")), domain=_text(payload.get("domain")))


@dataclass(frozen=True, slots=True)
class SetWebsitePreferences:
    TYPE: ClassVar[str] = "SET_WEBSITE_PREFERENCES"
    preferences: Any = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> SetWebsitePreferences:
        return cls(preferences=payload.get("preferences"))


@dataclass(frozen=True, slots=True)
class FeatureUsed:
    TYPE: ClassVar[str] = "FEATURE_USED"
    user_id: str | None = None
    feature_name: str | None = None
    count: Any = 1

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> FeatureUsed:
        count = payload.get("count")
        return cls(
            user_id=_text(payload.get("userId")),
            feature_name=_text(payload.get("featureName")),
            count=1 if count is None else count,
        )


@dataclass(frozen=True, slots=True)
class RequestSettings:
    TYPE: ClassVar[str] = "REQUEST_SETTINGS"
    url: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> RequestSettings:
        return cls(url=_text(payload.get("url")))


@dataclass(frozen=True, slots=True)
class UpdateStatistics:
    TYPE: ClassVar[str] = "UPDATE_STATISTICS"
    user_id: str | None = None
    stats: dict[str, Any] | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> UpdateStatistics:
        stats = payload.get("stats")
        return cls(user_id=_text(payload.get("userId")), stats=stats if isinstance(stats, dict) else None)


# ─────────────────────────────────────────────────────────────────────────────
# Connection (port) messages
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class PageLoaded:
    TYPE: ClassVar[str] = "PAGE_LOADED"
    url: str | None = None
    title: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> PageLoaded:
        title = payload.get("title")
        return cls(url=_text(payload.get("url")), title=title if isinstance(title, str) else None)


@dataclass(frozen=True, slots=True)
class FeatureActivated:
    TYPE: ClassVar[str] = "FEATURE_ACTIVATED"
    feature_name: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> FeatureActivated:
        return cls(feature_name=_text(payload.get("featureName")))


@dataclass(frozen=True, slots=True)
class FeatureDeactivated:
    TYPE: ClassVar[str] = "FEATURE_DEACTIVATED"
    feature_name: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> FeatureDeactivated:
        return cls(feature_name=_text(payload.get("featureName")))


@dataclass(frozen=True, slots=True)
class LogError:
    TYPE: ClassVar[str] = "LOG_ERROR"
    error: Any = None
    context: Any = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> LogError:
        return cls(error=payload.get("error"), context=payload.get("context"))


ONE_SHOT_MESSAGES: tuple[type, ...] = (
    SyncSettings,
    SyncStats,
    ApplySettings,
    GetWebsitePreferences,
    SetWebsitePreferences,
    FeatureUsed,
    RequestSettings,
    UpdateStatistics,
)

PORT_MESSAGES: tuple[type, ...] = (
    PageLoaded,
    FeatureActivated,
    FeatureDeactivated,
    LogError,
)

_ONE_SHOT_BY_TYPE = {cls.TYPE: cls for cls in ONE_SHOT_MESSAGES}
_PORT_BY_TYPE = {cls.TYPE: cls for cls in PORT_MESSAGES}


def message_type(raw: Any) -> str:
    """Type tag as sent (for error messages); empty when absent."""
    if not isinstance(raw, dict):
        return ""
    mtype = raw.get("type")
    return mtype if isinstance(mtype, str) else str(mtype or "")


def parse_one_shot(raw: Any) -> Any | None:
    cls = _ONE_SHOT_BY_TYPE.get(message_type(raw))
    if cls is None:
        return None
    return cls.from_payload(_payload(raw))


def parse_port(raw: Any) -> Any | None:
    cls = _PORT_BY_TYPE.get(message_type(raw))
    if cls is None:
        return None
    return cls.from_payload(_payload(raw))


def apply_features(settings: Any = None, website_preferences: Any = None, *, include_settings: bool = True) -> dict:
    """Background-to-context push carrying settings and/or a domain override."""
    payload: dict[str, Any] = {}
    if include_settings:
        payload["settings"] = settings
    if website_preferences is not None:
        payload["websitePreferences"] = website_preferences
    return {"type": APPLY_ACCESSIBILITY_FEATURES, "payload": payload}


__all__ = [
    "APPLY_ACCESSIBILITY_FEATURES",
    "ONE_SHOT_MESSAGES",
    "PORT_MESSAGES",
    "ApplySettings",
    "FeatureActivated",
    "FeatureDeactivated",
    "FeatureUsed",
    "GetWebsitePreferences",
    "LogError",
    "PageLoaded",
    "RequestSettings",
    "SetWebsitePreferences",
    "SyncSettings",
    "SyncStats",
    "UpdateStatistics",
    "apply_features",
    "message_type",
    "parse_one_shot",
    "parse_port",
]
