"""Per-(user, domain) website preference overrides.

Stored as one blob (`website_preferences`): userId -> domain -> record. Each
record carries its own `userId` and `domain`; domain keys are lowercase.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .store import StateStore, StorageKey
from .urls import domain_from_url


@dataclass(frozen=True, slots=True)
class PreferenceWrite:
    ok: bool
    record: dict[str, Any] | None = None
    domain: str | None = None
    error: str | None = None


def _identifier(value: Any) -> str | None:
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return None


class PreferenceStore:
    def __init__(self, store: StateStore) -> None:
        self._store = store

    async def _load_all(self) -> dict[str, Any]:
        raw = await self._store.get(StorageKey.WEBSITE_PREFERENCES)
        return raw if isinstance(raw, dict) else {}

    async def get(self, user_id: str, domain: str) -> dict[str, Any] | None:
        user_prefs = (await self._load_all()).get(user_id)
        if not isinstance(user_prefs, dict):
            return None
        record = user_prefs.get(domain.strip().lower())
        return record if isinstance(record, dict) else None

    async def for_url(self, user_id: str, url: str | None) -> dict[str, Any] | None:
        domain = domain_from_url(url)
        if domain is None:
            return None
        return await self.get(user_id, domain)

    async def set(self, record: Any) -> PreferenceWrite:
        """Upsert a record; missing identifiers fail without touching the store."""
        if not isinstance(record, dict):
            return PreferenceWrite(ok=False, error="Invalid preferences data")
        user_id = _identifier(record.get("userId"))
        domain = _identifier(record.get("domain"))
        if domain is not None:
            # Hosts from URLs are lowercase; keys must match them.
            domain = domain.lower()
        if user_id is None or domain is None:
            return PreferenceWrite(ok=False, error="Invalid preferences data")

        all_prefs = await self._load_all()
        user_prefs = all_prefs.get(user_id)
        if not isinstance(user_prefs, dict):
            user_prefs = {}
            all_prefs[user_id] = user_prefs
        user_prefs[domain] = dict(record)
        await self._store.set(StorageKey.WEBSITE_PREFERENCES, all_prefs)
        return PreferenceWrite(ok=True, record=dict(record), domain=domain)


__all__ = ["PreferenceStore", "PreferenceWrite"]
