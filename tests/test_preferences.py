from __future__ import annotations

import asyncio


def test_preference_upsert_keeps_other_domains() -> None:
    from assist_servers.coordinator.preferences import PreferenceStore
    from assist_servers.coordinator.store import MemoryStateStore, StorageKey

    store = MemoryStateStore()
    prefs = PreferenceStore(store)

    async def _main() -> None:
        first = await prefs.set({"userId": "u1", "domain": "example.com", "fontSize": 18})
        assert first.ok
        await prefs.set({"userId": "u1", "domain": "news.test", "highContrast": True})
        await prefs.set({"userId": "u1", "domain": "example.com", "fontSize": 20})

        assert await prefs.get("u1", "example.com") == {"userId": "u1", "domain": "example.com", "fontSize": 20}
        assert await prefs.get("u1", "news.test") == {"userId": "u1", "domain": "news.test", "highContrast": True}
        assert await prefs.get("u1", "other.com") is None
        assert await prefs.get("u2", "example.com") is None

    asyncio.run(_main())
    assert set(store.snapshot()[StorageKey.WEBSITE_PREFERENCES]["u1"]) == {"example.com", "news.test"}


def test_preference_set_without_identifiers_fails_without_writing() -> None:
    from assist_servers.coordinator.preferences import PreferenceStore
    from assist_servers.coordinator.store import MemoryStateStore

    store = MemoryStateStore()
    prefs = PreferenceStore(store)

    async def _main() -> None:
        for bad in ({"userId": "u1", "fontSize": 18}, {"domain": "example.com"}, {"userId": "", "domain": "x"}, None):
            res = await prefs.set(bad)
            assert res.ok is False
            assert res.error == "Invalid preferences data"

    asyncio.run(_main())
    assert store.snapshot() == {}


def test_preferences_for_url_resolves_hostname() -> None:
    from assist_servers.coordinator.preferences import PreferenceStore
    from assist_servers.coordinator.store import MemoryStateStore

    prefs = PreferenceStore(MemoryStateStore())

    async def _main() -> None:
        await prefs.set({"userId": "u1", "domain": "example.com", "fontSize": 18})
        assert (await prefs.for_url("u1", "https://Example.com/path?q=1"))["fontSize"] == 18
        assert await prefs.for_url("u1", "https://other.com/") is None
        assert await prefs.for_url("u1", "not a url") is None
        assert await prefs.for_url("u1", None) is None

    asyncio.run(_main())


def test_host_matches_domain_includes_subdomains() -> None:
    from assist_servers.coordinator.urls import domain_from_url, host_matches_domain

    assert host_matches_domain("example.com", "example.com")
    assert host_matches_domain("www.example.com", "example.com")
    assert not host_matches_domain("notexample.com", "example.com")
    assert not host_matches_domain(None, "example.com")
    assert domain_from_url("https://www.Example.com:8443/a") == "www.example.com"
    assert domain_from_url("example.com") is None


def test_preference_domain_keys_are_case_insensitive() -> None:
    from assist_servers.coordinator.preferences import PreferenceStore
    from assist_servers.coordinator.store import MemoryStateStore, StorageKey

    store = MemoryStateStore()
    prefs = PreferenceStore(store)

    async def _main() -> None:
        written = await prefs.set({"userId": "u1", "domain": " Example.COM ", "fontSize": 18})
        assert written.domain == "example.com"
        assert (await prefs.for_url("u1", "https://example.com/a"))["fontSize"] == 18
        assert (await prefs.get("u1", "EXAMPLE.com"))["fontSize"] == 18

    asyncio.run(_main())
    assert list(store.snapshot()[StorageKey.WEBSITE_PREFERENCES]["u1"]) == ["example.com"]
