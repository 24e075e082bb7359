"""Unit tests for the per-tenant TTL cache."""

from __future__ import annotations

from lemrecon.core.cache import TTLCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestTTLCache:
    def test_get_within_ttl(self):
        clock = FakeClock()
        cache = TTLCache(ttl_seconds=60, clock=clock)
        cache.set("acme", {"rate": 50})
        clock.now += 59
        assert cache.get("acme") == {"rate": 50}
        assert "acme" in cache

    def test_expires(self):
        clock = FakeClock()
        cache = TTLCache(ttl_seconds=60, clock=clock)
        cache.set("acme", 1)
        clock.now += 60
        assert cache.get("acme") is None
        assert "acme" not in cache

    def test_tenants_are_separate(self):
        cache = TTLCache(ttl_seconds=60, clock=FakeClock())
        cache.set("acme", 1)
        assert cache.get("other") is None

    def test_invalidate_one(self):
        cache = TTLCache(ttl_seconds=60, clock=FakeClock())
        cache.set("acme", 1)
        cache.set("other", 2)
        cache.invalidate("acme")
        assert cache.get("acme") is None
        assert cache.get("other") == 2

    def test_invalidate_all(self):
        cache = TTLCache(ttl_seconds=60, clock=FakeClock())
        cache.set("acme", 1)
        cache.set("other", 2)
        cache.invalidate()
        assert cache.get("acme") is None
        assert cache.get("other") is None
