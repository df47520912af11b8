"""Tests for the discovery cache."""

from promptreg.cache import TTLCache, cache_key


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestTTLCache:
    """Expiry behaviour."""

    def test_hit_within_ttl(self):
        """Test that a value is returned before it expires."""
        clock = FakeClock()
        cache = TTLCache(ttl=300, clock=clock)
        cache.set("k", ("a",))

        clock.now += 299
        assert cache.get("k") == ("a",)

    def test_expires_at_ttl(self):
        """Test that a value expires once the TTL has elapsed."""
        clock = FakeClock()
        cache = TTLCache(ttl=300, clock=clock)
        cache.set("k", ("a",))

        clock.now += 300
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_clear(self):
        """Test clearing all entries."""
        cache = TTLCache(ttl=300)
        cache.set("a", 1)
        cache.set("b", 2)

        cache.clear()

        assert cache.get("a") is None
        assert len(cache) == 0

    def test_cache_key(self):
        """Test that URL and branch form the key."""
        assert cache_key("https://github.com/o/r", "dev") == "https://github.com/o/r-dev"
        assert cache_key("https://github.com/o/r", "dev") != cache_key("https://github.com/o/r", "main")
