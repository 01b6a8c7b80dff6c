import unittest
from unittest.mock import MagicMock, patch

from backend.cache import InMemoryCache, RedisCache, user_cache_key


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class InMemoryCacheTests(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.cache = InMemoryCache(max_entries=2, default_ttl_seconds=300, clock=self.clock)

    def test_get_or_set_computes_once(self):
        compute = MagicMock(return_value={"layout": "x"})
        self.assertEqual(self.cache.get_or_set("k", compute), ({"layout": "x"}, False))
        self.assertEqual(self.cache.get_or_set("k", compute), ({"layout": "x"}, True))
        compute.assert_called_once()

    def test_entries_expire(self):
        self.cache.set("k", 1, ttl_seconds=10)
        self.clock.now += 11
        self.assertIsNone(self.cache.get("k"))
        self.assertEqual(self.cache.stats()["size"], 0)

    def test_evicts_oldest_key(self):
        self.cache.set("a", 1)
        self.cache.set("b", 2)
        self.cache.set("c", 3)
        self.assertIsNone(self.cache.get("a"))
        self.assertEqual(self.cache.get("c"), 3)

    def test_clear_expired_and_stats(self):
        self.cache.set("short", 1, ttl_seconds=5)
        self.cache.set("long", 2, ttl_seconds=500)
        self.clock.now += 10
        self.assertEqual(self.cache.clear_expired(), 1)
        self.cache.get("long")
        self.cache.get("missing")
        self.assertEqual(
            self.cache.stats(), {"hits": 1, "misses": 1, "size": 1, "hitRate": 0.5}
        )

    def test_delete_and_clear(self):
        self.cache.set("a", 1)
        self.assertTrue(self.cache.delete("a"))
        self.assertFalse(self.cache.delete("a"))
        self.cache.set("b", 2)
        self.cache.clear()
        self.assertEqual(self.cache.stats()["size"], 0)

    def test_user_cache_key(self):
        self.assertEqual(
            user_cache_key("dashboard", "user-1", "balance_hero,credit_score"),
            "dashboard:user-1:balance_hero,credit_score",
        )


class RedisCacheTests(unittest.TestCase):
    @patch("backend.cache.redis.Redis.from_url")
    def test_values_are_json_with_ttl(self, mock_from_url):
        client = MagicMock()
        client.get.return_value = None
        mock_from_url.return_value = client
        cache = RedisCache("redis://localhost:6379/0", default_ttl_seconds=300)

        value, cached = cache.get_or_set("dashboard:u1", lambda: {"mood": "calm"})

        self.assertFalse(cached)
        self.assertEqual(value, {"mood": "calm"})
        client.set.assert_called_once_with(
            "saveplus:cache:dashboard:u1", '{"mood": "calm"}', ex=300
        )

        client.get.return_value = b'{"mood": "calm"}'
        self.assertEqual(cache.get("dashboard:u1"), {"mood": "calm"})
        self.assertEqual(cache.hits, 1)


if __name__ == "__main__":
    unittest.main()
