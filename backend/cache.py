"""
TTL cache used for per-user dashboard layouts and quota status snapshots.

The in-memory cache evicts the oldest key once ``max_entries`` is reached.
The Redis cache delegates expiry to Redis and keeps hit/miss counters
locally.
"""

from __future__ import annotations

import json
import time
from collections import OrderedDict
from typing import Any, Callable, Optional, Protocol

import redis
from redis import exceptions as redis_exceptions


class Cache(Protocol):
    def get(self, key: str) -> Optional[Any]:
        ...

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        ...

    def get_or_set(
        self, key: str, compute: Callable[[], Any], ttl_seconds: Optional[int] = None
    ) -> tuple[Any, bool]:
        ...

    def delete(self, key: str) -> bool:
        ...

    def clear(self) -> None:
        ...

    def stats(self) -> dict:
        ...


def user_cache_key(prefix: str, user_id: str, *parts: str) -> str:
    return ":".join([prefix, user_id, *parts])


class _StatsMixin:
    hits: int
    misses: int

    def _hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0

    def get_or_set(
        self, key: str, compute: Callable[[], Any], ttl_seconds: Optional[int] = None
    ) -> tuple[Any, bool]:
        """Returns ``(value, from_cache)``, computing and storing on a miss."""
        cached = self.get(key)
        if cached is not None:
            return cached, True
        value = compute()
        self.set(key, value, ttl_seconds)
        return value, False


class InMemoryCache(_StatsMixin):
    def __init__(
        self,
        max_entries: int = 100,
        default_ttl_seconds: int = 300,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_entries = max_entries
        self.default_ttl_seconds = default_ttl_seconds
        self._clock = clock
        self._entries: "OrderedDict[str, tuple[Any, float]]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None
        value, expires_at = entry
        if self._clock() > expires_at:
            del self._entries[key]
            self.misses += 1
            return None
        self.hits += 1
        return value

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        if key in self._entries:
            del self._entries[key]
        elif len(self._entries) >= self.max_entries:
            self._entries.popitem(last=False)
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._entries[key] = (value, self._clock() + ttl)

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def clear_expired(self) -> int:
        now = self._clock()
        expired = [key for key, (_, expires_at) in self._entries.items() if now > expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def stats(self) -> dict:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "size": len(self._entries),
            "hitRate": self._hit_rate(),
        }


class RedisCache(_StatsMixin):
    """Redis-backed cache storing JSON values under a key prefix."""

    def __init__(self, url: str, prefix: str = "saveplus:cache", default_ttl_seconds: int = 300):
        self.url = url
        self.prefix = prefix
        self.default_ttl_seconds = default_ttl_seconds
        self.client = redis.Redis.from_url(url)
        self.hits = 0
        self.misses = 0

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    def get(self, key: str) -> Optional[Any]:
        try:
            raw = self.client.get(self._key(key))
        except redis_exceptions.ConnectionError:
            self.client = redis.Redis.from_url(self.url)
            raw = None
        if raw is None:
            self.misses += 1
            return None
        self.hits += 1
        return json.loads(raw)

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        self.client.set(self._key(key), json.dumps(value, default=str), ex=ttl)

    def delete(self, key: str) -> bool:
        return bool(self.client.delete(self._key(key)))

    def clear(self) -> None:
        keys = list(self.client.scan_iter(match=f"{self.prefix}:*"))
        if keys:
            self.client.delete(*keys)

    def clear_expired(self) -> int:
        # Redis expires keys itself.
        return 0

    def stats(self) -> dict:
        size = sum(1 for _ in self.client.scan_iter(match=f"{self.prefix}:*"))
        return {
            "hits": self.hits,
            "misses": self.misses,
            "size": size,
            "hitRate": self._hit_rate(),
        }
