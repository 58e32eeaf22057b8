from typing import Any
import redis
from cachetools import TTLCache
from .config import settings

# In-process cache for quick wins and local dev.
_local_cache = TTLCache(maxsize=4096, ttl=settings.CACHE_TTL_SECONDS)

class Cache:
    """
    Thin abstraction over Redis/in-memory so swapping is one flag away.
    """
    def __init__(self):
        self.backend = None
        if settings.USE_REDIS:
            self.backend = redis.Redis.from_url(settings.REDIS_URL, decode_responses=True)

    def get(self, key: str) -> Any | None:
        if self.backend:
            return self.backend.get(key)
        return _local_cache.get(key)

    def set(self, key: str, value: str) -> None:
        if self.backend:
            self.backend.setex(key, settings.CACHE_TTL_SECONDS, value)
        else:
            _local_cache[key] = value

    def clear(self) -> None:
        """Drop in-process entries (tests, forced refresh). Redis keys expire on their own."""
        _local_cache.clear()

cache = Cache()
