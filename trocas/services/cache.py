"""Read-through query cache with explicit invalidation."""

import json
from typing import Any, Awaitable, Callable

import redis.asyncio as redis
import structlog

from trocas.config import settings

logger = structlog.get_logger()

Loader = Callable[[], Awaitable[Any]]


def cache_key(*parts: Any) -> str:
    """Join key parts, e.g. ``cache_key("return-requests", owner_id, "all")``."""
    return ":".join(str(part) for part in parts)


class QueryCache:
    """
    Process-wide cache of JSON-serializable query results, stored in Redis.

    Keys are hierarchical (``return-requests:<owner>:<store>``) so that
    ``invalidate("return-requests:<owner>")`` drops every variant for an owner.
    Writers must call :meth:`invalidate` after each successful commit. When
    Redis is unreachable the loader runs directly.
    """

    def __init__(
        self,
        redis_url: str | None = None,
        ttl_seconds: int | None = None,
        prefix: str | None = None,
        enabled: bool | None = None,
    ):
        self.redis_url = redis_url or settings.redis_url
        self.ttl_seconds = ttl_seconds or settings.cache_ttl_seconds
        self.prefix = prefix or settings.cache_prefix
        self.enabled = settings.cache_enabled if enabled is None else enabled
        self._redis: redis.Redis | None = None

    async def get_redis(self) -> redis.Redis:
        """Get or create Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url)
        return self._redis

    def _full_key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    async def get_or_load(self, key: str, loader: Loader) -> Any:
        """Return the cached value for key, loading and storing it on a miss."""
        if not self.enabled:
            return await loader()

        full_key = self._full_key(key)
        try:
            r = await self.get_redis()
            cached = await r.get(full_key)
        except Exception as e:
            logger.warning("cache_read_failed", key=key, error=str(e))
            return await loader()

        if cached is not None:
            logger.debug("cache_hit", key=key)
            return json.loads(cached)

        value = await loader()
        try:
            await r.set(full_key, json.dumps(value), ex=self.ttl_seconds)
        except Exception as e:
            logger.warning("cache_write_failed", key=key, error=str(e))
        return value

    async def invalidate(self, key: str) -> None:
        """Drop key and every key nested under it."""
        if not self.enabled:
            return

        full_key = self._full_key(key)
        try:
            r = await self.get_redis()
            keys = [full_key]
            async for nested in r.scan_iter(match=f"{full_key}:*"):
                keys.append(nested)
            await r.delete(*keys)
            logger.debug("cache_invalidated", key=key, count=len(keys))
        except Exception as e:
            logger.warning("cache_invalidate_failed", key=key, error=str(e))

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


_cache: QueryCache | None = None


def get_cache() -> QueryCache:
    """Get the shared cache (FastAPI dependency)."""
    global _cache
    if _cache is None:
        _cache = QueryCache()
    return _cache
