"""
Redis cache for candidate pages
"""
from typing import Optional, Any
import json

import redis.asyncio as redis
import structlog

from hiring_pipeline.core.config import settings

logger = structlog.get_logger()


def get_cache_key(prefix: str, *args) -> str:
    """Generate cache key from prefix and arguments"""
    return f"{prefix}:{':'.join(str(arg) for arg in args)}"


class RedisCache:
    """
    Async JSON cache on top of Redis.
    Failures are logged and treated as cache misses.
    """

    def __init__(self, url: Optional[str] = None, ttl: Optional[int] = None, client: Optional[redis.Redis] = None):
        self.url = url or settings.REDIS_URL
        self.ttl = ttl or settings.REDIS_CACHE_TTL
        self._client = client

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(
                self.url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30,
            )
        return self._client

    async def get(self, key: str) -> Optional[Any]:
        """Get value from cache"""
        try:
            value = await self.client.get(key)
            if value:
                return json.loads(value)
            return None
        except Exception as e:
            logger.error("cache_get_error", key=key, error=str(e))
            return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Set value in cache with optional TTL"""
        try:
            serialized = json.dumps(value, default=str)
            return bool(await self.client.setex(key, ttl or self.ttl, serialized))
        except Exception as e:
            logger.error("cache_set_error", key=key, error=str(e))
            return False

    async def invalidate_pattern(self, pattern: str) -> int:
        """Invalidate all keys matching pattern"""
        try:
            keys = [key async for key in self.client.scan_iter(match=pattern)]
            if keys:
                return await self.client.delete(*keys)
            return 0
        except Exception as e:
            logger.error("cache_invalidate_error", pattern=pattern, error=str(e))
            return 0

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
