# content_guard/infrastructure/cache/redis_client.py

from typing import Optional

import redis.asyncio as redis

from content_guard.config.settings import get_settings


class RedisClient:
    def __init__(self, url: Optional[str] = None, client: Optional[redis.Redis] = None):
        self.client = client or redis.from_url(
            url or get_settings().redis_url,
            decode_responses=True,
        )

    async def ping(self) -> bool:
        return bool(await self.client.ping())

    async def incr(self, key: str) -> int:
        """Increment key, return new value."""
        return await self.client.incr(key)

    async def expire(self, key: str, seconds: int) -> None:
        """Set TTL on key."""
        await self.client.expire(key, seconds)

    async def close(self) -> None:
        await self.client.aclose()


class RedisRateLimitBackend:
    """Fixed-window counter in Redis. Implements RateLimitBackend protocol."""

    def __init__(self, client: RedisClient) -> None:
        self._client = client

    async def incr_window(self, key: str, window_seconds: int) -> int:
        current = await self._client.incr(key)
        if current == 1:
            await self._client.expire(key, window_seconds)
        return current
