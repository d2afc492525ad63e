"""Redis implementation of the key-value store."""

from __future__ import annotations

from typing import Any, Optional

try:
    import redis.asyncio as redis
except ImportError:
    redis = None

from .base import KeyValueStore


class RedisStore(KeyValueStore):
    """Redis-backed store.

    With ``ttl`` set every write expires after that many seconds, which gives
    session-scoped records a natural end of life.
    """

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        prefix: str = "",
        ttl: Optional[int] = None,
    ) -> None:
        if redis is None:
            raise ImportError("redis package is required for RedisStore")

        self.url = url
        self.prefix = prefix
        self.ttl = ttl
        self._redis: Optional[Any] = None

    async def connect(self) -> None:
        """Connect to Redis."""
        self._redis = redis.Redis.from_url(self.url, decode_responses=True)
        await self._redis.ping()

    async def disconnect(self) -> None:
        """Disconnect from Redis."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    async def _client(self) -> Any:
        if not self._redis:
            await self.connect()
        return self._redis

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def get(self, key: str) -> Optional[str]:
        client = await self._client()
        return await client.get(self._key(key))

    async def set(self, key: str, value: str) -> None:
        client = await self._client()
        await client.set(self._key(key), value, ex=self.ttl)

    async def remove(self, key: str) -> None:
        client = await self._client()
        await client.delete(self._key(key))

    async def clear(self) -> None:
        client = await self._client()
        keys = [key async for key in client.scan_iter(match=f"{self.prefix}*")]
        if keys:
            await client.delete(*keys)
