"""TTL-bounded "already processed" marks in Redis."""

from __future__ import annotations

from typing import Protocol

from redis.asyncio import Redis


class IdempotencyStore(Protocol):
    async def exists(self, key: str) -> bool: ...

    async def set(self, key: str, ttl_seconds: int) -> None: ...


class RedisIdempotencyStore:
    def __init__(self, redis: Redis):
        self._redis = redis

    async def exists(self, key: str) -> bool:
        return bool(await self._redis.exists(key))

    async def set(self, key: str, ttl_seconds: int) -> None:
        # NX keeps the first mark's expiry; a retry never extends the window.
        await self._redis.set(key, "1", ex=ttl_seconds, nx=True)
