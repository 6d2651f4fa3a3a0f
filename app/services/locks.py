"""Distributed per-appointment leases backed by Redis.

A lease is exclusive and TTL-bounded: if the holder crashes, Redis expires
the key and another delivery may proceed after ``ttl_seconds``.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Protocol

from redis.asyncio import Redis
from redis.asyncio.lock import Lock
from redis.exceptions import LockError

_LOGGER = logging.getLogger(__name__)


class LockProvider(Protocol):
    async def acquire(self, key: str, ttl_seconds: int) -> bool: ...

    async def release(self, key: str) -> None: ...


class RedisLockProvider:
    """Owner-token locks via redis-py's ``Lock`` (SET NX PX + Lua release).

    Only the instance that acquired a key can release it; a lease that has
    already expired or was never taken releases as a no-op.
    """

    def __init__(self, redis: Redis):
        self._redis = redis
        self._held: dict[str, Lock] = {}

    async def acquire(self, key: str, ttl_seconds: int) -> bool:
        lock = self._redis.lock(key, timeout=ttl_seconds, blocking=False, thread_local=False)
        acquired = await lock.acquire()
        if acquired:
            self._held[key] = lock
        return bool(acquired)

    async def release(self, key: str) -> None:
        lock = self._held.pop(key, None)
        if lock is None:
            return
        try:
            await lock.release()
        except LockError:
            # Lease expired (or was taken over) while we were working.
            _LOGGER.warning("Lock already expired on release", extra={"lock_key": key})


@asynccontextmanager
async def hold(provider: LockProvider, key: str, ttl_seconds: int) -> AsyncIterator[bool]:
    """Scoped lease: yields whether it was acquired, always releases on exit."""
    acquired = await provider.acquire(key, ttl_seconds)
    try:
        yield acquired
    finally:
        if acquired:
            await provider.release(key)
