import pytest
from redis.exceptions import LockNotOwnedError

from app.services.locks import RedisLockProvider, hold


class FakeLock:
    def __init__(self, owner, name, timeout):
        self.owner = owner
        self.name = name
        self.timeout = timeout

    async def acquire(self):
        if self.name in self.owner.taken:
            return False
        self.owner.taken.add(self.name)
        return True

    async def release(self):
        if self.name not in self.owner.taken:
            raise LockNotOwnedError("Cannot release a lock that's no longer owned")
        self.owner.taken.discard(self.name)


class FakeRedis:
    def __init__(self):
        self.taken = set()
        self.lock_calls = []

    def lock(self, name, timeout=None, blocking=True, thread_local=True):
        self.lock_calls.append((name, timeout, blocking, thread_local))
        return FakeLock(self, name, timeout)


@pytest.fixture
def redis():
    return FakeRedis()


@pytest.mark.asyncio
async def test_acquire_is_exclusive_and_non_blocking(redis):
    a, b = RedisLockProvider(redis), RedisLockProvider(redis)

    assert await a.acquire("lock:reminder:1", 60)
    assert not await b.acquire("lock:reminder:1", 60)
    assert redis.lock_calls[0] == ("lock:reminder:1", 60, False, False)

    await a.release("lock:reminder:1")
    assert await b.acquire("lock:reminder:1", 60)


@pytest.mark.asyncio
async def test_release_of_unheld_key_is_no_op(redis):
    await RedisLockProvider(redis).release("lock:reminder:never")


@pytest.mark.asyncio
async def test_release_after_expiry_is_absorbed(redis):
    provider = RedisLockProvider(redis)
    await provider.acquire("lock:reminder:1", 60)
    redis.taken.clear()  # TTL elapsed

    await provider.release("lock:reminder:1")


@pytest.mark.asyncio
async def test_hold_releases_on_error(redis):
    provider = RedisLockProvider(redis)

    with pytest.raises(RuntimeError):
        async with hold(provider, "lock:reminder:1", 60) as acquired:
            assert acquired
            raise RuntimeError("boom")

    assert "lock:reminder:1" not in redis.taken


@pytest.mark.asyncio
async def test_hold_does_not_release_someone_elses_lock(redis):
    owner = RedisLockProvider(redis)
    await owner.acquire("lock:reminder:1", 60)

    async with hold(RedisLockProvider(redis), "lock:reminder:1", 60) as acquired:
        assert not acquired

    assert "lock:reminder:1" in redis.taken
