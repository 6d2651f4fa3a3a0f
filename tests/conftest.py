"""In-memory stand-ins for Redis, Postgres and the delay queue."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from prometheus_client import CollectorRegistry

from app.metrics import ReminderMetrics


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class InMemoryLocks:
    def __init__(self, clock: FakeClock):
        self._clock = clock
        self._expiry: dict[str, datetime] = {}
        self.released: list[str] = []

    async def acquire(self, key: str, ttl_seconds: int) -> bool:
        expiry = self._expiry.get(key)
        if expiry is not None and expiry > self._clock():
            return False
        self._expiry[key] = self._clock() + timedelta(seconds=ttl_seconds)
        return True

    async def release(self, key: str) -> None:
        self._expiry.pop(key, None)
        self.released.append(key)

    def is_held(self, key: str) -> bool:
        expiry = self._expiry.get(key)
        return expiry is not None and expiry > self._clock()


class InMemoryMarks:
    def __init__(self, clock: FakeClock):
        self._clock = clock
        self._expiry: dict[str, datetime] = {}
        self.fail_on_set: Exception | None = None

    async def exists(self, key: str) -> bool:
        expiry = self._expiry.get(key)
        return expiry is not None and expiry > self._clock()

    async def set(self, key: str, ttl_seconds: int) -> None:
        if self.fail_on_set is not None:
            raise self.fail_on_set
        self._expiry.setdefault(key, self._clock() + timedelta(seconds=ttl_seconds))


class InMemoryRecords:
    def __init__(self):
        self.rows = []
        self.fail_with: Exception | None = None
        self.delay = 0.0

    async def insert(self, record) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with
        self.rows.append(record)


class InMemoryDelayQueue:
    def __init__(self):
        self.jobs: dict[str, tuple[dict, float]] = {}
        self.fail_with: Exception | None = None

    async def enqueue(self, dedup_key: str, payload: dict, delay_seconds: float):
        if self.fail_with is not None:
            raise self.fail_with
        if dedup_key in self.jobs:
            return None
        self.jobs[dedup_key] = (payload, delay_seconds)
        return f"{dedup_key}:1"


def sample(registry: CollectorRegistry, name: str, **labels) -> float:
    return registry.get_sample_value(name, labels) or 0.0


@pytest.fixture
def clock():
    # 14:00 UTC, outside quiet hours when the worker runs in UTC
    return FakeClock(datetime(2024, 1, 1, 14, 0, tzinfo=timezone.utc))


@pytest.fixture
def registry():
    return CollectorRegistry()


@pytest.fixture
def metrics(registry):
    return ReminderMetrics(registry)


@pytest.fixture
def locks(clock):
    return InMemoryLocks(clock)


@pytest.fixture
def marks(clock):
    return InMemoryMarks(clock)


@pytest.fixture
def records():
    return InMemoryRecords()


@pytest.fixture
def delay_queue():
    return InMemoryDelayQueue()
