"""Delay queue on top of Celery countdown tasks.

Celery will happily publish two tasks with the same ``task_id``, so the
dedup key is claimed in Redis first (``SET NX EX``). The claim outlives the
countdown by a grace period; a second enqueue inside that window is ignored.

Each accepted enqueue gets its own task id (``<dedup_key>:<hex>``). Celery
keeps that id across retries and redeliveries of the job, and a reschedule
after the claim expired gets a fresh one.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol
from uuid import uuid4

from celery import Celery
from kombu.exceptions import OperationalError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from app.errors import QueueUnavailableError

_LOGGER = logging.getLogger(__name__)

SEND_REMINDER_TASK = "app.workers.reminder.send"
REMINDER_QUEUE = "reminder"


class DelayQueue(Protocol):
    async def enqueue(self, dedup_key: str, payload: dict, delay_seconds: float) -> Optional[str]: ...


def _claim_key(dedup_key: str) -> str:
    return f"queued:{dedup_key}"


class CeleryDelayQueue:
    def __init__(self, celery_app: Celery, redis: Redis, grace_seconds: int = 3600):
        self._celery = celery_app
        self._redis = redis
        self._grace_seconds = grace_seconds

    async def enqueue(self, dedup_key: str, payload: dict, delay_seconds: float) -> Optional[str]:
        """Publish ``payload`` to fire after ``delay_seconds``.

        Returns the new job id, or None when a job with ``dedup_key`` is
        already pending. Raises QueueUnavailableError when Redis or the
        broker is down.
        """
        claim = _claim_key(dedup_key)
        ttl = int(delay_seconds) + self._grace_seconds
        try:
            claimed = await self._redis.set(claim, "1", nx=True, ex=max(ttl, 1))
        except RedisError as exc:
            raise QueueUnavailableError(dedup_key, exc) from exc
        if not claimed:
            _LOGGER.info("Duplicate enqueue ignored", extra={"dedup_key": dedup_key})
            return None

        job_id = f"{dedup_key}:{uuid4().hex}"
        try:
            self._celery.send_task(
                SEND_REMINDER_TASK,
                args=[payload],
                task_id=job_id,
                countdown=delay_seconds,
                queue=REMINDER_QUEUE,
            )
        except OperationalError as exc:
            # Free the claim so the caller can retry the schedule.
            try:
                await self._redis.delete(claim)
            except RedisError:
                _LOGGER.warning("Could not free dedup claim", extra={"dedup_key": dedup_key})
            raise QueueUnavailableError(dedup_key, exc) from exc
        return job_id
