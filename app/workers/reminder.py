"""Reminder dispatch worker.

Flow per delivered job:
1. Take the per-appointment lease (lost race → skip).
2. Quiet hours at the local wall-clock hour → skip, nothing written.
3. Processed mark already set → skip.
4. Write the SENT record, 5. set the processed mark, 6. count the success.
Failures in 4-6 are counted and handed back to Celery for a retry. The
lease is released on every exit path.

The queue delivers at least once, so the processed mark (not the record
table) is the source of truth for "already notified".
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from redis.asyncio import Redis

from app.celery_app import celery_app
from app.metrics import ReminderMetrics, get_metrics
from app.services.idempotency import IdempotencyStore, RedisIdempotencyStore
from app.services.locks import LockProvider, RedisLockProvider, hold
from app.services.quiet_hours import QUIET_END_HOUR, QUIET_START_HOUR, is_quiet_hour, local_hour
from app.types.reminder_contract import (
    DispatchOutcome,
    ReminderJob,
    ReminderRecord,
    ReminderStatus,
    ReminderType,
    RetryRequested,
    Sent,
    SkipReason,
    Skipped,
    lock_key,
    processed_key,
)
from config import settings
import db

_LOGGER = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DispatchWorker:
    def __init__(
        self,
        locks: LockProvider,
        marks: IdempotencyStore,
        records: db.RecordStore,
        metrics: Optional[ReminderMetrics] = None,
        *,
        lock_ttl_seconds: int = 60,
        processed_ttl_seconds: int = 86400,
        quiet_start: int = QUIET_START_HOUR,
        quiet_end: int = QUIET_END_HOUR,
        timezone_name: str = "UTC",
        reminder_type: ReminderType = ReminderType.EMAIL,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self._locks = locks
        self._marks = marks
        self._records = records
        self._metrics = metrics or get_metrics()
        self._lock_ttl = lock_ttl_seconds
        self._processed_ttl = processed_ttl_seconds
        self._quiet_start = quiet_start
        self._quiet_end = quiet_end
        self._tz_name = timezone_name
        self._type = reminder_type
        self._clock = clock

    async def process(self, job_id: str, job: ReminderJob) -> DispatchOutcome:
        """Run one delivery to a terminal outcome. Never raises for 4-6 failures."""
        appointment_id = job.appointment_id
        fields = {"appointment_id": appointment_id, "tenant_id": job.tenant_id, "job_id": job_id}

        async with hold(self._locks, lock_key(appointment_id), self._lock_ttl) as acquired:
            if not acquired:
                _LOGGER.warning("Skipping locked reminder", extra=fields)
                return self._skip(SkipReason.LOCKED)

            _LOGGER.info("Processing reminder", extra=fields)

            now = self._clock()
            if is_quiet_hour(local_hour(now, self._tz_name), self._quiet_start, self._quiet_end):
                # TODO: reschedule to the end of the quiet window instead of dropping.
                _LOGGER.info("Skipping reminder during quiet hours", extra=fields)
                return self._skip(SkipReason.QUIET_HOURS)

            mark = processed_key(appointment_id)
            if await self._marks.exists(mark):
                _LOGGER.info("Reminder already processed", extra=fields)
                return self._skip(SkipReason.ALREADY_PROCESSED)

            try:
                await self._records.insert(
                    ReminderRecord(
                        id=job_id,
                        appointment_id=appointment_id,
                        type=self._type,
                        scheduled_at=now,
                        status=ReminderStatus.SENT,
                        sent_at=now,
                    )
                )
                await self._marks.set(mark, self._processed_ttl)
                self._metrics.record_sent(self._type.value, job.tenant_id, "success")
            except Exception as exc:  # noqa: BLE001
                _LOGGER.error("Error processing reminder", exc_info=exc, extra=fields)
                self._metrics.record_sent(self._type.value, job.tenant_id, "error")
                return RetryRequested(error=exc)

            _LOGGER.info("Reminder sent", extra=fields)
            return Sent(record_id=job_id)

    async def handle(self, job_id: str, job: ReminderJob) -> DispatchOutcome:
        """Queue-facing adapter: a retry request surfaces as the original error."""
        outcome = await self.process(job_id, job)
        if isinstance(outcome, RetryRequested):
            raise outcome.error
        return outcome

    def _skip(self, reason: SkipReason) -> Skipped:
        self._metrics.record_skipped(reason.value)
        return Skipped(reason=reason)


# ---------------------------------------------------------------------------
# Celery Tasks
# ---------------------------------------------------------------------------

async def _dispatch(job_id: str, job: ReminderJob) -> DispatchOutcome:
    # Clients are bound to the event loop that asyncio.run creates per task.
    redis = Redis.from_url(settings.REDIS_URL)
    try:
        worker = DispatchWorker(
            RedisLockProvider(redis),
            RedisIdempotencyStore(redis),
            db.SqlRecordStore(),
            get_metrics(),
            lock_ttl_seconds=settings.REMINDER_LOCK_TTL_SECONDS,
            processed_ttl_seconds=settings.REMINDER_PROCESSED_TTL_SECONDS,
            quiet_start=settings.QUIET_HOURS_START,
            quiet_end=settings.QUIET_HOURS_END,
            timezone_name=settings.QUIET_HOURS_TIMEZONE,
        )
        return await worker.handle(job_id, job)
    finally:
        await redis.aclose()
        await db.dispose_engine()


@celery_app.task(name="app.workers.reminder.send", bind=True, max_retries=settings.REMINDER_MAX_RETRIES)
def send(self, payload: dict):  # noqa: D401
    """Dispatch one appointment reminder; collaborator failures are retried with back-off."""
    job = ReminderJob.model_validate(payload)
    try:
        outcome = asyncio.run(_dispatch(self.request.id, job))
    except Exception as exc:  # noqa: BLE001
        countdown = settings.REMINDER_RETRY_DELAY_SECONDS * (2 ** self.request.retries)
        raise self.retry(exc=exc, countdown=countdown)
    return type(outcome).__name__.lower()
