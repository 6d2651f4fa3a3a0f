"""Schedules an appointment reminder ahead of the appointment."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from app.metrics import ReminderMetrics, get_metrics
from app.services.delay_queue import DelayQueue
from app.types.reminder_contract import ReminderJob, dedup_key

_LOGGER = logging.getLogger(__name__)

DEFAULT_LEAD = timedelta(hours=24)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ScheduledReminder:
    job: ReminderJob
    dedup_key: str
    delay_seconds: float
    job_id: Optional[str]  # None when an earlier schedule for the appointment is still pending

    @property
    def queued(self) -> bool:
        return self.job_id is not None


class ReminderScheduler:
    def __init__(
        self,
        queue: DelayQueue,
        metrics: Optional[ReminderMetrics] = None,
        lead: timedelta = DEFAULT_LEAD,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self._queue = queue
        self._metrics = metrics or get_metrics()
        self._lead = lead
        self._clock = clock

    async def schedule(self, appointment_id: str, appointment_date: datetime, tenant_id: str) -> ScheduledReminder:
        """Queue a reminder to fire ``lead`` before ``appointment_date``.

        Fire times already in the past fire immediately. Re-scheduling an
        appointment whose reminder is still pending is a no-op, even if the
        date changed. Queue failures propagate.
        """
        if appointment_date.tzinfo is None:
            raise ValueError("appointment_date must be timezone-aware")

        target = appointment_date - self._lead
        delay = max(0.0, (target - self._clock()).total_seconds())
        job = ReminderJob(appointment_id=appointment_id, tenant_id=tenant_id, target_fire_time=target)
        key = dedup_key(appointment_id)

        job_id = await self._queue.enqueue(key, job.payload(), delay)
        queued = job_id is not None

        self._metrics.record_scheduled(tenant_id, "queued" if queued else "duplicate")
        _LOGGER.info(
            "Scheduled reminder" if queued else "Reminder already scheduled",
            extra={
                "appointment_id": appointment_id,
                "tenant_id": tenant_id,
                "reminder_time": target.isoformat(),
                "dedup_key": key,
                "job_id": job_id,
                "delay_seconds": delay,
            },
        )
        return ScheduledReminder(job=job, dedup_key=key, delay_seconds=delay, job_id=job_id)
