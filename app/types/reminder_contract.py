"""Pydantic models and dispatch outcomes shared by the scheduler, the
dispatch worker, the record store and tests.

These classes are intentionally framework-agnostic so they can be reused
without pulling in Celery, Redis or database layers.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, field_validator


class ReminderType(str, Enum):
    EMAIL = "EMAIL"


class ReminderStatus(str, Enum):
    SENT = "SENT"


# ──────────────────────────────
# Redis / queue key conventions
# ──────────────────────────────

def lock_key(appointment_id: str) -> str:
    return f"lock:reminder:{appointment_id}"


def processed_key(appointment_id: str) -> str:
    return f"processed:reminder:{appointment_id}"


def dedup_key(appointment_id: str) -> str:
    """One pending reminder per appointment: the key ignores the date."""
    return f"reminder_{appointment_id}"


# ──────────────────────────────
# Jobs and records
# ──────────────────────────────


class ReminderJob(BaseModel):
    """A reminder scheduled for one appointment.

    Identity for deduplication is ``appointment_id`` alone.
    """

    appointment_id: str
    tenant_id: str
    target_fire_time: Optional[datetime] = None

    @field_validator("appointment_id", "tenant_id")
    def _not_blank(cls, v: str):  # noqa: N805
        if not v or not v.strip():
            raise ValueError("must not be blank")
        return v

    def payload(self) -> dict:
        """Body handed to the delay queue."""
        return {"appointment_id": self.appointment_id, "tenant_id": self.tenant_id}


class ReminderRecord(BaseModel):
    """Durable proof-of-send row. Readers must tolerate duplicates per appointment."""

    id: str
    appointment_id: str
    type: ReminderType = ReminderType.EMAIL
    scheduled_at: datetime
    status: ReminderStatus = ReminderStatus.SENT
    sent_at: Optional[datetime] = None


# ──────────────────────────────
# Dispatch outcomes
# ──────────────────────────────


class SkipReason(str, Enum):
    LOCKED = "locked"
    QUIET_HOURS = "quiet_hours"
    ALREADY_PROCESSED = "already_processed"


@dataclass(frozen=True)
class Sent:
    record_id: str


@dataclass(frozen=True)
class Skipped:
    reason: SkipReason


@dataclass(frozen=True)
class RetryRequested:
    # The collaborator failure that should make the queue redeliver the job.
    error: Exception


DispatchOutcome = Union[Sent, Skipped, RetryRequested]
