"""Exceptions raised across the reminder service."""

from __future__ import annotations


class ReminderError(Exception):
    """Base class for reminder service errors."""


class QueueUnavailableError(ReminderError):
    """The delay queue (broker or dedup store) could not accept a job."""

    def __init__(self, dedup_key: str, cause: Exception):
        super().__init__(f"could not enqueue {dedup_key}: {cause}")
        self.dedup_key = dedup_key
        self.cause = cause
