"""Quiet-hours policy: no reminders late in the evening or early morning."""

from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo

QUIET_START_HOUR = 21
QUIET_END_HOUR = 8


def is_quiet_hour(local_hour: int, start: int = QUIET_START_HOUR, end: int = QUIET_END_HOUR) -> bool:
    """True when ``local_hour`` falls inside ``[start, end)``.

    The default window wraps midnight (21:00 to 08:00). ``start == end``
    disables the window.
    """
    for name, value in (("local_hour", local_hour), ("start", start), ("end", end)):
        if not 0 <= value <= 23:
            raise ValueError(f"{name} must be within 0..23, got {value}")
    if start == end:
        return False
    if start > end:
        return local_hour >= start or local_hour < end
    return start <= local_hour < end


def local_hour(now: datetime, tz_name: str) -> int:
    """Wall-clock hour of ``now`` in ``tz_name``."""
    if now.tzinfo is None:
        raise ValueError("now must be timezone-aware")
    return now.astimezone(ZoneInfo(tz_name)).hour
