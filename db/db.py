"""
Async DB helpers for reminder records.
Uses SQLAlchemy 2.0 + asyncpg driver – no raw SQL strings in app code.
"""

from __future__ import annotations

import os
from datetime import datetime
from typing import AsyncGenerator, Protocol

from sqlalchemy import DateTime, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.ext.asyncio import (
    create_async_engine, async_sessionmaker, AsyncSession
)

from app.types.reminder_contract import ReminderRecord, ReminderStatus, ReminderType

# ──────────────────────────────────────────────────────────────────────
# 1. Declarative metadata
# ──────────────────────────────────────────────────────────────────────
class Base(DeclarativeBase):
    pass

# ──────────────────────────────────────────────────────────────────────
# 2. Lazy engine / session factory
# ──────────────────────────────────────────────────────────────────────
_engine = None
_session_maker: async_sessionmaker[AsyncSession] | None = None

def _build_url() -> str:
    url = os.getenv("DATABASE_URL") or os.getenv("DATABASE_PUBLIC_URL")
    if not url:
        raise RuntimeError("DATABASE_URL not set")
    if "+asyncpg" not in url:
        url = url.replace("postgres://", "postgresql+asyncpg://", 1).replace(
            "postgresql://", "postgresql+asyncpg://", 1
        )
    return url

def get_engine():
    global _engine
    if _engine is None:
        _engine = create_async_engine(_build_url(), pool_size=5, max_overflow=5)
    return _engine

def get_session() -> AsyncGenerator[AsyncSession, None]:
    global _session_maker
    if _session_maker is None:
        _session_maker = async_sessionmaker(get_engine(), expire_on_commit=False)
    async def _session_scope():
        async with _session_maker() as session:
            yield session
    return _session_scope()

# ──────────────────────────────────────────────────────────────────────
# 3. ORM models
# ──────────────────────────────────────────────────────────────────────

class Reminder(Base):
    __tablename__ = "reminders"

    id:             Mapped[str]  = mapped_column(primary_key=True)
    appointment_id: Mapped[str]  = mapped_column(index=True)
    type:           Mapped[str]  = mapped_column(default=ReminderType.EMAIL.value)
    status:         Mapped[str]
    scheduled_at:   Mapped[datetime] = mapped_column(DateTime(timezone=True))
    sent_at:        Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at:     Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


# ──────────────────────────────────────────────────────────────────────
# 4. DDL helper (run once at startup or from Alembic)
# ──────────────────────────────────────────────────────────────────────
async def create_all():
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# ──────────────────────────────────────────────────────────────────────
# 5. CRUD helpers
# ──────────────────────────────────────────────────────────────────────

def _require_aware(value: datetime | None, field: str) -> None:
    if value is not None and value.tzinfo is None:
        raise ValueError(f"{field} must be timezone-aware")


# 5.1 Insert record ----------------------------------------------------
def _insert_statement(record: ReminderRecord):
    _require_aware(record.scheduled_at, "scheduled_at")
    _require_aware(record.sent_at, "sent_at")
    stmt = pg_insert(Reminder).values(
        id=record.id,
        appointment_id=record.appointment_id,
        type=record.type.value,
        status=record.status.value,
        scheduled_at=record.scheduled_at,
        sent_at=record.sent_at,
    )
    return stmt.on_conflict_do_nothing(index_elements=[Reminder.id])


async def insert_reminder_record(record: ReminderRecord) -> None:
    """Append a sent-reminder row; rows are never updated.

    The id is the delivered job id, which is unique per enqueue and stable
    across that job's redeliveries. A redelivery after the record was written
    but before the processed mark therefore hits ``ON CONFLICT DO NOTHING``,
    keeping the first row and letting the retry go on to set the mark. A
    reschedule of the same appointment gets a new job id and a new row.
    """
    stmt = _insert_statement(record)
    async for s in get_session():
        await s.execute(stmt)
        await s.commit()


# 5.2 Read records -----------------------------------------------------
async def fetch_reminder_records(appointment_id: str) -> list[ReminderRecord]:
    """All rows for one appointment, oldest first. May hold more than one."""
    async for s in get_session():
        stmt = (
            select(Reminder)
            .where(Reminder.appointment_id == appointment_id)
            .order_by(Reminder.created_at)
        )
        res = await s.execute(stmt)
        return [
            ReminderRecord(
                id=r.id,
                appointment_id=r.appointment_id,
                type=ReminderType(r.type),
                scheduled_at=r.scheduled_at,
                status=ReminderStatus(r.status),
                sent_at=r.sent_at,
            )
            for r in res.scalars()
        ]
    return []


# ──────────────────────────────────────────────────────────────────────
# 6. Record store seam for the dispatch worker
# ──────────────────────────────────────────────────────────────────────

class RecordStore(Protocol):
    async def insert(self, record: ReminderRecord) -> None: ...


class SqlRecordStore:
    async def insert(self, record: ReminderRecord) -> None:
        await insert_reminder_record(record)


async def dispose_engine():
    global _engine, _session_maker
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_maker = None
