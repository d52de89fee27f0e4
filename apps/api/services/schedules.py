"""Recurring schedule bookkeeping and role-scoped schedule management."""

from __future__ import annotations

import calendar
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.schedule import Schedule
from services.authorization import Caller
from services.report_types import DEFAULT_GEOGRAPHY, RECURRING_FREQUENCIES

logger = logging.getLogger(__name__)

_FIXED_INTERVALS = {
    "daily": timedelta(days=1),
    "weekly": timedelta(days=7),
    "biweekly": timedelta(days=14),
}


def _add_one_month(value: datetime) -> datetime:
    year = value.year + (1 if value.month == 12 else 0)
    month = 1 if value.month == 12 else value.month + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def compute_next_run(frequency: Optional[str], from_time: Optional[datetime] = None) -> Optional[datetime]:
    """Next run time for a recurring frequency; None for on-demand or unknown values."""
    normalized = str(frequency or "").strip().lower()
    base = from_time or datetime.now(timezone.utc)
    if base.tzinfo is None:
        base = base.replace(tzinfo=timezone.utc)
    if normalized in _FIXED_INTERVALS:
        return base + _FIXED_INTERVALS[normalized]
    if normalized == "monthly":
        return _add_one_month(base)
    return None


def _scoped_select(caller: Caller):
    stmt = select(Schedule)
    if not caller.is_admin:
        stmt = stmt.where(Schedule.user_id == caller.user_id)
    return stmt


async def create_schedule(
    *,
    schedule_id: str,
    user_id: str,
    industry: str,
    sub_niche: str,
    frequency: str,
    db: AsyncSession,
    geography: Optional[str] = None,
    email: Optional[str] = None,
    notes: Optional[str] = None,
) -> Schedule:
    normalized_frequency = str(frequency or "").strip().lower()
    if normalized_frequency not in RECURRING_FREQUENCIES:
        raise ValueError(f"frequency must be one of: {', '.join(RECURRING_FREQUENCIES)}")

    now = datetime.now(timezone.utc)
    schedule = Schedule(
        schedule_id=schedule_id,
        user_id=user_id,
        title=f"{industry} - {sub_niche}",
        industry=industry,
        sub_niche=sub_niche,
        geography=geography or DEFAULT_GEOGRAPHY,
        email=email,
        notes=notes or "",
        frequency=normalized_frequency,
        active=True,
        next_run=compute_next_run(normalized_frequency, now),
        last_run=None,
        execution_count=0,
    )
    db.add(schedule)
    await db.commit()
    await db.refresh(schedule)
    logger.info(
        "schedule_created schedule=%s user=%s frequency=%s next_run=%s",
        schedule_id,
        user_id,
        normalized_frequency,
        schedule.next_run.isoformat() if schedule.next_run else None,
    )
    return schedule


async def list_schedules(caller: Caller, db: AsyncSession, *, active_only: bool = False) -> List[Dict[str, Any]]:
    stmt = _scoped_select(caller)
    if active_only:
        stmt = stmt.where(Schedule.active.is_(True)).order_by(Schedule.next_run.asc())
    else:
        stmt = stmt.order_by(Schedule.created_at.desc())
    result = await db.execute(stmt)
    return [row.to_dict() for row in result.scalars().all()]


async def get_schedule(caller: Caller, schedule_id: str, db: AsyncSession) -> Schedule:
    result = await db.execute(_scoped_select(caller).where(Schedule.schedule_id == schedule_id))
    schedule = result.scalar_one_or_none()
    if schedule is None:
        raise LookupError(schedule_id)
    return schedule


async def set_schedule_active(caller: Caller, schedule_id: str, active: bool, db: AsyncSession) -> Dict[str, Any]:
    """Pause or resume a schedule the caller can see."""
    schedule = await get_schedule(caller, schedule_id, db)
    schedule.active = bool(active)
    if active and (schedule.next_run is None or _as_utc(schedule.next_run) <= datetime.now(timezone.utc)):
        schedule.next_run = compute_next_run(schedule.frequency)
    await db.commit()
    await db.refresh(schedule)
    logger.info("schedule_%s schedule=%s by=%s", "resumed" if active else "paused", schedule_id, caller.user_id)
    return schedule.to_dict()


async def delete_schedule(caller: Caller, schedule_id: str, db: AsyncSession) -> None:
    """Hard-delete a schedule. Its past reports are kept."""
    schedule = await get_schedule(caller, schedule_id, db)
    await db.execute(delete(Schedule).where(Schedule.schedule_id == schedule.schedule_id))
    await db.commit()
    logger.info("schedule_deleted schedule=%s by=%s", schedule_id, caller.user_id)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes.
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
