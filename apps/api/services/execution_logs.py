"""Data access for execution logs, schedule metadata and activity entries."""

from __future__ import annotations

import logging
import secrets
import string
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.activity_log import ActivityLog
from models.execution_log import ExecutionLog
from models.schedule import Schedule
from services.schedules import compute_next_run

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_lowercase + string.digits


class ExecutionLogPersistenceError(RuntimeError):
    """Raised when an execution log could not be written."""


def generate_execution_id(prefix: str = "exec") -> str:
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"


async def save_execution_log(log: ExecutionLog, db: AsyncSession) -> ExecutionLog:
    """Insert one execution log. Never updates an existing row."""
    if not str(log.user_id or "").strip():
        raise ExecutionLogPersistenceError("Failed to save execution log: user_id is required")
    try:
        db.add(log)
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error(
            "Error saving execution log %s for schedule %s: %s",
            log.execution_id,
            log.schedule_id,
            exc,
        )
        raise ExecutionLogPersistenceError(f"Failed to save execution log: {exc}") from exc
    return log


async def has_execution_logs(schedule_id: str, db: AsyncSession) -> bool:
    return await get_execution_count(schedule_id, db) > 0


async def get_execution_count(schedule_id: str, db: AsyncSession, *, user_id: Optional[str] = None) -> int:
    stmt = select(func.count(ExecutionLog.execution_id)).where(ExecutionLog.schedule_id == schedule_id)
    if user_id is not None:
        stmt = stmt.where(ExecutionLog.user_id == user_id)
    result = await db.execute(stmt)
    return int(result.scalar() or 0)


async def get_execution_logs(
    schedule_id: str,
    db: AsyncSession,
    *,
    user_id: Optional[str] = None,
) -> List[ExecutionLog]:
    """Execution logs of a schedule, most recent run first."""
    stmt = select(ExecutionLog).where(ExecutionLog.schedule_id == schedule_id)
    if user_id is not None:
        stmt = stmt.where(ExecutionLog.user_id == user_id)
    result = await db.execute(stmt.order_by(ExecutionLog.run_at.desc()))
    return list(result.scalars().all())


async def initialize_schedule(schedule_id: str, db: AsyncSession) -> None:
    """Mark a schedule initialized. Safe to repeat; no-op for externally managed schedules."""
    result = await db.execute(select(Schedule).where(Schedule.schedule_id == schedule_id))
    schedule = result.scalar_one_or_none()
    if schedule is None:
        logger.info("Schedule %s initialization requested; schedule is managed externally", schedule_id)
        return
    if schedule.initialized_at is not None:
        return
    schedule.initialized_at = datetime.now(timezone.utc)
    try:
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        raise


async def update_schedule_metadata_after_execution(
    schedule_id: str,
    run_at: datetime,
    db: AsyncSession,
) -> None:
    """Count one successful execution and move next_run forward."""
    result = await db.execute(select(Schedule).where(Schedule.schedule_id == schedule_id))
    schedule = result.scalar_one_or_none()
    if schedule is None:
        logger.info("Metadata update for schedule %s skipped; schedule is managed externally", schedule_id)
        return
    schedule.execution_count = int(schedule.execution_count or 0) + 1
    schedule.last_run = run_at
    schedule.next_run = compute_next_run(schedule.frequency, run_at)
    try:
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        raise


async def log_activity(
    *,
    action: str,
    resource_type: str,
    resource_id: Optional[str],
    db: AsyncSession,
    user_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> None:
    db.add(
        ActivityLog(
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            user_id=user_id,
            details=details or {},
        )
    )
    try:
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        raise
