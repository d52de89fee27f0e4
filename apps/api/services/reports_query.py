"""Role-aware read path for stored reports."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Sequence

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from models.execution_log import ExecutionLog
from services.authorization import Caller
from services.report_types import DEFAULT_GEOGRAPHY

logger = logging.getLogger(__name__)

SortKey = Literal["date", "title", "category"]
SortDirection = Literal["asc", "desc"]


def _scoped_select(caller: Caller):
    # Ownership is part of the SQL statement, never a post-filter.
    stmt = select(ExecutionLog)
    if not caller.is_admin:
        stmt = stmt.where(ExecutionLog.user_id == caller.user_id)
    return stmt


def _clamp_limit(limit: Optional[int]) -> int:
    if limit is None:
        return settings.REPORTS_DEFAULT_LIMIT
    return max(1, min(int(limit), settings.REPORTS_MAX_LIMIT))


def _format_report_date(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    return f"{value:%B} {value.day}, {value.year}"


def to_view_model(report: ExecutionLog) -> Dict[str, Any]:
    """Project a stored report onto the dashboard shape without touching it."""
    frequency = str(report.frequency or "")
    run_at = report.run_at
    if run_at is not None and run_at.tzinfo is None:
        run_at = run_at.replace(tzinfo=timezone.utc)
    created_at = report.created_at
    if created_at is not None and created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return {
        "id": report.execution_id,
        "scheduleId": report.schedule_id,
        "title": f"{report.industry} - {report.sub_niche}",
        "category": report.industry,
        "subNiche": report.sub_niche,
        "geography": report.geography or DEFAULT_GEOGRAPHY,
        "email": report.email or "",
        "dateGenerated": _format_report_date(run_at),
        "type": "On-demand" if frequency == "on-demand" else "Recurring",
        "webReport": report.final_report or "",
        "emailReport": report.email_report or report.final_report or "",
        "frequency": frequency,
        "isFirstRun": bool(report.is_first_run),
        "runAt": run_at.isoformat() if run_at else None,
        "createdAt": created_at.isoformat() if created_at else None,
        "notes": report.notes or "",
        "status": report.status,
    }


def sort_view_models(
    items: Sequence[Dict[str, Any]],
    sort_by: SortKey = "date",
    direction: SortDirection = "desc",
) -> List[Dict[str, Any]]:
    """Re-sort already fetched view models; the input is left untouched."""
    reverse = direction == "desc"
    if sort_by == "title":
        return sorted(items, key=lambda item: str(item.get("title") or "").lower(), reverse=reverse)
    if sort_by == "category":
        return sorted(
            items,
            key=lambda item: (str(item.get("category") or "").lower(), str(item.get("title") or "").lower()),
            reverse=reverse,
        )
    return sorted(items, key=lambda item: str(item.get("runAt") or ""), reverse=reverse)


async def list_reports(
    caller: Caller,
    db: AsyncSession,
    *,
    schedule_id: Optional[str] = None,
    limit: Optional[int] = None,
) -> List[ExecutionLog]:
    stmt = _scoped_select(caller)
    if schedule_id:
        stmt = stmt.where(ExecutionLog.schedule_id == schedule_id)
    stmt = stmt.order_by(ExecutionLog.run_at.desc()).limit(_clamp_limit(limit))
    result = await db.execute(stmt)
    reports = list(result.scalars().all())
    logger.info(
        "reports_list caller=%s admin=%s schedule=%s count=%s",
        caller.user_id,
        caller.is_admin,
        schedule_id,
        len(reports),
    )
    return reports


async def get_report(caller: Caller, execution_id: str, db: AsyncSession) -> ExecutionLog:
    result = await db.execute(_scoped_select(caller).where(ExecutionLog.execution_id == execution_id))
    report = result.scalar_one_or_none()
    if report is None:
        raise LookupError(execution_id)
    return report


async def delete_report(caller: Caller, execution_id: str, db: AsyncSession) -> None:
    """Hard-delete one report the caller owns (or any report, for admins)."""
    report = await get_report(caller, execution_id, db)
    await db.execute(delete(ExecutionLog).where(ExecutionLog.execution_id == report.execution_id))
    await db.commit()
    logger.info("report_deleted execution=%s by=%s", execution_id, caller.user_id)
