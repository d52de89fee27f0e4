"""Report execution logging: the single write path for generated reports."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from models.execution_log import ExecutionLog
from models.schedule import Schedule
from services.authorization import Caller
from services.best_effort import run_best_effort
from services.execution_logs import (
    ExecutionLogPersistenceError,
    generate_execution_id,
    get_execution_count,
    get_execution_logs,
    has_execution_logs,
    initialize_schedule,
    log_activity,
    save_execution_log,
    update_schedule_metadata_after_execution,
)
from services.report_types import (
    DEFAULT_GEOGRAPHY,
    GeneratedReportPayload,
    ReportRunPayload,
    ReportRunResult,
)

logger = logging.getLogger(__name__)


class ReportRunError(RuntimeError):
    """Raised when a report execution could not be persisted."""


def build_report_run_request(payload: Dict[str, Any]) -> ReportRunPayload:
    """Parse a report-run body into its typed form.

    Raises pydantic.ValidationError; callers validate first to get field issues.
    """
    return ReportRunPayload.model_validate(payload)


def build_generated_report_request(payload: Dict[str, Any]) -> GeneratedReportPayload:
    return GeneratedReportPayload.model_validate(payload)


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


async def process_report_run(request: ReportRunPayload, db: AsyncSession) -> ReportRunResult:
    """Record one execution of a schedule.

    The execution log insert is the only fatal step. Schedule metadata and the
    activity entry are best effort and never undo the stored execution.
    """
    schedule_id = request.schedule_id
    already_initialized = await has_execution_logs(schedule_id, db)

    if request.is_first_run and already_initialized:
        logger.warning("Schedule %s marked as first_run but already initialized", schedule_id)

    first_run_effective = request.is_first_run and not already_initialized
    if first_run_effective:
        await run_best_effort("initialize_schedule", initialize_schedule, schedule_id, db)
        logger.info("Initialized schedule %s", schedule_id)

    run_at = _utc(request.run_at)
    execution_log = ExecutionLog(
        execution_id=generate_execution_id("exec"),
        schedule_id=schedule_id,
        user_id=request.user_id,
        industry=request.industry,
        sub_niche=request.sub_niche,
        geography=request.geography or DEFAULT_GEOGRAPHY,
        email=request.email,
        notes=request.notes or "",
        frequency=request.frequency,
        run_at=run_at,
        is_first_run=request.is_first_run,
        final_report=request.final_report,
        email_report=request.email_report or request.final_report,
        status="success",
        created_at=datetime.now(timezone.utc),
    )

    try:
        await save_execution_log(execution_log, db)
    except ExecutionLogPersistenceError as exc:
        logger.error("Report run for schedule %s not saved: %s", schedule_id, exc)
        raise ReportRunError(f"Failed to process report run: {exc}") from exc

    execution_id = execution_log.execution_id
    logger.info("Saved execution log %s for schedule %s", execution_id, schedule_id)

    await run_best_effort(
        "update_schedule_metadata",
        update_schedule_metadata_after_execution,
        schedule_id,
        run_at,
        db,
    )
    await run_best_effort(
        "log_activity",
        log_activity,
        action="report_run",
        resource_type="execution",
        resource_id=execution_id,
        user_id=request.user_id,
        details={
            "schedule_id": schedule_id,
            "is_first_run": request.is_first_run,
            "industry": request.industry,
            "sub_niche": request.sub_niche,
        },
        db=db,
    )

    return ReportRunResult(
        success=True,
        execution_id=execution_id,
        schedule_id=schedule_id,
        is_first_run_effective=first_run_effective,
        message=(
            "First execution logged successfully. Schedule initialized."
            if first_run_effective
            else "Execution logged successfully."
        ),
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


async def save_generated_report(
    request: GeneratedReportPayload,
    db: AsyncSession,
    *,
    schedule: Optional[Schedule] = None,
) -> ExecutionLog:
    """Persist report content returned by a webhook.

    Without a schedule the report is stored as an on-demand run. With one it
    becomes the schedule's first execution.
    """
    now = datetime.now(timezone.utc)
    execution_log = ExecutionLog(
        execution_id=generate_execution_id("ondemand" if schedule is None else "exec"),
        schedule_id=schedule.schedule_id if schedule is not None else None,
        user_id=request.user_id,
        industry=request.industry,
        sub_niche=request.sub_niche,
        geography=request.geography or DEFAULT_GEOGRAPHY,
        email=request.email,
        notes=request.notes or "",
        frequency=schedule.frequency if schedule is not None else "on-demand",
        run_at=now,
        is_first_run=True,
        final_report=request.final_report,
        email_report=request.email_report or request.final_report,
        status="success",
        created_at=now,
    )
    await save_execution_log(execution_log, db)
    logger.info(
        "Report saved execution=%s user=%s schedule=%s",
        execution_log.execution_id,
        request.user_id,
        execution_log.schedule_id,
    )

    if schedule is not None:
        await run_best_effort("initialize_schedule", initialize_schedule, schedule.schedule_id, db)
        await run_best_effort(
            "update_schedule_metadata",
            update_schedule_metadata_after_execution,
            schedule.schedule_id,
            now,
            db,
        )
    await run_best_effort(
        "log_activity",
        log_activity,
        action="report_saved",
        resource_type="execution",
        resource_id=execution_log.execution_id,
        user_id=request.user_id,
        details={"schedule_id": execution_log.schedule_id, "frequency": execution_log.frequency},
        db=db,
    )
    return execution_log


async def get_reports_by_schedule(schedule_id: str, caller: Caller, db: AsyncSession) -> Dict[str, Any]:
    """All executions of one schedule visible to the caller."""
    normalized = str(schedule_id or "").strip()
    if not normalized:
        raise ValueError("schedule_id parameter is required and cannot be empty")

    owner_filter = None if caller.is_admin else caller.user_id
    executions = await get_execution_logs(normalized, db, user_id=owner_filter)
    total = await get_execution_count(normalized, db, user_id=owner_filter)
    logger.info("Retrieved %s execution(s) for schedule %s", total, normalized)
    return {
        "success": True,
        "schedule_id": normalized,
        "total_executions": total,
        "executions": [row.to_record() for row in executions],
    }
