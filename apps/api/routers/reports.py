"""
Router for report execution logging and role-scoped report retrieval.
"""

import logging
from typing import Any, Literal, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import ensure_user_scope, get_caller, require_automation_key
from routers.errors import error_body, internal_details
from services.authorization import Caller
from services.execution_logs import ExecutionLogPersistenceError
from services.report_run import (
    ReportRunError,
    build_generated_report_request,
    build_report_run_request,
    get_reports_by_schedule,
    process_report_run,
    save_generated_report,
)
from services.report_types import GeneratedReportPayload, ReportRunPayload
from services.report_validation import (
    format_validation_details,
    validate_generated_report_request,
    validate_report_run_request,
)
from services.reports_query import (
    delete_report,
    get_report,
    list_reports,
    sort_view_models,
    to_view_model,
)

router = APIRouter()
logger = logging.getLogger(__name__)


class SaveReportResponse(BaseModel):
    success: bool
    execution_id: str
    report_id: str
    message: str
    timestamp: str


def _validation_failed(issues) -> HTTPException:
    return HTTPException(
        status_code=400,
        detail=error_body(
            "Validation failed",
            format_validation_details(issues),
            validation_errors=[issue.to_dict() for issue in issues],
        ),
    )


@router.post(
    "/run",
    openapi_extra={"requestBody": {"content": {"application/json": {"schema": ReportRunPayload.model_json_schema()}}}},
)
async def report_run(
    payload: Any = Body(default=None),
    _automation: None = Depends(require_automation_key),
    db: AsyncSession = Depends(get_db),
):
    """Log one execution reported by the report-generation automation."""
    issues = validate_report_run_request(payload)
    if issues:
        logger.info("report_run rejected: %s", format_validation_details(issues))
        raise _validation_failed(issues)

    request = build_report_run_request(payload)
    try:
        result = await process_report_run(request, db)
    except ReportRunError as exc:
        logger.error("report_run failed schedule=%s: %s", request.schedule_id, exc)
        raise HTTPException(
            status_code=500,
            detail=error_body(
                "Failed to process report run",
                internal_details(exc, "The execution could not be saved."),
            ),
        )
    return result.to_dict()


@router.post(
    "/on-demand",
    response_model=SaveReportResponse,
    openapi_extra={"requestBody": {"content": {"application/json": {"schema": GeneratedReportPayload.model_json_schema()}}}},
)
async def save_on_demand_report(
    payload: Any = Body(default=None),
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Persist report content returned by a webhook."""
    issues = validate_generated_report_request(payload)
    if issues:
        raise _validation_failed(issues)

    parsed = build_generated_report_request(payload)
    scoped_user_id = ensure_user_scope(caller, parsed.user_id)
    request = parsed.model_copy(update={"user_id": scoped_user_id})
    try:
        saved = await save_generated_report(request, db)
    except ExecutionLogPersistenceError as exc:
        logger.error("on-demand report not saved user=%s: %s", scoped_user_id, exc)
        raise HTTPException(
            status_code=500,
            detail=error_body("Failed to save report", internal_details(exc, "The report could not be saved.")),
        )
    return SaveReportResponse(
        success=True,
        execution_id=saved.execution_id,
        report_id=saved.execution_id,
        message="On-demand report saved successfully",
        timestamp=saved.created_at.isoformat(),
    )


@router.get("")
async def get_reports(
    schedule_id: Optional[str] = None,
    limit: Optional[int] = Query(default=None, ge=1),
    sort: Literal["date", "title", "category"] = "date",
    direction: Literal["asc", "desc"] = "desc",
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """List reports visible to the caller, most recent first."""
    try:
        rows = await list_reports(caller, db, schedule_id=schedule_id, limit=limit)
    except Exception as exc:
        logger.exception("Failed to list reports for user %s", caller.user_id)
        raise HTTPException(
            status_code=500,
            detail=error_body("Failed to fetch reports", internal_details(exc, "Internal server error")),
        )
    reports = [to_view_model(row) for row in rows]
    if sort != "date" or direction != "desc":
        reports = sort_view_models(reports, sort, direction)
    return {"success": True, "total": len(reports), "reports": reports}


@router.get("/schedule/{schedule_id}")
async def get_schedule_reports(
    schedule_id: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """All execution logs for one schedule."""
    try:
        return await get_reports_by_schedule(schedule_id, caller, db)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=error_body("Invalid schedule_id", str(exc)))


@router.get("/{execution_id}")
async def get_report_by_id(
    execution_id: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Retrieve a specific report."""
    try:
        report = await get_report(caller, execution_id, db)
    except LookupError:
        raise HTTPException(status_code=404, detail=error_body("Report not found"))
    return {"success": True, "report": to_view_model(report)}


@router.delete("/{execution_id}")
async def delete_report_by_id(
    execution_id: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Permanently delete a report."""
    try:
        await delete_report(caller, execution_id, db)
    except LookupError:
        raise HTTPException(status_code=404, detail=error_body("Report not found"))
    return {"success": True, "message": "Report deleted successfully"}
