"""
Router for viewing, pausing and deleting recurring research schedules.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import get_caller
from routers.errors import error_body
from services.authorization import Caller
from services.schedules import delete_schedule, get_schedule, list_schedules, set_schedule_active

router = APIRouter()


@router.get("")
async def get_schedules(
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    schedules = await list_schedules(caller, db)
    return {"success": True, "total": len(schedules), "schedules": schedules}


@router.get("/active")
async def get_active_schedules(
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Active schedules, soonest next run first."""
    schedules = await list_schedules(caller, db, active_only=True)
    return {"success": True, "total": len(schedules), "schedules": schedules}


@router.get("/{schedule_id}")
async def get_schedule_by_id(
    schedule_id: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    try:
        schedule = await get_schedule(caller, schedule_id, db)
    except LookupError:
        raise HTTPException(status_code=404, detail=error_body("Schedule not found"))
    return {"success": True, "schedule": schedule.to_dict()}


async def _set_active(schedule_id: str, active: bool, caller: Caller, db: AsyncSession):
    try:
        schedule = await set_schedule_active(caller, schedule_id, active, db)
    except LookupError:
        raise HTTPException(status_code=404, detail=error_body("Schedule not found"))
    return {"success": True, "schedule": schedule}


@router.post("/{schedule_id}/pause")
async def pause_schedule(
    schedule_id: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await _set_active(schedule_id, False, caller, db)


@router.post("/{schedule_id}/resume")
async def resume_schedule(
    schedule_id: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await _set_active(schedule_id, True, caller, db)


@router.delete("/{schedule_id}")
async def remove_schedule(
    schedule_id: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Delete a schedule; reports it produced are kept."""
    try:
        await delete_schedule(caller, schedule_id, db)
    except LookupError:
        raise HTTPException(status_code=404, detail=error_body("Schedule not found"))
    return {"success": True, "message": "Schedule deleted successfully"}
