"""
Router for submitting market research requests to the report-generation webhooks.
"""

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from routers.auth_scope import get_caller
from routers.errors import error_body
from routers.rate_limit import rate_limit
from services.authorization import Caller
from services.dispatcher import (
    AllWebhooksFailedError,
    DispatchError,
    ReportGenerationError,
    ReportNotSavedError,
    ResearchDispatcher,
    ResearchRequest,
)
from services.report_run import save_generated_report
from services.schedules import create_schedule
from services.webhooks import SqlWebhookConfigRepository

router = APIRouter()
logger = logging.getLogger(__name__)


class OnDemandResearchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    market_category: str = Field(alias="marketCategory", min_length=1)
    sub_niche: str = Field(alias="subNiche", min_length=1)
    email: str = Field(min_length=3)
    geography: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("market_category", "sub_niche", "email")
    @classmethod
    def _strip_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("cannot be empty")
        return value


class RecurringResearchRequest(OnDemandResearchRequest):
    frequency: Literal["daily", "weekly", "biweekly", "monthly"] = "weekly"


def _get_dispatcher(db: AsyncSession) -> ResearchDispatcher:
    return ResearchDispatcher(
        SqlWebhookConfigRepository(db),
        persist=save_generated_report,
        create_schedule=create_schedule,
    )


def _dispatch_failure(exc: DispatchError) -> HTTPException:
    webhooks = [attempt.summary() for attempt in exc.attempts]
    if isinstance(exc, ReportNotSavedError):
        return HTTPException(
            status_code=500,
            detail=error_body(
                exc.code,
                exc.message,
                final_report=exc.final_report,
                email_report=exc.email_report,
                schedule_id=exc.schedule_id,
            ),
        )
    if isinstance(exc, (AllWebhooksFailedError, ReportGenerationError)):
        return HTTPException(status_code=502, detail=error_body(exc.code, exc.message, webhooks=webhooks))
    return HTTPException(status_code=500, detail=error_body(exc.code, exc.message))


async def _submit(
    research_type: str,
    request: ResearchRequest,
    caller: Caller,
    db: AsyncSession,
):
    dispatcher = _get_dispatcher(db)
    try:
        outcome = await dispatcher.dispatch(request, research_type, caller, db)
    except DispatchError as exc:
        logger.warning("Research %s for user=%s failed: %s", research_type, caller.user_id, exc.code)
        raise _dispatch_failure(exc)
    return outcome.to_dict()


@router.post("/on-demand")
async def submit_on_demand_research(
    payload: OnDemandResearchRequest,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
    _rate_limit: None = Depends(
        rate_limit("research_submit", limit=settings.RESEARCH_RATE_LIMIT_PER_HOUR, window_seconds=3600)
    ),
):
    """Generate one report now and store it."""
    request = ResearchRequest(
        market_category=payload.market_category,
        sub_niche=payload.sub_niche,
        email=payload.email,
        geography=payload.geography,
        notes=payload.notes,
    )
    return await _submit("on-demand", request, caller, db)


@router.post("/recurring")
async def submit_recurring_research(
    payload: RecurringResearchRequest,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
    _rate_limit: None = Depends(
        rate_limit("research_submit", limit=settings.RESEARCH_RATE_LIMIT_PER_HOUR, window_seconds=3600)
    ),
):
    """Create a schedule and store its first report."""
    request = ResearchRequest(
        market_category=payload.market_category,
        sub_niche=payload.sub_niche,
        email=payload.email,
        geography=payload.geography,
        notes=payload.notes,
        frequency=payload.frequency,
    )
    return await _submit("recurring", request, caller, db)
