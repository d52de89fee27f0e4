"""Fan-out of research requests to report-generation webhooks."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from models.execution_log import ExecutionLog
from models.schedule import Schedule
from services.authorization import Caller
from services.execution_logs import generate_execution_id
from services.report_types import GeneratedReportPayload, RESEARCH_TYPES, ResearchType
from services.webhooks import WebhookConfigRepository, WebhookEndpoint

logger = logging.getLogger(__name__)

PersistReport = Callable[..., Awaitable[ExecutionLog]]
CreateSchedule = Callable[..., Awaitable[Schedule]]


class DispatchError(RuntimeError):
    """Base class for user-facing dispatch failures."""

    code = "dispatch_failed"

    def __init__(self, message: str, *, attempts: Optional[Sequence["WebhookAttempt"]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.attempts = list(attempts or [])


class AllWebhooksFailedError(DispatchError):
    """No endpoint of the requested type answered successfully."""

    code = "all_webhooks_failed"


class ReportGenerationError(DispatchError):
    """Endpoints answered but produced no report content."""

    code = "report_generation_failed"


class ReportNotSavedError(DispatchError):
    """Report content exists but could not be persisted."""

    code = "report_not_saved"

    def __init__(
        self,
        message: str,
        *,
        final_report: str,
        email_report: str,
        schedule_id: Optional[str] = None,
        attempts: Optional[Sequence["WebhookAttempt"]] = None,
    ) -> None:
        super().__init__(message, attempts=attempts)
        self.final_report = final_report
        self.email_report = email_report
        self.schedule_id = schedule_id


@dataclass(frozen=True)
class ResearchRequest:
    market_category: str
    sub_niche: str
    email: str
    geography: Optional[str] = None
    notes: Optional[str] = None
    frequency: Optional[str] = None

    def form_fields(self, research_type: str) -> Dict[str, Any]:
        fields: Dict[str, Any] = {
            "marketCategory": self.market_category,
            "subNiche": self.sub_niche,
            "geography": self.geography or "",
            "email": self.email,
            "notes": self.notes or "",
        }
        if research_type == "recurring":
            fields["frequency"] = self.frequency
        return fields


@dataclass
class WebhookAttempt:
    webhook_id: str
    webhook_name: str
    url: str
    ok: bool
    status_code: Optional[int] = None
    error: Optional[str] = None
    body: Any = None

    def summary(self) -> Dict[str, Any]:
        return {
            "webhook_id": self.webhook_id,
            "webhook_name": self.webhook_name,
            "ok": self.ok,
            "status_code": self.status_code,
            "error": self.error,
        }


@dataclass
class DispatchOutcome:
    research_type: str
    status: str  # completed, scheduled, no_active_webhooks
    execution_id: Optional[str] = None
    schedule_id: Optional[str] = None
    warning: Optional[str] = None
    attempts: List[WebhookAttempt] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.status != "no_active_webhooks",
            "research_type": self.research_type,
            "status": self.status,
            "execution_id": self.execution_id,
            "schedule_id": self.schedule_id,
            "warning": self.warning,
            "webhooks": [attempt.summary() for attempt in self.attempts],
        }


def _parse_body(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        return {"webReport": text}


def extract_report_content(body: Any) -> Optional[Dict[str, str]]:
    """Pull webReport/emailReport out of a webhook body; None when empty."""
    data = body[0] if isinstance(body, list) and body else body
    if isinstance(data, str):
        data = {"webReport": data}
    if not isinstance(data, dict):
        return None
    web_report = data.get("webReport")
    if not isinstance(web_report, str) or not web_report.strip():
        return None
    email_report = data.get("emailReport")
    if not isinstance(email_report, str) or not email_report.strip():
        email_report = web_report
    return {"web_report": web_report, "email_report": email_report}


class ResearchDispatcher:
    """Send one research request to every active webhook of its type.

    All calls run concurrently and are awaited to completion; the first
    successful response (in registration order) that carries report content
    is handed to the persistence path.
    """

    def __init__(
        self,
        repository: WebhookConfigRepository,
        *,
        persist: PersistReport,
        create_schedule: CreateSchedule,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.repository = repository
        self.persist = persist
        self.create_schedule = create_schedule
        self.timeout = settings.WEBHOOK_TIMEOUT_SECONDS if timeout is None else timeout
        self.transport = transport

    def build_payload(
        self,
        request: ResearchRequest,
        research_type: str,
        caller: Caller,
        webhook: WebhookEndpoint,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "userId": caller.user_id,
            "userEmail": caller.email,
            **request.form_fields(research_type),
            "submittedAt": datetime.now(timezone.utc).isoformat(),
            "webhookName": webhook.name,
            "researchType": research_type,
        }
        if research_type == "recurring":
            payload["isInitialRun"] = True
        return payload

    async def _call_webhook(
        self,
        client: httpx.AsyncClient,
        webhook: WebhookEndpoint,
        payload: Dict[str, Any],
    ) -> WebhookAttempt:
        logger.info("Sending research request to webhook=%s url=%s", webhook.name, webhook.url)
        try:
            response = await client.post(webhook.url, json=payload)
        except httpx.TimeoutException as exc:
            logger.warning("Webhook %s timed out after %ss: %s", webhook.name, self.timeout, exc)
            return WebhookAttempt(webhook.id, webhook.name, webhook.url, ok=False, error="timeout")
        except httpx.HTTPError as exc:
            logger.warning("Webhook %s request failed: %s", webhook.name, exc)
            return WebhookAttempt(
                webhook.id,
                webhook.name,
                webhook.url,
                ok=False,
                error=str(exc) or exc.__class__.__name__,
            )

        if not response.is_success:
            logger.warning(
                "Webhook %s returned status %s: %s",
                webhook.name,
                response.status_code,
                response.text[:200],
            )
            return WebhookAttempt(
                webhook.id,
                webhook.name,
                webhook.url,
                ok=False,
                status_code=response.status_code,
                error=f"status {response.status_code}",
            )

        logger.info("Webhook %s responded with status %s", webhook.name, response.status_code)
        return WebhookAttempt(
            webhook.id,
            webhook.name,
            webhook.url,
            ok=True,
            status_code=response.status_code,
            body=_parse_body(response.text),
        )

    async def fan_out(
        self,
        webhooks: Sequence[WebhookEndpoint],
        request: ResearchRequest,
        research_type: str,
        caller: Caller,
    ) -> List[WebhookAttempt]:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            tasks = [
                self._call_webhook(client, webhook, self.build_payload(request, research_type, caller, webhook))
                for webhook in webhooks
            ]
            return list(await asyncio.gather(*tasks))

    async def dispatch(
        self,
        request: ResearchRequest,
        research_type: ResearchType,
        caller: Caller,
        db: AsyncSession,
    ) -> DispatchOutcome:
        if research_type not in RESEARCH_TYPES:
            raise ValueError(f"research_type must be one of: {', '.join(RESEARCH_TYPES)}")

        webhooks = await self.repository.list_by_type(research_type, active_only=True)
        if not webhooks:
            logger.warning("No active %s webhooks configured; request from user=%s not sent", research_type, caller.user_id)
            return DispatchOutcome(
                research_type=research_type,
                status="no_active_webhooks",
                warning=f"No active {research_type} webhooks. Configure one in Settings.",
            )

        attempts = await self.fan_out(webhooks, request, research_type, caller)
        succeeded = [attempt for attempt in attempts if attempt.ok]
        logger.info(
            "Dispatch finished type=%s user=%s succeeded=%s failed=%s",
            research_type,
            caller.user_id,
            len(succeeded),
            len(attempts) - len(succeeded),
        )
        if not succeeded:
            raise AllWebhooksFailedError("All webhooks failed", attempts=attempts)

        content = None
        for attempt in succeeded:
            content = extract_report_content(attempt.body)
            if content is not None:
                break

        schedule: Optional[Schedule] = None
        if research_type == "recurring":
            schedule = await self.create_schedule(
                schedule_id=generate_execution_id("sched"),
                user_id=caller.user_id,
                industry=request.market_category,
                sub_niche=request.sub_niche,
                frequency=request.frequency or "weekly",
                geography=request.geography,
                email=request.email,
                notes=request.notes,
                db=db,
            )
            if content is None:
                return DispatchOutcome(
                    research_type=research_type,
                    status="scheduled",
                    schedule_id=schedule.schedule_id,
                    warning="Schedule created. The first report will arrive with the next run.",
                    attempts=attempts,
                )
        elif content is None:
            logger.error("No report content received from %s webhook(s)", len(succeeded))
            raise ReportGenerationError("No content was generated. Please try again.", attempts=attempts)

        generated = GeneratedReportPayload(
            user_id=caller.user_id,
            industry=request.market_category,
            sub_niche=request.sub_niche,
            geography=request.geography,
            email=request.email,
            final_report=content["web_report"],
            email_report=content["email_report"],
            notes=request.notes,
        )
        try:
            saved = await self.persist(generated, db, schedule=schedule)
        except Exception as exc:
            logger.exception(
                "Report generated but not saved user=%s schedule=%s",
                caller.user_id,
                schedule.schedule_id if schedule is not None else None,
            )
            raise ReportNotSavedError(
                "The report was generated but could not be saved. Please retry or contact support.",
                final_report=content["web_report"],
                email_report=content["email_report"],
                schedule_id=schedule.schedule_id if schedule is not None else None,
                attempts=attempts,
            ) from exc

        return DispatchOutcome(
            research_type=research_type,
            status="completed",
            execution_id=saved.execution_id,
            schedule_id=schedule.schedule_id if schedule is not None else None,
            attempts=attempts,
        )
