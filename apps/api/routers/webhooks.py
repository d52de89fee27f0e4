"""
Admin router for the report-generation webhook registry.
"""

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import require_admin
from routers.errors import error_body
from services.authorization import Caller
from services.webhooks import SqlWebhookConfigRepository, ping_webhook

router = APIRouter()
logger = logging.getLogger(__name__)


class CreateWebhookRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    url: str = Field(min_length=1)
    type: Literal["on-demand", "recurring"]
    description: Optional[str] = None
    active: bool = True


class UpdateWebhookRequest(BaseModel):
    name: Optional[str] = Field(default=None, max_length=255)
    url: Optional[str] = None
    type: Optional[Literal["on-demand", "recurring"]] = None
    description: Optional[str] = None
    active: Optional[bool] = None


def _not_found() -> HTTPException:
    return HTTPException(status_code=404, detail=error_body("Webhook not found"))


@router.get("")
async def list_webhooks(
    _admin: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    webhooks = await SqlWebhookConfigRepository(db).load()
    return {"success": True, "webhooks": [item.to_dict() for item in webhooks]}


@router.post("")
async def create_webhook(
    payload: CreateWebhookRequest,
    admin: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    repository = SqlWebhookConfigRepository(db)
    try:
        webhook = await repository.add(
            name=payload.name,
            url=payload.url,
            webhook_type=payload.type,
            description=payload.description,
            active=payload.active,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=error_body("Validation failed", str(exc)))
    logger.info("webhook_created id=%s type=%s by=%s", webhook.id, webhook.type, admin.user_id)
    return {"success": True, "webhook": webhook.to_dict()}


@router.patch("/{webhook_id}")
async def update_webhook(
    webhook_id: str,
    payload: UpdateWebhookRequest,
    admin: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    repository = SqlWebhookConfigRepository(db)
    try:
        webhook = await repository.update(webhook_id, payload.model_dump(exclude_unset=True))
    except LookupError:
        raise _not_found()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=error_body("Validation failed", str(exc)))
    logger.info("webhook_updated id=%s by=%s", webhook_id, admin.user_id)
    return {"success": True, "webhook": webhook.to_dict()}


@router.delete("/{webhook_id}")
async def delete_webhook(
    webhook_id: str,
    admin: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        await SqlWebhookConfigRepository(db).delete(webhook_id)
    except LookupError:
        raise _not_found()
    logger.info("webhook_deleted id=%s by=%s", webhook_id, admin.user_id)
    return {"success": True, "message": "Webhook deleted successfully"}


@router.post("/{webhook_id}/test")
async def test_webhook(
    webhook_id: str,
    _admin: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Send a test payload to one endpoint and report whether it answered."""
    try:
        webhook = await SqlWebhookConfigRepository(db).get(webhook_id)
    except LookupError:
        raise _not_found()
    result = await ping_webhook(webhook)
    return {
        "success": result.ok,
        "webhook_id": result.webhook_id,
        "status_code": result.status_code,
        "error": result.error,
    }
