"""Webhook endpoint registry behind a repository interface."""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

import httpx
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from models.app_setting import AppSetting
from models.webhook_config import WebhookConfig as WebhookConfigRow
from services.report_types import RESEARCH_TYPES

logger = logging.getLogger(__name__)

SEEDED_MARKER_KEY = "webhooks_seeded"


@dataclass(frozen=True)
class WebhookEndpoint:
    id: str
    name: str
    url: str
    type: str
    active: bool = True
    description: Optional[str] = None
    created_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class WebhookPingResult:
    webhook_id: str
    ok: bool
    status_code: Optional[int] = None
    error: Optional[str] = None


def default_webhooks() -> List[WebhookEndpoint]:
    """One handler per research type, active so every user can submit."""
    return [
        WebhookEndpoint(
            id=str(uuid.uuid4()),
            name="On-Demand Research Handler",
            url=settings.DEFAULT_ON_DEMAND_WEBHOOK_URL,
            type="on-demand",
            active=True,
            description="Handles immediate market research requests",
        ),
        WebhookEndpoint(
            id=str(uuid.uuid4()),
            name="Recurring Research Handler",
            url=settings.DEFAULT_RECURRING_WEBHOOK_URL,
            type="recurring",
            active=True,
            description="Handles scheduled recurring research requests",
        ),
    ]


def _check_type(webhook_type: str) -> str:
    normalized = str(webhook_type or "").strip().lower()
    if normalized not in RESEARCH_TYPES:
        raise ValueError(f"type must be one of: {', '.join(RESEARCH_TYPES)}")
    return normalized


def _check_url(url: str) -> str:
    normalized = str(url or "").strip()
    if not normalized.startswith(("http://", "https://")):
        raise ValueError("url must be an absolute http(s) URL")
    return normalized


class WebhookConfigRepository(ABC):
    """Persistence contract for dispatch endpoints."""

    @abstractmethod
    async def load(self) -> List[WebhookEndpoint]:
        raise NotImplementedError

    @abstractmethod
    async def save(self, webhooks: Sequence[WebhookEndpoint]) -> List[WebhookEndpoint]:
        """Replace the whole registry."""
        raise NotImplementedError

    async def list_by_type(self, webhook_type: str, *, active_only: bool = True) -> List[WebhookEndpoint]:
        normalized = _check_type(webhook_type)
        return [
            item
            for item in await self.load()
            if item.type == normalized and (item.active or not active_only)
        ]

    async def get(self, webhook_id: str) -> WebhookEndpoint:
        for item in await self.load():
            if item.id == webhook_id:
                return item
        raise LookupError(webhook_id)

    async def add(
        self,
        *,
        name: str,
        url: str,
        webhook_type: str,
        description: Optional[str] = None,
        active: bool = True,
    ) -> WebhookEndpoint:
        endpoint = WebhookEndpoint(
            id=str(uuid.uuid4()),
            name=str(name or "").strip() or "Webhook",
            url=_check_url(url),
            type=_check_type(webhook_type),
            active=bool(active),
            description=description,
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        current = await self.load()
        await self.save([*current, endpoint])
        return endpoint

    async def update(self, webhook_id: str, changes: Dict[str, Any]) -> WebhookEndpoint:
        current = await self.load()
        updated: Optional[WebhookEndpoint] = None
        result: List[WebhookEndpoint] = []
        for item in current:
            if item.id == webhook_id:
                clean: Dict[str, Any] = {}
                if changes.get("name") is not None:
                    clean["name"] = str(changes["name"]).strip() or item.name
                if changes.get("url") is not None:
                    clean["url"] = _check_url(changes["url"])
                if changes.get("type") is not None:
                    clean["type"] = _check_type(changes["type"])
                if changes.get("active") is not None:
                    clean["active"] = bool(changes["active"])
                if "description" in changes:
                    clean["description"] = changes["description"]
                updated = replace(item, **clean)
                result.append(updated)
            else:
                result.append(item)
        if updated is None:
            raise LookupError(webhook_id)
        await self.save(result)
        return updated

    async def delete(self, webhook_id: str) -> None:
        current = await self.load()
        remaining = [item for item in current if item.id != webhook_id]
        if len(remaining) == len(current):
            raise LookupError(webhook_id)
        await self.save(remaining)


def _to_endpoint(row: WebhookConfigRow) -> WebhookEndpoint:
    return WebhookEndpoint(
        id=row.id,
        name=row.name,
        url=row.url,
        type=row.type,
        active=bool(row.active),
        description=row.description,
        created_at=row.created_at.isoformat() if row.created_at else None,
    )


class SqlWebhookConfigRepository(WebhookConfigRepository):
    """Server-side table implementation.

    Defaults are seeded only into a registry that was never written. Once any
    list has been saved, an empty table means no endpoints are configured.
    """

    def __init__(self, db: AsyncSession, *, seed_defaults: bool = True) -> None:
        self.db = db
        self.seed_defaults = seed_defaults

    async def load(self) -> List[WebhookEndpoint]:
        result = await self.db.execute(select(WebhookConfigRow).order_by(WebhookConfigRow.created_at.asc()))
        rows = list(result.scalars().all())
        if not rows and self.seed_defaults and not await self._was_seeded():
            logger.info("Webhook registry empty; seeding default handlers")
            return await self.save(default_webhooks())
        return [_to_endpoint(row) for row in rows]

    async def save(self, webhooks: Sequence[WebhookEndpoint]) -> List[WebhookEndpoint]:
        result = await self.db.execute(select(WebhookConfigRow))
        existing = {row.id: row for row in result.scalars().all()}
        keep_ids = {item.id for item in webhooks}
        for row_id, row in existing.items():
            if row_id not in keep_ids:
                await self.db.delete(row)

        # New rows without a timestamp keep their batch order.
        base_time = datetime.now(timezone.utc)
        rows: List[WebhookConfigRow] = []
        for index, item in enumerate(webhooks):
            row = existing.get(item.id)
            if row is None:
                row = WebhookConfigRow(
                    id=item.id,
                    created_at=_parse_created_at(item.created_at) or base_time + timedelta(microseconds=index),
                )
                self.db.add(row)
            row.name = item.name
            row.url = item.url
            row.type = item.type
            row.active = bool(item.active)
            row.description = item.description
            rows.append(row)
        if not await self._was_seeded():
            self.db.add(AppSetting(key=SEEDED_MARKER_KEY, value="true"))
        await self.db.commit()
        return [_to_endpoint(row) for row in rows]

    async def _was_seeded(self) -> bool:
        return await self.db.get(AppSetting, SEEDED_MARKER_KEY) is not None


def _parse_created_at(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


async def ping_webhook(
    endpoint: WebhookEndpoint,
    *,
    timeout: Optional[float] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> WebhookPingResult:
    """POST the settings-page test payload to one endpoint."""
    payload = {
        "test": True,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "message": "Test webhook from Market Intelligence Platform",
        "webhookName": endpoint.name,
    }
    try:
        async with httpx.AsyncClient(
            timeout=timeout or settings.WEBHOOK_TIMEOUT_SECONDS,
            transport=transport,
        ) as client:
            response = await client.post(endpoint.url, json=payload)
    except httpx.HTTPError as exc:
        logger.warning("Webhook test failed webhook=%s url=%s: %s", endpoint.name, endpoint.url, exc)
        return WebhookPingResult(webhook_id=endpoint.id, ok=False, error=str(exc) or exc.__class__.__name__)

    ok = response.is_success
    logger.info("Webhook test webhook=%s status=%s", endpoint.name, response.status_code)
    return WebhookPingResult(
        webhook_id=endpoint.id,
        ok=ok,
        status_code=response.status_code,
        error=None if ok else f"{endpoint.name} returned status {response.status_code}",
    )
