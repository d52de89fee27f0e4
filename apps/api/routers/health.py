"""
Health check endpoints.
"""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
import redis.asyncio as redis

from config import settings
from database import engine

router = APIRouter()
logger = logging.getLogger(__name__)


async def _database_status() -> str:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as exc:
        logger.warning("Database health check failed: %s", exc)
        return "down"
    return "up"


async def _redis_status() -> str:
    client = redis.from_url(settings.REDIS_URL)
    try:
        await client.ping()
    except (RedisError, OSError) as exc:
        logger.warning("Redis health check failed: %s", exc)
        return "down"
    finally:
        await client.aclose()
    return "up"


@router.get("/health")
async def health_check():
    """
    Health check endpoint.
    Reports database and Redis reachability; Redis only backs rate limiting,
    so losing it degrades the service without taking it down.
    """
    database = await _database_status()
    redis_state = await _redis_status()
    return {
        "status": "healthy" if database == "up" and redis_state == "up" else "degraded",
        "api": "up",
        "database": database,
        "redis": redis_state,
        "automation_key": "configured" if settings.AUTOMATION_API_KEY else "missing",
    }


@router.get("/health/ready")
async def readiness_check():
    """Kubernetes-style readiness check."""
    missing = []
    if not settings.AUTOMATION_API_KEY:
        missing.append("AUTOMATION_API_KEY")
    if await _database_status() != "up":
        missing.append("DATABASE_URL")

    if missing:
        return JSONResponse(
            status_code=503,
            content={"ready": False, "missing": missing},
        )
    return {"ready": True}


@router.get("/health/live")
async def liveness_check():
    """Kubernetes-style liveness check."""
    return {"alive": True}
