"""Redis-backed request quotas with an in-process fallback counter."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, Optional, Tuple

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials
import redis.asyncio as redis
from redis.exceptions import RedisError

from config import settings
from routers.auth_scope import auth_scheme
from routers.errors import error_body
from services.session_token import decode_session_token

logger = logging.getLogger(__name__)

_local_counters: Dict[str, Tuple[int, float]] = {}
_local_lock = asyncio.Lock()


def reset_local_quotas() -> None:
    _local_counters.clear()


def _caller_key(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> str:
    # Signed-in callers are counted per verified user, everyone else per address.
    if credentials is not None and credentials.scheme.lower() == "bearer":
        try:
            return f"user:{decode_session_token(credentials.credentials).user_id}"
        except ValueError as exc:
            logger.debug("Rate limit falling back to client address: %s", exc)
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return f"ip:{forwarded.split(',')[0].strip()}"
    if request.client and request.client.host:
        return f"ip:{request.client.host}"
    return "ip:unknown"


async def _consume_local_quota(key: str, limit: int, window_seconds: int) -> bool:
    now = time.time()
    async with _local_lock:
        count, reset_at = _local_counters.get(key, (0, now + window_seconds))
        if now >= reset_at:
            count, reset_at = 0, now + window_seconds
        count += 1
        _local_counters[key] = (count, reset_at)
        return count <= limit


async def _consume_redis_quota(key: str, limit: int, window_seconds: int) -> bool:
    client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    try:
        current = await client.incr(key)
        if current == 1:
            await client.expire(key, window_seconds)
    finally:
        await client.aclose()
    return current <= limit


def rate_limit(prefix: str, limit: int, window_seconds: int) -> Callable[..., Awaitable[None]]:
    """FastAPI dependency allowing `limit` calls per caller per window."""

    async def _dependency(
        request: Request,
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(auth_scheme),
    ) -> None:
        if getattr(request.app.state, "disable_rate_limits", False):
            return

        key = f"mi:rate:{prefix}:{_caller_key(request, credentials)}"
        try:
            allowed = await _consume_redis_quota(key, limit, window_seconds)
        except (RedisError, OSError) as exc:
            logger.warning("Rate limit store unavailable, counting in process: %s", exc)
            allowed = await _consume_local_quota(key, limit, window_seconds)

        if not allowed:
            logger.info("Rate limit hit prefix=%s key=%s", prefix, key)
            raise HTTPException(
                status_code=429,
                detail=error_body("rate_limited", f"Rate limit exceeded for {prefix}. Try again later."),
            )

    return _dependency
