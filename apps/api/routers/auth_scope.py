"""Authentication dependencies for API user scoping."""

import hmac
from typing import Optional

from fastapi import Depends, Header, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from database import get_db
from models.user import User
from services.authorization import Caller, resolve_role
from services.session_token import SessionClaims, decode_session_token


auth_scheme = HTTPBearer(auto_error=False)


def ensure_user_scope(caller: Caller, supplied_user_id: Optional[str]) -> str:
    """Return the user_id to act for and reject cross-user attempts by non-admins."""
    if supplied_user_id and supplied_user_id != caller.user_id:
        if caller.is_admin:
            return supplied_user_id
        raise HTTPException(status_code=403, detail="user_id does not match authenticated session.")
    return caller.user_id


async def get_session_claims(
    credentials: HTTPAuthorizationCredentials = Depends(auth_scheme),
) -> SessionClaims:
    """Resolve authenticated session from Bearer token."""
    if not credentials or credentials.scheme.lower() != "bearer":
        raise HTTPException(status_code=401, detail="Missing Bearer session token.")

    try:
        return decode_session_token(credentials.credentials)
    except ValueError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc


async def get_caller(
    claims: SessionClaims = Depends(get_session_claims),
    db: AsyncSession = Depends(get_db),
) -> Caller:
    """Authenticated caller with its role resolved once per request."""
    result = await db.execute(select(User).where(User.id == claims.user_id))
    user = result.scalar_one_or_none()
    email = claims.email or (user.email if user is not None else None)
    return Caller(user_id=claims.user_id, email=email, role=resolve_role(user, email))


async def require_admin(caller: Caller = Depends(get_caller)) -> Caller:
    if not caller.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required.")
    return caller


async def require_automation_key(x_automation_key: Optional[str] = Header(default=None)) -> None:
    """Authenticate the report-generation automation by shared key."""
    expected = (settings.AUTOMATION_API_KEY or "").strip()
    if not expected:
        raise HTTPException(status_code=503, detail="Automation access is not configured.")
    if not x_automation_key or not hmac.compare_digest(x_automation_key.strip(), expected):
        raise HTTPException(status_code=401, detail="Invalid automation key.")
