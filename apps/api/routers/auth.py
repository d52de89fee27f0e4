"""
Authentication router for the caller profile.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from database import get_db
from models.user import User
from routers.auth_scope import get_caller
from services.authorization import Caller

router = APIRouter()


class CurrentUserResponse(BaseModel):
    user_id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    company_name: Optional[str] = None
    role: str
    is_admin: bool
    profile_found: bool


@router.get("/me", response_model=CurrentUserResponse)
async def get_current_user(
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Get current user profile and effective role."""
    result = await db.execute(select(User).where(User.id == caller.user_id))
    user = result.scalar_one_or_none()
    return CurrentUserResponse(
        user_id=caller.user_id,
        email=caller.email,
        full_name=user.full_name if user else None,
        company_name=user.company_name if user else None,
        role=caller.role,
        is_admin=caller.is_admin,
        profile_found=user is not None,
    )
