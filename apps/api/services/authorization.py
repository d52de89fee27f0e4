"""Single source of truth for caller roles."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional

from config import is_admin_email
from models.user import User


Role = Literal["admin", "user"]
ADMIN_ROLE: Role = "admin"
USER_ROLE: Role = "user"


@dataclass(frozen=True)
class Caller:
    user_id: str
    email: Optional[str] = None
    role: Role = USER_ROLE

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


def resolve_role(user: Optional[User], email: Optional[str]) -> Role:
    """Admin when the stored profile says so or the email is allowlisted."""
    if user is not None and str(user.role or "").strip().lower() == ADMIN_ROLE:
        return ADMIN_ROLE
    candidate_email = email or (user.email if user is not None else None)
    if is_admin_email(candidate_email):
        return ADMIN_ROLE
    return USER_ROLE
