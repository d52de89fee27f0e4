"""User model."""

from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
import uuid

from database import Base


class User(Base):
    """Profile row for an authenticated user, maintained by the auth provider."""
    
    __tablename__ = "users"
    
    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String, unique=True, nullable=False, index=True)
    full_name = Column(String, nullable=True)
    company_name = Column(String, nullable=True)
    role = Column(String, nullable=False, default="user")  # admin, user
    last_login = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
