"""ActivityLog model."""

import uuid

from sqlalchemy import Column, DateTime, JSON, String
from sqlalchemy.sql import func

from database import Base


class ActivityLog(Base):
    """Audit trail entry for report activity."""

    __tablename__ = "activity_logs"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    action = Column(String, nullable=False)
    resource_type = Column(String, nullable=False)
    resource_id = Column(String, nullable=True, index=True)
    user_id = Column(String, nullable=True, index=True)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
