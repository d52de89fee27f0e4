"""WebhookConfig model for report-generation endpoints."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, String, Text
from sqlalchemy.sql import func

from database import Base


class WebhookConfig(Base):
    """Registered endpoint that generates research reports."""

    __tablename__ = "webhook_configs"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    url = Column(String, nullable=False)
    type = Column(String, nullable=False, index=True)  # on-demand, recurring
    active = Column(Boolean, nullable=False, default=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "type": self.type,
            "active": bool(self.active),
            "description": self.description,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
