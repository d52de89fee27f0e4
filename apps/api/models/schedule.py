"""Schedule model for recurring research requests."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Schedule(Base):
    """Recurring research schedule and its execution bookkeeping."""

    __tablename__ = "schedules"

    schedule_id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False)
    industry = Column(String, nullable=False)
    sub_niche = Column(String, nullable=False)
    geography = Column(String, nullable=True)
    email = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    frequency = Column(String, nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    next_run = Column(DateTime(timezone=True), nullable=True)
    last_run = Column(DateTime(timezone=True), nullable=True)
    execution_count = Column(Integer, nullable=False, default=0)
    initialized_at = Column(DateTime(timezone=True), nullable=True)
    # Set client-side so the values stay loaded after commit.
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def to_dict(self):
        return {
            "schedule_id": self.schedule_id,
            "user_id": self.user_id,
            "title": self.title,
            "industry": self.industry,
            "sub_niche": self.sub_niche,
            "geography": self.geography,
            "email": self.email,
            "notes": self.notes,
            "frequency": self.frequency,
            "active": bool(self.active),
            "next_run": self.next_run.isoformat() if self.next_run else None,
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "execution_count": int(self.execution_count or 0),
            "initialized_at": self.initialized_at.isoformat() if self.initialized_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
