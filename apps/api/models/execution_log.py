"""ExecutionLog model for persisted research reports."""

from typing import Any, Dict

from sqlalchemy import Boolean, Column, DateTime, Index, String, Text

from database import Base


def _iso(value) -> str | None:
    return value.isoformat() if value is not None else None


class ExecutionLog(Base):
    """One generated market research report."""

    __tablename__ = "reports"

    execution_id = Column(String, primary_key=True)
    schedule_id = Column(String, nullable=True, index=True)  # null for on-demand reports
    user_id = Column(String, nullable=False, index=True)
    industry = Column(String, nullable=False)
    sub_niche = Column(String, nullable=False)
    geography = Column(String, nullable=True)
    email = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    frequency = Column(String, nullable=False)  # on-demand, daily, weekly, biweekly, monthly
    run_at = Column(DateTime(timezone=True), nullable=False)
    is_first_run = Column(Boolean, nullable=False, default=False)
    final_report = Column(Text, nullable=False)
    email_report = Column(Text, nullable=True)
    status = Column(String, nullable=False, default="success")  # success, failed
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_reports_user_id_run_at", "user_id", "run_at"),
    )

    def to_record(self) -> Dict[str, Any]:
        """Wire shape shared with the storage collaborator."""
        return {
            "execution_id": self.execution_id,
            "schedule_id": self.schedule_id,
            "user_id": self.user_id,
            "industry": self.industry,
            "sub_niche": self.sub_niche,
            "geography": self.geography,
            "email": self.email,
            "notes": self.notes,
            "frequency": self.frequency,
            "run_at": _iso(self.run_at),
            "is_first_run": bool(self.is_first_run),
            "final_report": self.final_report,
            "email_report": self.email_report or self.final_report,
            "status": self.status,
            "created_at": _iso(self.created_at),
        }
