"""AppSetting model."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String

from database import Base


class AppSetting(Base):
    """Key-value flags owned by the service itself."""

    __tablename__ = "app_settings"

    key = Column(String(100), primary_key=True)
    value = Column(String(500), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
