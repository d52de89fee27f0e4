"""Report workflow contracts."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field, StrictBool, field_validator
from pydantic_core import PydanticCustomError


Frequency = Literal["on-demand", "daily", "weekly", "biweekly", "monthly"]
ResearchType = Literal["on-demand", "recurring"]
ReportStatus = Literal["success", "failed"]

FREQUENCIES = ("on-demand", "daily", "weekly", "biweekly", "monthly")
RECURRING_FREQUENCIES = ("daily", "weekly", "biweekly", "monthly")
RESEARCH_TYPES = ("on-demand", "recurring")
DEFAULT_GEOGRAPHY = "Global"


def parse_timestamp(value: str) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    raw = str(value or "").strip()
    if not raw:
        return None
    if raw.endswith(("Z", "z")):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _required_text(value: Any) -> Any:
    if value is None or value == "":
        raise PydanticCustomError("required", "is required")
    if not isinstance(value, str):
        raise PydanticCustomError("string_type", "must be a string")
    if not value.strip():
        raise PydanticCustomError("blank_string", "cannot be empty")
    return value


@dataclass(frozen=True)
class ValidationIssue:
    field: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.field, "message": self.message}


class ReportRunPayload(BaseModel):
    """Execution report posted by the automation after a scheduled run."""

    user_id: str = Field(min_length=1)
    schedule_id: str = Field(min_length=1)
    industry: str = Field(min_length=1)
    sub_niche: str = Field(min_length=1)
    frequency: Frequency
    run_at: datetime
    is_first_run: StrictBool
    final_report: str = Field(min_length=1)
    email_report: Optional[str] = None
    geography: Optional[str] = None
    email: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("user_id", "schedule_id", "industry", "sub_niche", "final_report", mode="before")
    @classmethod
    def _check_required_text(cls, value: Any) -> Any:
        return _required_text(value)

    @field_validator("user_id", "schedule_id", "industry", "sub_niche")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip()

    @field_validator("frequency", mode="before")
    @classmethod
    def _normalize_frequency(cls, value: Any) -> Any:
        if value is None or value == "":
            raise PydanticCustomError("required", "is required")
        if not isinstance(value, str):
            raise PydanticCustomError("string_type", "must be a string")
        return value.strip().lower()

    @field_validator("run_at", mode="before")
    @classmethod
    def _parse_run_at(cls, value: Any) -> Any:
        if value is None or value == "":
            raise PydanticCustomError("required", "is required")
        if not isinstance(value, str):
            raise PydanticCustomError("string_type", "must be a string")
        parsed = parse_timestamp(value)
        if parsed is None:
            raise PydanticCustomError("timestamp_parsing", "must be a valid ISO 8601 timestamp")
        return parsed


class GeneratedReportPayload(BaseModel):
    """Report content handed over by the dispatcher for persistence."""

    user_id: str = Field(min_length=1)
    industry: str = Field(min_length=1)
    sub_niche: str = Field(min_length=1)
    email: str = Field(min_length=1)
    final_report: str = Field(min_length=1)
    geography: Optional[str] = None
    email_report: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("user_id", "industry", "sub_niche", "email", "final_report", mode="before")
    @classmethod
    def _check_required_text(cls, value: Any) -> Any:
        return _required_text(value)

    @field_validator("user_id", "industry", "sub_niche", "email")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip()


@dataclass(frozen=True)
class ReportRunResult:
    success: bool
    execution_id: str
    schedule_id: str
    is_first_run_effective: bool
    message: str
    timestamp: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
