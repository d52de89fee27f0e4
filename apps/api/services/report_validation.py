"""Boundary validation for inbound report payloads."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Type

from pydantic import BaseModel, ValidationError

from services.report_types import (
    FREQUENCIES,
    GeneratedReportPayload,
    ReportRunPayload,
    ValidationIssue,
    parse_timestamp,
)

__all__ = [
    "format_validation_details",
    "parse_timestamp",
    "validate_generated_report_request",
    "validate_report_run_request",
]

_MESSAGES: Dict[str, str] = {
    "missing": "is required",
    "required": "is required",
    "string_too_short": "is required",
    "string_type": "must be a string",
    "blank_string": "cannot be empty",
    "bool_type": "must be a boolean",
    "timestamp_parsing": "must be a valid ISO 8601 timestamp",
}


def _issue(error: Dict[str, Any]) -> ValidationIssue:
    if not error.get("loc"):
        return ValidationIssue("payload", "Request body must be a valid JSON object")
    field = str(error["loc"][0])
    if error["type"] == "literal_error" and field == "frequency":
        return ValidationIssue(field, f"frequency must be one of: {', '.join(FREQUENCIES)}")
    suffix = _MESSAGES.get(error["type"])
    if suffix is None:
        return ValidationIssue(field, f"{field}: {error['msg']}")
    return ValidationIssue(field, f"{field} {suffix}")


def _validate(model: Type[BaseModel], payload: Any) -> List[ValidationIssue]:
    if not isinstance(payload, dict):
        return [ValidationIssue("payload", "Request body must be a valid JSON object")]
    try:
        model.model_validate(payload)
    except ValidationError as exc:
        return [_issue(error) for error in exc.errors()]
    return []


def validate_report_run_request(payload: Any) -> List[ValidationIssue]:
    """Return field-level issues for a report-run payload; empty means valid."""
    return _validate(ReportRunPayload, payload)


def validate_generated_report_request(payload: Any) -> List[ValidationIssue]:
    """Issues for the dispatcher-to-storage handoff payload."""
    return _validate(GeneratedReportPayload, payload)


def format_validation_details(issues: Iterable[ValidationIssue]) -> str:
    return ", ".join(issue.message for issue in issues)
