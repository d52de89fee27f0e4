"""Stable error bodies for API responses."""

from typing import Any, Dict, Optional

from config import settings


def error_body(error: str, details: Optional[str] = None, **extra: Any) -> Dict[str, Any]:
    body: Dict[str, Any] = {"error": error}
    if details is not None:
        body["details"] = details
    body.update(extra)
    return body


def internal_details(exc: BaseException, fallback: str) -> str:
    """Raw exception text only when explicitly enabled for debugging."""
    if settings.EXPOSE_ERROR_DETAILS:
        return str(exc) or fallback
    return fallback
