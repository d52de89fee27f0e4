"""Helper for non-critical side effects."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


async def run_best_effort(label: str, operation: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> bool:
    """Await a side effect whose failure must never fail the caller.

    Returns True when the operation completed, False when it raised. The
    failure is always logged with its traceback.
    """
    try:
        await operation(*args, **kwargs)
    except Exception:
        logger.exception("Best-effort step '%s' failed", label)
        return False
    return True
