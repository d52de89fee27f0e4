"""Routers package."""

from . import (
    health,
    auth,
    reports,
    research,
    schedules,
    webhooks,
)
