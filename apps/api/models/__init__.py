"""Models package."""

from .user import User
from .execution_log import ExecutionLog
from .schedule import Schedule
from .webhook_config import WebhookConfig
from .activity_log import ActivityLog
from .app_setting import AppSetting
