"""
Notification service - user-facing messages for the presentation layer.

Form handlers report outcomes ("Student added successfully!", "Room is
full or invalid") through a Notifier instead of a global alert. The
default LogNotifier logs each message and keeps the most recent ones so
the API can return them to the UI.
"""

from collections import deque
from datetime import datetime, timezone
from enum import Enum
from typing import List, Protocol

from campus_erp.logging_config import get_logger, log_with_context

logger = get_logger("records")


class NotificationLevel(str, Enum):
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class Notifier(Protocol):
    """Anything that can show a message to the user."""

    def notify(self, message: str, level: NotificationLevel = NotificationLevel.INFO) -> dict:
        ...


_LOG_LEVELS = {
    NotificationLevel.SUCCESS: "INFO",
    NotificationLevel.INFO: "INFO",
    NotificationLevel.WARNING: "WARNING",
    NotificationLevel.ERROR: "ERROR",
}


class LogNotifier:
    """Notifier that logs messages and remembers the last `limit` of them."""

    def __init__(self, limit: int = 50):
        self._recent = deque(maxlen=limit)

    def notify(self, message: str, level: NotificationLevel = NotificationLevel.INFO) -> dict:
        level = NotificationLevel(level)
        entry = {
            "message": message,
            "level": level.value,
            "at": datetime.now(timezone.utc).isoformat(),
        }
        self._recent.append(entry)
        log_with_context(logger, _LOG_LEVELS[level], message,
                         extra_data={"notification_level": level.value})
        return entry

    def recent(self) -> List[dict]:
        """Most recent first."""
        return list(reversed(self._recent))

    def clear(self):
        self._recent.clear()
