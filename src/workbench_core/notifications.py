"""User-visible notifications (the UI shows them as toasts)."""

import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from workbench_core.observability import get_logger

logger = get_logger(__name__)


class NotificationLevel(str, Enum):
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class Notification:
    """A message for the person using the workspace."""

    level: NotificationLevel
    message: str
    created_at: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": self.level.value,
            "message": self.message,
            "created_at": self.created_at,
        }


NotifyCallback = Callable[[Notification], None]


class Notifier:
    """Keeps recent notifications and forwards each to an optional callback."""

    def __init__(self, callback: NotifyCallback | None = None, max_items: int = 100) -> None:
        self.callback = callback
        self._items: deque[Notification] = deque(maxlen=max_items)

    @property
    def items(self) -> list[Notification]:
        return list(self._items)

    def notify(self, level: NotificationLevel, message: str) -> Notification:
        notification = Notification(level=level, message=message)
        self._items.append(notification)
        if self.callback is not None:
            try:
                self.callback(notification)
            except Exception as e:
                logger.warning("Notification callback failed", error=e)
        return notification

    def success(self, message: str) -> Notification:
        return self.notify(NotificationLevel.SUCCESS, message)

    def info(self, message: str) -> Notification:
        return self.notify(NotificationLevel.INFO, message)

    def warning(self, message: str) -> Notification:
        return self.notify(NotificationLevel.WARNING, message)

    def error(self, message: str) -> Notification:
        return self.notify(NotificationLevel.ERROR, message)

    def clear(self) -> None:
        self._items.clear()
