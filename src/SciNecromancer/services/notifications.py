"""Passive user notifications (success / info / warning / error)."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Deque

from SciNecromancer.utils.log import log


class NotificationLevel(str, Enum):
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class Notification:
    level: NotificationLevel
    title: str
    message: str


Handler = Callable[[Notification], None]

_LOG_METHODS = {
    NotificationLevel.SUCCESS: log.info,
    NotificationLevel.INFO: log.info,
    NotificationLevel.WARNING: log.warning,
    NotificationLevel.ERROR: log.error,
}


class Notifier:
    """Collects notifications and forwards them to registered handlers.

    Notifications never block or raise into the caller; each one is also
    written to the package log.
    """

    def __init__(self, history: int = 50) -> None:
        self._handlers: list[Handler] = []
        self.history: Deque[Notification] = deque(maxlen=history)

    def add_handler(self, handler: Handler) -> None:
        self._handlers.append(handler)

    def notify(self, level: NotificationLevel, title: str, message: str) -> Notification:
        notification = Notification(level=level, title=title, message=message)
        self.history.append(notification)
        _LOG_METHODS[level]("%s: %s", title, message)
        for handler in list(self._handlers):
            try:
                handler(notification)
            except Exception as e:  # noqa: BLE001 - notifications are best effort
                log.debug("Notification handler failed: %s", e)
        return notification

    def success(self, title: str, message: str) -> Notification:
        return self.notify(NotificationLevel.SUCCESS, title, message)

    def info(self, title: str, message: str) -> Notification:
        return self.notify(NotificationLevel.INFO, title, message)

    def warning(self, title: str, message: str) -> Notification:
        return self.notify(NotificationLevel.WARNING, title, message)

    def error(self, title: str, message: str) -> Notification:
        return self.notify(NotificationLevel.ERROR, title, message)
