"""Application services for SciNecromancer.

Connectivity tracking, user notifications and the failure log.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from SciNecromancer.services.connectivity import ConnectivityState
from SciNecromancer.services.error_log import ErrorLog, ErrorPattern, sanitize_message
from SciNecromancer.services.notifications import Notification, NotificationLevel, Notifier

if TYPE_CHECKING:
    from SciNecromancer.config import AppConfig
    from SciNecromancer.storage.db import DatabaseManager


def create_error_log(config: AppConfig, db_manager: DatabaseManager) -> ErrorLog:
    return ErrorLog(db_manager, max_entries=config.runtime.error_log_max_entries)


__all__ = [
    "ConnectivityState",
    "ErrorLog",
    "ErrorPattern",
    "Notification",
    "NotificationLevel",
    "Notifier",
    "create_error_log",
    "sanitize_message",
]
