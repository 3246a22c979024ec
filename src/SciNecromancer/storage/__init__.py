"""Storage layer for SciNecromancer.

Provides database management, the local record store, the pending sync
queue and the remote record store.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from SciNecromancer.storage.db import DatabaseManager
from SciNecromancer.storage.local import LocalRecordStore
from SciNecromancer.storage.migration import run_migrations
from SciNecromancer.storage.queue import PendingSyncQueue
from SciNecromancer.storage.remote import RemoteRecordStore, RemoteResult
from SciNecromancer.utils.log import log

if TYPE_CHECKING:
    from SciNecromancer.config import AppConfig


def create_storage(config: AppConfig) -> tuple[DatabaseManager, LocalRecordStore, PendingSyncQueue]:
    """Create database manager and local storage components.

    Args:
        config: Application configuration containing storage settings.

    Returns:
        Tuple of (db_manager, local_store, pending_queue).
    """
    db_path = Path(config.storage.db_path)
    db_manager = DatabaseManager(db_path)
    local = LocalRecordStore(db_manager, capacity_mb=config.storage.capacity_mb)
    queue = PendingSyncQueue(db_manager)
    log.info("Local storage: %s", db_path)
    return db_manager, local, queue


def create_remote_store(config: AppConfig) -> RemoteRecordStore | None:
    """Create the remote store, or None when cloud sync is disabled."""
    if not config.remote.enabled:
        log.debug("Remote store disabled")
        return None
    return RemoteRecordStore(config.remote)


__all__ = [
    "DatabaseManager",
    "LocalRecordStore",
    "PendingSyncQueue",
    "RemoteRecordStore",
    "RemoteResult",
    "create_remote_store",
    "create_storage",
    "run_migrations",
]
