"""Sync layer for SciNecromancer.

Ties the local store, the remote store and the pending queue together.
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

from SciNecromancer.storage import create_remote_store
from SciNecromancer.sync.coordinator import DrainReport, SyncCoordinator, merge_versions
from SciNecromancer.utils.log import log

if TYPE_CHECKING:
    from SciNecromancer.config import AppConfig
    from SciNecromancer.services.connectivity import ConnectivityState
    from SciNecromancer.services.notifications import Notifier
    from SciNecromancer.storage.local import LocalRecordStore
    from SciNecromancer.storage.queue import PendingSyncQueue


def create_sync_coordinator(
    config: AppConfig,
    local: LocalRecordStore,
    queue: PendingSyncQueue,
    connectivity: ConnectivityState,
    notifier: Notifier | None = None,
    *,
    probe: bool = True,
) -> SyncCoordinator:
    """Create the sync coordinator from configuration.

    Args:
        config: Application configuration containing remote and sync settings.
        local: Local record store.
        queue: Pending sync queue.
        connectivity: Shared connectivity flag.
        notifier: Receives sync notices.
        probe: Ping the remote store once to seed ``connectivity``.

    Returns:
        Configured SyncCoordinator instance.
    """
    remote = create_remote_store(config)
    coordinator = SyncCoordinator(
        local,
        queue,
        remote,
        connectivity,
        notifier,
        user_id=config.remote.user_id,
        conflict_window=timedelta(seconds=config.sync.conflict_window_seconds),
        auto_drain=config.sync.auto_drain,
    )
    if remote is not None and probe:
        online = coordinator.probe_remote()
        log.info("Remote store %s", "reachable" if online else "unreachable; working locally")
    return coordinator


__all__ = [
    "DrainReport",
    "SyncCoordinator",
    "create_sync_coordinator",
    "merge_versions",
]
