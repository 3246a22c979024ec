"""Local-first persistence with best-effort remote sync.

Every write lands in the local store first and is never lost to a remote
failure: writes that could not reach the remote store are queued and replayed
by ``drain_pending_sync``, which also runs when connectivity returns.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import timedelta
from typing import Any, Callable, Mapping

from SciNecromancer.core.models import (
    AbstractDraft,
    AbstractRecord,
    ConflictResolution,
    SyncState,
    SyncStatus,
)
from SciNecromancer.services.connectivity import ConnectivityState
from SciNecromancer.services.notifications import Notifier
from SciNecromancer.storage.local import LocalRecordStore
from SciNecromancer.storage.queue import PendingSyncQueue
from SciNecromancer.storage.remote import RemoteRecordStore, RemoteResult
from SciNecromancer.utils.log import get_logger

log = get_logger("sync")

_MERGED_FIELDS = ("title", "content", "source_text", "categories", "keywords", "parameters")


@dataclass(slots=True)
class DrainReport:
    synced: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    superseded: list[str] = field(default_factory=list)
    conflicted: list[str] = field(default_factory=list)


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if hasattr(value, "is_empty"):
        return value.is_empty()
    if isinstance(value, str):
        return not value.strip()
    try:
        return len(value) == 0
    except TypeError:
        return False


def merge_versions(local: AbstractRecord, remote: AbstractRecord) -> AbstractRecord:
    """Field-level merge: each field comes from the newer side unless it is empty there.

    Ties go to the local version.
    """
    newer, older = (remote, local) if remote.updated_at > local.updated_at else (local, remote)
    changes = {}
    for name in _MERGED_FIELDS:
        value = getattr(newer, name)
        changes[name] = getattr(older, name) if _is_empty(value) else value
    return replace(
        newer,
        **changes,
        id=local.id,
        created_at=min(local.created_at, remote.created_at),
        updated_at=max(local.updated_at, remote.updated_at),
    )


class SyncCoordinator:
    """Coordinate the local store, the remote store and the pending queue."""

    def __init__(
        self,
        local: LocalRecordStore,
        queue: PendingSyncQueue,
        remote: RemoteRecordStore | None,
        connectivity: ConnectivityState,
        notifier: Notifier | None = None,
        *,
        user_id: str | None = None,
        conflict_window: timedelta = timedelta(0),
        auto_drain: bool = True,
    ) -> None:
        """Initialize coordinator.

        Args:
            local: Local record store (source of truth for reads).
            queue: Pending sync queue.
            remote: Remote store, or None when cloud sync is disabled.
            connectivity: Shared connectivity flag.
            notifier: Receives passive "will retry" notices.
            user_id: Owner stamped on new drafts that carry none.
            conflict_window: Timestamp distance treated as concurrent edits.
            auto_drain: Drain the queue whenever connectivity returns.
        """
        self.local = local
        self.queue = queue
        self.remote = remote
        self.connectivity = connectivity
        self.notifier = notifier or Notifier()
        self.user_id = user_id
        self.conflict_window = conflict_window
        if auto_drain:
            connectivity.subscribe(self._on_connectivity_change)

    @property
    def remote_available(self) -> bool:
        return self.remote is not None and self.connectivity.is_online

    def _on_connectivity_change(self, online: bool) -> None:
        if online and len(self.queue):
            log.info("Connectivity restored; draining %d pending changes", len(self.queue))
            self.drain_pending_sync()

    def _remote(self, action: Callable[[RemoteRecordStore], RemoteResult]) -> RemoteResult:
        assert self.remote is not None
        try:
            return action(self.remote)
        except Exception as e:  # noqa: BLE001 - remote failures degrade to the queue
            log.warning("Remote call raised: %s", e)
            return RemoteResult.failure(str(e) or type(e).__name__)

    def _defer(self, record_id: str, reason: str | None) -> None:
        self.queue.enqueue(record_id)
        if reason is not None:
            self.notifier.warning(
                "Saved locally",
                f"Cloud sync failed ({reason}); the change will be retried automatically.",
            )

    def _supersede(self, remote_record: AbstractRecord) -> AbstractRecord:
        """Replace a pending local edit with a strictly newer remote copy."""
        log.warning("Remote copy of %s is newer; discarding the pending local edit", remote_record.id)
        record = self.local.put(remote_record.with_changes(sync_state=SyncState.SYNCED))
        self.queue.dequeue(record.id)
        return record

    def _adopt(self, local_id: str, stored: AbstractRecord) -> AbstractRecord:
        """Mark a record synced, moving it to the remote-issued id if that differs."""
        record_id = stored.id
        if record_id != local_id:
            self.local.rename(local_id, record_id)
            self.queue.rename(local_id, record_id)
            log.info("Adopted remote id %s for %s", record_id, local_id)
        self.local.set_sync_state(record_id, SyncState.SYNCED)
        self.queue.dequeue(record_id)
        record = self.local.load(record_id)
        assert record is not None
        return record

    def save(self, draft: AbstractDraft) -> AbstractRecord:
        """Persist a new record locally, then try the remote store.

        Returns:
            The stored record: ``synced`` when the remote write succeeded,
            otherwise ``local`` and queued.

        Raises:
            RecordValidationError: If required fields are missing.
            LocalStorageError: If the local write fails.
        """
        if self.user_id and not draft.user_id:
            draft = replace(draft, user_id=self.user_id)
        record = self.local.save(draft)
        if not self.remote_available:
            self._defer(record.id, None)
            return record

        result = self._remote(lambda remote: remote.save(record))
        if result.ok:
            self.local.mark_synced_now()
            return self._adopt(record.id, result.value)
        self._defer(record.id, result.error)
        return record

    def load(self, record_id: str) -> AbstractRecord | None:
        """Return the local copy, refreshed from the remote store when that is newer."""
        record = self.local.load(record_id)
        if not self.remote_available:
            return record
        result = self._remote(lambda remote: remote.load(record_id))
        if not result.ok or result.value is None:
            return record
        remote_record: AbstractRecord = result.value
        if record is None:
            if record_id in self.queue:
                # Deleted locally, remote delete still pending.
                return None
            return self.local.put(remote_record)
        if remote_record.updated_at <= record.updated_at:
            return record
        if record_id not in self.queue:
            return self.local.put(remote_record)
        if record.sync_state is SyncState.CONFLICT:
            return record
        if self._is_conflict(record, remote_record):
            log.warning("Conflict detected for %s", record_id)
            self.local.set_sync_state(record_id, SyncState.CONFLICT)
            return record.with_changes(sync_state=SyncState.CONFLICT)
        return self._supersede(remote_record)

    def list(self, user_id: str | None = None) -> list[AbstractRecord]:
        """Return the merged view, most recently updated first.

        Offline or on remote failure this is the local view. Online, remote
        copies win when strictly newer, including over a pending local edit;
        remote-only records are cached.
        """
        local_records = self.local.list(user_id)
        if not self.remote_available:
            return local_records
        result = self._remote(lambda remote: remote.list(user_id or self.user_id))
        if not result.ok:
            return local_records

        pending = set(self.queue.ids())
        merged = {r.id: r for r in local_records}
        for remote_record in result.value:
            local_record = merged.get(remote_record.id)
            if local_record is None:
                if remote_record.id in pending or self.local.exists(remote_record.id):
                    continue
                merged[remote_record.id] = self.local.put(remote_record)
                continue

            remote_newer = remote_record.updated_at > local_record.updated_at
            winner = remote_record if remote_newer else local_record
            if self._is_conflict(local_record, remote_record):
                if local_record.sync_state is not SyncState.CONFLICT:
                    self.local.set_sync_state(local_record.id, SyncState.CONFLICT)
                    log.warning("Conflict detected for %s", local_record.id)
                merged[local_record.id] = winner.with_changes(sync_state=SyncState.CONFLICT)
                continue
            if not remote_newer:
                continue
            if remote_record.id in pending:
                if local_record.sync_state is not SyncState.CONFLICT:
                    merged[remote_record.id] = self._supersede(remote_record)
                continue
            merged[remote_record.id] = self.local.put(remote_record)

        self.local.mark_synced_now()
        return sorted(merged.values(), key=lambda r: r.updated_at, reverse=True)

    def _is_conflict(self, local_record: AbstractRecord, remote_record: AbstractRecord) -> bool:
        distance = abs(remote_record.updated_at - local_record.updated_at)
        return distance <= self.conflict_window and not local_record.same_content(remote_record)

    def update(self, record_id: str, patch: Mapping[str, Any]) -> AbstractRecord:
        """Apply ``patch`` locally, then push the result.

        Raises:
            RecordNotFoundError: If the record does not exist locally.
        """
        record = self.local.update(record_id, patch)
        if not self.remote_available:
            self._defer(record_id, None)
            return record
        result = self._remote(lambda remote: remote.update(record))
        if result.ok:
            self.local.set_sync_state(record_id, SyncState.SYNCED)
            self.queue.dequeue(record_id)
            return record.with_changes(sync_state=SyncState.SYNCED)
        self._defer(record_id, result.error)
        return record

    def delete(self, record_id: str) -> None:
        """Delete locally, then remotely; a failed remote delete is queued.

        Raises:
            RecordNotFoundError: If the record does not exist locally.
        """
        self.local.delete(record_id)
        if not self.remote_available:
            self._defer(record_id, None)
            return
        result = self._remote(lambda remote: remote.delete(record_id))
        if result.ok:
            self.queue.dequeue(record_id)
            return
        self._defer(record_id, result.error)

    def drain_pending_sync(self) -> DrainReport:
        """Replay queued writes; each id is dequeued only after its remote write succeeds.

        A remote copy strictly newer than the queued local one wins and
        replaces it locally. Records flagged ``conflict`` stay queued until
        ``resolve_conflict`` settles them.
        """
        report = DrainReport()
        if not self.remote_available:
            log.debug("Remote unavailable; %d changes stay pending", len(self.queue))
            return report

        for record_id in self.queue.ids():
            record = self.local.load(record_id)
            if record is None:
                result = self._remote(lambda remote: remote.delete(record_id))
                if result.ok:
                    self.queue.dequeue(record_id)
                    report.deleted.append(record_id)
                else:
                    report.failed.append(record_id)
                continue
            if record.sync_state is SyncState.CONFLICT:
                report.conflicted.append(record_id)
                continue

            current = self._remote(lambda remote: remote.load(record_id))
            if not current.ok:
                log.warning("Sync of %s failed: %s", record_id, current.error)
                report.failed.append(record_id)
                continue
            remote_record: AbstractRecord | None = current.value
            if remote_record is not None and remote_record.updated_at > record.updated_at:
                if self._is_conflict(record, remote_record):
                    self.local.set_sync_state(record_id, SyncState.CONFLICT)
                    log.warning("Conflict detected for %s", record_id)
                    report.conflicted.append(record_id)
                else:
                    self._supersede(remote_record)
                    report.superseded.append(record_id)
                continue

            result = self._remote(lambda remote: remote.save(record))
            if result.ok:
                report.synced.append(self._adopt(record_id, result.value).id)
            else:
                log.warning("Sync of %s failed: %s", record_id, result.error)
                report.failed.append(record_id)

        if report.synced or report.deleted or report.superseded:
            self.local.mark_synced_now()
        if report.failed:
            self.notifier.warning(
                "Sync incomplete",
                f"{len(report.failed)} change(s) could not be synced and will be retried.",
            )
        if report.conflicted:
            self.notifier.warning(
                "Sync conflict",
                f"{len(report.conflicted)} abstract(s) changed on both sides and need a decision.",
            )
        log.info(
            "Drain finished: synced=%d deleted=%d superseded=%d conflicted=%d failed=%d",
            len(report.synced),
            len(report.deleted),
            len(report.superseded),
            len(report.conflicted),
            len(report.failed),
        )
        return report

    def resolve_conflict(self, resolution: ConflictResolution) -> AbstractRecord:
        """Settle a conflict by keeping local, adopting remote, or merging."""
        record_id = resolution.record_id
        local_version = resolution.local_version
        remote_version = resolution.remote_version

        if resolution.strategy == "remote":
            record = self.local.put(remote_version.with_changes(id=record_id, sync_state=SyncState.SYNCED))
            self.queue.dequeue(record_id)
            log.info("Conflict on %s resolved with remote version", record_id)
            return record

        chosen = local_version if resolution.strategy == "local" else merge_versions(local_version, remote_version)
        stamp = max(self.local.clock(), local_version.updated_at, remote_version.updated_at)
        record = self.local.put(
            chosen.with_changes(id=record_id, updated_at=stamp, sync_state=SyncState.LOCAL)
        )
        log.info("Conflict on %s resolved with %s version", record_id, resolution.strategy)
        if not self.remote_available:
            self._defer(record_id, None)
            return record
        result = self._remote(lambda remote: remote.save(record))
        if result.ok:
            return self._adopt(record_id, result.value)
        self._defer(record_id, result.error)
        return record

    def conflicts(self) -> list[AbstractRecord]:
        return [r for r in self.local.list() if r.sync_state is SyncState.CONFLICT]

    def probe_remote(self) -> bool:
        """Check remote reachability and update the connectivity flag."""
        if self.remote is None:
            return False
        remote = self.remote
        return self.connectivity.probe(lambda: remote.ping().ok)

    def get_sync_status(self) -> SyncStatus:
        return SyncStatus(
            is_online=self.remote_available,
            last_sync=self.local.get_metadata().last_sync,
            pending_changes=len(self.queue),
            conflict_count=self.local.count_by_state(SyncState.CONFLICT),
        )

    def export_all(self) -> dict[str, Any]:
        """Return a JSON-compatible snapshot of the local store."""
        return self.local.export_data()

    def import_all(self, snapshot: Mapping[str, Any]) -> list[AbstractRecord]:
        """Upsert a snapshot by id; unsynced imports are queued for the remote store."""
        records = self.local.import_data(snapshot)
        for record in records:
            if record.sync_state is not SyncState.SYNCED:
                self.queue.enqueue(record.id)
        return records
