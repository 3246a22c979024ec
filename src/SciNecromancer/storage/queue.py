"""Persistent queue of record ids awaiting a remote write."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Callable

from SciNecromancer.storage.codec import format_timestamp, utc_now
from SciNecromancer.storage.local import storage_errors
from SciNecromancer.utils.log import log

if TYPE_CHECKING:
    from SciNecromancer.storage.db import DatabaseManager


class PendingSyncQueue:
    """Ordered set of record ids, committed to SQLite on every mutation.

    Enqueueing an id that is already pending keeps its original position.
    """

    def __init__(self, db_manager: DatabaseManager, *, clock: Callable[[], datetime] = utc_now) -> None:
        self.conn = db_manager.get_connection()
        self.clock = clock

    def enqueue(self, record_id: str) -> None:
        with storage_errors("enqueue"):
            self.conn.execute(
                "INSERT OR IGNORE INTO pending_sync (record_id, enqueued_at) VALUES (?, ?)",
                (record_id, format_timestamp(self.clock())),
            )
            self.conn.commit()
        log.debug("Queued %s for sync", record_id)

    def dequeue(self, record_id: str) -> None:
        with storage_errors("dequeue"):
            self.conn.execute("DELETE FROM pending_sync WHERE record_id = ?", (record_id,))
            self.conn.commit()

    def rename(self, old_id: str, new_id: str) -> None:
        """Point a pending entry at a record's new id, keeping its position."""
        if old_id == new_id:
            return
        with storage_errors("rename"):
            self.conn.execute("DELETE FROM pending_sync WHERE record_id = ?", (new_id,))
            self.conn.execute(
                "UPDATE pending_sync SET record_id = ? WHERE record_id = ?", (new_id, old_id)
            )
            self.conn.commit()

    def ids(self) -> list[str]:
        """Return pending ids in enqueue order."""
        with storage_errors("read queue"):
            rows = self.conn.execute("SELECT record_id FROM pending_sync ORDER BY seq").fetchall()
        return [row[0] for row in rows]

    def __contains__(self, record_id: object) -> bool:
        with storage_errors("read queue"):
            row = self.conn.execute(
                "SELECT 1 FROM pending_sync WHERE record_id = ?", (record_id,)
            ).fetchone()
        return row is not None

    def __len__(self) -> int:
        with storage_errors("read queue"):
            row = self.conn.execute("SELECT COUNT(*) FROM pending_sync").fetchone()
        return int(row[0])
