"""SQLite-backed local record store for abstracts."""

from __future__ import annotations

import random
import sqlite3
import string
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Iterator, Mapping

from SciNecromancer.core.errors import LocalStorageError, RecordNotFoundError, RecordValidationError
from SciNecromancer.core.models import (
    PATCHABLE_FIELDS,
    AbstractData,
    AbstractDraft,
    AbstractRecord,
    Category,
    GenerationParameters,
    SyncState,
    validate_draft,
)
from SciNecromancer.storage.codec import (
    ROW_COLUMNS,
    format_timestamp,
    parse_timestamp,
    record_from_dict,
    record_to_dict,
    record_to_row,
    row_to_record,
    utc_now,
)
from SciNecromancer.utils.log import log

if TYPE_CHECKING:
    from SciNecromancer.storage.db import DatabaseManager

EXPORT_VERSION = "1.0"

_BASE36 = string.digits + string.ascii_lowercase
_INSERT_SQL = (
    f"INSERT OR REPLACE INTO abstracts ({', '.join(ROW_COLUMNS)}) "
    f"VALUES ({', '.join('?' for _ in ROW_COLUMNS)})"
)


def generate_record_id(now: datetime) -> str:
    """Return ``abstract_<ms-timestamp>_<9 base36 chars>``."""
    suffix = "".join(random.choices(_BASE36, k=9))
    return f"abstract_{int(now.timestamp() * 1000)}_{suffix}"


@dataclass(frozen=True, slots=True)
class StoreMetadata:
    total_abstracts: int
    last_sync: datetime | None
    last_backup: datetime | None


@dataclass(frozen=True, slots=True)
class StorageInfo:
    """Storage usage in bytes against the configured capacity."""

    used: int
    available: int
    total: int


@contextmanager
def storage_errors(action: str) -> Iterator[None]:
    try:
        yield
    except sqlite3.Error as e:
        log.error("Local storage %s failed: %s", action, e)
        raise LocalStorageError(f"Local storage {action} failed: {e}") from e


def _coerce_patch(patch: Mapping[str, Any]) -> dict[str, Any]:
    unknown = sorted(set(patch) - set(PATCHABLE_FIELDS))
    if unknown:
        raise RecordValidationError(f"Fields cannot be updated: {', '.join(unknown)}")
    changes = dict(patch)
    if isinstance(changes.get("content"), Mapping):
        changes["content"] = AbstractData.from_dict(changes["content"])
    if "categories" in changes:
        changes["categories"] = tuple(
            c if isinstance(c, Category) else Category.from_dict(c) for c in changes["categories"] or ()
        )
    if "keywords" in changes:
        changes["keywords"] = tuple(str(k) for k in changes["keywords"] or ())
    if isinstance(changes.get("parameters"), Mapping):
        changes["parameters"] = GenerationParameters.from_dict(changes["parameters"])
    for key in ("title", "conference", "abstract_type", "source_text"):
        if key in changes and not str(changes[key] or "").strip():
            raise RecordValidationError(f"{key} must not be empty")
    return changes


class LocalRecordStore:
    """CRUD over abstract records in the local SQLite database.

    Every write commits before returning; SQLite failures surface as
    ``LocalStorageError``.
    """

    def __init__(
        self,
        db_manager: DatabaseManager,
        *,
        capacity_mb: float = 5.0,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize local store.

        Args:
            db_manager: Shared database manager instance.
            capacity_mb: Nominal capacity reported by ``storage_info``.
            clock: Source of the current UTC time.
        """
        log.debug("Initializing LocalRecordStore")
        self.conn = db_manager.get_connection()
        self.capacity_bytes = int(capacity_mb * 1024 * 1024)
        self.clock = clock

    def save(self, draft: AbstractDraft) -> AbstractRecord:
        """Persist a new record with a fresh id.

        Raises:
            RecordValidationError: If required fields are missing.
            LocalStorageError: If the write fails.
        """
        validate_draft(draft)
        now = self.clock()
        record = AbstractRecord(
            id=generate_record_id(now),
            title=draft.title.strip(),
            conference=draft.conference,
            abstract_type=draft.abstract_type,
            content=draft.content,
            source_text=draft.source_text,
            categories=tuple(draft.categories),
            keywords=tuple(draft.keywords),
            parameters=draft.parameters,
            user_id=draft.user_id,
            created_at=now,
            updated_at=now,
            sync_state=SyncState.LOCAL,
        )
        self._write(record, "save")
        log.debug("Saved abstract %s locally", record.id)
        return record

    def put(self, record: AbstractRecord) -> AbstractRecord:
        """Insert or replace a complete record as-is."""
        self._write(record, "put")
        return record

    def load(self, record_id: str) -> AbstractRecord | None:
        with storage_errors("load"):
            row = self.conn.execute("SELECT * FROM abstracts WHERE id = ?", (record_id,)).fetchone()
        return row_to_record(row) if row else None

    def exists(self, record_id: str) -> bool:
        with storage_errors("lookup"):
            row = self.conn.execute("SELECT 1 FROM abstracts WHERE id = ?", (record_id,)).fetchone()
        return row is not None

    def list(self, user_id: str | None = None) -> list[AbstractRecord]:
        """Return records, most recently updated first."""
        query = "SELECT * FROM abstracts"
        params: tuple[Any, ...] = ()
        if user_id is not None:
            query += " WHERE user_id = ?"
            params = (user_id,)
        query += " ORDER BY updated_at DESC, id"
        with storage_errors("list"):
            rows = self.conn.execute(query, params).fetchall()
        return [row_to_record(row) for row in rows]

    def update(self, record_id: str, patch: Mapping[str, Any]) -> AbstractRecord:
        """Merge ``patch`` into a record and bump ``updated_at``.

        The result is marked ``local`` until a remote write confirms it.

        Raises:
            RecordNotFoundError: If no record has ``record_id``.
            RecordValidationError: If the patch names unknown fields or blanks a required one.
        """
        existing = self.load(record_id)
        if existing is None:
            raise RecordNotFoundError(f"Abstract {record_id} not found")
        changes = _coerce_patch(patch)
        updated = existing.with_changes(
            **changes,
            updated_at=max(self.clock(), existing.created_at),
            sync_state=SyncState.LOCAL,
        )
        self._write(updated, "update")
        log.debug("Updated abstract %s locally (%s)", record_id, ", ".join(sorted(changes)))
        return updated

    def delete(self, record_id: str) -> None:
        """Remove a record immediately.

        Raises:
            RecordNotFoundError: If no record has ``record_id``.
        """
        with storage_errors("delete"):
            cursor = self.conn.execute("DELETE FROM abstracts WHERE id = ?", (record_id,))
            self.conn.commit()
        if cursor.rowcount == 0:
            raise RecordNotFoundError(f"Abstract {record_id} not found")
        log.debug("Deleted abstract %s locally", record_id)

    def rename(self, old_id: str, new_id: str) -> AbstractRecord:
        """Move a record to a new id, e.g. one issued by the remote store."""
        if old_id == new_id:
            record = self.load(old_id)
            if record is None:
                raise RecordNotFoundError(f"Abstract {old_id} not found")
            return record
        with storage_errors("rename"):
            cursor = self.conn.execute("UPDATE abstracts SET id = ? WHERE id = ?", (new_id, old_id))
            self.conn.commit()
        if cursor.rowcount == 0:
            raise RecordNotFoundError(f"Abstract {old_id} not found")
        log.debug("Renamed abstract %s -> %s", old_id, new_id)
        record = self.load(new_id)
        assert record is not None
        return record

    def set_sync_state(self, record_id: str, state: SyncState) -> None:
        """Change only the sync marker; ``updated_at`` is left untouched."""
        with storage_errors("set_sync_state"):
            cursor = self.conn.execute(
                "UPDATE abstracts SET sync_state = ? WHERE id = ?", (state.value, record_id)
            )
            self.conn.commit()
        if cursor.rowcount == 0:
            raise RecordNotFoundError(f"Abstract {record_id} not found")

    def count_by_state(self, state: SyncState) -> int:
        with storage_errors("count"):
            row = self.conn.execute(
                "SELECT COUNT(*) FROM abstracts WHERE sync_state = ?", (state.value,)
            ).fetchone()
        return int(row[0])

    def search(self, query: str, user_id: str | None = None) -> list[AbstractRecord]:
        """Case-insensitive substring search over title, impact, synopsis and keywords."""
        needle = query.strip().lower()
        records = self.list(user_id)
        if not needle:
            return records
        return [
            r
            for r in records
            if needle in r.title.lower()
            or needle in r.content.impact.lower()
            or needle in r.content.synopsis.lower()
            or any(needle in k.lower() for k in (*r.keywords, *r.content.keywords))
        ]

    def get_metadata(self) -> StoreMetadata:
        with storage_errors("metadata"):
            rows = self.conn.execute("SELECT key, value FROM store_metadata").fetchall()
            total = self.conn.execute("SELECT COUNT(*) FROM abstracts").fetchone()[0]
        values = {row["key"]: row["value"] for row in rows}
        return StoreMetadata(
            total_abstracts=int(total),
            last_sync=parse_timestamp(values["last_sync"]) if values.get("last_sync") else None,
            last_backup=parse_timestamp(values["last_backup"]) if values.get("last_backup") else None,
        )

    def set_metadata(self, key: str, value: datetime) -> None:
        with storage_errors("metadata"):
            self.conn.execute(
                "INSERT OR REPLACE INTO store_metadata (key, value) VALUES (?, ?)",
                (key, format_timestamp(value)),
            )
            self.conn.commit()

    def mark_synced_now(self) -> None:
        self.set_metadata("last_sync", self.clock())

    def storage_info(self) -> StorageInfo:
        """Report bytes used by stored records against the configured capacity."""
        with storage_errors("storage_info"):
            row = self.conn.execute(
                """
                SELECT COALESCE(SUM(
                    length(CAST(title AS BLOB)) + length(CAST(content AS BLOB))
                    + length(CAST(source_text AS BLOB)) + length(CAST(categories AS BLOB))
                    + length(CAST(keywords AS BLOB)) + COALESCE(length(CAST(parameters AS BLOB)), 0)
                ), 0) FROM abstracts
                """
            ).fetchone()
        used = int(row[0])
        return StorageInfo(used=used, available=max(self.capacity_bytes - used, 0), total=self.capacity_bytes)

    def export_data(self) -> dict[str, Any]:
        """Return a JSON-compatible snapshot of every record."""
        now = self.clock()
        records = self.list()
        self.set_metadata("last_backup", now)
        meta = self.get_metadata()
        return {
            "version": EXPORT_VERSION,
            "export_date": format_timestamp(now),
            "abstracts": [record_to_dict(r) for r in records],
            "metadata": {
                "total_abstracts": meta.total_abstracts,
                "last_sync": format_timestamp(meta.last_sync) if meta.last_sync else None,
                "last_backup": format_timestamp(now),
            },
        }

    def import_data(self, snapshot: Mapping[str, Any]) -> list[AbstractRecord]:
        """Upsert every record of a snapshot produced by ``export_data``.

        The whole snapshot is validated before anything is written.

        Raises:
            RecordValidationError: If the snapshot or any record is malformed.
        """
        if not isinstance(snapshot, Mapping) or not isinstance(snapshot.get("abstracts"), list):
            raise RecordValidationError("Invalid import data: 'abstracts' list missing")
        records = [record_from_dict(item) for item in snapshot["abstracts"]]
        with storage_errors("import"):
            for record in records:
                self.conn.execute(_INSERT_SQL, record_to_row(record))
            self.conn.commit()
        log.info("Imported %d abstracts", len(records))
        return records

    def _write(self, record: AbstractRecord, action: str) -> None:
        with storage_errors(action):
            self.conn.execute(_INSERT_SQL, record_to_row(record))
            self.conn.commit()
