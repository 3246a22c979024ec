"""Remote record store over a PostgREST (Supabase) ``abstracts`` table."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

import requests

from SciNecromancer.config.remote import RemoteConfig
from SciNecromancer.core.models import AbstractData, AbstractRecord, Category, GenerationParameters, SyncState
from SciNecromancer.storage.codec import format_timestamp, parse_timestamp
from SciNecromancer.utils.log import get_logger

log = get_logger("remote")


@dataclass(frozen=True, slots=True)
class RemoteResult:
    """Outcome of one remote call; ``error`` is set iff ``ok`` is False."""

    ok: bool
    value: Any = None
    error: str | None = None

    @classmethod
    def success(cls, value: Any = None) -> RemoteResult:
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str) -> RemoteResult:
        return cls(ok=False, error=error)


def record_to_remote_row(record: AbstractRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "title": record.title,
        "conference": record.conference,
        "abstract_type": record.abstract_type,
        "abstract_data": record.content.to_dict(),
        "original_text": record.source_text,
        "categories": [c.to_dict() for c in record.categories],
        "keywords": list(record.keywords),
        "generation_parameters": record.parameters.to_dict() if record.parameters else None,
        "user_id": record.user_id,
        "created_at": format_timestamp(record.created_at),
        "updated_at": format_timestamp(record.updated_at),
    }


def remote_row_to_record(row: Mapping[str, Any]) -> AbstractRecord:
    """Convert a remote row; timestamps are rehydrated into datetimes."""
    parameters = row.get("generation_parameters")
    return AbstractRecord(
        id=str(row["id"]),
        title=row["title"],
        conference=row["conference"],
        abstract_type=row["abstract_type"],
        content=AbstractData.from_dict(row.get("abstract_data") or {}),
        source_text=row.get("original_text") or "",
        categories=tuple(Category.from_dict(c) for c in row.get("categories") or ()),
        keywords=tuple(str(k) for k in row.get("keywords") or ()),
        parameters=GenerationParameters.from_dict(parameters) if parameters else None,
        user_id=row.get("user_id"),
        created_at=parse_timestamp(row["created_at"]),
        updated_at=parse_timestamp(row["updated_at"]),
        sync_state=SyncState.SYNCED,
    )


class RemoteRecordStore:
    """Thin client over ``{url}/rest/v1/{table}`` scoped to one user.

    No call raises; failures come back as ``RemoteResult(ok=False)``.
    No retries are performed here.
    """

    def __init__(self, config: RemoteConfig) -> None:
        self.config = config
        self.endpoint = f"{config.url.rstrip('/')}/rest/v1/{config.table}"
        self.user_id = config.user_id

    def _headers(self, prefer: str | None = None) -> dict[str, str]:
        headers = {
            "apikey": self.config.api_key,
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def _request(
        self,
        method: str,
        *,
        params: Mapping[str, str] | None = None,
        body: Any = None,
        prefer: str | None = None,
    ) -> Any:
        response = requests.request(
            method,
            self.endpoint,
            params=dict(params or {}),
            json=body,
            headers=self._headers(prefer),
            timeout=self.config.timeout,
        )
        if not 200 <= response.status_code < 300:
            raise RuntimeError(f"HTTP {response.status_code}: {response.text.strip()[:200]}")
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    def _scope(self, **filters: str) -> dict[str, str]:
        params = {key: f"eq.{value}" for key, value in filters.items()}
        if self.user_id:
            params["user_id"] = f"eq.{self.user_id}"
        return params

    def _call(self, action: str, func) -> RemoteResult:
        try:
            return RemoteResult.success(func())
        except Exception as e:  # noqa: BLE001 - remote failures are reported, never raised
            log.warning("Remote %s failed: %s", action, e)
            return RemoteResult.failure(str(e) or type(e).__name__)

    def ping(self) -> RemoteResult:
        """Probe connectivity with a one-row read."""

        def run() -> bool:
            self._request("GET", params={"select": "id", "limit": "1"})
            return True

        return self._call("ping", run)

    def save(self, record: AbstractRecord) -> RemoteResult:
        """Upsert ``record``; the value is the stored record (its id may differ)."""

        def run() -> AbstractRecord:
            row = record_to_remote_row(record)
            if self.user_id and not row["user_id"]:
                row["user_id"] = self.user_id
            data = self._request(
                "POST",
                params={"on_conflict": "id"},
                body=row,
                prefer="resolution=merge-duplicates,return=representation",
            )
            return self._single(data, fallback=record)

        return self._call("save", run)

    def load(self, record_id: str) -> RemoteResult:
        """Fetch one record; the value is None when the remote has no such row."""

        def run() -> AbstractRecord | None:
            data = self._request("GET", params={"select": "*", **self._scope(id=record_id)})
            rows = data or []
            return remote_row_to_record(rows[0]) if rows else None

        return self._call("load", run)

    def list(self, user_id: str | None = None) -> RemoteResult:
        """List records, most recently updated first."""

        def run() -> list[AbstractRecord]:
            params = {"select": "*", "order": "updated_at.desc"}
            owner = user_id or self.user_id
            if owner:
                params["user_id"] = f"eq.{owner}"
            return [remote_row_to_record(row) for row in self._request("GET", params=params) or []]

        return self._call("list", run)

    def update(self, record: AbstractRecord) -> RemoteResult:
        """Overwrite the remote row for ``record.id``."""

        def run() -> AbstractRecord:
            row = record_to_remote_row(record)
            row.pop("id")
            row.pop("created_at")
            data = self._request(
                "PATCH",
                params=self._scope(id=record.id),
                body=row,
                prefer="return=representation",
            )
            if not data:
                raise LookupError(f"Remote record {record.id} not found")
            return self._single(data, fallback=record)

        return self._call("update", run)

    def delete(self, record_id: str) -> RemoteResult:
        return self._call("delete", lambda: self._request("DELETE", params=self._scope(id=record_id)))

    @staticmethod
    def _single(data: Any, *, fallback: AbstractRecord) -> AbstractRecord:
        rows = data if isinstance(data, list) else [data] if data else []
        if not rows:
            return fallback.with_changes(sync_state=SyncState.SYNCED)
        return remote_row_to_record(rows[0])
