"""Conversions between AbstractRecord and its stored/transported forms."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from typing import Any, Mapping

from dateutil.parser import isoparse

from SciNecromancer.core.errors import RecordValidationError
from SciNecromancer.core.models import (
    AbstractData,
    AbstractRecord,
    Category,
    GenerationParameters,
    SyncState,
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Render a timestamp as fixed-width UTC ISO-8601 (sortable as text)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_timestamp(value: Any) -> datetime:
    """Rehydrate a stored or transported timestamp into an aware UTC datetime.

    Naive values are taken to be UTC.

    Raises:
        RecordValidationError: If the value is not a timestamp.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = isoparse(value.strip())
        except ValueError as e:
            raise RecordValidationError(f"Invalid timestamp: {value!r}") from e
    else:
        raise RecordValidationError(f"Invalid timestamp: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _dumps(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def _loads(value: Any, default: Any) -> Any:
    if value is None or value == "":
        return default
    if isinstance(value, (list, dict)):
        return value
    return json.loads(value)


def record_to_row(record: AbstractRecord) -> tuple[Any, ...]:
    """Return column values in ``ROW_COLUMNS`` order."""
    return (
        record.id,
        record.title,
        record.conference,
        record.abstract_type,
        _dumps(record.content.to_dict()),
        record.source_text,
        _dumps([c.to_dict() for c in record.categories]),
        _dumps(list(record.keywords)),
        _dumps(record.parameters.to_dict()) if record.parameters else None,
        record.user_id,
        format_timestamp(record.created_at),
        format_timestamp(record.updated_at),
        record.sync_state.value,
    )


ROW_COLUMNS: tuple[str, ...] = (
    "id",
    "title",
    "conference",
    "abstract_type",
    "content",
    "source_text",
    "categories",
    "keywords",
    "parameters",
    "user_id",
    "created_at",
    "updated_at",
    "sync_state",
)


def row_to_record(row: sqlite3.Row | Mapping[str, Any]) -> AbstractRecord:
    parameters = _loads(row["parameters"], None)
    return AbstractRecord(
        id=row["id"],
        title=row["title"],
        conference=row["conference"],
        abstract_type=row["abstract_type"],
        content=AbstractData.from_dict(_loads(row["content"], {})),
        source_text=row["source_text"],
        categories=tuple(Category.from_dict(c) for c in _loads(row["categories"], [])),
        keywords=tuple(_loads(row["keywords"], [])),
        parameters=GenerationParameters.from_dict(parameters) if parameters else None,
        user_id=row["user_id"],
        created_at=parse_timestamp(row["created_at"]),
        updated_at=parse_timestamp(row["updated_at"]),
        sync_state=SyncState(row["sync_state"]),
    )


def record_to_dict(record: AbstractRecord) -> dict[str, Any]:
    """Serialize a record into a JSON-compatible mapping (export format)."""
    return {
        "id": record.id,
        "title": record.title,
        "conference": record.conference,
        "abstract_type": record.abstract_type,
        "content": record.content.to_dict(),
        "source_text": record.source_text,
        "categories": [c.to_dict() for c in record.categories],
        "keywords": list(record.keywords),
        "parameters": record.parameters.to_dict() if record.parameters else None,
        "user_id": record.user_id,
        "created_at": format_timestamp(record.created_at),
        "updated_at": format_timestamp(record.updated_at),
        "sync_state": record.sync_state.value,
    }


def record_from_dict(data: Mapping[str, Any]) -> AbstractRecord:
    """Inverse of :func:`record_to_dict`.

    Raises:
        RecordValidationError: If required fields are missing or malformed.
    """
    missing = [
        key
        for key in ("id", "title", "conference", "abstract_type", "content", "source_text", "created_at", "updated_at")
        if not data.get(key)
    ]
    if missing:
        raise RecordValidationError(f"Missing required fields: {', '.join(missing)}")
    content = data["content"]
    if not isinstance(content, Mapping):
        raise RecordValidationError("content must be an object")
    parameters = data.get("parameters")
    try:
        sync_state = SyncState(data.get("sync_state") or SyncState.LOCAL.value)
    except ValueError as e:
        raise RecordValidationError(f"Unknown sync_state: {data.get('sync_state')!r}") from e
    return AbstractRecord(
        id=str(data["id"]),
        title=str(data["title"]),
        conference=str(data["conference"]),
        abstract_type=str(data["abstract_type"]),
        content=AbstractData.from_dict(content),
        source_text=str(data["source_text"]),
        categories=tuple(Category.from_dict(c) for c in data.get("categories") or ()),
        keywords=tuple(str(k) for k in data.get("keywords") or ()),
        parameters=GenerationParameters.from_dict(parameters) if parameters else None,
        user_id=data.get("user_id"),
        created_at=parse_timestamp(data["created_at"]),
        updated_at=parse_timestamp(data["updated_at"]),
        sync_state=sync_state,
    )
