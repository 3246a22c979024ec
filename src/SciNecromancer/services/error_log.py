"""Bounded, SQLite-backed log of generation failures with pattern detection."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Callable, Mapping

from SciNecromancer.core.errors import classify_error
from SciNecromancer.core.models import ErrorEntry
from SciNecromancer.storage.codec import format_timestamp, parse_timestamp, utc_now
from SciNecromancer.storage.local import storage_errors
from SciNecromancer.utils.log import log

if TYPE_CHECKING:
    from SciNecromancer.storage.db import DatabaseManager

MAX_MESSAGE_LENGTH = 500

_SANITIZERS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"), "[EMAIL]"),
    (re.compile(r"\b\d{4}[-\s]?\d{4}[-\s]?\d{4}[-\s]?\d{4}\b"), "[CARD]"),
    (re.compile(r"\b\d{3}-\d{2}-\d{4}\b"), "[SSN]"),
    (re.compile(r"\b\d{10,}\b"), "[NUMBER]"),
    (re.compile(r"(key=)[^&\s]+", re.IGNORECASE), r"\1[REDACTED]"),
)


@dataclass(frozen=True, slots=True)
class PatternRule:
    code: str
    threshold: int
    pattern: str
    suggestion: str


# A rule fires when its code occurs at least ``threshold`` times in the window.
PATTERN_RULES: tuple[PatternRule, ...] = (
    PatternRule(
        "RATE_LIMITED", 5, "Frequent rate limiting",
        "Switch AI providers or wait for the provider quota to reset",
    ),
    PatternRule(
        "NETWORK_ERROR", 6, "Frequent network errors",
        "Check internet connection or keep working offline",
    ),
    PatternRule(
        "AUTH_ERROR", 3, "Repeated authentication failures",
        "Check the API key configuration for the active provider",
    ),
    PatternRule(
        "MALFORMED_RESPONSE", 4, "Repeated unusable model output",
        "Try switching AI providers or models",
    ),
)


@dataclass(frozen=True, slots=True)
class ErrorPattern:
    pattern: str
    frequency: int
    suggestion: str


def sanitize_message(message: str) -> str:
    """Strip personal data from a message and cap its length."""
    text = message or ""
    for regex, replacement in _SANITIZERS:
        text = regex.sub(replacement, text)
    return text[:MAX_MESSAGE_LENGTH]


class ErrorLog:
    """Persisted failure log keeping only the newest ``max_entries`` rows."""

    def __init__(
        self,
        db_manager: DatabaseManager,
        *,
        max_entries: int = 100,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.conn = db_manager.get_connection()
        self.max_entries = max_entries
        self.clock = clock

    def record(
        self,
        error: BaseException,
        *,
        context: str = "",
        provider: str | None = None,
        details: Mapping[str, Any] | None = None,
    ) -> ErrorEntry:
        """Classify, sanitize and persist one failure."""
        failure = classify_error(error, provider=provider)
        entry = ErrorEntry(
            timestamp=self.clock(),
            code=failure.code,
            message=sanitize_message(failure.message),
            context=context,
            provider=provider or failure.provider,
            details=dict(details or {}),
        )
        with storage_errors("error log write"):
            self.conn.execute(
                "INSERT INTO error_log (created_at, code, message, context, provider, details) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    format_timestamp(entry.timestamp),
                    entry.code,
                    entry.message,
                    entry.context,
                    entry.provider,
                    json.dumps(dict(entry.details), ensure_ascii=False, default=str),
                ),
            )
            self.conn.execute(
                "DELETE FROM error_log WHERE id NOT IN "
                "(SELECT id FROM error_log ORDER BY id DESC LIMIT ?)",
                (self.max_entries,),
            )
            self.conn.commit()
        log.debug("Logged %s in %s", entry.code, context or "-")
        return entry

    def recent(self, limit: int | None = None) -> list[ErrorEntry]:
        """Return entries, newest first."""
        query = "SELECT * FROM error_log ORDER BY id DESC"
        params: tuple[Any, ...] = ()
        if limit is not None:
            query += " LIMIT ?"
            params = (limit,)
        with storage_errors("error log read"):
            rows = self.conn.execute(query, params).fetchall()
        return [
            ErrorEntry(
                timestamp=parse_timestamp(row["created_at"]),
                code=row["code"],
                message=row["message"],
                context=row["context"],
                provider=row["provider"],
                details=json.loads(row["details"]) if row["details"] else {},
            )
            for row in rows
        ]

    def counts_by_code(self, window: timedelta | None = None) -> dict[str, int]:
        query = "SELECT code, COUNT(*) FROM error_log"
        params: tuple[Any, ...] = ()
        if window is not None:
            query += " WHERE created_at >= ?"
            params = (format_timestamp(self.clock() - window),)
        query += " GROUP BY code"
        with storage_errors("error log read"):
            rows = self.conn.execute(query, params).fetchall()
        return {row[0]: int(row[1]) for row in rows}

    def detect_patterns(self, window: timedelta = timedelta(hours=1)) -> list[ErrorPattern]:
        """Report recurring failures inside ``window`` with a suggested remedy."""
        counts = self.counts_by_code(window)
        return [
            ErrorPattern(pattern=rule.pattern, frequency=counts[rule.code], suggestion=rule.suggestion)
            for rule in PATTERN_RULES
            if counts.get(rule.code, 0) >= rule.threshold
        ]

    def clear(self) -> None:
        with storage_errors("error log clear"):
            self.conn.execute("DELETE FROM error_log")
            self.conn.commit()
