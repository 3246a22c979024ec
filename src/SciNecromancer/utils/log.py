"""SciNecromancer logging utilities.

One package logger with per-subsystem children (``sync``, ``llm``, ``remote``).
Lines carry a timestamp, an abbreviated level and the subsystem, and provider
credentials are masked before anything reaches a handler. CLI actions such as
``sync-drain`` log to ``<log_dir>/sync/sync-drain_<timestamp>.log``.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Final


LOGGER_NAME: Final[str] = "SciNecromancer"

_LEVEL_ABBREV: Final[dict[int, str]] = {
    logging.DEBUG: "DEBG",
    logging.INFO: "INFO",
    logging.WARNING: "WARN",
    logging.ERROR: "ERRO",
    logging.CRITICAL: "ERRO",
}

# Keys leak through query strings, request headers and exception reprs.
_CREDENTIALS: Final[tuple[tuple[re.Pattern[str], str], ...]] = (
    (re.compile(r"([?&]key=)[^&\s]+", re.IGNORECASE), r"\1***"),
    (re.compile(r"(x-goog-api-key['\"]?\s*[:=]\s*['\"]?)[^'\"\s,}]+", re.IGNORECASE), r"\1***"),
    (re.compile(r"(Bearer\s+)[A-Za-z0-9._\-]+", re.IGNORECASE), r"\1***"),
    (re.compile(r"\bsk-[A-Za-z0-9_\-]{8,}"), "sk-***"),
    (re.compile(r"\bAIza[0-9A-Za-z_\-]{20,}"), "AIza***"),
)


def mask_credentials(text: str) -> str:
    """Replace API keys and bearer tokens in ``text`` with ``***``."""
    for regex, replacement in _CREDENTIALS:
        text = regex.sub(replacement, text)
    return text


class _CredentialFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003 - stdlib hook name
        message = record.getMessage()
        masked = mask_credentials(message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


class _AbbrevLevelFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # noqa: A003 - record is stdlib name
        """Format one log record with an abbreviated level and subsystem tag.

        Args:
            record: Logging record.

        Returns:
            Formatted message string.
        """
        record.levelabbr = _LEVEL_ABBREV.get(record.levelno, record.levelname[:4])
        scope = record.name[len(LOGGER_NAME) + 1 :] if record.name.startswith(LOGGER_NAME + ".") else ""
        record.scope = f"{scope}: " if scope else ""
        return super().format(record)


log = logging.getLogger(LOGGER_NAME)


def get_logger(scope: str) -> logging.Logger:
    """Return the child logger for one subsystem, e.g. ``get_logger("sync")``."""
    return log.getChild(scope)


def log_file_path(log_dir: str | Path, action: str, now: datetime | None = None) -> Path:
    """Path of the log file for one CLI action.

    Actions are grouped by their command family: ``sync-drain`` and
    ``sync-status`` share ``<log_dir>/sync``.
    """
    timestamp = (now or datetime.now()).strftime("%m%d%H%M%S")
    family = action.split("-", 1)[0] or action
    return Path(log_dir or "log") / family / f"{action}_{timestamp}.log"


def configure_logging(
    *,
    level: str = "INFO",
    action: str | None = None,
    log_to_file: bool = True,
    log_dir: str = "log",
) -> Path | None:
    """Configure the SciNecromancer logger.

    Uses format: mm-dd HH:MM:SS [<LVL>] <scope>: <message>
    where LVL is one of: DEBG/INFO/WARN/ERRO.

    Console output honours ``level``; the optional per-action log file always
    records DEBUG so retry and sync decisions can be reconstructed afterwards.

    Args:
        level: Logging level (e.g., INFO, DEBUG).
        action: CLI action name used to create the log file path.
        log_to_file: Whether to mirror logs to a file.
        log_dir: Base directory for log files.

    Returns:
        The log file path, or None when logging to the console only.
    """
    resolved_level = getattr(logging, (level or "INFO").upper(), logging.INFO)

    formatter = _AbbrevLevelFormatter(
        fmt="%(asctime)s [%(levelabbr)s] %(scope)s%(message)s",
        datefmt="%m-%d %H:%M:%S",
    )
    credential_filter = _CredentialFilter()

    handlers: list[logging.Handler] = []

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(resolved_level)
    handlers.append(stream_handler)

    log_path = None
    if log_to_file and action:
        log_path = log_file_path(log_dir, action)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        handlers.append(file_handler)

    for handler in log.handlers:
        handler.close()
    log.handlers.clear()
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(credential_filter)
        log.addHandler(handler)
    log.setLevel(min(logging.DEBUG, resolved_level))
    log.propagate = False
    return log_path
