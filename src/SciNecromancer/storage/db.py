"""SQLite database utilities."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import ClassVar

from SciNecromancer.storage.migration import run_migrations
from SciNecromancer.utils.log import log


class DatabaseManager:
    """Shared database connection manager.

    Keeps one connection per database path; constructing a manager for a
    path that is already open returns the existing instance. The schema is
    migrated when the connection is first opened.

    Supports context manager protocol for automatic connection cleanup.
    """

    _instances: ClassVar[dict[Path, DatabaseManager]] = {}

    conn: sqlite3.Connection
    db_path: Path

    def __new__(cls, db_path: Path):
        """Create or return the manager for ``db_path``.

        Args:
            db_path: Absolute path or project-relative path to database file.

        Returns:
            DatabaseManager instance bound to the path.
        """
        key = Path(db_path).resolve()
        instance = cls._instances.get(key)
        if instance is None:
            instance = super().__new__(cls)
            instance.db_path = key
            instance.conn = ensure_db(key)
            run_migrations(instance.conn)
            cls._instances[key] = instance
            log.debug("Opened database %s", key)
        return instance

    def get_connection(self) -> sqlite3.Connection:
        """Get the shared database connection."""
        return self.conn

    def close(self) -> None:
        """Close the connection and forget this path's instance."""
        if getattr(self, "conn", None) is not None:
            self.conn.close()
            type(self)._instances.pop(self.db_path, None)

    def __enter__(self) -> DatabaseManager:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def ensure_db(db_path: Path) -> sqlite3.Connection:
    """Ensure database file exists and return connection.

    Args:
        db_path: Absolute path or project-relative path to database file.

    Returns:
        SQLite connection with rows addressable by column name.

    Raises:
        OSError: If directory creation fails.
        sqlite3.Error: If database connection fails.
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    return conn
