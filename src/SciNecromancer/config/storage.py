from __future__ import annotations

"""Storage domain configuration for the local SQLite record store."""

from dataclasses import dataclass
from typing import Any, Mapping

from SciNecromancer.config.common import (
    check_non_empty,
    check_positive,
    expect_float,
    expect_str,
    get_optional_value,
    get_required_value,
    get_section,
)


@dataclass(frozen=True, slots=True)
class StorageConfig:
    """Storage configuration.

    Attributes:
        db_path: SQLite file holding records, queue, metadata and error log.
        capacity_mb: Nominal capacity used for storage usage reports.
    """

    db_path: str
    capacity_mb: float = 5.0


def load_storage(raw: Mapping[str, Any]) -> StorageConfig:
    """Load storage domain config from raw mapping."""
    section = get_section(raw, "storage", required=True)
    return StorageConfig(
        db_path=expect_str(get_required_value(section, "db_path", "storage.db_path"), "storage.db_path"),
        capacity_mb=expect_float(get_optional_value(section, "capacity_mb", 5.0), "storage.capacity_mb"),
    )


def check_storage(config: StorageConfig) -> None:
    """Validate storage domain constraints."""
    check_non_empty(config.db_path, "storage.db_path")
    check_positive(config.capacity_mb, "storage.capacity_mb")
