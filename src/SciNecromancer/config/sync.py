"""Sync coordinator configuration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from SciNecromancer.config.common import (
    check_non_negative,
    expect_bool,
    expect_float,
    get_optional_value,
    get_section,
)


@dataclass(frozen=True, slots=True)
class SyncConfig:
    """Store validated sync settings.

    Attributes:
        conflict_window_seconds: Timestamps closer than this with differing
            content are flagged as conflicts. ``0`` flags only equal stamps.
        auto_drain: Drain the pending queue when connectivity returns.
    """

    conflict_window_seconds: float = 0.0
    auto_drain: bool = True


def load_sync(raw: Mapping[str, Any]) -> SyncConfig:
    section = get_section(raw, "sync", required=False)
    return SyncConfig(
        conflict_window_seconds=expect_float(
            get_optional_value(section, "conflict_window_seconds", 0.0),
            "sync.conflict_window_seconds",
        ),
        auto_drain=expect_bool(get_optional_value(section, "auto_drain", True), "sync.auto_drain"),
    )


def check_sync(config: SyncConfig) -> None:
    check_non_negative(config.conflict_window_seconds, "sync.conflict_window_seconds")
