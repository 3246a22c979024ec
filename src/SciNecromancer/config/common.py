from __future__ import annotations

"""Shared helpers for configuration loading and validation."""

import os
from enum import Enum
from typing import Any, Mapping, TypeVar
from urllib.parse import urlparse

E = TypeVar("E", bound=Enum)


def get_section(raw: Mapping[str, Any], key: str, *, required: bool) -> Mapping[str, Any]:
    """Return a mapping section from a config mapping.

    Args:
        raw: Root (or parent) configuration mapping.
        key: Section name. Dotted paths are accepted for error messages only.
        required: Whether the section must exist.

    Returns:
        Section mapping, or empty mapping for optional missing sections.

    Raises:
        ValueError: If section is required but missing.
        TypeError: If section is not a mapping.
    """
    section = raw.get(key.rsplit(".", 1)[-1])
    if section is None:
        if required:
            raise ValueError(f"Missing required config: {key}")
        return {}
    if not isinstance(section, Mapping):
        raise TypeError(f"{key} must be an object")
    return section


def get_required_value(section: Mapping[str, Any], field: str, config_key: str) -> Any:
    """Return a required field value from a section.

    Raises:
        ValueError: If field is missing.
    """
    if field not in section:
        raise ValueError(f"Missing required config: {config_key}")
    return section[field]


def get_optional_value(section: Mapping[str, Any], field: str, default: Any) -> Any:
    """Return optional field value with default."""
    return section.get(field, default)


def expect_str(value: Any, config_key: str) -> str:
    """Validate and return string value."""
    if not isinstance(value, str):
        raise TypeError(f"{config_key} must be a string")
    return value


def expect_optional_str(value: Any, config_key: str) -> str | None:
    """Validate a string that may be null; blank strings collapse to None."""
    if value is None:
        return None
    text = expect_str(value, config_key).strip()
    return text or None


def expect_choice(value: Any, config_key: str, choices: type[E]) -> E:
    """Validate a case-insensitive enum value, e.g. a provider name."""
    text = expect_str(value, config_key).strip().lower()
    try:
        return choices(text)
    except ValueError as exc:
        allowed = [c.value for c in choices]
        raise ValueError(f"{config_key} must be one of {allowed}") from exc


def expect_http_url(value: Any, config_key: str) -> str:
    """Validate an http(s) API root and drop any trailing slash.

    Empty strings pass through so disabled endpoints can leave the URL unset.
    """
    text = expect_str(value, config_key).strip().rstrip("/")
    if not text:
        return ""
    parsed = urlparse(text)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"{config_key} must be an http(s) URL")
    return text


def expect_bool(value: Any, config_key: str) -> bool:
    """Validate and return boolean value."""
    if not isinstance(value, bool):
        raise TypeError(f"{config_key} must be a boolean")
    return value


def expect_int(value: Any, config_key: str) -> int:
    """Validate and return integer value (excluding bool)."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{config_key} must be an integer")
    return value


def expect_float(value: Any, config_key: str) -> float:
    """Validate and return float value from numeric input."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"{config_key} must be a number")
    return float(value)


def check_positive(value: float, config_key: str) -> None:
    if value <= 0:
        raise ValueError(f"{config_key} must be positive")


def check_non_negative(value: float, config_key: str) -> None:
    if value < 0:
        raise ValueError(f"{config_key} must be >= 0")


def check_non_empty(value: str, config_key: str) -> None:
    if not value.strip():
        raise ValueError(f"{config_key} must not be empty")


def read_env_secret(env_name: str) -> str:
    """Read a credential from the environment variable named in config."""
    if not env_name:
        return ""
    return os.getenv(env_name, "").strip()
