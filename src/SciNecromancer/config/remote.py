"""Remote record store (PostgREST / Supabase) configuration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from SciNecromancer.config.common import (
    check_non_empty,
    check_positive,
    expect_bool,
    expect_http_url,
    expect_int,
    expect_optional_str,
    expect_str,
    get_optional_value,
    get_required_value,
    get_section,
    read_env_secret,
)


@dataclass(frozen=True, slots=True)
class RemoteConfig:
    """Store validated remote-store settings.

    Attributes:
        enabled: Whether cloud sync is used at all.
        url: Project URL; requests go to ``{url}/rest/v1/{table}``.
        api_key_env: Environment variable holding the anon/service key.
        api_key: Key read from ``api_key_env``.
        user_id: Owner id used to scope rows.
        table: Collection name.
        timeout: Per-request transport timeout in seconds.
    """

    enabled: bool
    url: str
    api_key_env: str
    api_key: str
    user_id: str | None
    table: str = "abstracts"
    timeout: int = 10


def load_remote(raw: Mapping[str, Any]) -> RemoteConfig:
    """Load remote domain config from raw mapping.

    A missing ``remote`` section yields a disabled configuration.
    """
    section = get_section(raw, "remote", required=False)
    enabled = expect_bool(get_optional_value(section, "enabled", False), "remote.enabled")
    api_key_env = expect_str(
        get_optional_value(section, "api_key_env", "SUPABASE_API_KEY"), "remote.api_key_env"
    )
    url = get_required_value(section, "url", "remote.url") if enabled else get_optional_value(section, "url", "")
    return RemoteConfig(
        enabled=enabled,
        url=expect_http_url(url, "remote.url"),
        api_key_env=api_key_env,
        api_key=read_env_secret(api_key_env),
        user_id=expect_optional_str(get_optional_value(section, "user_id", None), "remote.user_id"),
        table=expect_str(get_optional_value(section, "table", "abstracts"), "remote.table"),
        timeout=expect_int(get_optional_value(section, "timeout", 10), "remote.timeout"),
    )


def check_remote(config: RemoteConfig) -> None:
    """Validate remote domain constraints.

    Raises:
        ValueError: If the remote store is enabled but incompletely configured.
    """
    check_positive(config.timeout, "remote.timeout")
    check_non_empty(config.table, "remote.table")
    if not config.enabled:
        return
    check_non_empty(config.url, "remote.url")
    if not config.user_id:
        raise ValueError("remote.user_id is required when remote.enabled is true")
    if not config.api_key:
        raise ValueError(
            f"Remote store enabled but {config.api_key_env} environment variable not set. "
            "Set it in your .env file or shell environment."
        )
