from __future__ import annotations

"""Application config orchestration and YAML loading entrypoints."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml

from SciNecromancer.config.llm import LLMConfig, check_llm, load_llm
from SciNecromancer.config.remote import RemoteConfig, check_remote, load_remote
from SciNecromancer.config.runtime import RuntimeConfig, check_runtime, load_runtime
from SciNecromancer.config.storage import StorageConfig, check_storage, load_storage
from SciNecromancer.config.sync import SyncConfig, check_sync, load_sync

DEFAULT_CONFIG_PATH = Path("config/default.yml")

# Environment variables that override single config keys after the YAML merge.
ENV_OVERRIDES: dict[str, str] = {
    "SCINECROMANCER_PRIMARY_PROVIDER": "llm.primary",
    "SCINECROMANCER_LOG_LEVEL": "log.level",
    "SCINECROMANCER_DB_PATH": "storage.db_path",
    "SCINECROMANCER_REMOTE_ENABLED": "remote.enabled",
    "SCINECROMANCER_REMOTE_URL": "remote.url",
    "SCINECROMANCER_USER_ID": "remote.user_id",
}


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application root configuration."""

    runtime: RuntimeConfig
    llm: LLMConfig
    storage: StorageConfig
    remote: RemoteConfig
    sync: SyncConfig


def parse_config_dict(raw: Mapping[str, Any]) -> AppConfig:
    """Parse normalized mapping into AppConfig."""
    runtime = load_runtime(raw)
    llm = load_llm(raw)
    storage = load_storage(raw)
    remote = load_remote(raw)
    sync = load_sync(raw)

    check_runtime(runtime)
    check_llm(llm)
    check_storage(storage)
    check_remote(remote)
    check_sync(sync)

    config = AppConfig(
        runtime=runtime,
        llm=llm,
        storage=storage,
        remote=remote,
        sync=sync,
    )
    check_cross_domain(config)
    return config


def load_config(path: Path, environ: Mapping[str, str] | None = None) -> AppConfig:
    """Load YAML config file without default merge."""
    return load_config_with_defaults(path, default_path=path, environ=environ)


def load_config_with_defaults(
    config_path: Path,
    default_path: Path = DEFAULT_CONFIG_PATH,
    environ: Mapping[str, str] | None = None,
) -> AppConfig:
    """Load config by merging defaults, optional override and environment.

    Args:
        config_path: Override YAML file; may equal ``default_path``.
        default_path: Defaults YAML file.
        environ: Environment consulted for ``ENV_OVERRIDES`` (default: ``os.environ``).
    """
    merged = parse_yaml(default_path.read_text(encoding="utf-8"))
    if config_path != default_path:
        override = parse_yaml(config_path.read_text(encoding="utf-8"))
        merged = merge_config_dicts(merged, override)
    merged = apply_env_overrides(merged, os.environ if environ is None else environ)
    return parse_config_dict(merged)


def apply_env_overrides(raw: Mapping[str, Any], environ: Mapping[str, str]) -> dict[str, Any]:
    """Set the config keys named in ``ENV_OVERRIDES`` from non-empty variables.

    ``true``/``false`` become booleans; everything else stays a string.
    """
    merged = dict(raw)
    for env_name, dotted in ENV_OVERRIDES.items():
        text = environ.get(env_name, "").strip()
        if not text:
            continue
        section, key = dotted.split(".", 1)
        merged = merge_config_dicts(merged, {section: {key: _env_scalar(text)}})
    return merged


def _env_scalar(text: str) -> bool | str:
    lowered = text.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    return text


def check_cross_domain(config: AppConfig) -> None:
    """Validate cross-domain constraints."""
    if config.llm.fallback_max_attempts > config.llm.retry.max_attempts:
        raise ValueError("llm.fallback_max_attempts must not exceed llm.retry.max_attempts")


def parse_yaml(text: str) -> dict[str, Any]:
    """Parse raw YAML text into a mapping."""
    data = yaml.safe_load(text) or {}
    if not isinstance(data, Mapping):
        raise ValueError("Config root must be a mapping/object")
    return dict(data)


def merge_config_dicts(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Deep-merge two config mappings."""
    merged: dict[str, Any] = dict(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], Mapping) and isinstance(value, Mapping):
            merged[key] = merge_config_dicts(merged[key], value)
        else:
            merged[key] = value
    return merged
