from __future__ import annotations

"""Public configuration API for SciNecromancer."""

from SciNecromancer.config.app import (
    DEFAULT_CONFIG_PATH,
    ENV_OVERRIDES,
    AppConfig,
    apply_env_overrides,
    check_cross_domain,
    load_config,
    load_config_with_defaults,
    merge_config_dicts,
    parse_config_dict,
)
from SciNecromancer.config.llm import LLMConfig, ProviderConfig, RetrySettings
from SciNecromancer.config.remote import RemoteConfig
from SciNecromancer.config.runtime import RuntimeConfig
from SciNecromancer.config.storage import StorageConfig
from SciNecromancer.config.sync import SyncConfig

__all__ = [
    "RuntimeConfig",
    "LLMConfig",
    "ProviderConfig",
    "RetrySettings",
    "StorageConfig",
    "RemoteConfig",
    "SyncConfig",
    "AppConfig",
    "DEFAULT_CONFIG_PATH",
    "ENV_OVERRIDES",
    "apply_env_overrides",
    "load_config",
    "load_config_with_defaults",
    "merge_config_dicts",
    "parse_config_dict",
    "check_cross_domain",
]
