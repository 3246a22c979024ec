"""LLM module for SciNecromancer.

Provides the provider implementations and the fallback dispatcher that
drives them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from SciNecromancer.core.models import ProviderName
from SciNecromancer.llm.client import HttpProviderClient
from SciNecromancer.llm.dispatcher import ProviderFallbackDispatcher
from SciNecromancer.llm.google import GoogleProvider
from SciNecromancer.llm.openai_compat import OpenAICompatProvider
from SciNecromancer.llm.provider import LLMProvider
from SciNecromancer.llm.retry import RetryConfig, with_retry
from SciNecromancer.utils.log import log

if TYPE_CHECKING:
    from SciNecromancer.config import AppConfig
    from SciNecromancer.config.llm import ProviderConfig
    from SciNecromancer.services.connectivity import ConnectivityState
    from SciNecromancer.services.error_log import ErrorLog


def create_provider(config: ProviderConfig, timeout: int) -> LLMProvider:
    """Build the provider object for one provider config."""
    client = HttpProviderClient(provider=config.name.value, timeout=timeout)
    if config.name is ProviderName.GOOGLE:
        return GoogleProvider(config=config, client=client)
    if config.name is ProviderName.OPENAI:
        return OpenAICompatProvider(config=config, client=client)
    raise ValueError(f"Unsupported LLM provider: {config.name}")


def create_dispatcher(
    config: AppConfig,
    *,
    connectivity: ConnectivityState | None = None,
    error_log: ErrorLog | None = None,
) -> ProviderFallbackDispatcher:
    """Create the dispatcher from configuration.

    Args:
        config: Application configuration containing LLM settings.
        connectivity: Shared connectivity flag, if any.
        error_log: Failure log, if any.

    Returns:
        Configured ProviderFallbackDispatcher instance.
    """
    providers = {
        name: create_provider(provider_config, config.llm.timeout)
        for name, provider_config in config.llm.providers.items()
    }
    dispatcher = ProviderFallbackDispatcher(
        providers,
        config.llm.primary,
        retry_config=RetryConfig.from_settings(config.llm.retry),
        fallback_max_attempts=config.llm.fallback_max_attempts,
        connectivity=connectivity,
        error_log=error_log,
    )
    log.debug(
        "Dispatcher created: primary=%s secondary=%s max_attempts=%d",
        dispatcher.primary.value,
        dispatcher.secondary.value if dispatcher.secondary else "-",
        config.llm.retry.max_attempts,
    )
    return dispatcher


__all__ = [
    "GoogleProvider",
    "HttpProviderClient",
    "LLMProvider",
    "OpenAICompatProvider",
    "ProviderFallbackDispatcher",
    "RetryConfig",
    "create_dispatcher",
    "create_provider",
    "with_retry",
]
