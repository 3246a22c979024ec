"""LLM domain configuration for the generation dispatcher."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from SciNecromancer.config.common import (
    check_non_empty,
    check_non_negative,
    check_positive,
    expect_choice,
    expect_float,
    expect_http_url,
    expect_int,
    expect_optional_str,
    expect_str,
    get_optional_value,
    get_required_value,
    get_section,
    read_env_secret,
)
from SciNecromancer.core.models import ProviderName

_DEFAULT_BASE_URLS = {
    ProviderName.GOOGLE: "https://generativelanguage.googleapis.com/v1beta",
    ProviderName.OPENAI: "https://api.openai.com/v1",
}


@dataclass(frozen=True, slots=True)
class ProviderConfig:
    """Settings for one LLM provider.

    Attributes:
        name: Provider identity.
        base_url: API root.
        api_key_env: Environment variable holding the credential.
        api_key: Credential read from ``api_key_env`` (may be empty).
        text_model: Model used for text operations.
        vision_model: Model used to describe source images.
        image_model: Model used for image generation.
        temperature: Sampling temperature.
        max_tokens: Optional output token cap.
    """

    name: ProviderName
    base_url: str
    api_key_env: str
    api_key: str
    text_model: str
    vision_model: str
    image_model: str
    temperature: float = 0.7
    max_tokens: int | None = None


@dataclass(frozen=True, slots=True)
class RetrySettings:
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    backoff_factor: float = 2.0
    jitter: float = 1.0


@dataclass(frozen=True, slots=True)
class LLMConfig:
    """Store validated dispatcher settings."""

    primary: ProviderName
    timeout: int
    retry: RetrySettings
    fallback_max_attempts: int
    providers: Mapping[ProviderName, ProviderConfig]

    @property
    def secondary(self) -> ProviderName:
        return ProviderName.OPENAI if self.primary is ProviderName.GOOGLE else ProviderName.GOOGLE


def load_llm(raw: Mapping[str, Any]) -> LLMConfig:
    """Load llm domain config from raw mapping.

    Args:
        raw: Root configuration mapping.

    Returns:
        Parsed LLM configuration.

    Raises:
        TypeError: If config types are invalid.
        ValueError: If required keys are missing or the provider is unknown.
    """
    section = get_section(raw, "llm", required=True)
    primary = expect_choice(get_required_value(section, "primary", "llm.primary"), "llm.primary", ProviderName)
    providers_section = get_section(section, "llm.providers", required=True)
    providers = {
        name: _load_provider(name, get_section(providers_section, f"llm.providers.{name.value}", required=False))
        for name in ProviderName
    }
    return LLMConfig(
        primary=primary,
        timeout=expect_int(get_optional_value(section, "timeout", 30), "llm.timeout"),
        retry=_load_retry(get_section(section, "llm.retry", required=False)),
        fallback_max_attempts=expect_int(
            get_optional_value(section, "fallback_max_attempts", 2),
            "llm.fallback_max_attempts",
        ),
        providers=providers,
    )


def check_llm(config: LLMConfig) -> None:
    """Validate llm domain constraints.

    Credentials are not required here; a provider without a key fails its
    calls with an authentication error, which is a terminal failure.

    Raises:
        ValueError: If values violate LLM constraints.
    """
    check_positive(config.timeout, "llm.timeout")
    check_positive(config.fallback_max_attempts, "llm.fallback_max_attempts")
    retry = config.retry
    check_positive(retry.max_attempts, "llm.retry.max_attempts")
    check_non_negative(retry.base_delay, "llm.retry.base_delay")
    check_non_negative(retry.jitter, "llm.retry.jitter")
    if retry.max_delay < retry.base_delay:
        raise ValueError("llm.retry.max_delay must be >= llm.retry.base_delay")
    if retry.backoff_factor < 1.0:
        raise ValueError("llm.retry.backoff_factor must be >= 1.0")
    for name, provider in config.providers.items():
        prefix = f"llm.providers.{name.value}"
        check_non_empty(provider.base_url, f"{prefix}.base_url")
        check_non_empty(provider.text_model, f"{prefix}.text_model")
        if not 0.0 <= provider.temperature <= 2.0:
            raise ValueError(f"{prefix}.temperature must be between 0.0 and 2.0")
        if provider.max_tokens is not None:
            check_positive(provider.max_tokens, f"{prefix}.max_tokens")


def _load_retry(section: Mapping[str, Any]) -> RetrySettings:
    return RetrySettings(
        max_attempts=expect_int(get_optional_value(section, "max_attempts", 3), "llm.retry.max_attempts"),
        base_delay=expect_float(get_optional_value(section, "base_delay", 1.0), "llm.retry.base_delay"),
        max_delay=expect_float(get_optional_value(section, "max_delay", 10.0), "llm.retry.max_delay"),
        backoff_factor=expect_float(
            get_optional_value(section, "backoff_factor", 2.0), "llm.retry.backoff_factor"
        ),
        jitter=expect_float(get_optional_value(section, "jitter", 1.0), "llm.retry.jitter"),
    )


def _load_provider(name: ProviderName, section: Mapping[str, Any]) -> ProviderConfig:
    prefix = f"llm.providers.{name.value}"
    default_env = "GOOGLE_API_KEY" if name is ProviderName.GOOGLE else "OPENAI_API_KEY"
    api_key_env = expect_str(get_optional_value(section, "api_key_env", default_env), f"{prefix}.api_key_env")
    text_model = expect_str(get_optional_value(section, "text_model", ""), f"{prefix}.text_model")
    vision_model = expect_optional_str(get_optional_value(section, "vision_model", None), f"{prefix}.vision_model")
    image_model = expect_optional_str(get_optional_value(section, "image_model", None), f"{prefix}.image_model")
    max_tokens = get_optional_value(section, "max_tokens", None)
    return ProviderConfig(
        name=name,
        base_url=expect_http_url(
            get_optional_value(section, "base_url", _DEFAULT_BASE_URLS[name]), f"{prefix}.base_url"
        ),
        api_key_env=api_key_env,
        api_key=read_env_secret(api_key_env),
        text_model=text_model,
        vision_model=vision_model or text_model,
        image_model=image_model or text_model,
        temperature=expect_float(get_optional_value(section, "temperature", 0.7), f"{prefix}.temperature"),
        max_tokens=None if max_tokens is None else expect_int(max_tokens, f"{prefix}.max_tokens"),
    )
