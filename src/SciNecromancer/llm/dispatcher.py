"""Primary/secondary provider dispatch with retry, fallback and an offline breaker."""

from __future__ import annotations

import random
import time
from typing import TYPE_CHECKING, Callable, Mapping, Sequence

from SciNecromancer.core.errors import (
    GenerationFailure,
    RetryExhausted,
    ServiceUnavailable,
    classify_error,
)
from SciNecromancer.core.models import (
    Category,
    GenerationOutcome,
    GenerationRequest,
    ProviderName,
)
from SciNecromancer.llm.provider import LLMProvider, call_provider
from SciNecromancer.llm.retry import RetryConfig, with_retry
from SciNecromancer.utils.log import get_logger

if TYPE_CHECKING:
    from SciNecromancer.services.connectivity import ConnectivityState
    from SciNecromancer.services.error_log import ErrorLog

log = get_logger("llm")


class ProviderFallbackDispatcher:
    """Route generation requests through a primary and a secondary provider.

    The primary is tried under the full retry policy. Only when it exhausts
    its retries on transient failures is the secondary tried, with a smaller
    attempt budget. When both providers exhaust on transient failures the
    offline breaker opens and every later dispatch fails fast with
    ``ServiceUnavailable`` until ``reset_offline`` or ``switch_provider``.
    """

    def __init__(
        self,
        providers: Mapping[ProviderName, LLMProvider],
        primary: ProviderName,
        *,
        retry_config: RetryConfig | None = None,
        fallback_max_attempts: int = 2,
        connectivity: ConnectivityState | None = None,
        error_log: ErrorLog | None = None,
        sleep: Callable[[float], None] = time.sleep,
        uniform: Callable[[float, float], float] = random.uniform,
    ) -> None:
        """Initialize dispatcher.

        Args:
            providers: Provider objects by name; ``primary`` must be present.
            primary: Provider tried first.
            retry_config: Retry policy for the primary.
            fallback_max_attempts: Attempt budget for the secondary.
            connectivity: Shared connectivity flag; offline skips all calls.
            error_log: Log receiving every returned failure.
            sleep: Sleep function used between retries.
            uniform: Random source used for retry jitter.
        """
        if primary not in providers:
            raise ValueError(f"Primary provider {primary.value} is not configured")
        self.providers = dict(providers)
        self.retry_config = retry_config or RetryConfig()
        self.fallback_config = self.retry_config.with_attempts(fallback_max_attempts)
        self.connectivity = connectivity
        self.error_log = error_log
        self._sleep = sleep
        self._uniform = uniform
        self._primary = primary
        self._offline = False

    @property
    def primary(self) -> ProviderName:
        return self._primary

    @property
    def secondary(self) -> ProviderName | None:
        others = [name for name in self.providers if name is not self._primary]
        return others[0] if others else None

    @property
    def offline(self) -> bool:
        return self._offline

    def reset_offline(self) -> None:
        """Close the breaker so the next dispatch goes to the network again."""
        if self._offline:
            log.info("Leaving offline mode")
        self._offline = False

    def switch_provider(self, provider: ProviderName | None = None) -> ProviderName:
        """Make ``provider`` (or the current secondary) primary and close the breaker.

        Returns:
            The new primary provider.
        """
        target = provider or self.secondary
        if target is None or target not in self.providers:
            raise ValueError(f"Provider {getattr(target, 'value', target)} is not configured")
        self._primary = target
        self._offline = False
        log.info("Primary provider is now %s", target.value)
        return target

    def dispatch(self, request: GenerationRequest) -> GenerationOutcome:
        """Run one generation request.

        Returns:
            Outcome carrying a payload, or the failure that ended the request.
        """
        kind = request.kind.value
        if self._offline or (self.connectivity is not None and not self.connectivity.is_online):
            reason = "offline mode is active" if self._offline else "no network connectivity"
            return self._fail(
                ServiceUnavailable(f"AI service unavailable: {reason}. Use offline features or retry online."),
                kind,
            )

        primary = self.providers[self._primary]
        try:
            payload = self._attempt(primary, request, self.retry_config)
            return GenerationOutcome.success(payload, provider=primary.name.value)
        except Exception as e:  # noqa: BLE001 - every failure is classified and returned
            primary_failure = classify_error(e, provider=primary.name.value)

        if not isinstance(primary_failure, RetryExhausted):
            log.error("%s failed on %s: %s", kind, primary.name.value, primary_failure)
            return self._fail(primary_failure, kind)

        secondary_name = self.secondary
        if secondary_name is None:
            return self._fail(primary_failure, kind)

        secondary = self.providers[secondary_name]
        log.warning("%s exhausted on %s, falling back to %s", kind, primary.name.value, secondary_name.value)
        try:
            payload = self._attempt(secondary, request, self.fallback_config)
            return GenerationOutcome.success(payload, provider=secondary_name.value)
        except Exception as e:  # noqa: BLE001 - every failure is classified and returned
            secondary_failure = classify_error(e, provider=secondary_name.value)

        if primary_failure.retryable and secondary_failure.retryable:
            self._offline = True
            log.error("Both providers unavailable for %s; entering offline mode", kind)
            # Keep the per-provider classification for pattern detection.
            self._record(primary_failure, kind)
            self._record(secondary_failure, kind)
            return self._fail(
                ServiceUnavailable(
                    "All AI providers are unavailable; switched to offline mode. "
                    f"Last errors: {primary_failure.message} / {secondary_failure.message}"
                ),
                kind,
            )
        return self._fail(primary_failure, kind)

    def _attempt(self, provider: LLMProvider, request: GenerationRequest, config: RetryConfig):
        return with_retry(
            lambda: call_provider(provider, request),
            config,
            context=f"{provider.name.value} {request.kind.value}",
            provider=provider.name.value,
            sleep=self._sleep,
            uniform=self._uniform,
        )

    def _record(self, failure: GenerationFailure, context: str) -> None:
        if self.error_log is not None:
            self.error_log.record(failure, context=context, provider=failure.provider)

    def _fail(self, failure: GenerationFailure, context: str) -> GenerationOutcome:
        self._record(failure, context)
        return GenerationOutcome.failed(failure)

    def analyze_content(self, text: str, conference: str | None = None) -> GenerationOutcome:
        return self.dispatch(GenerationRequest.analyze(text, conference=conference))

    def suggest_abstract_type(
        self,
        text: str,
        categories: Sequence[Category] = (),
        keywords: Sequence[str] = (),
        conference: str | None = None,
    ) -> GenerationOutcome:
        return self.dispatch(GenerationRequest.suggest_type(text, categories, keywords, conference=conference))

    def generate_final_abstract(
        self,
        text: str,
        abstract_type: str,
        categories: Sequence[Category] = (),
        keywords: Sequence[str] = (),
        conference: str | None = None,
    ) -> GenerationOutcome:
        return self.dispatch(
            GenerationRequest.final_abstract(text, abstract_type, categories, keywords, conference=conference)
        )

    def generate_creative_abstract(self, core_idea: str, conference: str | None = None) -> GenerationOutcome:
        return self.dispatch(GenerationRequest.creative(core_idea, conference=conference))

    def generate_image(
        self,
        specs: str,
        context: str = "",
        image: bytes | None = None,
        mime_type: str = "image/png",
    ) -> GenerationOutcome:
        return self.dispatch(GenerationRequest.image_request(specs, context, image=image, mime_type=mime_type))
