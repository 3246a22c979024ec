"""Retry with exponential backoff for provider calls."""

from __future__ import annotations

import random
import time
from dataclasses import dataclass, replace
from typing import Callable, TypeVar

from SciNecromancer.config.llm import RetrySettings
from SciNecromancer.core.errors import GenerationFailure, RetryExhausted, classify_error
from SciNecromancer.utils.log import get_logger

log = get_logger("llm")

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class RetryConfig:
    """Backoff parameters. Delays are in seconds.

    Attributes:
        max_attempts: Total attempts, including the first one.
        base_delay: Delay before the second attempt.
        max_delay: Cap on the exponential part of the delay.
        backoff_factor: Multiplier applied per attempt.
        jitter: Upper bound of the uniform random delay added on top.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    backoff_factor: float = 2.0
    jitter: float = 1.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

    @classmethod
    def from_settings(cls, settings: RetrySettings) -> RetryConfig:
        return cls(
            max_attempts=settings.max_attempts,
            base_delay=settings.base_delay,
            max_delay=settings.max_delay,
            backoff_factor=settings.backoff_factor,
            jitter=settings.jitter,
        )

    def with_attempts(self, max_attempts: int) -> RetryConfig:
        return replace(self, max_attempts=max_attempts)


def compute_delay(
    attempt: int,
    config: RetryConfig,
    uniform: Callable[[float, float], float] = random.uniform,
) -> float:
    """Return the wait after failed attempt number ``attempt`` (1-indexed).

    Args:
        attempt: Attempt that just failed, starting at 1.
        config: Backoff parameters.
        uniform: Random source, ``random.uniform`` by default.

    Returns:
        ``min(base * factor**(attempt-1), max_delay) + uniform(0, jitter)``.
    """
    exponential = config.base_delay * (config.backoff_factor ** (attempt - 1))
    capped = min(exponential, config.max_delay)
    extra = uniform(0.0, config.jitter) if config.jitter > 0 else 0.0
    return capped + extra


def with_retry(
    operation: Callable[[], T],
    config: RetryConfig | None = None,
    *,
    context: str = "operation",
    provider: str | None = None,
    sleep: Callable[[float], None] = time.sleep,
    uniform: Callable[[float, float], float] = random.uniform,
) -> T:
    """Run ``operation`` until it succeeds, fails terminally, or runs out of attempts.

    Terminal failures are re-raised unchanged on the attempt they occur.
    Retryable failures are retried after a backoff delay; once the attempt
    budget is spent a single ``RetryExhausted`` is raised.

    Args:
        operation: Zero-argument callable performing one attempt.
        config: Backoff parameters; defaults to ``RetryConfig()``.
        context: Label used in logs and the exhaustion message.
        provider: Provider name attached to classified failures.
        sleep: Sleep function (injectable for tests).
        uniform: Random source for jitter (injectable for tests).

    Returns:
        The operation's result.

    Raises:
        RetryExhausted: After ``max_attempts`` retryable failures.
        Exception: The original error when it is terminal.
    """
    cfg = config or RetryConfig()
    last_failure: GenerationFailure | None = None

    for attempt in range(1, cfg.max_attempts + 1):
        try:
            return operation()
        except Exception as e:  # noqa: BLE001 - classified below
            failure = classify_error(e, provider=provider)
            if not failure.retryable:
                log.debug("%s failed (terminal %s) on attempt %d", context, failure.code, attempt)
                raise
            last_failure = failure

        if attempt < cfg.max_attempts:
            delay = compute_delay(attempt, cfg, uniform)
            log.info(
                "%s retry %d/%d after %.1fs (error: %s)",
                context,
                attempt,
                cfg.max_attempts - 1,
                delay,
                last_failure,
            )
            sleep(delay)

    assert last_failure is not None
    log.warning("%s failed after %d attempts: %s", context, cfg.max_attempts, last_failure)
    raise RetryExhausted(last_failure, cfg.max_attempts, context=context)
