"""Failure taxonomy shared by the generation and persistence layers.

Generation failures carry a stable ``code`` used for error-log aggregation and
a ``retryable`` flag consumed by the retry policy and the fallback dispatcher.
"""

from __future__ import annotations

import re
from typing import Any

import requests


class GenerationFailure(Exception):
    """Base class for every failure a generation request can end in."""

    code: str = "UNKNOWN_ERROR"
    retryable: bool = False

    def __init__(self, message: str, *, provider: str | None = None, status: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.status = status

    def __str__(self) -> str:
        return self.message


class NetworkError(GenerationFailure):
    """Connectivity problem, timeout, or provider-side 5xx."""

    code = "NETWORK_ERROR"
    retryable = True


class RateLimited(GenerationFailure):
    """HTTP 429 or an explicit quota / rate-limit message."""

    code = "RATE_LIMITED"
    retryable = True


class AuthError(GenerationFailure):
    """Missing or rejected credentials (401/403)."""

    code = "AUTH_ERROR"


class ValidationError(GenerationFailure):
    """The request itself is invalid; retrying cannot help."""

    code = "VALIDATION_ERROR"


class MalformedResponse(GenerationFailure):
    """Provider output did not match the expected payload shape."""

    code = "MALFORMED_RESPONSE"


class ServiceUnavailable(GenerationFailure):
    """Breaker is open or every provider is exhausted."""

    code = "SERVICE_UNAVAILABLE"


class RetryExhausted(GenerationFailure):
    """Raised by the retry policy once its attempt budget is spent.

    Attributes:
        last_error: The failure observed on the final attempt.
        attempts: Number of attempts performed.
    """

    def __init__(self, last_error: GenerationFailure, attempts: int, *, context: str = "operation") -> None:
        super().__init__(
            f"{context} failed after {attempts} attempts: {last_error.message}",
            provider=last_error.provider,
            status=last_error.status,
        )
        self.last_error = last_error
        self.attempts = attempts
        self.code = last_error.code
        self.retryable = last_error.retryable


class LocalStorageError(RuntimeError):
    """Local persistence failed; the last line of durability is gone."""


class RecordNotFoundError(LookupError):
    """No abstract record exists for the requested id."""


class RecordValidationError(ValueError):
    """An abstract record is missing required fields."""


_RATE_LIMIT_RE = re.compile(r"rate.?limit|quota|too many requests", re.IGNORECASE)
_NETWORK_RE = re.compile(r"network|timed? ?out|timeout|connection", re.IGNORECASE)


def is_retryable(error: BaseException) -> bool:
    """Return True when retrying ``error`` may succeed."""
    if isinstance(error, GenerationFailure):
        return error.retryable
    return classify_error(error).retryable


def classify_error(error: BaseException, *, provider: str | None = None) -> GenerationFailure:
    """Map an arbitrary exception onto the failure taxonomy.

    Already-classified failures are returned as-is, tagged with ``provider``
    when they carry none. Transport errors from ``requests`` map onto
    ``NetworkError``; anything else is classified by its message the way
    providers phrase quota and connectivity problems, falling back to a
    terminal ``ValidationError``.

    Args:
        error: Exception raised by a provider call.
        provider: Provider name attached to the resulting failure.

    Returns:
        A ``GenerationFailure`` instance.
    """
    if isinstance(error, GenerationFailure):
        if error.provider is None:
            error.provider = provider
        return error
    if isinstance(error, (requests.Timeout, requests.ConnectionError)):
        return NetworkError(f"{type(error).__name__}: {error}", provider=provider)
    message = str(error) or type(error).__name__
    if _RATE_LIMIT_RE.search(message):
        return RateLimited(message, provider=provider)
    if _NETWORK_RE.search(message):
        return NetworkError(message, provider=provider)
    return ValidationError(message, provider=provider)


def failure_from_status(status: int, body: str, *, provider: str | None = None) -> GenerationFailure:
    """Classify a non-2xx HTTP response.

    Args:
        status: HTTP status code.
        body: Response body text (truncated for the message).
        provider: Provider name attached to the failure.

    Returns:
        Classified failure for the status.
    """
    excerpt = (body or "").strip()[:300]
    message = f"HTTP {status}: {excerpt}" if excerpt else f"HTTP {status}"
    if status == 429 or _RATE_LIMIT_RE.search(excerpt):
        return RateLimited(message, provider=provider, status=status)
    if status in (401, 403):
        return AuthError(message, provider=provider, status=status)
    if status >= 500:
        return NetworkError(message, provider=provider, status=status)
    return ValidationError(message, provider=provider, status=status)


def describe(error: BaseException) -> dict[str, Any]:
    """Return a log-friendly description of a failure."""
    failure = classify_error(error)
    info: dict[str, Any] = {"code": failure.code, "message": failure.message}
    if failure.provider:
        info["provider"] = failure.provider
    if isinstance(failure, RetryExhausted):
        info["attempts"] = failure.attempts
    return info
