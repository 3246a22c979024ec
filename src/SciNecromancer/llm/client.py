"""HTTP transport shared by the LLM providers."""

from __future__ import annotations

import json
import re
from typing import Any, Mapping

import requests

from SciNecromancer.core.errors import MalformedResponse, NetworkError, failure_from_status
from SciNecromancer.utils.log import get_logger

log = get_logger("llm")

_FENCE_RE = re.compile(r"^```(?:json)?\s*([\s\S]*?)\s*```$", re.IGNORECASE)


def normalize_base_url(base_url: str) -> str:
    """Normalize an OpenAI-compatible base URL to its ``/v1`` root.

    Supports three input formats:
    1. https://api.xxx.com → https://api.xxx.com/v1
    2. https://api.xxx.com/v1 → (unchanged)
    3. https://api.xxx.com/v1/chat/completions → https://api.xxx.com/v1

    Args:
        base_url: Base URL or a full endpoint.

    Returns:
        API root without trailing slash.

    Raises:
        ValueError: If base_url is empty.
    """
    if not base_url:
        raise ValueError("base_url cannot be empty")

    url = base_url.rstrip("/")

    for suffix in ("/chat/completions", "/images/generations"):
        if url.endswith(suffix):
            url = url[: -len(suffix)]
    if url.endswith("/v1"):
        return url
    return url + "/v1"


def parse_json_content(text: str, *, provider: str | None = None) -> Any:
    """Parse model text that must be JSON.

    Markdown code fences around the payload are tolerated; anything else
    that is not valid JSON is rejected.

    Raises:
        MalformedResponse: If the text is empty or not JSON.
    """
    stripped = (text or "").strip()
    if not stripped:
        raise MalformedResponse("Empty response from model", provider=provider)
    match = _FENCE_RE.match(stripped)
    if match:
        stripped = match.group(1)
    try:
        return json.loads(stripped)
    except json.JSONDecodeError as e:
        raise MalformedResponse(f"Model returned invalid JSON: {e.msg}", provider=provider) from e


class HttpProviderClient:
    """Issue one JSON POST per call and classify every failure.

    Retrying is the caller's job; this client performs exactly one attempt.
    """

    def __init__(self, provider: str, timeout: int = 30) -> None:
        """Initialize client.

        Args:
            provider: Provider name attached to raised failures.
            timeout: Per-request timeout in seconds.
        """
        self.provider = provider
        self.timeout = timeout
        log.debug("HttpProviderClient initialized: provider=%s timeout=%d", provider, timeout)

    def post_json(
        self,
        url: str,
        payload: Mapping[str, Any],
        headers: Mapping[str, str],
    ) -> dict[str, Any]:
        """POST a JSON body and return the decoded JSON object.

        Args:
            url: Full endpoint URL.
            payload: Request body.
            headers: HTTP headers (auth included).

        Returns:
            Decoded JSON object.

        Raises:
            NetworkError: On timeout, connection failure or HTTP 5xx.
            RateLimited: On HTTP 429 or a quota message.
            AuthError: On HTTP 401/403.
            ValidationError: On any other non-2xx status.
            MalformedResponse: If the body is not a JSON object.
        """
        request_headers = {"Content-Type": "application/json", **headers}
        log.debug("POST %s provider=%s", _redact_url(url), self.provider)
        try:
            response = requests.post(
                url,
                json=dict(payload),
                headers=request_headers,
                timeout=self.timeout,
            )
        except (requests.Timeout, requests.ConnectionError) as e:
            log.debug("%s request failed (network): %s", self.provider, type(e).__name__)
            raise NetworkError(f"{type(e).__name__}: {e}", provider=self.provider) from e
        except requests.RequestException as e:
            raise NetworkError(str(e), provider=self.provider) from e

        if not 200 <= response.status_code < 300:
            failure = failure_from_status(response.status_code, response.text, provider=self.provider)
            log.debug("%s request failed: %s", self.provider, failure.code)
            raise failure

        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponse("Response body is not JSON", provider=self.provider) from e
        if not isinstance(data, dict):
            raise MalformedResponse("Response body must be a JSON object", provider=self.provider)
        return data


def _redact_url(url: str) -> str:
    return re.sub(r"([?&]key=)[^&]+", r"\1***", url)
