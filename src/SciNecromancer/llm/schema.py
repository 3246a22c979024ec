"""Strict validation of provider payloads.

Every provider response is decoded into the typed models here; any shape
mismatch raises ``MalformedResponse`` so it never reaches callers half-parsed.
"""

from __future__ import annotations

from typing import Any, Mapping

from SciNecromancer.core.errors import MalformedResponse
from SciNecromancer.core.models import (
    CATEGORY_TYPES,
    SUGGESTION_THRESHOLD,
    AbstractData,
    AbstractTypeSuggestion,
    AnalysisResult,
    Category,
)


def _expect_mapping(value: Any, key: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise MalformedResponse(f"{key} must be an object")
    return value


def _expect_list(value: Any, key: str) -> list[Any]:
    if not isinstance(value, list):
        raise MalformedResponse(f"{key} must be a list")
    return value


def _expect_str(value: Any, key: str) -> str:
    if not isinstance(value, str):
        raise MalformedResponse(f"{key} must be a string")
    return value


def _expect_probability(value: Any, key: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedResponse(f"{key} must be a number")
    number = float(value)
    # Some models answer in percent.
    if 1.0 < number <= 100.0:
        number /= 100.0
    if not 0.0 <= number <= 1.0:
        raise MalformedResponse(f"{key} must be a probability, got {value}")
    return number


def _require(data: Mapping[str, Any], field: str, key: str) -> Any:
    if field not in data:
        raise MalformedResponse(f"Missing field: {key}")
    return data[field]


def _parse_keywords(value: Any, key: str) -> tuple[str, ...]:
    items = _expect_list(value, key)
    return tuple(_expect_str(item, f"{key}[{idx}]").strip() for idx, item in enumerate(items))


def _parse_category(value: Any, key: str) -> Category:
    data = _expect_mapping(value, key)
    kind = _expect_str(_require(data, "type", f"{key}.type"), f"{key}.type").lower()
    if kind not in CATEGORY_TYPES:
        raise MalformedResponse(f"{key}.type must be one of {list(CATEGORY_TYPES)}")
    return Category(
        name=_expect_str(_require(data, "name", f"{key}.name"), f"{key}.name"),
        type=kind,
        probability=_expect_probability(_require(data, "probability", f"{key}.probability"), f"{key}.probability"),
    )


def parse_analysis(payload: Any) -> AnalysisResult:
    """Validate an analysis payload ``{categories: [...], keywords: [...]}``."""
    data = _expect_mapping(payload, "analysis")
    categories = _expect_list(_require(data, "categories", "categories"), "categories")
    return AnalysisResult(
        categories=tuple(_parse_category(c, f"categories[{i}]") for i, c in enumerate(categories)),
        keywords=_parse_keywords(_require(data, "keywords", "keywords"), "keywords"),
    )


def parse_type_suggestions(payload: Any) -> tuple[AbstractTypeSuggestion, ...]:
    """Validate type suggestions, drop weak ones and rank the rest.

    Accepts a bare list or an object wrapping it under ``suggestions``
    (JSON-object response modes cannot return a top-level array).

    Returns:
        Suggestions with probability >= 0.30, highest first.
    """
    if isinstance(payload, Mapping):
        payload = _require(payload, "suggestions", "suggestions")
    items = _expect_list(payload, "suggestions")
    suggestions = []
    for idx, item in enumerate(items):
        key = f"suggestions[{idx}]"
        data = _expect_mapping(item, key)
        suggestions.append(
            AbstractTypeSuggestion(
                type=_expect_str(_require(data, "type", f"{key}.type"), f"{key}.type"),
                probability=_expect_probability(
                    _require(data, "probability", f"{key}.probability"), f"{key}.probability"
                ),
            )
        )
    kept = [s for s in suggestions if s.probability >= SUGGESTION_THRESHOLD]
    kept.sort(key=lambda s: s.probability, reverse=True)
    return tuple(kept)


def parse_abstract(payload: Any, *, require_body: bool = True) -> AbstractData:
    """Validate an abstract payload.

    Args:
        payload: Decoded JSON.
        require_body: Whether the full ``abstract`` body must be present.

    Returns:
        Parsed abstract content.
    """
    data = _expect_mapping(payload, "abstract")
    body = data.get("abstract")
    if require_body and body is None:
        raise MalformedResponse("Missing field: abstract")
    return AbstractData(
        impact=_expect_str(_require(data, "impact", "impact"), "impact").strip(),
        synopsis=_expect_str(_require(data, "synopsis", "synopsis"), "synopsis").strip(),
        keywords=_parse_keywords(_require(data, "keywords", "keywords"), "keywords"),
        abstract=None if body is None else _expect_str(body, "abstract").strip(),
    )
