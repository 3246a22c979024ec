"""LLM provider protocol and request routing."""

from __future__ import annotations

from typing import Protocol, Sequence

from SciNecromancer.core.models import (
    AbstractData,
    AbstractTypeSuggestion,
    AnalysisResult,
    Category,
    GenerationRequest,
    ImageResult,
    OperationKind,
    Payload,
    ProviderName,
)


class LLMProvider(Protocol):
    """Protocol for LLM providers.

    Implementations perform exactly one HTTP attempt per call and raise a
    classified ``GenerationFailure`` on error; retrying and fallback are
    handled by the dispatcher.
    """

    name: ProviderName
    model: str

    def analyze_content(self, text: str, conference: str | None = None) -> AnalysisResult:
        """Identify categories and keywords in research text."""
        raise NotImplementedError

    def suggest_abstract_type(
        self,
        text: str,
        categories: Sequence[Category],
        keywords: Sequence[str],
        conference: str | None = None,
    ) -> tuple[AbstractTypeSuggestion, ...]:
        """Rank abstract types for the text (probability >= 0.30, highest first)."""
        raise NotImplementedError

    def generate_final_abstract(
        self,
        text: str,
        abstract_type: str,
        categories: Sequence[Category],
        keywords: Sequence[str],
        conference: str | None = None,
    ) -> AbstractData:
        """Write a full abstract of the requested type."""
        raise NotImplementedError

    def generate_creative_abstract(self, core_idea: str, conference: str | None = None) -> AbstractData:
        """Expand a core idea into an abstract."""
        raise NotImplementedError

    def generate_image(
        self,
        specs: str,
        context: str = "",
        image: bytes | None = None,
        mime_type: str = "image/png",
    ) -> ImageResult:
        """Generate an image, or edit ``image`` when given."""
        raise NotImplementedError


def call_provider(provider: LLMProvider, request: GenerationRequest) -> Payload:
    """Route a request to the matching provider operation.

    Args:
        provider: Target provider.
        request: Validated generation request.

    Returns:
        Typed payload for the request kind.
    """
    kind = request.kind
    if kind is OperationKind.ANALYZE:
        return provider.analyze_content(request.text, request.conference)
    if kind is OperationKind.SUGGEST_TYPE:
        return provider.suggest_abstract_type(
            request.text, request.categories, request.keywords, request.conference
        )
    if kind is OperationKind.GENERATE_ABSTRACT:
        assert request.abstract_type is not None
        return provider.generate_final_abstract(
            request.text,
            request.abstract_type,
            request.categories,
            request.keywords,
            request.conference,
        )
    if kind is OperationKind.GENERATE_CREATIVE:
        return provider.generate_creative_abstract(request.text, request.conference)
    if kind is OperationKind.GENERATE_IMAGE:
        return provider.generate_image(
            request.image_specs,
            request.text,
            request.image,
            request.image_mime_type,
        )
    raise ValueError(f"Unsupported operation: {kind}")
