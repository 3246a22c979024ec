"""Domain types shared by the dispatcher, the stores and the CLI."""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field
from dataclasses import replace
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional, Sequence

from SciNecromancer.core.errors import GenerationFailure, RecordValidationError


class OperationKind(str, Enum):
    """Generation operations a provider can perform."""

    ANALYZE = "analyze"
    SUGGEST_TYPE = "suggest-type"
    GENERATE_ABSTRACT = "generate-abstract"
    GENERATE_CREATIVE = "generate-creative"
    GENERATE_IMAGE = "generate-image"


class ProviderName(str, Enum):
    GOOGLE = "google"
    OPENAI = "openai"


class SyncState(str, Enum):
    """Where the latest write of a record lives."""

    LOCAL = "local"
    SYNCED = "synced"
    CONFLICT = "conflict"


class Conference(str, Enum):
    ISMRM = "ISMRM"
    RSNA = "RSNA"
    JACC = "JACC"
    ER = "ER"


ABSTRACT_TYPES: Mapping[Conference, tuple[str, ...]] = {
    Conference.ISMRM: (
        "Standard Abstract",
        "MRI in Clinical Practice Abstract",
        "ISMRT Abstract",
        "Registered Abstract",
    ),
    Conference.RSNA: ("RSNA Scientific Abstract",),
    Conference.JACC: ("JACC Scientific Abstract",),
    Conference.ER: ("ER Scientific Abstract",),
}

CATEGORY_TYPES: tuple[str, ...] = ("main", "sub", "secondary")

# Suggestions below this probability are dropped before ranking.
SUGGESTION_THRESHOLD = 0.30


def all_abstract_types() -> tuple[str, ...]:
    """Return every known abstract type in conference order."""
    return tuple(t for types in ABSTRACT_TYPES.values() for t in types)


@dataclass(frozen=True, slots=True)
class Category:
    """Research category identified in the source text.

    Attributes:
        name: Category label.
        type: One of ``main``, ``sub`` or ``secondary``.
        probability: Confidence in ``[0, 1]``.
    """

    name: str
    type: str
    probability: float

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "type": self.type, "probability": self.probability}

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> Category:
        return cls(
            name=str(raw.get("name", "")),
            type=str(raw.get("type", "main")),
            probability=float(raw.get("probability", 0.0)),
        )


@dataclass(frozen=True, slots=True)
class AnalysisResult:
    categories: tuple[Category, ...]
    keywords: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class AbstractTypeSuggestion:
    type: str
    probability: float


@dataclass(frozen=True, slots=True)
class AbstractData:
    """Generated abstract content.

    Attributes:
        impact: Impact statement.
        synopsis: Short synopsis.
        keywords: Keywords attached to the abstract.
        abstract: Full structured abstract body, if generated.
        categories: Categories selected during generation.
    """

    impact: str
    synopsis: str
    keywords: tuple[str, ...] = ()
    abstract: Optional[str] = None
    categories: tuple[Category, ...] = ()

    def is_empty(self) -> bool:
        return not (self.impact or self.synopsis or self.abstract or self.keywords)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "impact": self.impact,
            "synopsis": self.synopsis,
            "keywords": list(self.keywords),
        }
        if self.abstract is not None:
            data["abstract"] = self.abstract
        if self.categories:
            data["categories"] = [c.to_dict() for c in self.categories]
        return data

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> AbstractData:
        abstract = raw.get("abstract")
        return cls(
            impact=str(raw.get("impact", "") or ""),
            synopsis=str(raw.get("synopsis", "") or ""),
            keywords=tuple(str(k) for k in raw.get("keywords") or ()),
            abstract=str(abstract) if abstract is not None else None,
            categories=tuple(Category.from_dict(c) for c in raw.get("categories") or ()),
        )


@dataclass(frozen=True, slots=True)
class ImageResult:
    """Generated image bytes plus their MIME type."""

    data: bytes
    mime_type: str = "image/png"


@dataclass(frozen=True, slots=True)
class GenerationParameters:
    """Parameters a record was generated with."""

    provider: str
    model: str
    categories: tuple[Category, ...] = ()
    keywords: tuple[str, ...] = ()
    abstract_type: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "model": self.model,
            "categories": [c.to_dict() for c in self.categories],
            "keywords": list(self.keywords),
            "abstract_type": self.abstract_type,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> GenerationParameters:
        return cls(
            provider=str(raw.get("provider", "")),
            model=str(raw.get("model", "")),
            categories=tuple(Category.from_dict(c) for c in raw.get("categories") or ()),
            keywords=tuple(str(k) for k in raw.get("keywords") or ()),
            abstract_type=raw.get("abstract_type"),
            temperature=raw.get("temperature"),
            max_tokens=raw.get("max_tokens"),
        )


@dataclass(frozen=True, slots=True)
class GenerationRequest:
    """Immutable description of one generation call.

    Use the named constructors; they check that the payload matches the kind.

    Attributes:
        kind: Operation to perform.
        text: Source text, or the core idea for creative generation.
        categories: Categories selected by the user.
        keywords: Keywords selected by the user.
        abstract_type: Target abstract type for final generation.
        conference: Target conference, if any.
        image: Source image bytes for image edits.
        image_mime_type: MIME type of ``image``.
        image_specs: Free-text instructions for the image.
    """

    kind: OperationKind
    text: str = ""
    categories: tuple[Category, ...] = ()
    keywords: tuple[str, ...] = ()
    abstract_type: Optional[str] = None
    conference: Optional[str] = None
    image: Optional[bytes] = None
    image_mime_type: str = "image/png"
    image_specs: str = ""

    def __post_init__(self) -> None:
        kind = self.kind
        if kind is OperationKind.GENERATE_IMAGE:
            if not (self.image_specs.strip() or self.text.strip() or self.image):
                raise ValueError("generate-image requires image specs, context text or a source image")
            return
        if not self.text.strip():
            raise ValueError(f"{kind.value} requires non-empty text")
        if kind is OperationKind.GENERATE_ABSTRACT and not (self.abstract_type or "").strip():
            raise ValueError("generate-abstract requires an abstract type")

    @classmethod
    def analyze(cls, text: str, *, conference: str | None = None) -> GenerationRequest:
        return cls(kind=OperationKind.ANALYZE, text=text, conference=conference)

    @classmethod
    def suggest_type(
        cls,
        text: str,
        categories: Sequence[Category] = (),
        keywords: Sequence[str] = (),
        *,
        conference: str | None = None,
    ) -> GenerationRequest:
        return cls(
            kind=OperationKind.SUGGEST_TYPE,
            text=text,
            categories=tuple(categories),
            keywords=tuple(keywords),
            conference=conference,
        )

    @classmethod
    def final_abstract(
        cls,
        text: str,
        abstract_type: str,
        categories: Sequence[Category] = (),
        keywords: Sequence[str] = (),
        *,
        conference: str | None = None,
    ) -> GenerationRequest:
        return cls(
            kind=OperationKind.GENERATE_ABSTRACT,
            text=text,
            abstract_type=abstract_type,
            categories=tuple(categories),
            keywords=tuple(keywords),
            conference=conference,
        )

    @classmethod
    def creative(cls, core_idea: str, *, conference: str | None = None) -> GenerationRequest:
        return cls(kind=OperationKind.GENERATE_CREATIVE, text=core_idea, conference=conference)

    @classmethod
    def image_request(
        cls,
        specs: str,
        context: str = "",
        *,
        image: bytes | None = None,
        mime_type: str = "image/png",
    ) -> GenerationRequest:
        return cls(
            kind=OperationKind.GENERATE_IMAGE,
            text=context,
            image=image,
            image_mime_type=mime_type,
            image_specs=specs,
        )


Payload = AnalysisResult | tuple[AbstractTypeSuggestion, ...] | AbstractData | ImageResult


@dataclass(frozen=True, slots=True)
class GenerationOutcome:
    """Tagged result of a dispatch: exactly one of payload or failure is set."""

    payload: Optional[Payload] = None
    failure: Optional[GenerationFailure] = None
    provider: Optional[str] = None

    def __post_init__(self) -> None:
        if (self.payload is None) == (self.failure is None):
            raise ValueError("GenerationOutcome requires exactly one of payload or failure")

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, payload: Payload, *, provider: str | None = None) -> GenerationOutcome:
        return cls(payload=payload, provider=provider)

    @classmethod
    def failed(cls, failure: GenerationFailure) -> GenerationOutcome:
        return cls(failure=failure, provider=failure.provider)

    def unwrap(self) -> Payload:
        """Return the payload or raise the failure."""
        if self.failure is not None:
            raise self.failure
        assert self.payload is not None
        return self.payload


@dataclass(frozen=True, slots=True)
class AbstractDraft:
    """Record content before a store assigns id, timestamps and sync state."""

    title: str
    conference: str
    abstract_type: str
    content: AbstractData
    source_text: str
    categories: tuple[Category, ...] = ()
    keywords: tuple[str, ...] = ()
    parameters: Optional[GenerationParameters] = None
    user_id: Optional[str] = None


# Fields a patch passed to ``update`` may carry.
PATCHABLE_FIELDS: tuple[str, ...] = (
    "title",
    "conference",
    "abstract_type",
    "content",
    "source_text",
    "categories",
    "keywords",
    "parameters",
    "user_id",
)


@dataclass(frozen=True, slots=True)
class AbstractRecord:
    """Persisted abstract.

    Attributes:
        id: Stable identifier assigned by the store that created it.
        title: Display title.
        conference: Target conference.
        abstract_type: Target abstract type.
        content: Generated abstract content.
        source_text: Original research text.
        categories: Selected categories.
        keywords: Selected keywords.
        parameters: Generation parameters used, if known.
        created_at: Creation time (timezone-aware UTC).
        updated_at: Last modification time, never before ``created_at``.
        user_id: Owning user, if any.
        sync_state: Where the latest write lives.
    """

    id: str
    title: str
    conference: str
    abstract_type: str
    content: AbstractData
    source_text: str
    created_at: datetime
    updated_at: datetime
    categories: tuple[Category, ...] = ()
    keywords: tuple[str, ...] = ()
    parameters: Optional[GenerationParameters] = None
    user_id: Optional[str] = None
    sync_state: SyncState = SyncState.LOCAL

    def __post_init__(self) -> None:
        if not self.id:
            raise RecordValidationError("AbstractRecord.id must not be empty")
        if self.created_at.tzinfo is None or self.updated_at.tzinfo is None:
            raise RecordValidationError("AbstractRecord timestamps must be timezone-aware")
        if self.updated_at < self.created_at:
            raise RecordValidationError(
                f"AbstractRecord {self.id}: updated_at precedes created_at"
            )

    def with_changes(self, **changes: Any) -> AbstractRecord:
        return replace(self, **changes)

    def same_content(self, other: AbstractRecord) -> bool:
        """Compare user-visible content, ignoring timestamps and sync state."""
        return (
            self.title == other.title
            and self.conference == other.conference
            and self.abstract_type == other.abstract_type
            and self.content == other.content
            and self.source_text == other.source_text
            and self.categories == other.categories
            and self.keywords == other.keywords
        )


@dataclass(frozen=True, slots=True)
class SyncStatus:
    is_online: bool
    last_sync: Optional[datetime]
    pending_changes: int
    conflict_count: int


@dataclass(frozen=True, slots=True)
class ConflictResolution:
    """User decision for one conflicting record.

    ``strategy`` is ``local``, ``remote`` or ``merge``.
    """

    record_id: str
    strategy: str
    local_version: AbstractRecord
    remote_version: AbstractRecord

    def __post_init__(self) -> None:
        if self.strategy not in ("local", "remote", "merge"):
            raise ValueError(f"Unknown conflict resolution strategy: {self.strategy}")


def validate_draft(draft: AbstractDraft) -> None:
    """Ensure required draft fields are present.

    Raises:
        RecordValidationError: Listing every missing field.
    """
    missing = [
        name
        for name, value in (
            ("title", draft.title),
            ("conference", draft.conference),
            ("abstract_type", draft.abstract_type),
            ("source_text", draft.source_text),
        )
        if not (value or "").strip()
    ]
    if draft.content is None or draft.content.is_empty():
        missing.append("content")
    if missing:
        raise RecordValidationError(f"Missing required fields: {', '.join(missing)}")


@dataclass(frozen=True, slots=True)
class ErrorEntry:
    """One persisted error-log entry."""

    timestamp: datetime
    code: str
    message: str
    context: str = ""
    provider: Optional[str] = None
    details: Mapping[str, Any] = field(default_factory=dict)
