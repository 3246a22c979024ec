"""Command implementations for SciNecromancer CLI.

Encapsulates the work behind each command, separated from CLI parameter
handling and output formatting.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Sequence

from SciNecromancer.config import AppConfig
from SciNecromancer.core.errors import RecordNotFoundError, ServiceUnavailable
from SciNecromancer.core.models import (
    AbstractData,
    AbstractDraft,
    AbstractRecord,
    AbstractTypeSuggestion,
    AnalysisResult,
    Category,
    ConflictResolution,
    GenerationOutcome,
    GenerationParameters,
    ImageResult,
    Payload,
    SyncState,
)
from SciNecromancer.llm.dispatcher import ProviderFallbackDispatcher
from SciNecromancer.llm.offline import analyze_content_offline, generate_basic_abstract_offline
from SciNecromancer.services.error_log import ErrorLog
from SciNecromancer.storage.codec import format_timestamp, record_to_dict
from SciNecromancer.sync.coordinator import DrainReport, SyncCoordinator
from SciNecromancer.utils.log import log

OFFLINE_PROVIDER = "offline"


def to_jsonable(payload: Any) -> Any:
    """Convert command results into JSON-compatible structures."""
    if isinstance(payload, AbstractRecord):
        return record_to_dict(payload)
    if isinstance(payload, (AbstractData, Category)):
        return payload.to_dict()
    if isinstance(payload, AnalysisResult):
        return {
            "categories": [c.to_dict() for c in payload.categories],
            "keywords": list(payload.keywords),
        }
    if isinstance(payload, AbstractTypeSuggestion):
        return {"type": payload.type, "probability": payload.probability}
    if isinstance(payload, (list, tuple)):
        return [to_jsonable(item) for item in payload]
    return payload


def render_json(payload: Any) -> str:
    return json.dumps(to_jsonable(payload), ensure_ascii=False, indent=2)


@dataclass(slots=True)
class GenerationCommand:
    """Runs generation requests through the dispatcher.

    With ``offline_fallback`` set, analysis and abstract drafting fall back to
    local heuristics when the providers are unavailable.
    """

    config: AppConfig
    dispatcher: ProviderFallbackDispatcher
    offline_fallback: bool = False

    def analyze(self, text: str, conference: str | None = None) -> tuple[AnalysisResult, str]:
        outcome = self.dispatcher.analyze_content(text, conference)
        return self._resolve(outcome, lambda: analyze_content_offline(text))

    def suggest_type(
        self,
        text: str,
        categories: Sequence[Category] = (),
        keywords: Sequence[str] = (),
        conference: str | None = None,
    ) -> tuple[tuple[AbstractTypeSuggestion, ...], str]:
        outcome = self.dispatcher.suggest_abstract_type(text, categories, keywords, conference)
        return self._resolve(outcome, None)

    def generate(
        self,
        text: str,
        abstract_type: str,
        categories: Sequence[Category] = (),
        keywords: Sequence[str] = (),
        conference: str | None = None,
    ) -> tuple[AbstractData, str]:
        outcome = self.dispatcher.generate_final_abstract(text, abstract_type, categories, keywords, conference)
        return self._resolve(outcome, lambda: generate_basic_abstract_offline(text))

    def creative(self, core_idea: str, conference: str | None = None) -> tuple[AbstractData, str]:
        outcome = self.dispatcher.generate_creative_abstract(core_idea, conference)
        return self._resolve(outcome, lambda: generate_basic_abstract_offline(core_idea))

    def image(
        self,
        specs: str,
        context: str = "",
        image_path: Path | None = None,
    ) -> tuple[ImageResult, str]:
        image = image_path.read_bytes() if image_path else None
        mime_type = _guess_mime_type(image_path) if image_path else "image/png"
        outcome = self.dispatcher.generate_image(specs, context, image=image, mime_type=mime_type)
        return self._resolve(outcome, None)

    def parameters_for(
        self,
        provider: str,
        abstract_type: str | None,
        categories: Sequence[Category],
        keywords: Sequence[str],
    ) -> GenerationParameters:
        """Describe how a payload was produced, for storing alongside the record."""
        model = OFFLINE_PROVIDER
        temperature = None
        max_tokens = None
        for name, provider_config in self.config.llm.providers.items():
            if name.value == provider:
                model = provider_config.text_model
                temperature = provider_config.temperature
                max_tokens = provider_config.max_tokens
        return GenerationParameters(
            provider=provider,
            model=model,
            categories=tuple(categories),
            keywords=tuple(keywords),
            abstract_type=abstract_type,
            temperature=temperature,
            max_tokens=max_tokens,
        )

    def _resolve(self, outcome: GenerationOutcome, offline: Callable[[], Payload] | None) -> tuple[Any, str]:
        if outcome.ok:
            return outcome.payload, outcome.provider or self.dispatcher.primary.value
        failure = outcome.failure
        assert failure is not None
        if self.offline_fallback and offline is not None and (
            failure.retryable or isinstance(failure, ServiceUnavailable)
        ):
            log.warning("AI providers unavailable (%s); using offline heuristics", failure.message)
            return offline(), OFFLINE_PROVIDER
        raise failure


def _guess_mime_type(path: Path) -> str:
    suffix = path.suffix.lower()
    if suffix in (".jpg", ".jpeg"):
        return "image/jpeg"
    if suffix == ".webp":
        return "image/webp"
    if suffix == ".gif":
        return "image/gif"
    return "image/png"


@dataclass(slots=True)
class AbstractsCommand:
    """Record management on top of the sync coordinator."""

    coordinator: SyncCoordinator

    def save(
        self,
        *,
        title: str,
        conference: str,
        abstract_type: str,
        content: AbstractData,
        source_text: str,
        categories: Sequence[Category] = (),
        keywords: Sequence[str] = (),
        parameters: GenerationParameters | None = None,
    ) -> AbstractRecord:
        draft = AbstractDraft(
            title=title,
            conference=conference,
            abstract_type=abstract_type,
            content=content,
            source_text=source_text,
            categories=tuple(categories),
            keywords=tuple(keywords or content.keywords),
            parameters=parameters,
        )
        record = self.coordinator.save(draft)
        log.info("Saved abstract %s (%s)", record.id, record.sync_state.value)
        return record

    def list(self) -> list[AbstractRecord]:
        return self.coordinator.list()

    def show(self, record_id: str) -> AbstractRecord:
        record = self.coordinator.load(record_id)
        if record is None:
            raise RecordNotFoundError(f"Abstract not found: {record_id}")
        return record

    def search(self, query: str) -> list[AbstractRecord]:
        return self.coordinator.local.search(query)

    def delete(self, record_id: str) -> None:
        self.coordinator.delete(record_id)
        log.info("Deleted abstract %s", record_id)

    def export(self, path: Path) -> int:
        snapshot = self.coordinator.export_all()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(snapshot, ensure_ascii=False, indent=2), encoding="utf-8")
        log.info("Exported %d abstracts to %s", len(snapshot["abstracts"]), path)
        return len(snapshot["abstracts"])

    def import_(self, path: Path) -> int:
        snapshot = json.loads(path.read_text(encoding="utf-8"))
        return len(self.coordinator.import_all(snapshot))


@dataclass(slots=True)
class SyncCommand:
    """Sync status, queue draining and conflict handling."""

    coordinator: SyncCoordinator

    def status(self) -> dict[str, Any]:
        status = self.coordinator.get_sync_status()
        info = self.coordinator.local.storage_info()
        return {
            "is_online": status.is_online,
            "last_sync": format_timestamp(status.last_sync) if status.last_sync else None,
            "pending_changes": status.pending_changes,
            "conflict_count": status.conflict_count,
            "storage": {"used": info.used, "available": info.available, "total": info.total},
        }

    def probe(self) -> bool:
        return self.coordinator.probe_remote()

    def drain(self) -> DrainReport:
        self.coordinator.probe_remote()
        return self.coordinator.drain_pending_sync()

    def resolve(self, record_id: str, strategy: str) -> AbstractRecord:
        """Resolve a conflicted record against the current remote copy."""
        local_version = self.coordinator.local.load(record_id)
        if local_version is None:
            raise RecordNotFoundError(f"Abstract not found: {record_id}")
        if local_version.sync_state is not SyncState.CONFLICT:
            raise ValueError(f"Abstract {record_id} is not in conflict")
        remote = self.coordinator.remote
        if remote is None or not self.coordinator.probe_remote():
            raise ServiceUnavailable("Remote store unreachable; conflicts can only be resolved online")
        result = remote.load(record_id)
        if not result.ok or result.value is None:
            raise ServiceUnavailable(f"Remote copy of {record_id} unavailable: {result.error or 'not found'}")
        return self.coordinator.resolve_conflict(
            ConflictResolution(
                record_id=record_id,
                strategy=strategy,
                local_version=local_version,
                remote_version=result.value,
            )
        )


@dataclass(slots=True)
class ErrorsCommand:
    error_log: ErrorLog

    def report(self, limit: int) -> dict[str, Any]:
        return {
            "recent": [
                {
                    "timestamp": format_timestamp(e.timestamp),
                    "code": e.code,
                    "message": e.message,
                    "context": e.context,
                    "provider": e.provider,
                }
                for e in self.error_log.recent(limit)
            ],
            "patterns": [
                {"pattern": p.pattern, "frequency": p.frequency, "suggestion": p.suggestion}
                for p in self.error_log.detect_patterns()
            ],
        }
