"""Google Gemini provider over the REST ``generateContent`` endpoint."""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from typing import Any, Sequence

from SciNecromancer.config.llm import ProviderConfig
from SciNecromancer.core.errors import AuthError, MalformedResponse
from SciNecromancer.core.models import (
    AbstractData,
    AbstractTypeSuggestion,
    AnalysisResult,
    Category,
    ImageResult,
    ProviderName,
)
from SciNecromancer.llm import prompts
from SciNecromancer.llm.client import HttpProviderClient, parse_json_content
from SciNecromancer.llm.schema import parse_abstract, parse_analysis, parse_type_suggestions
from SciNecromancer.utils.log import log


def _candidate_parts(data: dict[str, Any], provider: str) -> list[dict[str, Any]]:
    try:
        parts = data["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError) as e:
        raise MalformedResponse("Unexpected generateContent format", provider=provider) from e
    if not isinstance(parts, list):
        raise MalformedResponse("candidates[0].content.parts must be a list", provider=provider)
    return [p for p in parts if isinstance(p, dict)]


@dataclass(slots=True)
class GoogleProvider:
    """LLM provider for the Gemini ``models/{model}:generateContent`` API."""

    config: ProviderConfig
    client: HttpProviderClient
    name: ProviderName = ProviderName.GOOGLE

    @property
    def model(self) -> str:
        return self.config.text_model

    def _endpoint(self, model: str) -> str:
        return f"{self.config.base_url.rstrip('/')}/models/{model}:generateContent"

    def _headers(self) -> dict[str, str]:
        if not self.config.api_key:
            raise AuthError(
                f"{self.config.api_key_env} environment variable not set",
                provider=self.name.value,
            )
        return {"x-goog-api-key": self.config.api_key}

    def _generate_json(self, prompt: str) -> Any:
        generation_config: dict[str, Any] = {
            "responseMimeType": "application/json",
            "temperature": self.config.temperature,
        }
        if self.config.max_tokens:
            generation_config["maxOutputTokens"] = self.config.max_tokens
        payload = {
            "systemInstruction": {"parts": [{"text": prompts.SYSTEM_PROMPT}]},
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": generation_config,
        }
        data = self.client.post_json(self._endpoint(self.config.text_model), payload, self._headers())
        parts = _candidate_parts(data, self.name.value)
        text = "".join(p["text"] for p in parts if isinstance(p.get("text"), str))
        return parse_json_content(text, provider=self.name.value)

    def analyze_content(self, text: str, conference: str | None = None) -> AnalysisResult:
        log.debug("google: analyzing content (%d chars)", len(text))
        return parse_analysis(self._generate_json(prompts.analysis_prompt(text, conference)))

    def suggest_abstract_type(
        self,
        text: str,
        categories: Sequence[Category],
        keywords: Sequence[str],
        conference: str | None = None,
    ) -> tuple[AbstractTypeSuggestion, ...]:
        prompt = prompts.type_suggestion_prompt(text, categories, keywords, conference)
        return parse_type_suggestions(self._generate_json(prompt))

    def generate_final_abstract(
        self,
        text: str,
        abstract_type: str,
        categories: Sequence[Category],
        keywords: Sequence[str],
        conference: str | None = None,
    ) -> AbstractData:
        prompt = prompts.final_abstract_prompt(text, abstract_type, categories, keywords, conference)
        data = parse_abstract(self._generate_json(prompt))
        return AbstractData(
            impact=data.impact,
            synopsis=data.synopsis,
            keywords=data.keywords,
            abstract=data.abstract,
            categories=tuple(categories),
        )

    def generate_creative_abstract(self, core_idea: str, conference: str | None = None) -> AbstractData:
        return parse_abstract(self._generate_json(prompts.creative_abstract_prompt(core_idea, conference)))

    def generate_image(
        self,
        specs: str,
        context: str = "",
        image: bytes | None = None,
        mime_type: str = "image/png",
    ) -> ImageResult:
        """Generate or edit an image; the result arrives as ``inlineData``."""
        if image:
            parts: list[dict[str, Any]] = [
                {"inlineData": {"mimeType": mime_type, "data": base64.b64encode(image).decode("ascii")}},
                {"text": prompts.image_edit_prompt(specs)},
            ]
        else:
            parts = [{"text": prompts.image_prompt(specs, context)}]
        payload = {
            "contents": [{"role": "user", "parts": parts}],
            "generationConfig": {"responseModalities": ["IMAGE"]},
        }
        data = self.client.post_json(self._endpoint(self.config.image_model), payload, self._headers())
        for part in _candidate_parts(data, self.name.value):
            inline = part.get("inlineData")
            if isinstance(inline, dict) and inline.get("data"):
                try:
                    raw = base64.b64decode(inline["data"], validate=True)
                except (binascii.Error, TypeError) as e:
                    raise MalformedResponse("Image data is not valid base64", provider=self.name.value) from e
                return ImageResult(data=raw, mime_type=str(inline.get("mimeType") or "image/png"))
        raise MalformedResponse("No image data received from API", provider=self.name.value)
