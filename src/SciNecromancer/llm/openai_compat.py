"""OpenAI-compatible LLM provider implementation."""

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
from SciNecromancer.llm.client import HttpProviderClient, normalize_base_url, parse_json_content
from SciNecromancer.llm.schema import parse_abstract, parse_analysis, parse_type_suggestions
from SciNecromancer.utils.log import log


@dataclass(slots=True)
class OpenAICompatProvider:
    """LLM provider using OpenAI-compatible chat completions and image APIs.

    Supports any API following the OpenAI chat completions API:
    - OpenAI GPT models
    - DeepSeek
    - SiliconFlow
    - Local models via OpenAI-compatible servers
    """

    config: ProviderConfig
    client: HttpProviderClient
    name: ProviderName = ProviderName.OPENAI

    @property
    def model(self) -> str:
        return self.config.text_model

    @property
    def base_url(self) -> str:
        return normalize_base_url(self.config.base_url)

    def _headers(self) -> dict[str, str]:
        if not self.config.api_key:
            raise AuthError(
                f"{self.config.api_key_env} environment variable not set",
                provider=self.name.value,
            )
        return {"Authorization": f"Bearer {self.config.api_key}"}

    def _chat(
        self,
        messages: list[dict[str, Any]],
        *,
        model: str | None = None,
        json_mode: bool = True,
        max_tokens: int | None = None,
    ) -> str:
        payload: dict[str, Any] = {
            "model": model or self.config.text_model,
            "messages": messages,
            "temperature": self.config.temperature,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}
        tokens = max_tokens or self.config.max_tokens
        if tokens:
            payload["max_tokens"] = tokens

        data = self.client.post_json(f"{self.base_url}/chat/completions", payload, self._headers())
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise MalformedResponse("Unexpected chat completion format", provider=self.name.value) from e
        if not isinstance(content, str):
            raise MalformedResponse("Chat completion content must be text", provider=self.name.value)
        return content

    def _chat_json(self, user_prompt: str) -> Any:
        messages = [
            {"role": "system", "content": prompts.SYSTEM_PROMPT},
            {"role": "user", "content": user_prompt},
        ]
        return parse_json_content(self._chat(messages), provider=self.name.value)

    def analyze_content(self, text: str, conference: str | None = None) -> AnalysisResult:
        log.debug("openai: analyzing content (%d chars)", len(text))
        return parse_analysis(self._chat_json(prompts.analysis_prompt(text, conference)))

    def suggest_abstract_type(
        self,
        text: str,
        categories: Sequence[Category],
        keywords: Sequence[str],
        conference: str | None = None,
    ) -> tuple[AbstractTypeSuggestion, ...]:
        prompt = prompts.type_suggestion_prompt(text, categories, keywords, conference)
        return parse_type_suggestions(self._chat_json(prompt))

    def generate_final_abstract(
        self,
        text: str,
        abstract_type: str,
        categories: Sequence[Category],
        keywords: Sequence[str],
        conference: str | None = None,
    ) -> AbstractData:
        prompt = prompts.final_abstract_prompt(text, abstract_type, categories, keywords, conference)
        data = parse_abstract(self._chat_json(prompt))
        return AbstractData(
            impact=data.impact,
            synopsis=data.synopsis,
            keywords=data.keywords,
            abstract=data.abstract,
            categories=tuple(categories),
        )

    def generate_creative_abstract(self, core_idea: str, conference: str | None = None) -> AbstractData:
        return parse_abstract(self._chat_json(prompts.creative_abstract_prompt(core_idea, conference)))

    def generate_image(
        self,
        specs: str,
        context: str = "",
        image: bytes | None = None,
        mime_type: str = "image/png",
    ) -> ImageResult:
        """Generate an image via ``/images/generations``.

        With a source image, a vision model first describes it and the
        description seeds the generation prompt.
        """
        if image:
            encoded = base64.b64encode(image).decode("ascii")
            messages = [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompts.image_description_prompt(specs)},
                        {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{encoded}"}},
                    ],
                }
            ]
            log.debug("openai: describing source image with %s", self.config.vision_model)
            description = self._chat(messages, model=self.config.vision_model, json_mode=False, max_tokens=500)
            if not description.strip():
                raise MalformedResponse("Vision model returned no description", provider=self.name.value)
            prompt = prompts.image_from_description_prompt(description.strip(), specs)
        else:
            prompt = prompts.image_prompt(specs, context)

        payload = {
            "model": self.config.image_model,
            "prompt": prompt,
            "n": 1,
            "size": "1024x1024",
            "response_format": "b64_json",
        }
        data = self.client.post_json(f"{self.base_url}/images/generations", payload, self._headers())
        try:
            b64 = data["data"][0]["b64_json"]
            return ImageResult(data=base64.b64decode(b64, validate=True), mime_type="image/png")
        except (KeyError, IndexError, TypeError, binascii.Error) as e:
            raise MalformedResponse("No image data received from API", provider=self.name.value) from e
