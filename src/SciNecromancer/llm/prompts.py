"""Prompt builders shared by all providers.

Each builder returns the user prompt; the expected JSON shape is spelled out
so providers without native schema support return parseable output.
"""

from __future__ import annotations

from typing import Sequence

from SciNecromancer.core.models import ABSTRACT_TYPES, Category, Conference, all_abstract_types

SYSTEM_PROMPT = (
    "You are an expert scientific writing assistant for medical imaging and clinical research. "
    "Stay faithful to the source material and never invent results. "
    "Always answer with a single JSON object and nothing else."
)


def _format_categories(categories: Sequence[Category]) -> str:
    if not categories:
        return "none"
    return ", ".join(f"{c.name} ({c.type})" for c in categories)


def _format_keywords(keywords: Sequence[str]) -> str:
    return ", ".join(keywords) if keywords else "none"


def _conference_types(conference: str | None) -> tuple[str, ...]:
    if conference:
        try:
            return ABSTRACT_TYPES[Conference(conference.upper())]
        except ValueError:
            pass
    return all_abstract_types()


def analysis_prompt(text: str, conference: str | None = None) -> str:
    target = f" for submission to {conference}" if conference else ""
    return f"""Analyze the following research content{target}.
Identify its research categories (type is one of "main", "sub", "secondary")
with a probability between 0 and 1, and extract up to 10 keywords.

Return ONLY a JSON object with these exact keys:
{{"categories": [{{"name": "...", "type": "main", "probability": 0.9}}], "keywords": ["..."]}}

Content:
{text}"""


def type_suggestion_prompt(
    text: str,
    categories: Sequence[Category],
    keywords: Sequence[str],
    conference: str | None = None,
) -> str:
    options = ", ".join(f'"{t}"' for t in _conference_types(conference))
    return f"""Suggest which abstract types suit the research below.
Allowed types: {options}.
Categories: {_format_categories(categories)}
Keywords: {_format_keywords(keywords)}

Return ONLY a JSON object with this exact key:
{{"suggestions": [{{"type": "...", "probability": 0.8}}]}}

Content:
{text}"""


def final_abstract_prompt(
    text: str,
    abstract_type: str,
    categories: Sequence[Category],
    keywords: Sequence[str],
    conference: str | None = None,
) -> str:
    target = f" for {conference}" if conference else ""
    return f"""Write a "{abstract_type}"{target} from the research content below.
Categories: {_format_categories(categories)}
Keywords: {_format_keywords(keywords)}

Return ONLY a JSON object with these exact keys:
{{"abstract": "full structured abstract", "impact": "impact statement", "synopsis": "short synopsis", "keywords": ["..."]}}

Content:
{text}"""


def creative_abstract_prompt(core_idea: str, conference: str | None = None) -> str:
    target = f" suitable for {conference}" if conference else ""
    return f"""Develop the following core idea into a complete research abstract{target}.

Return ONLY a JSON object with these exact keys:
{{"abstract": "full structured abstract", "impact": "impact statement", "synopsis": "short synopsis", "keywords": ["..."]}}

Core idea:
{core_idea}"""


def image_prompt(specs: str, context: str) -> str:
    if context:
        return (
            f"Generate a scientific or medical imaging figure based on this context: {context}. "
            f"Specifications: {specs}. The image should be publication-quality."
        )
    return f"Generate a publication-quality scientific figure. Specifications: {specs}."


def image_edit_prompt(specs: str) -> str:
    return (
        "Optimize and edit this scientific/medical image based on the following specifications: "
        f"{specs}. Ensure the output is professional and clear for an academic publication."
    )


def image_description_prompt(specs: str) -> str:
    return (
        "Analyze this image and create a detailed description for regenerating an improved version. "
        f"Focus on: {specs}. Keep the scientific/medical context while implementing the requested "
        "improvements. Answer with the description only."
    )


def image_from_description_prompt(description: str, specs: str) -> str:
    return (
        f"{description}\n\nAdditional specifications: {specs}\n\n"
        "Create a professional, publication-quality scientific/medical image."
    )
