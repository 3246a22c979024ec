"""Heuristic analysis and abstract drafting used when no provider is reachable."""

from __future__ import annotations

import re
from collections import Counter

from SciNecromancer.core.models import AbstractData, AnalysisResult, Category

_NON_WORD_RE = re.compile(r"[^\w\s]")
_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")

DOMAIN_TERMS: dict[str, tuple[str, ...]] = {
    "imaging": ("mri", "scan", "image", "imaging", "contrast", "signal"),
    "clinical": ("patient", "clinical", "diagnosis", "treatment", "therapy"),
    "research": ("study", "analysis", "research", "method", "results"),
    "technical": ("sequence", "protocol", "parameter", "acquisition"),
}


def extract_keywords(text: str, limit: int = 10) -> list[str]:
    """Most frequent words longer than three characters, first-seen order on ties."""
    words = [w for w in _NON_WORD_RE.sub(" ", text.lower()).split() if len(w) > 3]
    return [word for word, _ in Counter(words).most_common(limit)]


def analyze_content_offline(text: str) -> AnalysisResult:
    """Word-frequency keywords plus coarse domain categories."""
    keywords = extract_keywords(text)
    categories = []
    for name, terms in DOMAIN_TERMS.items():
        matches = sum(1 for term in terms if any(term in keyword for keyword in keywords))
        if matches:
            categories.append(Category(name=name, type="main", probability=min(matches / len(terms), 1.0)))
    return AnalysisResult(categories=tuple(categories), keywords=tuple(keywords))


def generate_basic_abstract_offline(text: str) -> AbstractData:
    """Draft impact and synopsis from the leading sentences of ``text``.

    Impact takes the first two sentences, synopsis the next three; sentences
    of ten characters or fewer are ignored.
    """
    sentences = [s.strip() for s in _SENTENCE_SPLIT_RE.split(text)]
    sentences = [s for s in sentences if len(s) > 10]
    impact = ". ".join(sentences[:2]).strip()
    synopsis = ". ".join(sentences[2:5]).strip()
    return AbstractData(
        impact=f"{impact}." if impact else "Impact statement generated offline with limited functionality.",
        synopsis=f"{synopsis}." if synopsis else "Synopsis generated offline with limited functionality.",
        keywords=tuple(extract_keywords(text, limit=5)),
    )
