"""Tests for the offline analysis and drafting heuristics."""

from __future__ import annotations

import sys
import unittest
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT / "src"))

from SciNecromancer.llm.offline import (
    analyze_content_offline,
    extract_keywords,
    generate_basic_abstract_offline,
)

TEXT = (
    "We acquired cardiac MRI images from every patient. "
    "The imaging protocol used a modified sequence! "
    "Patient outcomes improved with imaging guidance. "
    "Short one. "
    "Results show faster acquisition? "
    "The clinical study enrolled forty patients. "
    "Further research is needed."
)


class TestExtractKeywords(unittest.TestCase):
    def test_frequency_order_and_length_filter(self) -> None:
        keywords = extract_keywords("Scan the scan, scan again. MRI mri data data.")
        self.assertEqual(keywords, ["scan", "data", "again"])

    def test_limit(self) -> None:
        self.assertEqual(len(extract_keywords(TEXT, limit=3)), 3)


class TestAnalyzeOffline(unittest.TestCase):
    def test_detects_domain_categories(self) -> None:
        result = analyze_content_offline(TEXT)

        names = {c.name for c in result.categories}
        self.assertIn("imaging", names)
        self.assertIn("clinical", names)
        for category in result.categories:
            self.assertEqual(category.type, "main")
            self.assertTrue(0 < category.probability <= 1)
        self.assertIn("imaging", result.keywords)

    def test_no_matches(self) -> None:
        result = analyze_content_offline("lorem ipsum dolor")
        self.assertEqual(result.categories, ())


class TestGenerateBasicAbstract(unittest.TestCase):
    def test_sentence_split(self) -> None:
        data = generate_basic_abstract_offline(TEXT)

        self.assertEqual(
            data.impact,
            "We acquired cardiac MRI images from every patient. The imaging protocol used a modified sequence.",
        )
        self.assertTrue(data.synopsis.startswith("Patient outcomes improved with imaging guidance. Results show"))
        self.assertTrue(data.synopsis.endswith("forty patients."))
        self.assertNotIn("Short one", data.synopsis)
        self.assertLessEqual(len(data.keywords), 5)

    def test_empty_text_uses_placeholders(self) -> None:
        data = generate_basic_abstract_offline("")
        self.assertIn("offline", data.impact)
        self.assertIn("offline", data.synopsis)
        self.assertEqual(data.keywords, ())


if __name__ == "__main__":
    unittest.main()
