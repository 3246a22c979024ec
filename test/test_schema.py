"""Tests for strict provider payload validation."""

from __future__ import annotations

import sys
import unittest
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT / "src"))

from SciNecromancer.core.errors import MalformedResponse
from SciNecromancer.llm.schema import parse_abstract, parse_analysis, parse_type_suggestions


class TestParseAnalysis(unittest.TestCase):
    def test_valid_payload(self) -> None:
        result = parse_analysis(
            {
                "categories": [{"name": "Cardiac", "type": "MAIN", "probability": 0.95}],
                "keywords": ["strain", "CMR"],
            }
        )
        self.assertEqual(result.categories[0].type, "main")
        self.assertEqual(result.keywords, ("strain", "CMR"))

    def test_invalid_payloads(self) -> None:
        cases = {
            "not an object": ["categories"],
            "missing keywords": {"categories": []},
            "bad category type": {
                "categories": [{"name": "x", "type": "tertiary", "probability": 0.5}],
                "keywords": [],
            },
            "probability out of range": {
                "categories": [{"name": "x", "type": "main", "probability": 150}],
                "keywords": [],
            },
            "boolean probability": {
                "categories": [{"name": "x", "type": "main", "probability": True}],
                "keywords": [],
            },
            "keyword not string": {"categories": [], "keywords": [1]},
        }
        for label, payload in cases.items():
            with self.subTest(case=label):
                with self.assertRaises(MalformedResponse):
                    parse_analysis(payload)


class TestParseTypeSuggestions(unittest.TestCase):
    def test_threshold_and_order(self) -> None:
        result = parse_type_suggestions(
            [
                {"type": "A", "probability": 0.3},
                {"type": "B", "probability": 0.29},
                {"type": "C", "probability": 0.9},
            ]
        )
        self.assertEqual([s.type for s in result], ["C", "A"])

    def test_wrapped_list(self) -> None:
        result = parse_type_suggestions({"suggestions": [{"type": "A", "probability": 55}]})
        self.assertAlmostEqual(result[0].probability, 0.55)

    def test_missing_wrapper_key(self) -> None:
        with self.assertRaises(MalformedResponse):
            parse_type_suggestions({"types": []})


class TestParseAbstract(unittest.TestCase):
    def test_body_required_by_default(self) -> None:
        payload = {"impact": "I", "synopsis": "S", "keywords": []}
        with self.assertRaises(MalformedResponse):
            parse_abstract(payload)
        self.assertIsNone(parse_abstract(payload, require_body=False).abstract)

    def test_fields_are_stripped(self) -> None:
        result = parse_abstract({"impact": " I ", "synopsis": "S\n", "keywords": ["k"], "abstract": " B "})
        self.assertEqual((result.impact, result.synopsis, result.abstract), ("I", "S", "B"))


if __name__ == "__main__":
    unittest.main()
