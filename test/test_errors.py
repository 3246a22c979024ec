"""Tests for failure classification."""

from __future__ import annotations

import sys
import unittest
from pathlib import Path

import requests

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT / "src"))

from SciNecromancer.core.errors import (
    AuthError,
    MalformedResponse,
    NetworkError,
    RateLimited,
    RetryExhausted,
    ValidationError,
    classify_error,
    describe,
    failure_from_status,
    is_retryable,
)


class TestFailureFromStatus(unittest.TestCase):
    def test_status_mapping(self) -> None:
        cases = {
            429: RateLimited,
            401: AuthError,
            403: AuthError,
            400: ValidationError,
            404: ValidationError,
            500: NetworkError,
            503: NetworkError,
        }
        for status, expected in cases.items():
            with self.subTest(status=status):
                failure = failure_from_status(status, "", provider="openai")
                self.assertIsInstance(failure, expected)
                self.assertEqual(failure.status, status)
                self.assertEqual(failure.provider, "openai")

    def test_quota_message_in_body_is_rate_limit(self) -> None:
        failure = failure_from_status(400, '{"error": "Quota exceeded for this project"}')
        self.assertIsInstance(failure, RateLimited)
        self.assertTrue(failure.retryable)

    def test_retryable_flags(self) -> None:
        self.assertTrue(is_retryable(NetworkError("x")))
        self.assertTrue(is_retryable(RateLimited("x")))
        self.assertFalse(is_retryable(AuthError("x")))
        self.assertFalse(is_retryable(ValidationError("x")))
        self.assertFalse(is_retryable(MalformedResponse("x")))


class TestClassifyError(unittest.TestCase):
    def test_failures_pass_through(self) -> None:
        error = AuthError("bad key")
        self.assertIs(classify_error(error), error)

    def test_requests_transport_errors(self) -> None:
        self.assertIsInstance(classify_error(requests.ConnectionError("refused")), NetworkError)
        self.assertIsInstance(classify_error(requests.Timeout("slow")), NetworkError)

    def test_message_heuristics(self) -> None:
        self.assertIsInstance(classify_error(RuntimeError("Too Many Requests")), RateLimited)
        self.assertIsInstance(classify_error(RuntimeError("connection reset by peer")), NetworkError)
        self.assertIsInstance(classify_error(RuntimeError("something odd")), ValidationError)

    def test_retry_exhausted_mirrors_last_error(self) -> None:
        exhausted = RetryExhausted(RateLimited("HTTP 429", provider="google"), 3, context="google analyze")
        self.assertEqual(exhausted.code, "RATE_LIMITED")
        self.assertTrue(exhausted.retryable)
        self.assertEqual(exhausted.provider, "google")
        self.assertIn("after 3 attempts", exhausted.message)
        self.assertEqual(describe(exhausted)["attempts"], 3)


if __name__ == "__main__":
    unittest.main()
