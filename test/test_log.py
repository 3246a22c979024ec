"""Tests for logger setup: per-action log files, subsystem tags and key masking."""

from __future__ import annotations

import sys
import tempfile
import unittest
from datetime import datetime
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT / "src"))

from SciNecromancer.utils.log import configure_logging, get_logger, log, log_file_path, mask_credentials


class TestLogFilePath(unittest.TestCase):
    def test_actions_grouped_by_family(self) -> None:
        now = datetime(2025, 3, 1, 9, 30, 15)
        self.assertEqual(log_file_path("log", "sync-drain", now), Path("log/sync/sync-drain_0301093015.log"))
        self.assertEqual(log_file_path("log", "analyze", now), Path("log/analyze/analyze_0301093015.log"))


class TestMaskCredentials(unittest.TestCase):
    def test_masks_query_key_and_bearer_token(self) -> None:
        text = (
            "POST https://generativelanguage.googleapis.com/v1beta/models/x:generate?key=AIzaSyD-secret "
            "Authorization: Bearer sk-abcdefghijkl"
        )

        masked = mask_credentials(text)

        self.assertNotIn("AIzaSyD-secret", masked)
        self.assertNotIn("abcdefghijkl", masked)
        self.assertIn("?key=***", masked)
        self.assertIn("Bearer ***", masked)

    def test_plain_text_unchanged(self) -> None:
        self.assertEqual(mask_credentials("Drain finished: synced=2"), "Drain finished: synced=2")


class TestConfigureLogging(unittest.TestCase):
    def setUp(self) -> None:
        self._tmpdir = tempfile.TemporaryDirectory()

    def tearDown(self) -> None:
        for handler in log.handlers:
            handler.close()
        log.handlers.clear()
        self._tmpdir.cleanup()

    def test_file_records_scope_and_masks_keys(self) -> None:
        path = configure_logging(level="WARNING", action="sync-drain", log_dir=self._tmpdir.name)

        get_logger("sync").debug("Pushing %s", "abstract_1")
        get_logger("llm").warning("Request failed: %s", "https://x.test/v1?key=AIzaSyD-secret")
        for handler in log.handlers:
            handler.flush()

        self.assertIsNotNone(path)
        self.assertEqual(path.parent, Path(self._tmpdir.name) / "sync")
        text = path.read_text(encoding="utf-8")
        self.assertIn("[DEBG] sync: Pushing abstract_1", text)
        self.assertIn("[WARN] llm: Request failed: https://x.test/v1?key=***", text)
        self.assertNotIn("AIzaSyD-secret", text)

    def test_console_only(self) -> None:
        self.assertIsNone(configure_logging(action="sync-status", log_to_file=False))
        self.assertEqual(len(log.handlers), 1)


if __name__ == "__main__":
    unittest.main()
