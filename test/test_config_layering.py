"""Tests for layered config parsing and validation."""

import os
import sys
import tempfile
import unittest
from copy import deepcopy
from pathlib import Path
from unittest.mock import patch

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT / "src"))

from SciNecromancer.config import apply_env_overrides, load_config_with_defaults, parse_config_dict
from SciNecromancer.core.models import ProviderName


def _base_raw_config() -> dict:
    return {
        "log": {"level": "INFO", "to_file": True, "dir": "log"},
        "error_log": {"max_entries": 100},
        "llm": {
            "primary": "google",
            "timeout": 30,
            "retry": {
                "max_attempts": 3,
                "base_delay": 1.0,
                "max_delay": 10.0,
                "backoff_factor": 2.0,
                "jitter": 1.0,
            },
            "fallback_max_attempts": 2,
            "providers": {
                "google": {
                    "base_url": "https://generativelanguage.googleapis.com/v1beta",
                    "api_key_env": "GOOGLE_API_KEY",
                    "text_model": "gemini-2.5-flash",
                    "image_model": "gemini-2.5-flash-image",
                },
                "openai": {
                    "base_url": "https://api.openai.com/v1",
                    "api_key_env": "OPENAI_API_KEY",
                    "text_model": "gpt-4o",
                    "image_model": "dall-e-3",
                },
            },
        },
        "storage": {"db_path": "database/abstracts.db", "capacity_mb": 5},
        "remote": {
            "enabled": False,
            "url": "",
            "api_key_env": "SUPABASE_API_KEY",
            "user_id": None,
        },
        "sync": {"conflict_window_seconds": 0, "auto_drain": True},
    }


class TestConfigLayering(unittest.TestCase):
    def test_base_config_parses(self) -> None:
        with patch.dict(os.environ, {"GOOGLE_API_KEY": "g-key"}, clear=True):
            cfg = parse_config_dict(_base_raw_config())

        self.assertIs(cfg.llm.primary, ProviderName.GOOGLE)
        self.assertIs(cfg.llm.secondary, ProviderName.OPENAI)
        self.assertEqual(cfg.llm.providers[ProviderName.GOOGLE].api_key, "g-key")
        self.assertEqual(cfg.llm.providers[ProviderName.OPENAI].api_key, "")
        self.assertEqual(cfg.llm.providers[ProviderName.OPENAI].vision_model, "gpt-4o")
        self.assertFalse(cfg.remote.enabled)
        self.assertEqual(cfg.storage.capacity_mb, 5.0)
        self.assertEqual(cfg.runtime.error_log_max_entries, 100)

    def test_log_level_normalized(self) -> None:
        raw = _base_raw_config()
        raw["log"]["level"] = "debug"
        self.assertEqual(parse_config_dict(raw).runtime.level, "DEBUG")

    def test_log_level_unknown(self) -> None:
        raw = _base_raw_config()
        raw["log"]["level"] = "LOUD"
        with self.assertRaisesRegex(ValueError, "log\\.level"):
            parse_config_dict(raw)

    def test_missing_storage_section(self) -> None:
        raw = _base_raw_config()
        del raw["storage"]
        with self.assertRaisesRegex(ValueError, "storage"):
            parse_config_dict(raw)

    def test_unknown_primary_provider(self) -> None:
        raw = _base_raw_config()
        raw["llm"]["primary"] = "anthropic"
        with self.assertRaisesRegex(ValueError, "llm\\.primary"):
            parse_config_dict(raw)

    def test_primary_provider_case_insensitive(self) -> None:
        raw = _base_raw_config()
        raw["llm"]["primary"] = "OpenAI"
        cfg = parse_config_dict(raw)
        self.assertIs(cfg.llm.primary, ProviderName.OPENAI)
        self.assertIs(cfg.llm.secondary, ProviderName.GOOGLE)

    def test_missing_provider_section_uses_defaults(self) -> None:
        raw = _base_raw_config()
        del raw["llm"]["providers"]["openai"]
        raw["llm"]["providers"]["openai"] = {"text_model": "gpt-4o-mini"}
        with patch.dict(os.environ, {"OPENAI_API_KEY": "o-key"}, clear=True):
            cfg = parse_config_dict(raw)
        openai = cfg.llm.providers[ProviderName.OPENAI]
        self.assertEqual(openai.base_url, "https://api.openai.com/v1")
        self.assertEqual(openai.api_key, "o-key")
        self.assertEqual(openai.image_model, "gpt-4o-mini")

    def test_timeout_type_error_contains_key(self) -> None:
        raw = _base_raw_config()
        raw["llm"]["timeout"] = "30"
        with self.assertRaisesRegex(TypeError, "llm\\.timeout"):
            parse_config_dict(raw)

    def test_temperature_range(self) -> None:
        raw = _base_raw_config()
        raw["llm"]["providers"]["google"]["temperature"] = 2.5
        with self.assertRaisesRegex(ValueError, "llm\\.providers\\.google\\.temperature"):
            parse_config_dict(raw)

    def test_retry_max_delay_below_base(self) -> None:
        raw = _base_raw_config()
        raw["llm"]["retry"]["max_delay"] = 0.5
        with self.assertRaisesRegex(ValueError, "llm\\.retry\\.max_delay"):
            parse_config_dict(raw)

    def test_retry_backoff_below_one(self) -> None:
        raw = _base_raw_config()
        raw["llm"]["retry"]["backoff_factor"] = 0.5
        with self.assertRaisesRegex(ValueError, "llm\\.retry\\.backoff_factor"):
            parse_config_dict(raw)

    def test_fallback_budget_exceeds_retry_budget(self) -> None:
        raw = _base_raw_config()
        raw["llm"]["fallback_max_attempts"] = 5
        with self.assertRaisesRegex(ValueError, "llm\\.fallback_max_attempts"):
            parse_config_dict(raw)

    def test_remote_enabled_requires_user_id(self) -> None:
        raw = _base_raw_config()
        raw["remote"]["enabled"] = True
        raw["remote"]["url"] = "https://project.supabase.co"
        with patch.dict(os.environ, {"SUPABASE_API_KEY": "s-key"}, clear=True):
            with self.assertRaisesRegex(ValueError, "remote\\.user_id"):
                parse_config_dict(raw)

    def test_remote_enabled_requires_url(self) -> None:
        raw = _base_raw_config()
        raw["remote"]["enabled"] = True
        raw["remote"]["user_id"] = "user-1"
        with patch.dict(os.environ, {"SUPABASE_API_KEY": "s-key"}, clear=True):
            with self.assertRaisesRegex(ValueError, "remote\\.url"):
                parse_config_dict(raw)

    def test_remote_enabled_missing_api_key_env_error(self) -> None:
        raw = _base_raw_config()
        raw["remote"].update(enabled=True, url="https://project.supabase.co", user_id="user-1")
        with patch.dict(os.environ, {}, clear=True):
            with self.assertRaisesRegex(
                ValueError, "Remote store enabled but SUPABASE_API_KEY environment variable not set"
            ):
                parse_config_dict(raw)

    def test_remote_enabled_complete(self) -> None:
        raw = _base_raw_config()
        raw["remote"].update(enabled=True, url="https://project.supabase.co", user_id="user-1")
        with patch.dict(os.environ, {"SUPABASE_API_KEY": "s-key"}, clear=True):
            cfg = parse_config_dict(raw)
        self.assertTrue(cfg.remote.enabled)
        self.assertEqual(cfg.remote.api_key, "s-key")
        self.assertEqual(cfg.remote.table, "abstracts")

    def test_negative_conflict_window(self) -> None:
        raw = _base_raw_config()
        raw["sync"]["conflict_window_seconds"] = -1
        with self.assertRaisesRegex(ValueError, "sync\\.conflict_window_seconds"):
            parse_config_dict(raw)

    def test_missing_sync_section_uses_defaults(self) -> None:
        raw = deepcopy(_base_raw_config())
        del raw["sync"]
        cfg = parse_config_dict(raw)
        self.assertEqual(cfg.sync.conflict_window_seconds, 0.0)
        self.assertTrue(cfg.sync.auto_drain)

    def test_base_url_trailing_slash_dropped(self) -> None:
        raw = _base_raw_config()
        raw["llm"]["providers"]["openai"]["base_url"] = "https://llm.example.org/v1/"
        cfg = parse_config_dict(raw)
        self.assertEqual(cfg.llm.providers[ProviderName.OPENAI].base_url, "https://llm.example.org/v1")

    def test_base_url_requires_http_scheme(self) -> None:
        raw = _base_raw_config()
        raw["llm"]["providers"]["google"]["base_url"] = "generativelanguage.googleapis.com"
        with self.assertRaisesRegex(ValueError, "llm\\.providers\\.google\\.base_url"):
            parse_config_dict(raw)

    def test_remote_url_requires_http_scheme(self) -> None:
        raw = _base_raw_config()
        raw["remote"].update(enabled=True, url="ftp://project.supabase.co", user_id="user-1")
        with patch.dict(os.environ, {"SUPABASE_API_KEY": "s-key"}, clear=True):
            with self.assertRaisesRegex(ValueError, "remote\\.url must be an http"):
                parse_config_dict(raw)


class TestConfigOverride(unittest.TestCase):
    def _write(self, tmp: str, name: str, text: str) -> Path:
        path = Path(tmp) / name
        path.write_text(text, encoding="utf-8")
        return path

    def test_override_merges_with_defaults(self) -> None:
        override_yaml = """
log:
  level: DEBUG

llm:
  primary: openai
  retry:
    max_attempts: 5
"""
        with tempfile.TemporaryDirectory() as tmp:
            defaults = self._write(tmp, "default.yml", (REPO_ROOT / "config" / "default.yml").read_text("utf-8"))
            override = self._write(tmp, "override.yml", override_yaml)

            cfg = load_config_with_defaults(override, default_path=defaults)

        self.assertEqual(cfg.runtime.level, "DEBUG")
        self.assertTrue(cfg.runtime.to_file)
        self.assertIs(cfg.llm.primary, ProviderName.OPENAI)
        self.assertEqual(cfg.llm.retry.max_attempts, 5)
        self.assertEqual(cfg.llm.retry.base_delay, 1.0)
        self.assertEqual(cfg.llm.providers[ProviderName.GOOGLE].text_model, "gemini-2.5-flash")

    def test_empty_override_uses_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            defaults = self._write(tmp, "default.yml", (REPO_ROOT / "config" / "default.yml").read_text("utf-8"))
            override = self._write(tmp, "override.yml", "{}")

            cfg = load_config_with_defaults(override, default_path=defaults)

        self.assertEqual(cfg.runtime.level, "INFO")
        self.assertIs(cfg.llm.primary, ProviderName.GOOGLE)
        self.assertEqual(cfg.storage.db_path, "database/abstracts.db")
        self.assertFalse(cfg.remote.enabled)

    def test_environment_overrides_yaml(self) -> None:
        environ = {
            "SCINECROMANCER_PRIMARY_PROVIDER": "OpenAI",
            "SCINECROMANCER_LOG_LEVEL": "debug",
            "SCINECROMANCER_DB_PATH": "/data/abstracts.db",
            "SCINECROMANCER_USER_ID": "  ",
        }
        with tempfile.TemporaryDirectory() as tmp:
            defaults = self._write(tmp, "default.yml", (REPO_ROOT / "config" / "default.yml").read_text("utf-8"))
            override = self._write(tmp, "override.yml", "llm:\n  primary: google\n")

            cfg = load_config_with_defaults(override, default_path=defaults, environ=environ)

        self.assertIs(cfg.llm.primary, ProviderName.OPENAI)
        self.assertEqual(cfg.runtime.level, "DEBUG")
        self.assertEqual(cfg.storage.db_path, "/data/abstracts.db")
        self.assertIsNone(cfg.remote.user_id)

    def test_env_override_values(self) -> None:
        raw = {"remote": {"enabled": False, "table": "abstracts"}}
        environ = {"SCINECROMANCER_REMOTE_ENABLED": "TRUE", "SCINECROMANCER_USER_ID": "42"}

        merged = apply_env_overrides(raw, environ)

        self.assertEqual(merged["remote"], {"enabled": True, "table": "abstracts", "user_id": "42"})
        self.assertFalse(raw["remote"]["enabled"])


if __name__ == "__main__":
    unittest.main()
