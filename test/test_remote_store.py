"""Tests for the PostgREST-backed remote record store."""

from __future__ import annotations

import sys
import unittest
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import Mock, patch

import requests

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT / "src"))

from SciNecromancer.config.remote import RemoteConfig
from SciNecromancer.core.models import AbstractData, AbstractRecord, SyncState
from SciNecromancer.storage.remote import RemoteRecordStore, record_to_remote_row, remote_row_to_record

T0 = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)


def _config() -> RemoteConfig:
    return RemoteConfig(
        enabled=True,
        url="https://project.supabase.co/",
        api_key_env="SUPABASE_API_KEY",
        api_key="anon-key",
        user_id="user-1",
    )


def _record(record_id: str = "abstract_1_abc") -> AbstractRecord:
    return AbstractRecord(
        id=record_id,
        title="Title",
        conference="RSNA",
        abstract_type="RSNA Scientific Abstract",
        content=AbstractData(impact="I", synopsis="S"),
        source_text="Source",
        created_at=T0,
        updated_at=T0,
        user_id="user-1",
    )


def _response(status: int = 200, body=None) -> Mock:
    response = Mock()
    response.status_code = status
    response.content = b"" if body is None else b"x"
    response.text = "" if body is None else str(body)
    response.json.return_value = body
    return response


class TestRowMapping(unittest.TestCase):
    def test_remote_rows_are_synced_records(self) -> None:
        row = record_to_remote_row(_record())
        self.assertEqual(row["original_text"], "Source")
        self.assertEqual(row["abstract_data"]["impact"], "I")

        record = remote_row_to_record(row)

        self.assertIs(record.sync_state, SyncState.SYNCED)
        self.assertTrue(record.same_content(_record()))
        self.assertEqual(record.updated_at, T0)


@patch("SciNecromancer.storage.remote.requests.request")
class TestRemoteRecordStore(unittest.TestCase):
    def setUp(self) -> None:
        self.store = RemoteRecordStore(_config())

    def test_endpoint_and_auth_headers(self, mock_request) -> None:
        mock_request.return_value = _response(200, [])
        self.assertTrue(self.store.ping().ok)

        method, url = mock_request.call_args[0]
        kwargs = mock_request.call_args[1]
        self.assertEqual(method, "GET")
        self.assertEqual(url, "https://project.supabase.co/rest/v1/abstracts")
        self.assertEqual(kwargs["headers"]["apikey"], "anon-key")
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer anon-key")
        self.assertEqual(kwargs["timeout"], 10)

    def test_save_upserts_and_returns_stored_record(self, mock_request) -> None:
        stored = record_to_remote_row(_record("server-id"))
        mock_request.return_value = _response(201, [stored])

        result = self.store.save(_record())

        self.assertTrue(result.ok)
        self.assertEqual(result.value.id, "server-id")
        kwargs = mock_request.call_args[1]
        self.assertEqual(mock_request.call_args[0][0], "POST")
        self.assertEqual(kwargs["params"], {"on_conflict": "id"})
        self.assertIn("resolution=merge-duplicates", kwargs["headers"]["Prefer"])
        self.assertEqual(kwargs["json"]["id"], "abstract_1_abc")

    def test_save_without_representation_falls_back_to_input(self, mock_request) -> None:
        mock_request.return_value = _response(201, None)
        result = self.store.save(_record())
        self.assertEqual(result.value.id, "abstract_1_abc")
        self.assertIs(result.value.sync_state, SyncState.SYNCED)

    def test_load_scoped_to_user(self, mock_request) -> None:
        mock_request.return_value = _response(200, [record_to_remote_row(_record())])

        result = self.store.load("abstract_1_abc")

        self.assertEqual(result.value.id, "abstract_1_abc")
        params = mock_request.call_args[1]["params"]
        self.assertEqual(params["id"], "eq.abstract_1_abc")
        self.assertEqual(params["user_id"], "eq.user-1")

    def test_load_missing_is_ok_none(self, mock_request) -> None:
        mock_request.return_value = _response(200, [])
        result = self.store.load("nope")
        self.assertTrue(result.ok)
        self.assertIsNone(result.value)

    def test_list_orders_by_updated(self, mock_request) -> None:
        mock_request.return_value = _response(200, [record_to_remote_row(_record())])
        result = self.store.list()
        self.assertEqual(len(result.value), 1)
        self.assertEqual(mock_request.call_args[1]["params"]["order"], "updated_at.desc")

    def test_update_missing_row_is_failure(self, mock_request) -> None:
        mock_request.return_value = _response(200, [])
        result = self.store.update(_record())
        self.assertFalse(result.ok)
        self.assertEqual(mock_request.call_args[0][0], "PATCH")

    def test_delete(self, mock_request) -> None:
        mock_request.return_value = _response(204, None)
        self.assertTrue(self.store.delete("abstract_1_abc").ok)
        self.assertEqual(mock_request.call_args[0][0], "DELETE")

    def test_http_error_is_reported_not_raised(self, mock_request) -> None:
        mock_request.return_value = _response(500, {"message": "boom"})
        result = self.store.save(_record())
        self.assertFalse(result.ok)
        self.assertIn("HTTP 500", result.error)

    def test_transport_error_is_reported_not_raised(self, mock_request) -> None:
        mock_request.side_effect = requests.ConnectionError("unreachable")
        for result in (self.store.ping(), self.store.list(), self.store.delete("x")):
            self.assertFalse(result.ok)
            self.assertIn("unreachable", result.error)


if __name__ == "__main__":
    unittest.main()
