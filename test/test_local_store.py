"""Tests for the SQLite local record store and the pending sync queue."""

from __future__ import annotations

import sys
import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT / "src"))

from SciNecromancer.core.errors import RecordNotFoundError, RecordValidationError
from SciNecromancer.core.models import AbstractData, AbstractDraft, Category, GenerationParameters, SyncState
from SciNecromancer.storage.db import DatabaseManager
from SciNecromancer.storage.local import EXPORT_VERSION, LocalRecordStore, generate_record_id
from SciNecromancer.storage.queue import PendingSyncQueue

T0 = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)


class _Clock:
    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 1.0) -> None:
        self.now += timedelta(seconds=seconds)


def _draft(title: str = "Fast cardiac T1 mapping", **overrides) -> AbstractDraft:
    values = dict(
        title=title,
        conference="ISMRM",
        abstract_type="Standard Abstract",
        content=AbstractData(impact="Shorter scans.", synopsis="We propose a method.", keywords=("T1", "cardiac")),
        source_text="Full research text.",
        categories=(Category("Cardiovascular", "main", 0.9),),
        keywords=("T1 mapping",),
        parameters=GenerationParameters(provider="google", model="gemini-2.5-flash", temperature=0.7),
    )
    values.update(overrides)
    return AbstractDraft(**values)


class _StoreTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmpdir = tempfile.TemporaryDirectory()
        self.manager = DatabaseManager(Path(self._tmpdir.name) / "abstracts.db")
        self.clock = _Clock()
        self.store = LocalRecordStore(self.manager, capacity_mb=1, clock=self.clock)

    def tearDown(self) -> None:
        self.manager.close()
        self._tmpdir.cleanup()


class TestRecordId(unittest.TestCase):
    def test_format(self) -> None:
        record_id = generate_record_id(T0)
        prefix, millis, suffix = record_id.split("_")
        self.assertEqual(prefix, "abstract")
        self.assertEqual(int(millis), int(T0.timestamp() * 1000))
        self.assertEqual(len(suffix), 9)
        self.assertTrue(suffix.isalnum() and suffix == suffix.lower())


class TestLocalRecordStore(_StoreTestCase):
    def test_save_then_load_round_trip(self) -> None:
        saved = self.store.save(_draft())

        loaded = self.store.load(saved.id)

        self.assertEqual(loaded, saved)
        self.assertEqual(saved.created_at, T0)
        self.assertEqual(saved.updated_at, T0)
        self.assertIs(saved.sync_state, SyncState.LOCAL)
        self.assertEqual(loaded.parameters.model, "gemini-2.5-flash")

    def test_save_rejects_missing_fields(self) -> None:
        with self.assertRaises(RecordValidationError) as ctx:
            self.store.save(_draft(title="  ", source_text=""))
        self.assertIn("title", str(ctx.exception))
        self.assertIn("source_text", str(ctx.exception))
        self.assertEqual(self.store.list(), [])

    def test_save_rejects_empty_content(self) -> None:
        with self.assertRaises(RecordValidationError):
            self.store.save(_draft(content=AbstractData(impact="", synopsis="")))

    def test_load_missing_returns_none(self) -> None:
        self.assertIsNone(self.store.load("abstract_0_missing"))

    def test_list_orders_by_updated_desc(self) -> None:
        first = self.store.save(_draft("first"))
        self.clock.advance()
        second = self.store.save(_draft("second"))
        self.clock.advance()
        self.store.update(first.id, {"title": "first, edited"})

        titles = [r.title for r in self.store.list()]

        self.assertEqual(titles, ["first, edited", "second"])
        self.assertNotEqual(first.id, second.id)

    def test_list_filters_by_user(self) -> None:
        self.store.save(_draft("mine", user_id="u1"))
        self.store.save(_draft("theirs", user_id="u2"))
        self.assertEqual([r.title for r in self.store.list("u1")], ["mine"])

    def test_update_bumps_timestamp_and_marks_local(self) -> None:
        saved = self.store.save(_draft())
        self.store.set_sync_state(saved.id, SyncState.SYNCED)
        self.clock.advance(5)

        updated = self.store.update(
            saved.id,
            {"content": {"impact": "New impact", "synopsis": "New synopsis", "keywords": []}, "keywords": ["x"]},
        )

        self.assertEqual(updated.updated_at, T0 + timedelta(seconds=5))
        self.assertEqual(updated.created_at, T0)
        self.assertEqual(updated.content.impact, "New impact")
        self.assertEqual(updated.keywords, ("x",))
        self.assertIs(updated.sync_state, SyncState.LOCAL)
        self.assertEqual(self.store.load(saved.id), updated)

    def test_update_never_moves_before_creation(self) -> None:
        saved = self.store.save(_draft())
        self.clock.now = T0 - timedelta(hours=1)
        updated = self.store.update(saved.id, {"title": "clock skew"})
        self.assertEqual(updated.updated_at, saved.created_at)

    def test_update_rejects_unknown_and_blank_fields(self) -> None:
        saved = self.store.save(_draft())
        with self.assertRaises(RecordValidationError):
            self.store.update(saved.id, {"created_at": "2020-01-01"})
        with self.assertRaises(RecordValidationError):
            self.store.update(saved.id, {"title": ""})

    def test_update_missing_raises(self) -> None:
        with self.assertRaises(RecordNotFoundError):
            self.store.update("nope", {"title": "x"})

    def test_delete(self) -> None:
        saved = self.store.save(_draft())
        self.store.delete(saved.id)
        self.assertIsNone(self.store.load(saved.id))
        with self.assertRaises(RecordNotFoundError):
            self.store.delete(saved.id)

    def test_rename_keeps_content(self) -> None:
        saved = self.store.save(_draft())
        renamed = self.store.rename(saved.id, "remote-1")
        self.assertIsNone(self.store.load(saved.id))
        self.assertTrue(renamed.same_content(saved))
        self.assertEqual(renamed.id, "remote-1")

    def test_search_matches_title_content_and_keywords(self) -> None:
        self.store.save(_draft("Cardiac mapping"))
        self.store.save(_draft("Brain diffusion", keywords=("tractography",), content=AbstractData("a", "b")))
        self.assertEqual([r.title for r in self.store.search("CARDIAC")], ["Cardiac mapping"])
        self.assertEqual([r.title for r in self.store.search("tracto")], ["Brain diffusion"])
        self.assertEqual(len(self.store.search("")), 2)

    def test_sync_state_counts(self) -> None:
        first = self.store.save(_draft())
        self.store.save(_draft())
        self.store.set_sync_state(first.id, SyncState.CONFLICT)
        self.assertEqual(self.store.count_by_state(SyncState.CONFLICT), 1)
        self.assertEqual(self.store.count_by_state(SyncState.LOCAL), 1)

    def test_storage_info_reports_usage(self) -> None:
        empty = self.store.storage_info()
        self.assertEqual(empty.used, 0)
        self.assertEqual(empty.total, 1024 * 1024)
        self.store.save(_draft())
        info = self.store.storage_info()
        self.assertGreater(info.used, 0)
        self.assertEqual(info.used + info.available, info.total)

    def test_metadata(self) -> None:
        self.assertIsNone(self.store.get_metadata().last_sync)
        self.store.mark_synced_now()
        self.assertEqual(self.store.get_metadata().last_sync, T0)


class TestExportImport(_StoreTestCase):
    def test_export_then_import_into_empty_store(self) -> None:
        first = self.store.save(_draft("one"))
        self.clock.advance()
        second = self.store.save(_draft("two"))
        snapshot = self.store.export_data()

        self.assertEqual(snapshot["version"], EXPORT_VERSION)
        self.assertEqual(snapshot["metadata"]["total_abstracts"], 2)
        self.assertIsNotNone(self.store.get_metadata().last_backup)

        other_dir = tempfile.TemporaryDirectory()
        self.addCleanup(other_dir.cleanup)
        other_manager = DatabaseManager(Path(other_dir.name) / "other.db")
        self.addCleanup(other_manager.close)
        other = LocalRecordStore(other_manager)
        imported = other.import_data(snapshot)

        self.assertEqual(len(imported), 2)
        self.assertEqual(other.load(first.id), first)
        self.assertEqual(other.load(second.id), second)

    def test_import_upserts_without_duplicates(self) -> None:
        self.store.save(_draft())
        snapshot = self.store.export_data()
        self.store.import_data(snapshot)
        self.store.import_data(snapshot)
        self.assertEqual(len(self.store.list()), 1)

    def test_invalid_snapshot_writes_nothing(self) -> None:
        good = self.store.save(_draft())
        snapshot = self.store.export_data()
        self.store.delete(good.id)
        snapshot["abstracts"].append({"id": "broken"})
        with self.assertRaises(RecordValidationError):
            self.store.import_data(snapshot)
        self.assertEqual(self.store.list(), [])
        with self.assertRaises(RecordValidationError):
            self.store.import_data({"items": []})


class TestPendingSyncQueue(_StoreTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.queue = PendingSyncQueue(self.manager, clock=self.clock)

    def test_enqueue_is_idempotent_and_ordered(self) -> None:
        self.queue.enqueue("a")
        self.queue.enqueue("b")
        self.queue.enqueue("a")
        self.assertEqual(self.queue.ids(), ["a", "b"])
        self.assertEqual(len(self.queue), 2)
        self.assertIn("a", self.queue)

    def test_dequeue(self) -> None:
        self.queue.enqueue("a")
        self.queue.dequeue("a")
        self.queue.dequeue("missing")
        self.assertEqual(self.queue.ids(), [])
        self.assertNotIn("a", self.queue)

    def test_rename_keeps_position(self) -> None:
        for record_id in ("a", "b", "c"):
            self.queue.enqueue(record_id)
        self.queue.rename("a", "a2")
        self.assertEqual(self.queue.ids(), ["a2", "b", "c"])

    def test_queue_survives_reopen(self) -> None:
        self.queue.enqueue("a")
        db_path = self.manager.db_path
        self.manager.close()
        self.manager = DatabaseManager(db_path)
        self.assertEqual(PendingSyncQueue(self.manager).ids(), ["a"])


if __name__ == "__main__":
    unittest.main()
