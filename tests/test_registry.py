"""
Tests for storage/locked_apps.py and core/registry.py.
"""

import json
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, str(Path(__file__).parent.parent))

from core.errors import StorageError
from core.registry import LockRegistry
from storage.locked_apps import LockedAppStore


class TestLockedAppStore(unittest.TestCase):
    """File-backed locked app set."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.data_file = Path(self.temp_dir.name) / "locked_apps.json"
        self.store = LockedAppStore(self.data_file)

    def tearDown(self):
        self.temp_dir.cleanup()

    def test_missing_file_is_empty(self):
        self.assertEqual(self.store.list_all(), [])
        self.assertFalse(self.data_file.exists())

    def test_insert_persists(self):
        self.assertTrue(self.store.insert("com.a"))
        with open(self.data_file) as f:
            self.assertEqual(json.load(f), {"locked_apps": ["com.a"]})

        reopened = LockedAppStore(self.data_file)
        self.assertEqual(reopened.list_all(), ["com.a"])

    def test_insert_is_idempotent(self):
        self.assertTrue(self.store.insert("com.a"))
        self.assertFalse(self.store.insert("com.a"))
        self.assertEqual(self.store.list_all(), ["com.a"])

    def test_insert_rejects_blank(self):
        with self.assertRaises(ValueError):
            self.store.insert("   ")

    def test_delete(self):
        self.store.insert("com.a")
        self.store.insert("com.b")
        self.assertTrue(self.store.delete("com.a"))
        self.assertFalse(self.store.delete("com.a"))
        self.assertEqual(self.store.list_all(), ["com.b"])

    def test_insert_and_delete_normalize_names(self):
        self.assertTrue(self.store.insert("  com.a "))
        self.assertFalse(self.store.insert("com.a"))
        self.assertTrue(self.store.delete(" com.a "))
        self.assertEqual(self.store.list_all(), [])

    def test_no_temp_files_left_behind(self):
        self.store.insert("com.a")
        self.store.insert("com.b")
        leftovers = list(Path(self.temp_dir.name).glob("*.tmp"))
        self.assertEqual(leftovers, [])

    def test_corrupt_json_raises_storage_error(self):
        self.data_file.write_text("{broken")
        with self.assertRaises(StorageError):
            self.store.list_all()

    def test_wrong_shape_raises_storage_error(self):
        self.data_file.write_text(json.dumps(["com.a"]))
        with self.assertRaises(StorageError):
            self.store.list_all()
        self.data_file.write_text(json.dumps({"locked_apps": [1, 2]}))
        with self.assertRaises(StorageError):
            self.store.list_all()

    def test_hand_edited_duplicates_and_blanks_are_dropped(self):
        self.data_file.write_text(json.dumps({"locked_apps": ["com.a", "", "com.a", "com.b"]}))
        self.assertEqual(self.store.list_all(), ["com.a", "com.b"])

    def test_write_failure_raises_storage_error(self):
        # Parent path is a regular file, so mkdir/mkstemp fail
        blocker = Path(self.temp_dir.name) / "blocker"
        blocker.write_text("")
        store = LockedAppStore(blocker / "locked_apps.json")
        with self.assertRaises(StorageError):
            store.insert("com.a")


class TestLockRegistry(unittest.TestCase):
    """Cached lookups over the store."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.data_file = Path(self.temp_dir.name) / "locked_apps.json"
        self.registry = LockRegistry(LockedAppStore(self.data_file))

    def tearDown(self):
        self.temp_dir.cleanup()

    def test_add_then_is_locked(self):
        self.assertFalse(self.registry.is_locked("com.a"))
        self.registry.add("com.a")
        self.assertTrue(self.registry.is_locked("com.a"))
        self.assertEqual(self.registry.list_locked(), frozenset({"com.a"}))

    def test_remove(self):
        self.registry.add("com.a")
        self.registry.remove("com.a")
        self.assertFalse(self.registry.is_locked("com.a"))

    def test_add_and_remove_are_idempotent(self):
        self.registry.add("com.a")
        self.registry.add("com.a")
        self.assertEqual(len(self.registry.list_locked()), 1)
        self.registry.remove("com.missing")
        self.assertEqual(self.registry.list_locked(), frozenset({"com.a"}))

    def test_sees_locks_added_by_another_process(self):
        """`lock` from the CLI reaches a running watcher without restart."""
        self.assertFalse(self.registry.is_locked("com.new"))

        cli_registry = LockRegistry(LockedAppStore(self.data_file))
        cli_registry.add("com.new")

        self.assertTrue(self.registry.is_locked("com.new"))

    def test_sees_unlocks_by_another_process(self):
        self.registry.add("com.a")
        self.registry.add("com.b")
        self.assertTrue(self.registry.is_locked("com.a"))

        cli_registry = LockRegistry(LockedAppStore(self.data_file))
        cli_registry.remove("com.a")

        self.assertFalse(self.registry.is_locked("com.a"))
        self.assertEqual(self.registry.list_locked(), frozenset({"com.b"}))

    def test_sees_hand_edited_file(self):
        self.registry.add("com.a")
        self.assertTrue(self.registry.is_locked("com.a"))

        self.data_file.write_text(json.dumps({"locked_apps": ["com.b"]}))
        self.assertFalse(self.registry.is_locked("com.a"))
        self.assertTrue(self.registry.is_locked("com.b"))

    def test_sees_file_deleted(self):
        self.registry.add("com.a")
        self.assertTrue(self.registry.is_locked("com.a"))
        self.data_file.unlink()
        self.assertEqual(self.registry.list_locked(), frozenset())

    def test_unchanged_file_is_not_reread(self):
        self.registry.add("com.a")
        self.registry.list_locked()
        with patch.object(self.registry.store, "list_all", wraps=self.registry.store.list_all) as spy:
            self.registry.is_locked("com.a")
            self.registry.is_locked("com.b")
        spy.assert_not_called()

    def test_refresh_forces_reload(self):
        self.registry.add("com.a")
        self.registry.list_locked()
        self.registry.refresh()
        with patch.object(self.registry.store, "list_all", wraps=self.registry.store.list_all) as spy:
            self.registry.is_locked("com.a")
        spy.assert_called_once()

    def test_surrounding_whitespace_is_ignored(self):
        """add(P) then is_locked(P) holds even when P has padding."""
        self.registry.add(" com.a ")
        self.assertTrue(self.registry.is_locked(" com.a "))
        self.assertTrue(self.registry.is_locked("com.a"))
        self.assertEqual(self.registry.list_locked(), frozenset({"com.a"}))

        self.registry.remove(" com.a\t")
        self.assertFalse(self.registry.is_locked("com.a"))

    def test_blank_lookup_is_not_locked(self):
        self.registry.add("com.a")
        self.assertFalse(self.registry.is_locked(""))
        self.assertFalse(self.registry.is_locked("   "))

    def test_storage_error_propagates(self):
        self.data_file.write_text("not json")
        with self.assertRaises(StorageError):
            self.registry.is_locked("com.a")
        with self.assertRaises(StorageError):
            self.registry.list_locked()


if __name__ == "__main__":
    unittest.main()
