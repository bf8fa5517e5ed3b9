"""
Tests for storage/settings.py and tracking/stats.py.
"""

import json
import sys
import tempfile
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from storage.settings import DEFAULT_SETTINGS, SettingsManager
from tracking.stats import ChallengeStats, OUTCOME_FAILURE, OUTCOME_SUCCESS, OUTCOME_TIMEOUT


class TestSettingsManager(unittest.TestCase):

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.path = Path(self.temp_dir.name) / "settings.json"
        self.settings = SettingsManager(self.path)

    def tearDown(self):
        self.temp_dir.cleanup()

    def test_defaults_without_file(self):
        self.assertEqual(self.settings.to_dict(), DEFAULT_SETTINGS)
        self.assertEqual(self.settings.challenges_required, 1)
        self.assertFalse(self.settings.master_disable)

    def test_changes_persist(self):
        self.settings.challenges_required = 3
        self.settings.sound_enabled = True
        self.settings.session_duration = 120

        reloaded = SettingsManager(self.path)
        self.assertEqual(reloaded.challenges_required, 3)
        self.assertTrue(reloaded.sound_enabled)
        self.assertEqual(reloaded.session_duration, 120)

    def test_setters_validate(self):
        with self.assertRaises(ValueError):
            self.settings.challenge_timeout = 0
        with self.assertRaises(ValueError):
            self.settings.session_duration = -1
        with self.assertRaises(ValueError):
            self.settings.challenges_required = 0
        with self.assertRaises(ValueError):
            self.settings.challenges_required = True
        self.assertEqual(self.settings.to_dict(), DEFAULT_SETTINGS)

    def test_update_parses_strings(self):
        self.settings.update("master_disable", "yes")
        self.settings.update("challenges_required", "2")
        self.settings.update("challenge_timeout", "45.5")
        self.assertTrue(self.settings.master_disable)
        self.assertEqual(self.settings.challenges_required, 2)
        self.assertEqual(self.settings.challenge_timeout, 45.5)

    def test_update_rejects_bad_input(self):
        with self.assertRaises(KeyError):
            self.settings.update("theme", "dark")
        with self.assertRaises(ValueError):
            self.settings.update("sound_enabled", "maybe")
        with self.assertRaises(ValueError):
            self.settings.update("challenges_required", "two")

    def test_invalid_file_values_fall_back(self):
        self.path.write_text(json.dumps({
            "challenge_timeout": -5,
            "challenges_required": "lots",
            "sound_enabled": 1,
            "session_duration": 30,
        }))
        settings = SettingsManager(self.path)
        self.assertEqual(settings.challenge_timeout, DEFAULT_SETTINGS["challenge_timeout"])
        self.assertEqual(settings.challenges_required, 1)
        self.assertFalse(settings.sound_enabled)
        self.assertEqual(settings.session_duration, 30)

    def test_corrupt_file_uses_defaults(self):
        self.path.write_text("{{{")
        self.assertEqual(SettingsManager(self.path).to_dict(), DEFAULT_SETTINGS)

    def test_reset(self):
        self.settings.challenges_required = 4
        self.settings.reset()
        self.assertEqual(self.settings.to_dict(), DEFAULT_SETTINGS)
        self.assertEqual(SettingsManager(self.path).challenges_required, 1)


class TestSettingsSharedFile(unittest.TestCase):
    """A running watcher and the CLI each hold a SettingsManager on one file."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.path = Path(self.temp_dir.name) / "settings.json"
        self.watcher_settings = SettingsManager(self.path)
        self.assertFalse(self.watcher_settings.master_disable)

    def tearDown(self):
        self.temp_dir.cleanup()

    def test_sees_changes_saved_by_another_instance(self):
        cli_settings = SettingsManager(self.path)
        cli_settings.update("master_disable", "true")
        cli_settings.update("challenge_timeout", "12")

        self.assertTrue(self.watcher_settings.master_disable)
        self.assertEqual(self.watcher_settings.challenge_timeout, 12.0)
        self.assertTrue(self.watcher_settings.to_dict()["master_disable"])

    def test_own_write_keeps_other_instances_changes(self):
        cli_settings = SettingsManager(self.path)
        cli_settings.challenges_required = 4

        self.watcher_settings.sound_enabled = True

        reloaded = SettingsManager(self.path)
        self.assertEqual(reloaded.challenges_required, 4)
        self.assertTrue(reloaded.sound_enabled)

    def test_file_removed_falls_back_to_defaults(self):
        self.watcher_settings.challenges_required = 3
        self.path.unlink()
        self.assertEqual(self.watcher_settings.challenges_required, 1)


class TestChallengeStats(unittest.TestCase):

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.path = Path(self.temp_dir.name) / "challenge_stats.json"
        self.stats = ChallengeStats(self.path)

    def tearDown(self):
        self.temp_dir.cleanup()

    def test_starts_empty(self):
        stats = self.stats.get_stats()
        self.assertEqual(stats[OUTCOME_SUCCESS], 0)
        self.assertEqual(stats[OUTCOME_FAILURE], 0)
        self.assertEqual(stats["success_rate"], 0.0)
        self.assertIsNone(stats["last_challenge"])

    def test_timeout_counts_as_failure(self):
        self.stats.record_timeout()
        stats = self.stats.get_stats()
        self.assertEqual(stats[OUTCOME_FAILURE], 1)
        self.assertEqual(stats[OUTCOME_TIMEOUT], 1)

    def test_success_rate(self):
        self.stats.record_success()
        self.stats.record_success()
        self.stats.record_success()
        self.stats.record_failure()
        self.assertEqual(self.stats.get_success_rate(), 75.0)
        self.assertIn("Success rate: 75.0%", self.stats.format_summary())

    def test_persists_across_instances(self):
        self.stats.record_success()
        self.stats.record_timeout()
        reloaded = ChallengeStats(self.path).get_stats()
        self.assertEqual(reloaded[OUTCOME_SUCCESS], 1)
        self.assertEqual(reloaded[OUTCOME_FAILURE], 1)
        self.assertEqual(reloaded[OUTCOME_TIMEOUT], 1)
        self.assertIsNotNone(reloaded["last_challenge"])

    def test_corrupt_file_starts_fresh(self):
        self.path.write_text("not json")
        stats = ChallengeStats(self.path)
        self.assertEqual(stats.get_stats()[OUTCOME_SUCCESS], 0)
        stats.record_success()
        self.assertEqual(ChallengeStats(self.path).get_stats()[OUTCOME_SUCCESS], 1)


if __name__ == "__main__":
    unittest.main()
