"""
Challenge statistics for str00py.

Counts how many challenges were passed, failed and timed out. Data is
stored locally in a JSON file and survives restarts.
"""

import json
import logging
import os
import tempfile
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict

logger = logging.getLogger(__name__)

OUTCOME_SUCCESS = "successful"
OUTCOME_FAILURE = "unsuccessful"
OUTCOME_TIMEOUT = "timed_out"


class ChallengeStats:
    """
    Persistent counters for challenge outcomes.

    A timed-out challenge counts as unsuccessful as well as timed out, since
    the app stayed locked either way.
    """

    def __init__(self, data_file: Path):
        """
        Initialize the stats tracker and load existing data.

        Args:
            data_file: Path to the JSON stats file.
        """
        self.data_file = data_file
        self._lock = threading.Lock()
        self.data = self._load_data()

    def _create_empty_data(self) -> Dict[str, Any]:
        return {
            OUTCOME_SUCCESS: 0,
            OUTCOME_FAILURE: 0,
            OUTCOME_TIMEOUT: 0,
            "last_challenge": None,
        }

    def _load_data(self) -> Dict[str, Any]:
        """
        Load stats from JSON file.

        Returns:
            Dict containing challenge counters.
        """
        data = self._create_empty_data()
        if self.data_file.exists():
            try:
                with open(self.data_file, 'r') as f:
                    stored = json.load(f)
                for key in (OUTCOME_SUCCESS, OUTCOME_FAILURE, OUTCOME_TIMEOUT):
                    value = stored.get(key, 0)
                    if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
                        data[key] = value
                data["last_challenge"] = stored.get("last_challenge")
                logger.debug(f"Loaded challenge stats: {data}")
            except (json.JSONDecodeError, IOError, OSError, AttributeError) as e:
                logger.warning(f"Failed to load challenge stats: {e}. Starting fresh.")
        return data

    def _save_data(self) -> None:
        """
        Save stats to JSON file atomically.

        Caller holds self._lock.
        """
        try:
            self.data_file.parent.mkdir(parents=True, exist_ok=True)

            temp_fd, temp_path = tempfile.mkstemp(
                suffix='.tmp',
                prefix='challenge_stats_',
                dir=self.data_file.parent
            )

            try:
                with os.fdopen(temp_fd, 'w') as f:
                    json.dump(self.data, f, indent=2)
                os.replace(temp_path, self.data_file)
            except Exception:
                try:
                    os.unlink(temp_path)
                except OSError:
                    pass
                raise

        except (IOError, OSError, PermissionError) as e:
            logger.error(f"Failed to save challenge stats: {e}")

    def record_success(self) -> None:
        """Count a passed challenge."""
        self._record(OUTCOME_SUCCESS)

    def record_failure(self) -> None:
        """Count a wrong answer."""
        self._record(OUTCOME_FAILURE)

    def record_timeout(self) -> None:
        """Count a challenge that expired unanswered."""
        self._record(OUTCOME_FAILURE, OUTCOME_TIMEOUT)

    def _record(self, *keys: str) -> None:
        with self._lock:
            for key in keys:
                self.data[key] += 1
            self.data["last_challenge"] = datetime.now().isoformat()
            self._save_data()

    def get_stats(self) -> Dict[str, Any]:
        """Return a copy of the counters plus the success rate."""
        with self._lock:
            stats = dict(self.data)
        stats["success_rate"] = self.get_success_rate()
        return stats

    def get_success_rate(self) -> float:
        """
        Percentage of challenges passed.

        Returns:
            0-100, or 0.0 if no challenge has been answered yet.
        """
        total = self.data[OUTCOME_SUCCESS] + self.data[OUTCOME_FAILURE]
        if total == 0:
            return 0.0
        return self.data[OUTCOME_SUCCESS] / total * 100.0

    def format_summary(self) -> str:
        """Human-readable summary for the CLI."""
        stats = self.get_stats()
        return (
            f"Successful: {stats[OUTCOME_SUCCESS]}\n"
            f"Unsuccessful: {stats[OUTCOME_FAILURE]} "
            f"(timed out: {stats[OUTCOME_TIMEOUT]})\n"
            f"Success rate: {stats['success_rate']:.1f}%"
        )
