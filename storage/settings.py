"""
User preferences for the locker.

Settings live in a small JSON file next to the locked apps list. Missing or
unreadable files fall back to defaults; setters validate and persist
immediately. Changes saved by another process (the CLI while `run` is
active) are picked up on the next read.
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict

import config
from storage.file_state import file_signature

logger = logging.getLogger(__name__)


DEFAULT_SETTINGS: Dict[str, Any] = {
    # Seconds before an unanswered challenge counts as failed
    "challenge_timeout": config.CHALLENGE_TIMEOUT_SECONDS,
    # Seconds an unlock stays valid; 0 = until the app leaves the foreground
    "session_duration": 0,
    # Correct answers needed in a row to unlock an app
    "challenges_required": 1,
    "sound_enabled": False,
    # When True, nothing is locked
    "master_disable": False,
}


class SettingsManager:
    """
    Loads, validates and saves locker settings.

    Values are exposed as properties that re-read the file whenever it has
    changed on disk, so a running watcher sees `settings --set` from the CLI.
    """

    def __init__(self, settings_path: Path):
        """
        Initialize the settings manager and load existing settings.

        Args:
            settings_path: Path to the JSON settings file.
        """
        self.settings_path = settings_path
        self._lock = threading.Lock()
        self._signature = file_signature(settings_path)
        self._data: Dict[str, Any] = self._load()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def challenge_timeout(self) -> float:
        return self._get("challenge_timeout")

    @challenge_timeout.setter
    def challenge_timeout(self, value: float) -> None:
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 1:
            raise ValueError("challenge_timeout must be at least 1 second")
        self._set("challenge_timeout", value)

    @property
    def session_duration(self) -> float:
        return self._get("session_duration")

    @session_duration.setter
    def session_duration(self, value: float) -> None:
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
            raise ValueError("session_duration must be zero or a positive number of seconds")
        self._set("session_duration", value)

    @property
    def challenges_required(self) -> int:
        return self._get("challenges_required")

    @challenges_required.setter
    def challenges_required(self, value: int) -> None:
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise ValueError("challenges_required must be at least 1")
        self._set("challenges_required", value)

    @property
    def sound_enabled(self) -> bool:
        return self._get("sound_enabled")

    @sound_enabled.setter
    def sound_enabled(self, value: bool) -> None:
        self._set("sound_enabled", bool(value))

    @property
    def master_disable(self) -> bool:
        return self._get("master_disable")

    @master_disable.setter
    def master_disable(self, value: bool) -> None:
        self._set("master_disable", bool(value))
        if value:
            logger.warning("Master disable is ON - no apps will be locked")

    # ------------------------------------------------------------------
    # Bulk access
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Return a copy of all settings."""
        self._reload_if_changed()
        with self._lock:
            return dict(self._data)

    def update(self, key: str, raw_value: str) -> None:
        """
        Set a setting from its string form (used by the CLI).

        Args:
            key: Setting name.
            raw_value: Value as typed by the user.

        Raises:
            KeyError: If key is not a known setting.
            ValueError: If the value cannot be parsed or is out of range.
        """
        if key not in DEFAULT_SETTINGS:
            raise KeyError(f"Unknown setting: {key}")

        default = DEFAULT_SETTINGS[key]
        if isinstance(default, bool):
            lowered = raw_value.strip().lower()
            if lowered in ("true", "1", "yes", "on"):
                value: Any = True
            elif lowered in ("false", "0", "no", "off"):
                value = False
            else:
                raise ValueError(f"{key} expects true/false, got {raw_value!r}")
        elif key == "challenges_required":
            value = int(raw_value)
        else:
            value = float(raw_value)

        setattr(self, key, value)

    def reset(self) -> None:
        """Restore every setting to its default."""
        with self._lock:
            self._data = dict(DEFAULT_SETTINGS)
        self._save()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _get(self, key: str) -> Any:
        self._reload_if_changed()
        with self._lock:
            return self._data[key]

    def _reload_if_changed(self) -> None:
        """Reload the file if another process saved it since our last read."""
        signature = file_signature(self.settings_path)
        if signature == self._signature:
            return
        data = self._load()
        with self._lock:
            self._data = data
            self._signature = signature
        logger.info("Settings file changed on disk, reloaded")

    def _set(self, key: str, value: Any) -> None:
        # Merge into the latest saved state, not a stale copy
        self._reload_if_changed()
        with self._lock:
            self._data[key] = value
        logger.info(f"Setting changed: {key}={value}")
        self._save()

    def _load(self) -> Dict[str, Any]:
        """
        Load settings from file, keeping defaults for missing or invalid keys.

        Returns:
            Dict of settings.
        """
        data = dict(DEFAULT_SETTINGS)
        if not self.settings_path.exists():
            return data

        try:
            with open(self.settings_path, "r") as f:
                stored = json.load(f)
        except (json.JSONDecodeError, IOError, OSError) as e:
            logger.warning(f"Invalid settings file, using defaults: {e}")
            return data

        if not isinstance(stored, dict):
            logger.warning("Settings file is not an object, using defaults")
            return data

        for key, default in DEFAULT_SETTINGS.items():
            if key not in stored:
                continue
            value = stored[key]
            # Type must match the default (ints are fine where floats are expected)
            if isinstance(default, bool):
                valid = isinstance(value, bool)
            else:
                valid = isinstance(value, (int, float)) and not isinstance(value, bool)
            if valid:
                data[key] = value
            else:
                logger.warning(f"Ignoring invalid value for {key}: {value!r}")

        # Range checks for hand-edited files
        if data["challenge_timeout"] < 1:
            data["challenge_timeout"] = DEFAULT_SETTINGS["challenge_timeout"]
        if data["session_duration"] < 0:
            data["session_duration"] = DEFAULT_SETTINGS["session_duration"]
        if not isinstance(data["challenges_required"], int) or data["challenges_required"] < 1:
            data["challenges_required"] = DEFAULT_SETTINGS["challenges_required"]

        logger.debug(f"Loaded settings: {data}")
        return data

    def _save(self) -> bool:
        """
        Save settings to file atomically.

        Returns:
            True if saved successfully, False otherwise.
        """
        with self._lock:
            snapshot = dict(self._data)

        try:
            self.settings_path.parent.mkdir(parents=True, exist_ok=True)

            temp_fd, temp_path = tempfile.mkstemp(
                suffix='.tmp',
                prefix='settings_',
                dir=self.settings_path.parent
            )

            try:
                with os.fdopen(temp_fd, 'w') as f:
                    json.dump(snapshot, f, indent=2)
                os.replace(temp_path, self.settings_path)
                self._signature = file_signature(self.settings_path)
            except Exception:
                try:
                    os.unlink(temp_path)
                except OSError:
                    pass
                raise

            return True

        except (IOError, OSError) as e:
            logger.error(f"Failed to save settings: {e}")
            return False
