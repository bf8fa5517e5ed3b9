"""
Persistence for the set of locked application identifiers.

The store is a single-column table kept as a JSON file:

    {"locked_apps": ["com.example.mail", "com.example.game"]}

Writes are atomic (temp file + rename) so a crash mid-save never leaves
a truncated file behind.
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import List

from core.errors import StorageError

logger = logging.getLogger(__name__)


class LockedAppStore:
    """
    File-backed set of locked package names.

    Supports insert-if-absent, delete-by-key and list-all. Every failure to
    read or write the file is raised as StorageError.
    """

    def __init__(self, data_file: Path):
        """
        Initialize the store.

        Args:
            data_file: Path to the JSON file holding locked package names.
        """
        self.data_file = data_file
        self._lock = threading.Lock()

    def list_all(self) -> List[str]:
        """
        Read every locked package name.

        Returns:
            List of package names (empty if the file does not exist yet).

        Raises:
            StorageError: If the file exists but cannot be read or parsed.
        """
        with self._lock:
            return list(self._read())

    def insert(self, package_name: str) -> bool:
        """
        Insert a package name if absent.

        Args:
            package_name: Identifier of the app to lock.

        Returns:
            True if the package was added, False if it was already present.

        Raises:
            ValueError: If package_name is empty.
            StorageError: If the file cannot be read or written.
        """
        package_name = _validate_package_name(package_name)
        with self._lock:
            packages = self._read()
            if package_name in packages:
                return False
            packages.append(package_name)
            self._write(packages)
        logger.info(f"Locked app added: {package_name}")
        return True

    def delete(self, package_name: str) -> bool:
        """
        Delete a package name if present.

        Args:
            package_name: Identifier of the app to unlock.

        Returns:
            True if the package was removed, False if it was not stored.

        Raises:
            StorageError: If the file cannot be read or written.
        """
        package_name = normalize_package_name(package_name)
        with self._lock:
            packages = self._read()
            if package_name not in packages:
                return False
            packages.remove(package_name)
            self._write(packages)
        logger.info(f"Locked app removed: {package_name}")
        return True

    def _read(self) -> List[str]:
        # Caller holds self._lock
        if not self.data_file.exists():
            return []
        try:
            with open(self.data_file, "r") as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError, OSError) as e:
            logger.error(f"Failed to read locked apps from {self.data_file}: {e}")
            raise StorageError(f"Cannot read locked apps: {e}") from e

        packages = data.get("locked_apps") if isinstance(data, dict) else None
        if not isinstance(packages, list) or not all(isinstance(p, str) for p in packages):
            logger.error(f"Locked apps file {self.data_file} has an unexpected format")
            raise StorageError("Locked apps file is corrupt")

        # Drop duplicates and blanks from hand-edited files, keep order
        seen = []
        for package in packages:
            if package and package not in seen:
                seen.append(package)
        return seen

    def _write(self, packages: List[str]) -> None:
        # Caller holds self._lock
        try:
            self.data_file.parent.mkdir(parents=True, exist_ok=True)

            temp_fd, temp_path = tempfile.mkstemp(
                suffix='.tmp',
                prefix='locked_apps_',
                dir=self.data_file.parent
            )

            try:
                with os.fdopen(temp_fd, 'w') as f:
                    json.dump({"locked_apps": packages}, f, indent=2)

                try:
                    os.replace(temp_path, self.data_file)
                except OSError:
                    # Fallback for systems where replace doesn't work
                    if self.data_file.exists():
                        self.data_file.unlink()
                    os.rename(temp_path, self.data_file)

                logger.debug(f"Saved {len(packages)} locked apps to {self.data_file}")
            except Exception:
                # Clean up temp file on error
                try:
                    os.unlink(temp_path)
                except OSError:
                    pass
                raise

        except (IOError, OSError) as e:
            logger.error(f"Failed to save locked apps: {e}")
            raise StorageError(f"Cannot save locked apps: {e}") from e


def normalize_package_name(package_name: str) -> str:
    """Canonical form used for every lookup, insert and delete."""
    if not isinstance(package_name, str):
        return ""
    return package_name.strip()


def _validate_package_name(package_name: str) -> str:
    """Normalize a package name and reject blanks."""
    name = normalize_package_name(package_name)
    if not name:
        raise ValueError("package_name must be a non-empty string")
    return name
