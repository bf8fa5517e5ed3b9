"""Read-through cache answering "is this package locked?"."""

import logging
import threading
from typing import FrozenSet, Optional

from storage.file_state import FileSignature, file_signature
from storage.locked_apps import LockedAppStore, normalize_package_name

logger = logging.getLogger(__name__)


class LockRegistry:
    """
    Facade over LockedAppStore.

    Lookups are served from a cached snapshot that is reloaded whenever the
    store's file changes on disk, so `lock`/`unlock` run from another
    process reach a running watcher on its next lookup. add() and remove()
    write through and drop the cache. StorageError from the store
    propagates to the caller unchanged.
    """

    def __init__(self, store: LockedAppStore):
        self.store = store
        self._cache: Optional[FrozenSet[str]] = None
        self._cache_signature: Optional[FileSignature] = None
        self._lock = threading.Lock()

    def is_locked(self, package_name: str) -> bool:
        """Return True iff package_name is in the locked set."""
        name = normalize_package_name(package_name)
        if not name:
            return False
        return name in self.list_locked()

    def add(self, package_name: str) -> None:
        """Lock package_name. Locking an already-locked package is a no-op."""
        with self._lock:
            self.store.insert(package_name)
            self._cache = None

    def remove(self, package_name: str) -> None:
        """Unlock package_name. Unlocking an unknown package is a no-op."""
        with self._lock:
            self.store.delete(package_name)
            self._cache = None

    def list_locked(self) -> FrozenSet[str]:
        """
        Snapshot of all locked package names.

        Returns:
            Frozen set of package names; order is irrelevant.

        Raises:
            StorageError: If the store cannot be read.
        """
        with self._lock:
            signature = file_signature(self.store.data_file)
            if self._cache is None or signature != self._cache_signature:
                self._cache = frozenset(self.store.list_all())
                self._cache_signature = signature
                logger.debug(f"Loaded {len(self._cache)} locked apps")
            return self._cache

    def refresh(self) -> None:
        """Forget the cached snapshot so the next lookup re-reads storage."""
        with self._lock:
            self._cache = None
