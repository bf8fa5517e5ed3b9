"""
Completed-set tracking.

A package that passes its challenge is "completed" for the rest of its
session. The session ends when the user switches to a different app, when
the whole locker resets, or (if a session duration is configured) when the
unlock gets too old.
"""

import logging
import threading
import time
from typing import Callable, Dict, List, Optional, Union

logger = logging.getLogger(__name__)


class SessionTracker:
    """
    Thread-safe map of completed packages to their completion time.

    session_duration may be a number of seconds or a zero-argument callable
    returning one (so a live settings value can be passed). Zero means the
    unlock lasts until the app leaves the foreground.
    """

    def __init__(
        self,
        session_duration: Union[float, Callable[[], float]] = 0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._session_duration = session_duration
        self._clock = clock
        self._completed: Dict[str, float] = {}
        self._lock = threading.Lock()

    @property
    def session_duration(self) -> float:
        if callable(self._session_duration):
            return self._session_duration()
        return self._session_duration

    def mark_completed(self, package_name: str) -> None:
        """Record that package_name passed its challenge now."""
        with self._lock:
            self._completed[package_name] = self._clock()
        logger.debug(f"Session started for {package_name}")

    def is_completed(self, package_name: str) -> bool:
        """
        Check whether package_name is unlocked for the current session.

        Expired unlocks are removed as a side effect.
        """
        with self._lock:
            completed_at = self._completed.get(package_name)
            if completed_at is None:
                return False

            duration = self.session_duration
            if duration > 0 and self._clock() - completed_at > duration:
                del self._completed[package_name]
                logger.debug(f"Session expired for {package_name}")
                return False
            return True

    def end_session(self, package_name: str) -> None:
        """Require a new challenge for package_name next time."""
        with self._lock:
            removed = self._completed.pop(package_name, None)
        if removed is not None:
            logger.debug(f"Session ended for {package_name}")

    def end_all_sessions(self) -> None:
        """Require a new challenge for every package."""
        with self._lock:
            self._completed.clear()
        logger.debug("All sessions ended")

    def handle_app_switch(self, from_package: Optional[str], to_package: str) -> None:
        """
        End the session of the app being left.

        Args:
            from_package: Previously foregrounded package, if known.
            to_package: Newly foregrounded package.
        """
        if from_package is not None and from_package != to_package:
            self.end_session(from_package)

    def completed_packages(self) -> List[str]:
        """Debug snapshot of packages with an active session."""
        with self._lock:
            return sorted(self._completed)
