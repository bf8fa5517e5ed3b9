"""
Single-slot challenge state machine.

At most one challenge is in flight at a time. The slot moves between two
states:

    IDLE --start_challenge(pkg)--> IN_PROGRESS
    IN_PROGRESS --complete_challenge(success)--> IDLE
    IN_PROGRESS --(age > timeout, observed by any query)--> IDLE

Every read and write goes through one re-entrant lock, and the Challenge
held in the slot is immutable, so readers always see a whole snapshot.
"""

import logging
import threading
import time
from dataclasses import dataclass, replace
from typing import Callable, Optional

import config
from core.errors import InvalidStateError

logger = logging.getLogger(__name__)

STATE_IDLE = "idle"
STATE_IN_PROGRESS = "in_progress"


@dataclass(frozen=True)
class Challenge:
    """A single verification attempt for one locked package."""
    locked_package: str
    start_time: float  # Monotonic clock seconds
    correct_answers: int = 0


class ChallengeState:
    """
    Owns the one active Challenge, if any.

    The clock is injectable so timeouts can be tested without sleeping.
    When a query finds the challenge past its timeout, the slot is cleared
    and on_expired(challenge) is called once, outside the lock.
    """

    def __init__(
        self,
        timeout_seconds: float = config.CHALLENGE_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        on_expired: Optional[Callable[[Challenge], None]] = None,
    ) -> None:
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        self.timeout_seconds = timeout_seconds
        self._clock = clock
        self.on_expired = on_expired
        self._current: Optional[Challenge] = None
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def start_challenge(self, package_name: str) -> Optional[Challenge]:
        """
        Start a challenge for package_name.

        Args:
            package_name: Package awaiting unlock.

        Returns:
            The new challenge, the existing one if it is already for
            package_name, or None if a challenge for another package is
            still in progress (the existing challenge is kept).
        """
        if not package_name:
            raise ValueError("package_name must be a non-empty string")

        with self._lock:
            expired = self._expire_locked()
            existing = self._current

            if existing is not None:
                if existing.locked_package == package_name:
                    logger.debug(f"Challenge already in progress for {package_name}")
                    result: Optional[Challenge] = existing
                else:
                    logger.debug(
                        f"Cannot start challenge for {package_name}: "
                        f"{existing.locked_package} is in progress"
                    )
                    result = None
            else:
                result = Challenge(locked_package=package_name, start_time=self._clock())
                self._current = result
                logger.info(f"Challenge started for {package_name}")

        self._notify_expired(expired)
        return result

    def complete_challenge(self, success: bool) -> Optional[str]:
        """
        Clear the slot and report the outcome.

        Args:
            success: Whether the challenge was answered correctly.

        Returns:
            The challenged package if success is True, otherwise None.
            Also None when no challenge is in progress (logged, not raised).
        """
        with self._lock:
            expired = self._expire_locked()
            try:
                challenge = self._require_active()
            except InvalidStateError as e:
                logger.warning(f"complete_challenge ignored: {e}")
                challenge = None
            else:
                self._current = None
                outcome = "passed" if success else "failed"
                logger.info(f"Challenge {outcome} for {challenge.locked_package}")

        self._notify_expired(expired)
        if challenge is None or not success:
            return None
        return challenge.locked_package

    def resolve(self, challenge: Challenge, success: bool) -> bool:
        """
        Complete challenge only if it is still the one in the slot.

        Answer handling uses this instead of complete_challenge so an
        answer that races a timeout, or a newer challenge, resolves nothing.

        Returns:
            True if this call cleared challenge from the slot.
        """
        with self._lock:
            expired = self._expire_locked()
            cleared = is_same_challenge(self._current, challenge)
            if cleared:
                self._current = None
                outcome = "passed" if success else "failed"
                logger.info(f"Challenge {outcome} for {challenge.locked_package}")

        self._notify_expired(expired)
        return cleared

    def record_correct_answer(self, expected: Optional[Challenge] = None) -> int:
        """
        Count one correct answer towards the active challenge.

        Args:
            expected: If given, only count when the slot still holds it.

        Returns:
            Correct answers so far, or 0 if no (matching) challenge is in
            progress.
        """
        with self._lock:
            expired = self._expire_locked()
            if self._current is None or (
                expected is not None and not is_same_challenge(self._current, expected)
            ):
                count = 0
            else:
                self._current = replace(
                    self._current, correct_answers=self._current.correct_answers + 1
                )
                count = self._current.correct_answers

        self._notify_expired(expired)
        return count

    def reset(self) -> None:
        """Drop any in-flight challenge without reporting an outcome."""
        with self._lock:
            if self._current is not None:
                logger.debug(f"Resetting challenge for {self._current.locked_package}")
            self._current = None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_in_progress(self) -> bool:
        """Return True while a challenge is active and not timed out."""
        return self.current() is not None

    def current(self) -> Optional[Challenge]:
        """Return the active challenge, or None (expired ones are cleared)."""
        with self._lock:
            expired = self._expire_locked()
            challenge = self._current

        self._notify_expired(expired)
        return challenge

    @property
    def state(self) -> str:
        """STATE_IDLE or STATE_IN_PROGRESS."""
        return STATE_IN_PROGRESS if self.is_in_progress() else STATE_IDLE

    def expire_if_stale(self) -> Optional[Challenge]:
        """
        Clear the active challenge if it has outlived the timeout.

        Returns:
            The expired challenge, or None if nothing expired.
        """
        with self._lock:
            expired = self._expire_locked()

        self._notify_expired(expired)
        return expired

    def age(self) -> Optional[float]:
        """Seconds since the active challenge started, or None."""
        with self._lock:
            if self._current is None:
                return None
            return self._clock() - self._current.start_time

    # ------------------------------------------------------------------
    # Internals (caller holds self._lock)
    # ------------------------------------------------------------------

    def _require_active(self) -> Challenge:
        if self._current is None:
            raise InvalidStateError("no challenge is in progress")
        return self._current

    def _expire_locked(self) -> Optional[Challenge]:
        challenge = self._current
        if challenge is None:
            return None
        if self._clock() - challenge.start_time > self.timeout_seconds:
            logger.warning(f"Challenge timed out for {challenge.locked_package}")
            self._current = None
            return challenge
        return None

    def _notify_expired(self, challenge: Optional[Challenge]) -> None:
        if challenge is None or self.on_expired is None:
            return
        try:
            self.on_expired(challenge)
        except Exception as e:
            logger.error(f"Error in challenge expiry callback: {e}")


def is_same_challenge(a: Optional[Challenge], b: Optional[Challenge]) -> bool:
    """Same attempt: same package and start time (answer count may differ)."""
    if a is None or b is None:
        return False
    return a.locked_package == b.locked_package and a.start_time == b.start_time
