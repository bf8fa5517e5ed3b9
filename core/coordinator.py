"""
LockCoordinator — decides whether a foreground app may run.

Consumes foreground-change events, looks packages up in the LockRegistry,
drives the ChallengeState and SessionTracker, and tells the UI what to do
through callbacks. Has no UI or platform dependencies; the watcher feeds it
events and the UI calls the challenge methods.

Callbacks:
    on_show_challenge(challenge: Challenge)
    on_allow(package_name: str)
    on_deny(package_name: str)

Every failure path resolves to "deny access to the locked app".
"""

import logging
import threading
from datetime import datetime
from typing import Callable, Optional

import config
from challenge.stroop import StroopPuzzle, check_answer
from core.challenge_state import Challenge, ChallengeState, is_same_challenge
from core.errors import StorageError
from core.feedback import FeedbackPlayer
from core.registry import LockRegistry
from core.sessions import SessionTracker

logger = logging.getLogger(__name__)


class LockCoordinator:
    """
    Core lock/challenge coordination.

    All collaborators are injected. settings, stats and feedback are
    optional; without settings the coordinator uses one correct answer
    per challenge and never master-disables.
    """

    def __init__(
        self,
        registry: LockRegistry,
        challenge_state: ChallengeState,
        sessions: SessionTracker,
        settings=None,
        stats=None,
        feedback: Optional[FeedbackPlayer] = None,
        ignored_packages=config.IGNORED_PACKAGES,
    ) -> None:
        self.registry = registry
        self.challenge_state = challenge_state
        self.sessions = sessions
        self.settings = settings
        self.stats = stats
        self.feedback = feedback
        self.ignored_packages = frozenset(ignored_packages)

        # Package most recently seen in the foreground (ignored packages excluded)
        self.current_foreground: Optional[str] = None

        # Puzzle currently on screen, tied to the challenge it was shown for
        self._puzzle: Optional[StroopPuzzle] = None
        self._puzzle_challenge: Optional[Challenge] = None
        self._puzzle_lock = threading.Lock()

        # One answer at a time; extra taps while one resolves are dropped
        self._answer_lock = threading.Lock()

        # ---- Callbacks (set by the UI layer) ----
        self.on_show_challenge: Optional[Callable[[Challenge], None]] = None
        self.on_allow: Optional[Callable[[str], None]] = None
        self.on_deny: Optional[Callable[[str], None]] = None

        self.challenge_state.on_expired = self._handle_expired

    # ------------------------------------------------------------------
    # Foreground events
    # ------------------------------------------------------------------

    def handle_foreground_event(
        self,
        package_name: str,
        timestamp: Optional[datetime] = None,
    ) -> str:
        """
        Decide what to do about package_name coming to the foreground.

        Args:
            package_name: Newly foregrounded package.
            timestamp: When the change happened (used for logging only).

        Returns:
            One of config.DECISION_ALLOW, DECISION_CHALLENGE,
            DECISION_PENDING, DECISION_DENY.
        """
        when = (timestamp or datetime.now()).strftime("%H:%M:%S")

        if not package_name:
            logger.debug("Ignoring foreground event without a package")
            return config.DECISION_ALLOW

        if package_name in self.ignored_packages:
            logger.debug(f"Ignoring foreground event for {package_name}")
            return config.DECISION_ALLOW

        previous = self.current_foreground
        if previous != package_name:
            logger.debug(f"App switch at {when}: {previous} -> {package_name}")
            self.sessions.handle_app_switch(previous, package_name)
            self.current_foreground = package_name

        if self._master_disabled():
            logger.debug(f"Allowing {package_name}: master disable is on")
            return config.DECISION_ALLOW

        if self.sessions.is_completed(package_name):
            logger.debug(f"Allowing {package_name}: challenge already completed")
            return config.DECISION_ALLOW

        if not self._is_locked(package_name):
            logger.debug(f"Allowing {package_name}: not locked")
            return config.DECISION_ALLOW

        return self._challenge_locked_app(package_name)

    def _is_locked(self, package_name: str) -> bool:
        """Registry lookup that fails safe: unreadable storage means locked."""
        try:
            return self.registry.is_locked(package_name)
        except StorageError as e:
            logger.warning(f"Lock lookup failed for {package_name}, denying by default: {e}")
            return True

    def _challenge_locked_app(self, package_name: str) -> str:
        active = self.challenge_state.current()

        if active is not None:
            if active.locked_package == package_name:
                logger.debug(f"Challenge for {package_name} is already showing")
                return config.DECISION_PENDING

            logger.info(
                f"Denying {package_name}: challenge for {active.locked_package} still in progress"
            )
            self._notify(self.on_deny, package_name)
            return config.DECISION_DENY

        challenge = self.start_or_get_challenge(package_name)
        if challenge is None or challenge.locked_package != package_name:
            # Lost a race with another start; keep the existing challenge
            self._notify(self.on_deny, package_name)
            return config.DECISION_DENY

        self._notify(self.on_show_challenge, challenge)
        return config.DECISION_CHALLENGE

    # ------------------------------------------------------------------
    # UI-facing challenge API
    # ------------------------------------------------------------------

    def start_or_get_challenge(self, package_name: str) -> Optional[Challenge]:
        """
        Start a challenge for package_name or return the one already running.

        Returns:
            The challenge for package_name, or None if another package's
            challenge is in progress.
        """
        if self.settings is not None:
            self.challenge_state.timeout_seconds = self.settings.challenge_timeout
        return self.challenge_state.start_challenge(package_name)

    def is_challenge_active(self) -> bool:
        """True while a challenge is in progress and not timed out."""
        return self.challenge_state.is_in_progress()

    def is_challenge_current(self, challenge: Challenge) -> bool:
        """True while challenge (not a later one) is the active challenge."""
        return is_same_challenge(self.challenge_state.current(), challenge)

    def present_puzzle(self, puzzle: StroopPuzzle, for_challenge: Optional[Challenge] = None) -> bool:
        """
        Register the puzzle the UI is showing for the active challenge.

        Args:
            puzzle: Puzzle on screen.
            for_challenge: Challenge the UI is presenting. If given and no
                longer active, the puzzle is rejected.

        Returns:
            False if there is no matching active challenge to attach it to.
        """
        challenge = self.challenge_state.current()
        if challenge is None:
            logger.warning("present_puzzle called with no active challenge")
            return False
        if for_challenge is not None and not is_same_challenge(challenge, for_challenge):
            logger.warning(
                f"present_puzzle for {for_challenge.locked_package} rejected: "
                f"active challenge is for {challenge.locked_package}"
            )
            return False
        with self._puzzle_lock:
            self._puzzle = puzzle
            self._puzzle_challenge = challenge
        return True

    def current_puzzle(self) -> Optional[StroopPuzzle]:
        with self._puzzle_lock:
            return self._puzzle

    def submit_answer(self, selected_color: str) -> bool:
        """
        Resolve an answer against the puzzle on screen.

        Args:
            selected_color: Colour name the user picked.

        Returns:
            True if the answer was correct. A correct answer unlocks the app
            once settings.challenges_required answers have been given; until
            then the UI should present another puzzle. False for wrong
            answers, answers with no active challenge, answers that lost a
            race with the timeout, and answers dropped because another one
            is still being processed.
        """
        if not self._answer_lock.acquire(blocking=False):
            logger.debug(f"Ignoring answer {selected_color!r}: previous answer still processing")
            return False

        try:
            challenge = self.challenge_state.current()
            if challenge is None:
                logger.warning(f"Answer {selected_color!r} submitted with no active challenge")
                self._clear_puzzle()
                return False

            with self._puzzle_lock:
                puzzle = self._puzzle
                shown_for = self._puzzle_challenge

            # A puzzle left over from an earlier challenge does not count
            if puzzle is None or not is_same_challenge(shown_for, challenge):
                logger.warning("Answer submitted without a puzzle for the active challenge")
                self._fail_challenge(challenge)
                return False

            if not check_answer(puzzle, selected_color):
                logger.info(f"Wrong answer for {challenge.locked_package}: {selected_color}")
                self._fail_challenge(challenge)
                return False

            correct = self.challenge_state.record_correct_answer(expected=challenge)
            if correct == 0:
                # Expired between the check and the count; the expiry path denied it
                return False

            if correct < self._challenges_required():
                logger.info(
                    f"Correct answer {correct}/{self._challenges_required()} "
                    f"for {challenge.locked_package}"
                )
                self._clear_puzzle()
                return True

            resolved = self.challenge_state.resolve(challenge, success=True)
            self._clear_puzzle()
            if not resolved:
                return False

            package_name = challenge.locked_package
            self.sessions.mark_completed(package_name)
            if self.stats is not None:
                self.stats.record_success()
            logger.info(f"Unlocked {package_name}")
            self._notify(self.on_allow, package_name)
            return True
        finally:
            self._answer_lock.release()

    def _fail_challenge(self, challenge: Challenge) -> None:
        resolved = self.challenge_state.resolve(challenge, success=False)
        self._clear_puzzle()
        if not resolved:
            # Expired or replaced meanwhile; the expiry path already denied it
            return
        if self.stats is not None:
            self.stats.record_failure()
        if self.feedback is not None:
            self.feedback.play_wrong_answer_feedback()
        self._notify(self.on_deny, challenge.locked_package)

    # ------------------------------------------------------------------
    # Timeouts and reset
    # ------------------------------------------------------------------

    def sweep_timeouts(self) -> Optional[Challenge]:
        """
        Clear the active challenge if it has timed out.

        The failure path runs through the expiry callback.

        Returns:
            The expired challenge, or None.
        """
        return self.challenge_state.expire_if_stale()

    def _handle_expired(self, challenge: Challenge) -> None:
        logger.info(f"Challenge for {challenge.locked_package} expired, denying access")
        self._clear_puzzle()
        if self.stats is not None:
            self.stats.record_timeout()
        self._notify(self.on_deny, challenge.locked_package)

    def reset(self) -> None:
        """Drop the active challenge and end every session."""
        self.challenge_state.reset()
        self.sessions.end_all_sessions()
        self._clear_puzzle()
        self.current_foreground = None
        logger.info("Coordinator reset: all sessions ended")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _master_disabled(self) -> bool:
        return bool(self.settings is not None and self.settings.master_disable)

    def _challenges_required(self) -> int:
        if self.settings is None:
            return 1
        return max(1, self.settings.challenges_required)

    def _clear_puzzle(self) -> None:
        with self._puzzle_lock:
            self._puzzle = None
            self._puzzle_challenge = None

    def _notify(self, callback: Optional[Callable], argument) -> None:
        """Invoke a UI callback, logging (not raising) its errors."""
        if callback is None:
            return
        try:
            callback(argument)
        except Exception as e:
            logger.error(f"Error in coordinator callback: {e}")
