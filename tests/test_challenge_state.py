"""
Tests for core/challenge_state.py — the single-slot challenge state machine.
"""

import sys
import threading
import unittest
from pathlib import Path
from unittest.mock import MagicMock

sys.path.insert(0, str(Path(__file__).parent.parent))

from core.challenge_state import (
    Challenge,
    ChallengeState,
    STATE_IDLE,
    STATE_IN_PROGRESS,
)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestChallengeStateTransitions(unittest.TestCase):
    """IDLE <-> IN_PROGRESS transitions."""

    def setUp(self):
        self.clock = FakeClock()
        self.state = ChallengeState(timeout_seconds=30, clock=self.clock)

    def test_initial_state_is_idle(self):
        self.assertEqual(self.state.state, STATE_IDLE)
        self.assertFalse(self.state.is_in_progress())
        self.assertIsNone(self.state.current())

    def test_start_records_package_and_time(self):
        challenge = self.state.start_challenge("com.a")
        self.assertEqual(challenge.locked_package, "com.a")
        self.assertEqual(challenge.start_time, 1000.0)
        self.assertEqual(self.state.state, STATE_IN_PROGRESS)
        self.assertEqual(self.state.current(), challenge)

    def test_start_is_idempotent_for_same_package(self):
        """Starting twice for "com.a" returns the same start time."""
        first = self.state.start_challenge("com.a")
        self.clock.advance(5)
        second = self.state.start_challenge("com.a")
        self.assertEqual(first.start_time, second.start_time)
        self.assertEqual(first, second)

    def test_start_for_other_package_keeps_existing(self):
        first = self.state.start_challenge("com.a")
        self.assertIsNone(self.state.start_challenge("com.b"))
        self.assertEqual(self.state.current(), first)

    def test_start_rejects_empty_package(self):
        with self.assertRaises(ValueError):
            self.state.start_challenge("")

    def test_complete_success_returns_package(self):
        self.state.start_challenge("com.a")
        self.assertEqual(self.state.complete_challenge(True), "com.a")
        self.assertFalse(self.state.is_in_progress())

    def test_complete_failure_returns_none_and_clears(self):
        self.state.start_challenge("com.a")
        self.assertIsNone(self.state.complete_challenge(False))
        self.assertFalse(self.state.is_in_progress())
        self.assertIsNone(self.state.current())

    def test_complete_while_idle_is_noop(self):
        """Completing with nothing in progress returns None without raising."""
        self.assertIsNone(self.state.complete_challenge(True))
        self.assertIsNone(self.state.complete_challenge(False))
        self.assertEqual(self.state.state, STATE_IDLE)

    def test_new_challenge_after_completion_has_new_start_time(self):
        first = self.state.start_challenge("com.a")
        self.state.complete_challenge(False)
        self.clock.advance(2)
        second = self.state.start_challenge("com.a")
        self.assertNotEqual(first.start_time, second.start_time)

    def test_record_correct_answer_counts_up(self):
        self.state.start_challenge("com.a")
        self.assertEqual(self.state.record_correct_answer(), 1)
        self.assertEqual(self.state.record_correct_answer(), 2)
        current = self.state.current()
        self.assertEqual(current.correct_answers, 2)
        self.assertEqual(current.start_time, 1000.0)

    def test_record_correct_answer_when_idle(self):
        self.assertEqual(self.state.record_correct_answer(), 0)

    def test_record_correct_answer_for_replaced_challenge(self):
        old = self.state.start_challenge("com.a")
        self.state.reset()
        self.clock.advance(1)
        self.state.start_challenge("com.a")
        self.assertEqual(self.state.record_correct_answer(expected=old), 0)
        self.assertEqual(self.state.current().correct_answers, 0)

    def test_resolve_clears_matching_challenge(self):
        challenge = self.state.start_challenge("com.a")
        self.state.record_correct_answer()
        # Answer count differs but it is the same attempt
        self.assertTrue(self.state.resolve(challenge, success=True))
        self.assertFalse(self.state.is_in_progress())
        self.assertFalse(self.state.resolve(challenge, success=True))

    def test_resolve_leaves_newer_challenge_alone(self):
        old = self.state.start_challenge("com.a")
        self.state.reset()
        self.clock.advance(1)
        newer = self.state.start_challenge("com.b")
        self.assertFalse(self.state.resolve(old, success=False))
        self.assertEqual(self.state.current(), newer)

    def test_reset_clears_without_callback(self):
        on_expired = MagicMock()
        self.state.on_expired = on_expired
        self.state.start_challenge("com.a")
        self.state.reset()
        self.assertFalse(self.state.is_in_progress())
        on_expired.assert_not_called()

    def test_challenge_is_immutable(self):
        challenge = self.state.start_challenge("com.a")
        with self.assertRaises(Exception):
            challenge.locked_package = "com.b"

    def test_invalid_timeout_rejected(self):
        with self.assertRaises(ValueError):
            ChallengeState(timeout_seconds=0)


class TestChallengeStateTimeout(unittest.TestCase):
    """Timeout expiry is observed by queries and reported once."""

    def setUp(self):
        self.clock = FakeClock()
        self.on_expired = MagicMock()
        self.state = ChallengeState(
            timeout_seconds=30, clock=self.clock, on_expired=self.on_expired
        )

    def test_query_after_timeout_reports_idle(self):
        """Challenge for "com.b" started at T is gone at T + 31s."""
        self.state.start_challenge("com.b")
        self.clock.advance(31)
        self.assertFalse(self.state.is_in_progress())
        self.assertIsNone(self.state.current())

    def test_exactly_at_timeout_is_still_active(self):
        self.state.start_challenge("com.b")
        self.clock.advance(30)
        self.assertTrue(self.state.is_in_progress())

    def test_expiry_callback_fires_once(self):
        challenge = self.state.start_challenge("com.b")
        self.clock.advance(31)
        self.state.is_in_progress()
        self.state.current()
        self.on_expired.assert_called_once_with(challenge)

    def test_expire_if_stale_returns_challenge(self):
        challenge = self.state.start_challenge("com.b")
        self.assertIsNone(self.state.expire_if_stale())
        self.clock.advance(31)
        self.assertEqual(self.state.expire_if_stale(), challenge)
        self.assertIsNone(self.state.expire_if_stale())

    def test_complete_after_timeout_returns_none(self):
        self.state.start_challenge("com.b")
        self.clock.advance(31)
        self.assertIsNone(self.state.complete_challenge(True))
        self.on_expired.assert_called_once()

    def test_start_after_timeout_replaces_stale_challenge(self):
        self.state.start_challenge("com.a")
        self.clock.advance(31)
        challenge = self.state.start_challenge("com.b")
        self.assertIsNotNone(challenge)
        self.assertEqual(challenge.locked_package, "com.b")
        self.on_expired.assert_called_once()

    def test_age(self):
        self.assertIsNone(self.state.age())
        self.state.start_challenge("com.a")
        self.clock.advance(12)
        self.assertEqual(self.state.age(), 12)

    def test_resolve_after_timeout_reports_expiry_only(self):
        challenge = self.state.start_challenge("com.b")
        self.clock.advance(31)
        self.assertFalse(self.state.resolve(challenge, success=False))
        self.on_expired.assert_called_once_with(challenge)

    def test_callback_error_does_not_propagate(self):
        self.state.on_expired = MagicMock(side_effect=RuntimeError("boom"))
        self.state.start_challenge("com.a")
        self.clock.advance(31)
        self.assertFalse(self.state.is_in_progress())


class TestChallengeStateConcurrency(unittest.TestCase):
    """Concurrent starts must not produce two challenges."""

    def test_concurrent_starts_single_winner(self):
        state = ChallengeState(timeout_seconds=30)
        barrier = threading.Barrier(8)
        results = []
        results_lock = threading.Lock()

        def start(package_name):
            barrier.wait()
            result = state.start_challenge(package_name)
            with results_lock:
                results.append(result)

        threads = [
            threading.Thread(target=start, args=(f"com.app{i}",)) for i in range(8)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        winners = [r for r in results if r is not None]
        self.assertEqual(len(winners), 1)
        self.assertEqual(state.current(), winners[0])
        self.assertIsInstance(winners[0], Challenge)


if __name__ == "__main__":
    unittest.main()
