"""
Core business logic package for str00py.

Contains the headless LockCoordinator and the state it drives: the
single-slot ChallengeState, the completed-set SessionTracker and the
LockRegistry facade. Zero UI dependencies.
"""

from core.challenge_state import Challenge, ChallengeState
from core.coordinator import LockCoordinator
from core.errors import InvalidStateError, LockerError, StorageError
from core.registry import LockRegistry
from core.sessions import SessionTracker

__all__ = [
    "Challenge",
    "ChallengeState",
    "LockCoordinator",
    "LockRegistry",
    "SessionTracker",
    "LockerError",
    "StorageError",
    "InvalidStateError",
]
