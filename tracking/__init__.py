"""
Tracking package — persisted challenge outcome statistics.
"""

from tracking.stats import ChallengeStats

__all__ = ["ChallengeStats"]
