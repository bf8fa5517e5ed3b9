"""
Challenge package — Stroop colour-naming puzzles shown before unlocking an app.
"""

from challenge.stroop import StroopPuzzle, generate_puzzle, check_answer

__all__ = ["StroopPuzzle", "generate_puzzle", "check_answer"]
