"""
Stroop colour-naming puzzles.

The user sees a colour word (e.g. "Red") printed in a different ink colour
(e.g. blue) and must pick the ink colour, not the word. Answer buttons are
labelled with colour names, and every button label is itself drawn in some
other colour so reading the buttons is also interference-prone.
"""

import logging
import random
from dataclasses import dataclass
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


# Colour names and the hex values used to draw them
COLOR_MAP: Dict[str, str] = {
    "Red": "#FF0000",
    "Green": "#00FF00",
    "Blue": "#3366FF",
    "Yellow": "#CCFF33",
    "Pink": "#FF66FF",
    "Orange": "#FF6600",
    "Brown": "#FF8000",
    "Cyan": "#00FFFF",
    "Purple": "#8A00E6",
}

MAX_OPTIONS = 9

# Font sizing for the challenge word (points)
MAX_FONT_SIZE = 26.0
MIN_FONT_SIZE = 16.0
BASELINE_WORD_LENGTH = 3
FONT_REDUCTION_PER_CHAR = 1.5


@dataclass(frozen=True)
class StroopPuzzle:
    """One rendered puzzle: a word, its ink colour and the answer buttons."""
    word: str
    ink_color: str
    options: List[str]
    option_colors: List[str]

    @property
    def expected_answer(self) -> str:
        """The correct answer is always the ink colour."""
        return self.ink_color

    def ink_hex(self) -> str:
        return COLOR_MAP[self.ink_color]


def generate_puzzle(
    colors: Optional[List[str]] = None,
    rng: Optional[random.Random] = None,
) -> StroopPuzzle:
    """
    Generate a new Stroop puzzle.

    Args:
        colors: Colour names to draw from (default: all of COLOR_MAP).
        rng: Random source, injectable for deterministic tests.

    Returns:
        A StroopPuzzle whose word differs from its ink colour.

    Raises:
        ValueError: If fewer than two colours are available.
    """
    rng = rng or random.Random()
    available = list(colors) if colors is not None else list(COLOR_MAP)
    if len(available) < 2:
        raise ValueError("A Stroop puzzle needs at least two colours")

    word = rng.choice(available)
    ink_color = rng.choice([c for c in available if c != word])

    options, option_colors = _generate_options(available, ink_color, rng)
    logger.debug(f"Generated puzzle: word={word}, ink={ink_color}")
    return StroopPuzzle(
        word=word,
        ink_color=ink_color,
        options=options,
        option_colors=option_colors,
    )


def _generate_options(available: List[str], correct_answer: str, rng: random.Random):
    """
    Build shuffled button labels and their text colours.

    Text colours are a cyclic shift of the labels, so no button is drawn
    in the colour it names.
    """
    selected = list(available)
    rng.shuffle(selected)
    selected = selected[:MAX_OPTIONS]
    if correct_answer not in selected:
        selected[0] = correct_answer
        rng.shuffle(selected)

    if len(selected) <= 1:
        text_colors = list(selected)
    else:
        text_colors = selected[1:] + selected[:1]

    return selected, text_colors


def check_answer(puzzle: StroopPuzzle, selected_color: str) -> bool:
    """Return True if selected_color is the puzzle's ink colour."""
    return selected_color == puzzle.expected_answer


def font_size_for_word(word: str) -> float:
    """
    Font size for the challenge word so long names still fit.

    Three letters or fewer get the maximum size; each extra letter shrinks
    it by FONT_REDUCTION_PER_CHAR down to MIN_FONT_SIZE.
    """
    extra_chars = max(0, len(word) - BASELINE_WORD_LENGTH)
    return max(MIN_FONT_SIZE, MAX_FONT_SIZE - extra_chars * FONT_REDUCTION_PER_CHAR)
