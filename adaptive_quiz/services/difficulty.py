"""Difficulty and student-level vocabulary for adaptive quizzes.

The question generator labels questions with free-form difficulty strings
("easy", "Beginner", "HARD", ...). Everything downstream works with the
closed Difficulty enum produced by normalize_difficulty().
"""

import logging
from enum import Enum

logger = logging.getLogger(__name__)


class Difficulty(str, Enum):
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"


class StudentLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


# Every accepted spelling, lower-cased
DIFFICULTY_SYNONYMS = {
    "easy": Difficulty.EASY,
    "beginner": Difficulty.EASY,
    "medium": Difficulty.MEDIUM,
    "intermediate": Difficulty.MEDIUM,
    "hard": Difficulty.HARD,
    "advanced": Difficulty.HARD,
}

# Caller-facing difficulty choice -> level sent to the generator
LEVEL_BY_CHOICE = {
    "Beginner": StudentLevel.BEGINNER,
    "Intermediate": StudentLevel.INTERMEDIATE,
    "Advanced": StudentLevel.ADVANCED,
}


def normalize_difficulty(label) -> Difficulty:
    """Map a generator difficulty label onto the Difficulty enum.

    Unknown or missing labels are logged and treated as Medium.
    """
    if isinstance(label, Difficulty):
        return label
    key = label.strip().lower() if isinstance(label, str) else ""
    difficulty = DIFFICULTY_SYNONYMS.get(key)
    if difficulty is None:
        logger.warning("Unrecognized question difficulty %r, defaulting to Medium", label)
        return Difficulty.MEDIUM
    return difficulty


def level_for_choice(choice: str | None) -> StudentLevel:
    """Student level for a Beginner/Intermediate/Advanced choice (default intermediate)."""
    return LEVEL_BY_CHOICE.get(choice or "Intermediate", StudentLevel.INTERMEDIATE)
