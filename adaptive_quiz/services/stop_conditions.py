"""Performance-based stop rules for adaptive quizzes.

evaluate_stop_conditions() looks at a session transcript and decides whether
the quiz should end regardless of what the question generator wants. Rules
run in a fixed order and the first match wins:

1. 3 consecutive wrong answers on Easy questions (only Easy items count;
   a correct Easy answer resets the streak, other difficulties are skipped)
2. 3 or more wrong among the first 5 Hard questions (needs at least 5 Hard)
3. 4 wrong Medium answers in total
4. 10 questions asked, answered or not
"""

from dataclasses import dataclass
from typing import Optional, Iterable

from adaptive_quiz.services.difficulty import Difficulty, normalize_difficulty

EASY_CONSECUTIVE_WRONG_LIMIT = 3
HARD_WINDOW = 5
HARD_WRONG_LIMIT = 3
MEDIUM_WRONG_LIMIT = 4
MAX_QUESTIONS = 10

REASON_EASY = "Quiz stopped: 3 consecutive wrong answers on Easy questions"
REASON_HARD = "Quiz stopped: 3 out of 5 Hard questions answered incorrectly"
REASON_MEDIUM = "Quiz stopped: 4 Medium questions answered incorrectly"
REASON_MAX = "Quiz stopped: Maximum 10 questions reached"


@dataclass(frozen=True)
class StopDecision:
    should_stop: bool
    reason: Optional[str] = None


CONTINUE = StopDecision(should_stop=False)


def _answered(responses: Iterable[dict]) -> list[dict]:
    return [r for r in responses if r.get("is_correct") is not None]


def _with_difficulty(responses: list[dict], difficulty: Difficulty) -> list[dict]:
    return [r for r in responses if normalize_difficulty(r.get("difficulty")) == difficulty]


def has_consecutive_easy_failures(answered: list[dict]) -> bool:
    streak = 0
    for response in _with_difficulty(answered, Difficulty.EASY):
        if response["is_correct"] is False:
            streak += 1
            if streak >= EASY_CONSECUTIVE_WRONG_LIMIT:
                return True
        else:
            streak = 0
    return False


def has_early_hard_failures(answered: list[dict]) -> bool:
    hard = _with_difficulty(answered, Difficulty.HARD)
    if len(hard) < HARD_WINDOW:
        return False
    wrong = sum(1 for r in hard[:HARD_WINDOW] if r["is_correct"] is False)
    return wrong >= HARD_WRONG_LIMIT


def has_cumulative_medium_failures(answered: list[dict]) -> bool:
    medium = _with_difficulty(answered, Difficulty.MEDIUM)
    return sum(1 for r in medium if r["is_correct"] is False) >= MEDIUM_WRONG_LIMIT


def evaluate_stop_conditions(responses: list[dict]) -> StopDecision:
    """Decide whether a transcript (ordered by question number) must end the quiz."""
    if not responses:
        return CONTINUE

    answered = _answered(responses)
    if not answered:
        return CONTINUE

    if has_consecutive_easy_failures(answered):
        return StopDecision(True, REASON_EASY)
    if has_early_hard_failures(answered):
        return StopDecision(True, REASON_HARD)
    if has_cumulative_medium_failures(answered):
        return StopDecision(True, REASON_MEDIUM)
    if len(responses) >= MAX_QUESTIONS:
        return StopDecision(True, REASON_MAX)

    return CONTINUE
