"""Tests for the performance-based stop rules."""

from adaptive_quiz.services.stop_conditions import (
    REASON_EASY,
    REASON_HARD,
    REASON_MAX,
    REASON_MEDIUM,
    evaluate_stop_conditions,
)


def _r(difficulty, is_correct):
    return {"difficulty": difficulty, "is_correct": is_correct, "user_answer": "A" if is_correct is not None else None}


class TestEasyRule:

    def test_three_consecutive_easy_failures_stop(self):
        decision = evaluate_stop_conditions([_r("Easy", False)] * 3)
        assert decision.should_stop is True
        assert decision.reason == REASON_EASY

    def test_correct_easy_answer_resets_streak(self):
        responses = [_r("Easy", False), _r("Easy", False), _r("Easy", True), _r("Easy", False)]
        assert evaluate_stop_conditions(responses).should_stop is False

    def test_other_difficulties_do_not_break_streak(self):
        responses = [
            _r("Easy", False),
            _r("Medium", True),
            _r("Easy", False),
            _r("Hard", True),
            _r("easy", False),
        ]
        decision = evaluate_stop_conditions(responses)
        assert decision.reason == REASON_EASY

    def test_beginner_label_counts_as_easy(self):
        decision = evaluate_stop_conditions([_r("Beginner", False)] * 3)
        assert decision.reason == REASON_EASY


class TestHardRule:

    def test_three_of_first_five_hard_wrong_stop(self):
        responses = [
            _r("Hard", False),
            _r("Hard", True),
            _r("Hard", False),
            _r("Hard", True),
            _r("Hard", False),
        ]
        decision = evaluate_stop_conditions(responses)
        assert decision.reason == REASON_HARD

    def test_needs_five_hard_questions(self):
        responses = [_r("Hard", False)] * 3 + [_r("Hard", True)]
        assert evaluate_stop_conditions(responses).should_stop is False

    def test_only_first_five_hard_count(self):
        responses = [_r("Hard", True)] * 3 + [_r("Hard", False)] * 2 + [_r("Hard", False)]
        assert evaluate_stop_conditions(responses).should_stop is False


class TestMediumRule:

    def test_four_medium_failures_stop(self):
        responses = [_r("Medium", False), _r("Medium", True)] * 4
        decision = evaluate_stop_conditions(responses)
        assert decision.reason == REASON_MEDIUM

    def test_three_medium_failures_continue(self):
        responses = [_r("Medium", False)] * 3 + [_r("Medium", True)] * 3
        assert evaluate_stop_conditions(responses).should_stop is False

    def test_unknown_difficulty_counts_as_medium(self):
        responses = [_r("Expert", False)] * 4
        assert evaluate_stop_conditions(responses).reason == REASON_MEDIUM


class TestMaxQuestions:

    def test_ten_questions_stop(self):
        decision = evaluate_stop_conditions([_r("Medium", True)] * 10)
        assert decision.reason == REASON_MAX

    def test_unanswered_entries_count_towards_cap(self):
        responses = [_r("Medium", True)] * 9 + [_r("Medium", None)]
        assert evaluate_stop_conditions(responses).reason == REASON_MAX

    def test_nine_questions_continue(self):
        assert evaluate_stop_conditions([_r("Medium", True)] * 9).should_stop is False


class TestPrecedence:

    def test_easy_rule_wins_over_cap(self):
        responses = [_r("Medium", True)] * 7 + [_r("Easy", False)] * 3
        assert evaluate_stop_conditions(responses).reason == REASON_EASY

    def test_hard_rule_wins_over_medium_rule(self):
        responses = [_r("Medium", False)] * 4 + [_r("Hard", False)] * 3 + [_r("Hard", True)] * 2
        assert evaluate_stop_conditions(responses).reason == REASON_HARD


class TestEmptyTranscripts:

    def test_empty_transcript_continues(self):
        decision = evaluate_stop_conditions([])
        assert decision.should_stop is False
        assert decision.reason is None

    def test_nothing_answered_continues(self):
        assert evaluate_stop_conditions([_r("Easy", None)]).should_stop is False
