"""Tests for turning adaptive sessions into stored quizzes."""

import pytest

from adaptive_quiz.db import adaptive_store as store
from adaptive_quiz.errors import MaterializationFailed, StorageFailure
from adaptive_quiz.services.materializer import (
    correct_flags,
    materialize_safely,
    materialize_session,
    option_text,
    quiz_title,
    replay_failed_materializations,
)

from conftest import COURSE_ID, SECTION_ID, SUBJECT_ID

OPTIONS = [
    {"label": "A", "text": "Mitosis"},
    {"label": "B", "text": "Meiosis"},
    {"label": "C", "text": "Osmosis"},
]


async def _session(db, status=store.STATUS_COMPLETED):
    return await store.create_session(
        db,
        user_id="user-1",
        section_id=SECTION_ID,
        course_id=COURSE_ID,
        subject_id=SUBJECT_ID,
        main_topic="Punnett squares",
        topic_hierarchy="Biology > Genetics",
        future_topic="Evolution",
        student_level="intermediate",
        target_length=10,
        status=status,
    )


async def _add_response(db, session_id, number, correct_option, options=OPTIONS):
    return await store.create_response(
        db,
        session_id=session_id,
        question_number=number,
        question_text=f"Question {number}",
        difficulty="Medium",
        options=options,
        correct_option=correct_option,
        explanation=f"Explanation {number}",
    )


class TestCorrectFlags:

    def test_match_by_text(self):
        assert correct_flags(OPTIONS, {"label": "Z", "text": "Meiosis"}) == [False, True, False]

    def test_label_used_when_no_text_matches(self):
        assert correct_flags(OPTIONS, {"label": "C", "text": "osmosis (water)"}) == [False, False, True]

    def test_text_match_wins_over_label(self):
        # Label points at A, text at B: only B is flagged
        assert correct_flags(OPTIONS, {"label": "A", "text": "Meiosis"}) == [False, True, False]

    def test_bare_string_matches_text_or_label(self):
        assert correct_flags(OPTIONS, "Osmosis") == [False, False, True]
        assert correct_flags(OPTIONS, "A") == [True, False, False]

    def test_missing_correct_option(self):
        assert correct_flags(OPTIONS, None) == [False, False, False]
        assert correct_flags(OPTIONS, "") == [False, False, False]

    def test_plain_string_options(self):
        assert correct_flags(["1:1", "3:1"], "3:1") == [False, True]


class TestOptionText:

    def test_fallbacks(self):
        assert option_text({"label": "A", "text": "Mitosis"}, 0) == "Mitosis"
        assert option_text({"label": "B"}, 1) == "B"
        assert option_text({}, 2) == "Option 3"
        assert option_text("Plain", 0) == "Plain"


class TestMaterializeSession:

    async def test_creates_quiz_questions_and_options(self, db):
        session = await _session(db)
        await _add_response(db, session["id"], 1, {"label": "B", "text": "Meiosis"})
        await _add_response(db, session["id"], 2, {"label": "C", "text": "Osmosis"})

        quiz_id = await materialize_session(db, session["id"])

        quiz = await store.get_quiz_by_session(db, session["id"])
        assert quiz["id"] == quiz_id
        assert quiz["title"] == quiz_title("Punnett squares")
        assert quiz["title"] == "Adaptive Quiz: Punnett squares (Generated)"
        assert quiz["section_id"] == SECTION_ID

        questions = await store.get_quiz_questions(db, quiz_id)
        assert [q["text"] for q in questions] == ["Question 1", "Question 2"]
        assert [q["order_index"] for q in questions] == [1, 2]
        assert questions[0]["type"] == "mcq"
        assert questions[0]["explanation"] == "Explanation 1"

        flags = {o["option_text"]: o["correct"] for o in questions[0]["options"]}
        assert flags == {"Mitosis": False, "Meiosis": True, "Osmosis": False}
        second = [o for o in questions[1]["options"] if o["correct"]]
        assert [o["option_text"] for o in second] == ["Osmosis"]

    async def test_question_without_options(self, db):
        session = await _session(db)
        await _add_response(db, session["id"], 1, None, options=[])

        quiz_id = await materialize_session(db, session["id"])

        questions = await store.get_quiz_questions(db, quiz_id)
        assert len(questions) == 1
        assert questions[0]["options"] == []

    async def test_failed_question_is_skipped(self, db, monkeypatch):
        session = await _session(db)
        await _add_response(db, session["id"], 1, "Mitosis")
        await _add_response(db, session["id"], 2, "Osmosis")
        real_create = store.create_quiz_question

        async def fail_first_question(db_, quiz_id, text, order_index, **kwargs):
            if order_index == 1:
                raise StorageFailure()
            return await real_create(db_, quiz_id, text, order_index, **kwargs)

        monkeypatch.setattr(store, "create_quiz_question", fail_first_question)

        quiz_id = await materialize_session(db, session["id"])

        assert (await store.get_quiz_by_session(db, session["id"]))["id"] == quiz_id
        questions = await store.get_quiz_questions(db, quiz_id)
        assert [q["text"] for q in questions] == ["Question 2"]
        flags = {o["option_text"]: o["correct"] for o in questions[0]["options"]}
        assert flags == {"Mitosis": False, "Meiosis": False, "Osmosis": True}

    async def test_missing_session(self, db):
        with pytest.raises(MaterializationFailed):
            await materialize_session(db, "no-such-session")

    async def test_empty_transcript(self, db):
        session = await _session(db)
        with pytest.raises(MaterializationFailed):
            await materialize_session(db, session["id"])


class TestDeadLetters:

    async def test_failure_is_parked_not_raised(self, db):
        session = await _session(db)

        assert await materialize_safely(db, session["id"]) is None

        failures = await store.list_unresolved_failures(db)
        assert len(failures) == 1
        assert failures[0]["session_id"] == session["id"]
        assert failures[0]["attempts"] == 1
        assert "no responses" in failures[0]["error"]

    async def test_repeated_failure_bumps_attempts(self, db):
        session = await _session(db)
        await materialize_safely(db, session["id"])
        await materialize_safely(db, session["id"])

        failures = await store.list_unresolved_failures(db)
        assert len(failures) == 1
        assert failures[0]["attempts"] == 2

    async def test_replay_resolves_once_transcript_is_usable(self, db):
        session = await _session(db)
        await materialize_safely(db, session["id"])
        await _add_response(db, session["id"], 1, "Meiosis")

        result = await replay_failed_materializations(db)

        assert result == {"resolved": 1, "failed": 0}
        assert await store.list_unresolved_failures(db) == []
        assert await store.get_quiz_by_session(db, session["id"]) is not None

    async def test_replay_keeps_failing_entries(self, db):
        session = await _session(db)
        await materialize_safely(db, session["id"])

        result = await replay_failed_materializations(db)

        assert result == {"resolved": 0, "failed": 1}
        failures = await store.list_unresolved_failures(db)
        assert failures[0]["attempts"] == 2

    async def test_replay_skips_sessions_that_already_have_a_quiz(self, db):
        session = await _session(db)
        await _add_response(db, session["id"], 1, "Meiosis")
        await materialize_session(db, session["id"])
        await store.record_materialization_failure(db, session["id"], "stale")

        result = await replay_failed_materializations(db)

        assert result == {"resolved": 1, "failed": 0}
        questions_quizzes = await db.execute(
            "SELECT COUNT(*) AS n FROM quizzes WHERE source_session_id = ?", (session["id"],)
        )
        assert (await questions_quizzes.fetchone())["n"] == 1
