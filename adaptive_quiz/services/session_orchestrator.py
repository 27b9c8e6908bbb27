"""
session_orchestrator.py - Adaptive quiz session state machine

Provides:
- start_session(...)        - Create a session and its first question (or resume the active one)
- resume_session(...)       - Find the active session and the question to show next
- check_status(...)         - Non-throwing "is there an active quiz here?" lookup
- advance_session(...)      - Record an answer, apply stop rules, fetch the next question
- get_session_summary(...)  - Score a session without changing it
- finish_session(...)       - Explicitly complete an active session
- abandon_session(...)      - Explicitly stop an active session without archiving it

Session status moves active -> completed (generator stop or finish) or
active -> stopped (performance stop or abandon) and never back. Terminated
sessions with a transcript are materialized into a quiz on a best-effort basis.
"""

import logging
from typing import Optional, Dict, Any, List

from adaptive_quiz.auth import resolve_user_id
from adaptive_quiz.config import settings
from adaptive_quiz.db import adaptive_store as store
from adaptive_quiz.errors import (
    AuthenticationRequired,
    DuplicateRecord,
    InvalidState,
    ResponseNotFound,
    SectionNotFound,
    SessionNotFound,
)
from adaptive_quiz.models.adaptive_quiz import PreviousAnswer
from adaptive_quiz.services.difficulty import level_for_choice
from adaptive_quiz.services.materializer import materialize_safely
from adaptive_quiz.services.question_generator import (
    GeneratedQuestion,
    GenerationRequest,
    QuestionGenerator,
    VERDICT_CORRECT,
    VERDICT_NOT_ANSWERED,
    VERDICT_WRONG,
)
from adaptive_quiz.services.stop_conditions import evaluate_stop_conditions
from adaptive_quiz.services.topic_context import build_future_topics, build_section_context

logger = logging.getLogger(__name__)


# ── Transcript helpers ───────────────────────────────────────────────

def is_answered(response: Dict[str, Any]) -> bool:
    return response.get("user_answer") not in (None, "")


def verdict_for(response: Dict[str, Any]) -> str:
    if response.get("is_correct") is True:
        return VERDICT_CORRECT
    if response.get("is_correct") is False:
        return VERDICT_WRONG
    return VERDICT_NOT_ANSWERED


def build_conversation_history(responses: List[Dict[str, Any]]) -> List[str]:
    """One line per transcript entry, as sent to the generator."""
    return [
        f"Question {r['question_number']} ({r.get('difficulty')}): "
        f"{r['question_text']} - {verdict_for(r)}"
        for r in responses
    ]


def build_resume_state(session: Dict[str, Any], responses: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Where a learner picks up an active session.

    currentQuestion is the first unanswered entry. When every entry is
    answered, stop and awaitingAdvance are true: the session is still active
    and the caller must call advance (or finish) to move it on.
    """
    ordered = sorted(responses, key=lambda r: r["question_number"])
    first_unanswered = next((r for r in ordered if not is_answered(r)), None)
    last_answered = next((r for r in reversed(ordered) if is_answered(r)), None)
    stop = first_unanswered is None

    return {
        "session": session,
        "currentQuestion": first_unanswered,
        "firstQuestion": first_unanswered,
        "lastAnsweredQuestion": last_answered,
        "resume": True,
        "stop": stop,
        "awaitingAdvance": stop,
    }


def score_responses(responses: List[Dict[str, Any]]) -> Dict[str, int]:
    answered = sum(1 for r in responses if is_answered(r))
    correct = sum(1 for r in responses if r.get("is_correct") is True)
    # Round half up
    score = int(correct * 100 / answered + 0.5) if answered else 0
    return {
        "totalQuestions": len(responses),
        "answeredQuestions": answered,
        "correctAnswers": correct,
        "score": score,
    }


async def _resume_payload(db, session: Dict[str, Any]) -> Dict[str, Any]:
    responses = await store.get_session_responses(db, session["id"])
    return build_resume_state(session, responses)


async def _store_question(db, session_id: str, question_number: int, question: GeneratedQuestion):
    return await store.create_response(
        db,
        session_id=session_id,
        question_number=question_number,
        question_text=question.question,
        difficulty=question.difficulty,
        options=question.options,
        correct_option=question.correct_option,
        explanation=question.explanation,
    )


async def _get_active_session(db, session_id: str, user_id: str) -> Dict[str, Any]:
    session = await store.get_user_session(db, session_id, user_id)
    if not session:
        raise SessionNotFound()
    if session["status"] != store.STATUS_ACTIVE:
        raise InvalidState(f"Quiz session is not active (status: {session['status']})")
    return session


# ── Operations ───────────────────────────────────────────────────────

async def start_session(
    db,
    generator: QuestionGenerator,
    *,
    course_id: str,
    subject_id: str,
    section_id: str,
    section_title: Optional[str] = None,
    user_id: Optional[str] = None,
    user_token: Optional[str] = None,
    difficulty: Optional[str] = None,
    target_length: Optional[int] = None,
) -> Dict[str, Any]:
    user_id = resolve_user_id(user_id, user_token)

    context = await build_section_context(db, course_id, subject_id, section_id)
    if not context:
        raise SectionNotFound()

    existing = await store.find_active_session(db, user_id, context.section_id)
    if existing:
        logger.info("Resuming active adaptive session %s for user %s", existing["id"], user_id)
        return await _resume_payload(db, existing)

    student_level = level_for_choice(difficulty).value
    target_length = target_length or settings.default_target_length
    main_topic = context.main_topic or section_title or context.section_title
    topic_hierarchy = context.topic_hierarchy
    future_topic = await build_future_topics(db, context)

    # Nothing is written until the generator answers, so a failed call can be retried
    result = await generator.generate(
        GenerationRequest(
            main_topic=main_topic,
            topic_hierarchy=topic_hierarchy,
            future_topic=future_topic,
            student_level=student_level,
            question_number=1,
            target_length=target_length,
            conversation_history=[],
            previous_verdict=None,
        )
    )

    try:
        session = await store.create_session(
            db,
            user_id=user_id,
            section_id=context.section_id,
            course_id=context.course_id,
            subject_id=context.subject_id,
            main_topic=main_topic,
            topic_hierarchy=topic_hierarchy,
            future_topic=future_topic,
            student_level=student_level,
            target_length=target_length,
            status=store.STATUS_COMPLETED if result.stop else store.STATUS_ACTIVE,
        )
    except DuplicateRecord:
        # A concurrent start for the same section won the race
        winner = await store.find_active_session(db, user_id, context.section_id)
        if winner is None:
            raise
        logger.info("Concurrent start for section %s, resuming session %s", section_id, winner["id"])
        return await _resume_payload(db, winner)

    if result.stop:
        logger.info("Generator stopped adaptive session %s before the first question", session["id"])
        return {
            "session": session,
            "firstQuestion": None,
            "currentQuestion": None,
            "lastAnsweredQuestion": None,
            "resume": False,
            "stop": True,
            "summary": result.summary,
        }

    first_question = await _store_question(db, session["id"], 1, result.question)
    logger.info("Started adaptive session %s for user %s", session["id"], user_id)
    return {
        "session": session,
        "firstQuestion": first_question,
        "currentQuestion": first_question,
        "lastAnsweredQuestion": None,
        "resume": False,
        "stop": False,
    }


async def resume_session(
    db,
    *,
    user_id: Optional[str] = None,
    user_token: Optional[str] = None,
    section_id: Optional[str] = None,
) -> Dict[str, Any]:
    user_id = resolve_user_id(user_id, user_token)

    session = await store.find_active_session(db, user_id, section_id)
    if not session:
        return {
            "session": None,
            "currentQuestion": None,
            "firstQuestion": None,
            "lastAnsweredQuestion": None,
            "resume": False,
            "stop": True,
            "awaitingAdvance": False,
        }
    return await _resume_payload(db, session)


async def check_status(db, user_id: Optional[str], section_id: str) -> Dict[str, Any]:
    if not user_id:
        raise AuthenticationRequired()

    try:
        session = await store.find_active_session(db, user_id, section_id)
    except Exception as e:
        logger.warning("Adaptive quiz status lookup failed for section %s: %s", section_id, e)
        return {"hasActiveQuiz": False}

    if not session:
        return {"hasActiveQuiz": False}
    return {"hasActiveQuiz": True, "sessionId": session["id"]}


async def advance_session(
    db,
    generator: QuestionGenerator,
    *,
    session_id: str,
    user_id: str,
    previous_answer: Optional[PreviousAnswer] = None,
) -> Dict[str, Any]:
    session = await _get_active_session(db, session_id, user_id)

    if previous_answer is not None:
        answered = await store.get_session_response(db, session_id, previous_answer.question_id)
        if not answered:
            raise ResponseNotFound()
        await store.record_answer(
            db,
            session_id=session_id,
            response_id=previous_answer.question_id,
            selected_option=previous_answer.selected_option,
            is_correct=previous_answer.is_correct,
        )

    responses = await store.get_session_responses(db, session_id)

    decision = evaluate_stop_conditions(responses)
    if decision.should_stop:
        logger.info("Adaptive session %s stopped on performance: %s", session_id, decision.reason)
        await store.update_session_status(db, session_id, store.STATUS_STOPPED)
        await materialize_safely(db, session_id)
        return {
            "question": None,
            "stop": True,
            "summary": {
                "reason": decision.reason,
                "totalQuestions": len(responses),
                "performance_stop": True,
            },
        }

    # At most one pending question; a retried or bare advance gets it back
    pending = next((r for r in responses if not is_answered(r)), None)
    if pending is not None:
        logger.info(
            "Adaptive session %s still has question %d open, not generating another",
            session_id, pending["question_number"],
        )
        return {"question": pending, "stop": False}

    history = build_conversation_history(responses)
    previous_verdict = None
    if previous_answer is not None:
        previous_verdict = VERDICT_CORRECT if previous_answer.is_correct else VERDICT_WRONG

    # An empty transcript means the first question was never stored
    next_number = session["current_question_number"] + 1 if responses else 1
    result = await generator.generate(
        GenerationRequest(
            main_topic=session["main_topic"],
            topic_hierarchy=session["topic_hierarchy"],
            future_topic=session["future_topic"],
            student_level=session["student_level"],
            question_number=next_number,
            target_length=session["target_length"],
            conversation_history=history,
            previous_verdict=previous_verdict,
        )
    )

    if result.stop:
        logger.info("Generator completed adaptive session %s", session_id)
        await store.update_session_status(db, session_id, store.STATUS_COMPLETED)
        if responses:
            await materialize_safely(db, session_id)
        return {"question": None, "stop": True, "summary": result.summary}

    question = await _store_question(db, session_id, next_number, result.question)
    await store.update_session_progress(db, session_id, next_number, history)
    return {"question": question, "stop": False}


async def get_session_summary(db, *, session_id: str, user_id: str) -> Dict[str, Any]:
    session = await store.get_user_session(db, session_id, user_id)
    if not session:
        raise SessionNotFound()

    responses = await store.get_session_responses(db, session_id)
    return {
        "session": session,
        "responses": responses,
        "summary": score_responses(responses),
    }


async def finish_session(db, *, session_id: str, user_id: str) -> Dict[str, Any]:
    """Complete an active session on the caller's request and archive its transcript."""
    await _get_active_session(db, session_id, user_id)

    await store.update_session_status(db, session_id, store.STATUS_COMPLETED)
    responses = await store.get_session_responses(db, session_id)
    if responses:
        await materialize_safely(db, session_id)

    logger.info("Adaptive session %s finished by user %s", session_id, user_id)
    return {
        "session": await store.get_session(db, session_id),
        "responses": responses,
        "summary": score_responses(responses),
    }


async def abandon_session(db, *, session_id: str, user_id: str) -> Dict[str, Any]:
    """Stop an active session without creating a quiz, so the section can be restarted."""
    await _get_active_session(db, session_id, user_id)
    await store.update_session_status(db, session_id, store.STATUS_STOPPED)
    logger.info("Adaptive session %s abandoned by user %s", session_id, user_id)
    return {"session": await store.get_session(db, session_id)}
