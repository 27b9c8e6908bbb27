"""
materializer.py - Turn a finished adaptive session into a reusable quiz

Provides:
- materialize_session(db, session_id) - Create quiz/question/option rows from the transcript
- materialize_safely(db, session_id) - Best-effort wrapper used by the orchestrator;
  failures are logged and parked in the dead-letter table
- replay_failed_materializations(db) - Retry parked sessions
"""

import logging
from typing import Any, Optional

from adaptive_quiz.db import adaptive_store as store
from adaptive_quiz.errors import MaterializationFailed, QuizEngineError

logger = logging.getLogger(__name__)

QUESTION_TYPE = "mcq"


def quiz_title(main_topic: str) -> str:
    return f"Adaptive Quiz: {main_topic} (Generated)"


def _option_field(option: Any, key: str) -> Optional[str]:
    if isinstance(option, dict):
        return option.get(key)
    if isinstance(option, str) and key == "text":
        return option
    return None


def correct_flags(options: list, correct_option: Any) -> list[bool]:
    """Flag the options matching the recorded correct option.

    Options are matched by text; the label is only consulted when no option
    text matches. A bare string correct option may be either.
    """
    if correct_option is None or correct_option == "":
        return [False] * len(options)

    if isinstance(correct_option, str):
        correct_text = correct_label = correct_option
    else:
        correct_text = _option_field(correct_option, "text")
        correct_label = _option_field(correct_option, "label")

    by_text = [
        correct_text is not None and _option_field(o, "text") == correct_text for o in options
    ]
    if any(by_text):
        return by_text
    return [
        correct_label is not None and _option_field(o, "label") == correct_label for o in options
    ]


def option_text(option: Any, index: int) -> str:
    return _option_field(option, "text") or _option_field(option, "label") or f"Option {index + 1}"


async def materialize_session(db, session_id: str) -> str:
    """Create a quiz from a session transcript. Returns the quiz id.

    Raises MaterializationFailed when the session or its transcript is missing.
    A failure on an individual question is logged and skipped.
    """
    session = await store.get_session(db, session_id)
    if not session:
        raise MaterializationFailed(f"Adaptive quiz session {session_id} not found")

    responses = await store.get_session_responses(db, session_id)
    if not responses:
        raise MaterializationFailed(f"Adaptive quiz session {session_id} has no responses")

    quiz_id = await store.create_quiz(
        db,
        section_id=session["section_id"],
        title=quiz_title(session["main_topic"]),
        source_session_id=session_id,
    )

    created = 0
    for response in responses:
        try:
            question_id = await store.create_quiz_question(
                db,
                quiz_id=quiz_id,
                text=response["question_text"],
                order_index=response["question_number"],
                explanation=response.get("explanation") or "",
                question_type=QUESTION_TYPE,
            )
        except QuizEngineError as exc:
            logger.error(
                "Failed to create question %s for quiz %s: %s",
                response["question_number"], quiz_id, exc,
            )
            continue
        created += 1

        options = response.get("options") or []
        flags = correct_flags(options, response.get("correct_option"))
        for index, (option, correct) in enumerate(zip(options, flags)):
            try:
                await store.create_quiz_option(
                    db,
                    question_id=question_id,
                    option_text=option_text(option, index),
                    correct=correct,
                )
            except QuizEngineError as exc:
                logger.error("Failed to create option %d for question %s: %s", index, question_id, exc)

    logger.info(
        "Created quiz %s with %d/%d questions from adaptive session %s",
        quiz_id, created, len(responses), session_id,
    )
    return quiz_id


async def materialize_safely(db, session_id: str) -> Optional[str]:
    """Materialize without ever raising; failures go to the dead-letter table."""
    try:
        return await materialize_session(db, session_id)
    except Exception as exc:
        logger.error("Failed to create quiz from adaptive session %s: %s", session_id, exc)
        try:
            await store.record_materialization_failure(db, session_id, str(exc))
        except Exception as record_exc:
            logger.error(
                "Could not record materialization failure for session %s: %s",
                session_id, record_exc,
            )
        return None


async def replay_failed_materializations(db, limit: int = 100) -> dict:
    """Retry unresolved dead letters. Returns counts of resolved and still-failing sessions."""
    resolved = 0
    failed = 0
    for failure in await store.list_unresolved_failures(db, limit=limit):
        session_id = failure["session_id"]
        try:
            if not await store.get_quiz_by_session(db, session_id):
                await materialize_session(db, session_id)
        except Exception as exc:
            logger.warning("Replay of session %s failed again: %s", session_id, exc)
            await store.record_materialization_failure(db, session_id, str(exc))
            failed += 1
            continue
        await store.resolve_failure(db, failure["id"])
        resolved += 1

    return {"resolved": resolved, "failed": failed}
