"""
adaptive_store.py - Database helper queries for adaptive quiz sessions

Provides insert/fetch/update functions for:
- adaptive_quiz_sessions
- adaptive_quiz_responses
- quizzes / quiz_questions / quiz_options (materialized quizzes)
- adaptive_quiz_dead_letters (failed materializations)
"""

import json
import uuid
from typing import Optional, List, Dict, Any

from adaptive_quiz.db.database import fetch_one, fetch_all, execute

STATUS_ACTIVE = "active"
STATUS_COMPLETED = "completed"
STATUS_STOPPED = "stopped"

SESSION_JSON_FIELDS = ["conversation_history"]
RESPONSE_JSON_FIELDS = ["options", "correct_option"]


def _new_id() -> str:
    return str(uuid.uuid4())


# ══════════════════════════════════════════════════════════════════════════════
# SESSIONS
# ══════════════════════════════════════════════════════════════════════════════

async def create_session(
    db,
    user_id: str,
    section_id: str,
    course_id: str,
    subject_id: str,
    main_topic: str,
    topic_hierarchy: str,
    future_topic: str,
    student_level: str,
    target_length: int,
    status: str = STATUS_ACTIVE,
) -> Dict[str, Any]:
    """Create an adaptive quiz session. Returns the stored row."""
    session_id = _new_id()
    await execute(
        db,
        """INSERT INTO adaptive_quiz_sessions
           (id, user_id, section_id, course_id, subject_id, main_topic, topic_hierarchy,
            future_topic, student_level, target_length, current_question_number,
            conversation_history, status)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 1, '[]', ?)""",
        (
            session_id,
            user_id,
            section_id,
            course_id,
            subject_id,
            main_topic,
            topic_hierarchy,
            future_topic,
            student_level,
            target_length,
            status,
        ),
    )
    return await get_session(db, session_id)


async def get_session(db, session_id: str) -> Optional[Dict[str, Any]]:
    row = await fetch_one(db, "SELECT * FROM adaptive_quiz_sessions WHERE id = ?", (session_id,))
    return _row_to_dict(row, parse_json_fields=SESSION_JSON_FIELDS)


async def get_user_session(db, session_id: str, user_id: str) -> Optional[Dict[str, Any]]:
    """Get a session only if it belongs to the given user."""
    row = await fetch_one(
        db,
        "SELECT * FROM adaptive_quiz_sessions WHERE id = ? AND user_id = ?",
        (session_id, user_id),
    )
    return _row_to_dict(row, parse_json_fields=SESSION_JSON_FIELDS)


async def find_active_session(
    db, user_id: str, section_id: Optional[str] = None
) -> Optional[Dict[str, Any]]:
    """Most recently updated active session for a user, optionally within one section."""
    sql = "SELECT * FROM adaptive_quiz_sessions WHERE user_id = ? AND status = 'active'"
    params: tuple = (user_id,)
    if section_id:
        sql += " AND section_id = ?"
        params = (user_id, section_id)
    sql += " ORDER BY updated_at DESC, created_at DESC LIMIT 1"

    row = await fetch_one(db, sql, params)
    return _row_to_dict(row, parse_json_fields=SESSION_JSON_FIELDS)


async def update_session_status(db, session_id: str, status: str) -> None:
    await execute(
        db,
        "UPDATE adaptive_quiz_sessions SET status = ?, updated_at = datetime('now') WHERE id = ?",
        (status, session_id),
    )


async def update_session_progress(
    db, session_id: str, question_number: int, conversation_history: List[str]
) -> None:
    await execute(
        db,
        """UPDATE adaptive_quiz_sessions
           SET current_question_number = ?, conversation_history = ?, updated_at = datetime('now')
           WHERE id = ?""",
        (question_number, json.dumps(conversation_history), session_id),
    )


# ══════════════════════════════════════════════════════════════════════════════
# RESPONSES (TRANSCRIPT)
# ══════════════════════════════════════════════════════════════════════════════

async def create_response(
    db,
    session_id: str,
    question_number: int,
    question_text: str,
    difficulty: Optional[str],
    options: List[Any],
    correct_option: Any,
    explanation: Optional[str],
) -> Dict[str, Any]:
    """Store a generated question as the next transcript entry. Returns the stored row."""
    response_id = _new_id()
    await execute(
        db,
        """INSERT INTO adaptive_quiz_responses
           (id, session_id, question_number, question_text, difficulty, options,
            correct_option, explanation)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            response_id,
            session_id,
            question_number,
            question_text,
            difficulty,
            json.dumps(options or []),
            json.dumps(correct_option) if correct_option is not None else None,
            explanation,
        ),
    )
    return await get_response(db, response_id)


async def get_response(db, response_id: str) -> Optional[Dict[str, Any]]:
    row = await fetch_one(db, "SELECT * FROM adaptive_quiz_responses WHERE id = ?", (response_id,))
    return _response_row(row)


async def get_session_response(db, session_id: str, response_id: str) -> Optional[Dict[str, Any]]:
    row = await fetch_one(
        db,
        "SELECT * FROM adaptive_quiz_responses WHERE id = ? AND session_id = ?",
        (response_id, session_id),
    )
    return _response_row(row)


async def get_session_responses(db, session_id: str) -> List[Dict[str, Any]]:
    """All transcript entries of a session ordered by question number."""
    rows = await fetch_all(
        db,
        "SELECT * FROM adaptive_quiz_responses WHERE session_id = ? ORDER BY question_number ASC",
        (session_id,),
    )
    return [_response_row(r) for r in rows]


async def record_answer(
    db, session_id: str, response_id: str, selected_option: str, is_correct: bool
) -> None:
    """Write the learner's answer onto a transcript entry (overwrites a previous answer)."""
    await execute(
        db,
        """UPDATE adaptive_quiz_responses SET user_answer = ?, is_correct = ?
           WHERE id = ? AND session_id = ?""",
        (selected_option, bool(is_correct), response_id, session_id),
    )


# ══════════════════════════════════════════════════════════════════════════════
# MATERIALIZED QUIZZES
# ══════════════════════════════════════════════════════════════════════════════

async def create_quiz(db, section_id: str, title: str, source_session_id: Optional[str] = None) -> str:
    quiz_id = _new_id()
    await execute(
        db,
        "INSERT INTO quizzes (id, section_id, title, source_session_id) VALUES (?, ?, ?, ?)",
        (quiz_id, section_id, title, source_session_id),
    )
    return quiz_id


async def create_quiz_question(
    db,
    quiz_id: str,
    text: str,
    order_index: int,
    explanation: str = "",
    question_type: str = "mcq",
) -> str:
    question_id = _new_id()
    await execute(
        db,
        """INSERT INTO quiz_questions (id, quiz_id, type, text, order_index, explanation)
           VALUES (?, ?, ?, ?, ?, ?)""",
        (question_id, quiz_id, question_type, text, order_index, explanation),
    )
    return question_id


async def create_quiz_option(db, question_id: str, option_text: str, correct: bool) -> str:
    option_id = _new_id()
    await execute(
        db,
        "INSERT INTO quiz_options (id, question_id, option_text, correct) VALUES (?, ?, ?, ?)",
        (option_id, question_id, option_text, bool(correct)),
    )
    return option_id


async def get_quiz_by_session(db, session_id: str) -> Optional[Dict[str, Any]]:
    row = await fetch_one(
        db,
        "SELECT * FROM quizzes WHERE source_session_id = ? ORDER BY created_at DESC LIMIT 1",
        (session_id,),
    )
    return _row_to_dict(row)


async def get_quiz_questions(db, quiz_id: str) -> List[Dict[str, Any]]:
    """Questions of a materialized quiz, each with its options list."""
    rows = await fetch_all(
        db,
        "SELECT * FROM quiz_questions WHERE quiz_id = ? ORDER BY order_index ASC",
        (quiz_id,),
    )
    questions = []
    for row in rows:
        question = dict(row)
        option_rows = await fetch_all(
            db,
            "SELECT id, option_text, correct FROM quiz_options WHERE question_id = ?",
            (question["id"],),
        )
        question["options"] = [
            {**dict(o), "correct": bool(o["correct"])} for o in option_rows
        ]
        questions.append(question)
    return questions


# ══════════════════════════════════════════════════════════════════════════════
# DEAD LETTERS
# ══════════════════════════════════════════════════════════════════════════════

async def record_materialization_failure(db, session_id: str, error: str) -> None:
    """Record (or bump) the unresolved dead letter for a session."""
    existing = await fetch_one(
        db,
        "SELECT id FROM adaptive_quiz_dead_letters WHERE session_id = ? AND resolved = FALSE",
        (session_id,),
    )
    if existing:
        await execute(
            db,
            """UPDATE adaptive_quiz_dead_letters
               SET attempts = attempts + 1, error = ?, updated_at = datetime('now')
               WHERE id = ?""",
            (error, existing["id"]),
        )
        return

    await execute(
        db,
        """INSERT INTO adaptive_quiz_dead_letters (id, session_id, error, attempts, resolved)
           VALUES (?, ?, ?, 1, FALSE)""",
        (_new_id(), session_id, error),
    )


async def list_unresolved_failures(db, limit: int = 100) -> List[Dict[str, Any]]:
    rows = await fetch_all(
        db,
        """SELECT * FROM adaptive_quiz_dead_letters
           WHERE resolved = FALSE
           ORDER BY created_at ASC
           LIMIT ?""",
        (limit,),
    )
    return [_row_to_dict(r) for r in rows]


async def resolve_failure(db, failure_id: str) -> None:
    await execute(
        db,
        "UPDATE adaptive_quiz_dead_letters SET resolved = TRUE, updated_at = datetime('now') WHERE id = ?",
        (failure_id,),
    )


# ══════════════════════════════════════════════════════════════════════════════
# HELPER FUNCTIONS
# ══════════════════════════════════════════════════════════════════════════════

def _response_row(row) -> Optional[Dict[str, Any]]:
    result = _row_to_dict(row, parse_json_fields=RESPONSE_JSON_FIELDS)
    if result is None:
        return None
    # SQLite hands booleans back as 0/1
    if result.get("is_correct") is not None:
        result["is_correct"] = bool(result["is_correct"])
    if not isinstance(result.get("options"), list):
        result["options"] = []
    return result


def _row_to_dict(row, parse_json_fields: List[str] = None) -> Optional[Dict[str, Any]]:
    """Convert a database row to a dictionary, optionally parsing JSON fields."""
    if row is None:
        return None

    result = dict(row)

    if parse_json_fields:
        for field in parse_json_fields:
            if field in result and isinstance(result[field], str):
                try:
                    result[field] = json.loads(result[field])
                except json.JSONDecodeError:
                    pass  # Keep original value if JSON parsing fails

    return result
