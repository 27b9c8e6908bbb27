"""Adaptive quiz endpoints: start, resume, next question, summary, status, finish, abandon."""

import logging
from fastapi import APIRouter, Depends, Request

from adaptive_quiz.auth import require_token_user_id
from adaptive_quiz.db.database import get_db
from adaptive_quiz.models.adaptive_quiz import (
    CheckStatusRequest,
    NextQuestionRequest,
    ResumeQuizRequest,
    SessionRequest,
    StartQuizRequest,
)
from adaptive_quiz.services import session_orchestrator as orchestrator
from adaptive_quiz.services.question_generator import get_question_generator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/adaptive-quiz", tags=["adaptive-quiz"])


@router.post("/start")
async def start_adaptive_quiz(
    body: StartQuizRequest,
    request: Request,
    db=Depends(get_db),
    generator=Depends(get_question_generator),
):
    """Start a new adaptive quiz session, or resume the active one for this section."""
    return await orchestrator.start_session(
        db,
        generator,
        course_id=body.course_id,
        subject_id=body.subject_id,
        section_id=body.section_id,
        section_title=body.section_title,
        user_id=require_token_user_id(request),
        difficulty=body.difficulty,
        target_length=body.target_length,
    )


@router.post("/resume")
async def resume_adaptive_quiz(body: ResumeQuizRequest, request: Request, db=Depends(get_db)):
    """Resume the caller's active session, optionally limited to one section."""
    return await orchestrator.resume_session(
        db,
        user_id=require_token_user_id(request),
        section_id=body.section_id,
    )


@router.post("/next-question")
async def next_question(
    body: NextQuestionRequest,
    request: Request,
    db=Depends(get_db),
    generator=Depends(get_question_generator),
):
    """Record the previous answer and return the next question, or the stop summary."""
    return await orchestrator.advance_session(
        db,
        generator,
        session_id=body.session_id,
        user_id=require_token_user_id(request),
        previous_answer=body.previous_answer,
    )


@router.post("/summary")
async def session_summary(body: SessionRequest, request: Request, db=Depends(get_db)):
    return await orchestrator.get_session_summary(
        db, session_id=body.session_id, user_id=require_token_user_id(request)
    )


@router.post("/check-status")
async def check_quiz_status(body: CheckStatusRequest, request: Request, db=Depends(get_db)):
    """Whether the caller has an active quiz in a section. Never fails on lookup errors."""
    return await orchestrator.check_status(db, require_token_user_id(request), body.section_id)


@router.post("/finish")
async def finish_adaptive_quiz(body: SessionRequest, request: Request, db=Depends(get_db)):
    return await orchestrator.finish_session(
        db, session_id=body.session_id, user_id=require_token_user_id(request)
    )


@router.post("/abandon")
async def abandon_adaptive_quiz(body: SessionRequest, request: Request, db=Depends(get_db)):
    return await orchestrator.abandon_session(
        db, session_id=body.session_id, user_id=require_token_user_id(request)
    )
