"""
Exam session API endpoints
"""
from fastapi import APIRouter
import logging

from oab_prep.schemas.exam import (
    AnswerRequest, ExamResult, ExamSessionView, ExamStartRequest, FocusRequest, subject_name,
)
from oab_prep.services.session_service import session_service

router = APIRouter(prefix="/api/exams", tags=["exams"])
logger = logging.getLogger(__name__)


@router.post("", response_model=ExamSessionView, status_code=201)
async def start_exam(request: ExamStartRequest):
    """
    Generate questions and open a timed session

    - Questions are served from cache for identical recent requests
    - "Geral" with 80 questions follows the official subject distribution
    - Time budget: 3.75 minutes per question
    """
    logger.info(f"Starting exam for {request.user_id}: {subject_name(request.subject)} ({request.count}Q)")
    session = await session_service.start(request.user_id, request.subject, request.count)
    return session.snapshot()


@router.get("/{session_id}", response_model=ExamSessionView)
async def get_exam(session_id: str):
    """Current state; the timer is caught up before answering"""
    return session_service.get(session_id).snapshot()


@router.post("/{session_id}/answer", response_model=ExamSessionView)
async def answer(session_id: str, request: AnswerRequest):
    """Answer the current question; it is revealed immediately and cannot change"""
    return session_service.answer(session_id, request.letter).snapshot()


@router.post("/{session_id}/next", response_model=ExamSessionView)
async def next_question(session_id: str):
    """Move forward; refused while the current question is unanswered"""
    return session_service.advance(session_id).snapshot()


@router.post("/{session_id}/previous", response_model=ExamSessionView)
async def previous_question(session_id: str):
    return session_service.retreat(session_id).snapshot()


@router.post("/{session_id}/focus", response_model=ExamSessionView)
async def focus(session_id: str, request: FocusRequest):
    """
    Visibility signal from the exam surface

    Hidden: counts a tab exit and pauses the timer. Visible: resumes.
    """
    return session_service.set_focus(session_id, request.visible).snapshot()


@router.post("/{session_id}/resume", response_model=ExamSessionView)
async def resume(session_id: str):
    return session_service.resume(session_id).snapshot()


@router.post("/{session_id}/submit", response_model=ExamResult)
async def submit(session_id: str):
    """Score the exam; unanswered questions count as "N/A" and wrong"""
    return await session_service.submit(session_id)


@router.delete("/{session_id}", status_code=204)
async def cancel(session_id: str):
    """Abandon the exam without recording a result"""
    session_service.cancel(session_id)
