"""
History, dashboard and mentor analytics API endpoints
"""
from fastapi import APIRouter
from typing import List, Optional
import logging

from oab_prep.exceptions import PermissionDeniedError, ResultNotFoundError
from oab_prep.schemas.analytics import (
    Dashboard, DetailFilter, DiagnosticRefreshRequest, DiagnosticState, ExamCountFilter,
    HistorySort, MentorOverview, PerformanceFilter, RecencyFilter, ResultReview,
)
from oab_prep.schemas.exam import ExamResult
from oab_prep.schemas.user import UserProfile, UserPublic
from oab_prep.services.analytics_service import analytics_service
from oab_prep.services.gemini_service import gemini_service
from oab_prep.services.history_filters import filter_details, filter_history, filter_students
from oab_prep.services.result_store import result_store
from oab_prep.services.user_service import user_service
from oab_prep.utils.diagnostic_tasks import diagnostic_tasks

router = APIRouter(prefix="/api", tags=["analytics"])
logger = logging.getLogger(__name__)


def _check_access(viewer: UserProfile, target: UserProfile) -> None:
    """Students see only themselves; mentors see everyone"""
    if viewer.id != target.id and viewer.role != "mentor":
        raise PermissionDeniedError("Acesso restrito ao próprio aluno ou à mentoria.")


def _historical_diagnostic(history: List[ExamResult]):
    return lambda: gemini_service.historical_diagnostic(history)


@router.get("/users/{user_id}/results", response_model=List[ExamResult])
async def list_results(
    user_id: str,
    subject: str = "all",
    sort: HistorySort = "newest",
    viewer_id: Optional[str] = None
):
    """
    Exam history of a user

    - subject: "all", "Geral" or one OAB subject
    - sort: newest, oldest, score-high, score-low
    """
    target = user_service.get(user_id)
    _check_access(user_service.get(viewer_id or user_id), target)
    return filter_history(result_store.history(user_id), subject=subject, sort=sort)


@router.get("/users/{user_id}/results/{result_id}", response_model=ResultReview)
async def review_result(
    user_id: str,
    result_id: str,
    filter: DetailFilter = "all",
    viewer_id: Optional[str] = None
):
    """One stored result with question-by-question review (all, errors, success)"""
    target = user_service.get(user_id)
    _check_access(user_service.get(viewer_id or user_id), target)

    result = next((r for r in result_store.history(user_id) if r.id == result_id), None)
    if result is None:
        raise ResultNotFoundError(result_id)

    return ResultReview(
        result=result,
        filter=filter,
        details=filter_details(result, filter),
        errors_count=len(filter_details(result, "errors")),
        success_count=len(filter_details(result, "success"))
    )


@router.get("/users/{user_id}/dashboard", response_model=Dashboard)
async def get_dashboard(user_id: str, viewer_id: Optional[str] = None):
    """
    Student dashboard

    Returns:
    - Weekly question-weighted stats with per-subject accuracy
    - Latest result
    - Historical diagnostic state (recomputed in background when history changed)
    """
    target = user_service.get(user_id)
    viewer = user_service.get(viewer_id or user_id)
    _check_access(viewer, target)

    history = result_store.history(user_id)
    diagnostic = diagnostic_tasks.ensure_fresh(
        viewer.id, target.id, len(history), _historical_diagnostic(history)
    )

    return Dashboard(
        user=UserPublic.from_profile(target),
        total_exams=len(history),
        weekly=analytics_service.weekly_stats(history),
        latest_result=history[0] if history else None,
        diagnostic=diagnostic
    )


@router.post("/users/{viewer_id}/diagnostic", response_model=DiagnosticState, status_code=202)
async def refresh_diagnostic(viewer_id: str, request: DiagnosticRefreshRequest):
    """Recompute the historical diagnostic the viewer is looking at"""
    viewer = user_service.get(viewer_id)
    target = user_service.get(request.target_user_id)
    _check_access(viewer, target)

    history = result_store.history(target.id)
    diagnostic_tasks.schedule(viewer.id, target.id, len(history), _historical_diagnostic(history))
    return diagnostic_tasks.state(viewer.id)


@router.get("/users/{viewer_id}/diagnostic", response_model=DiagnosticState)
async def get_diagnostic(viewer_id: str):
    user_service.get(viewer_id)
    return diagnostic_tasks.state(viewer_id)


@router.delete("/users/{viewer_id}/diagnostic", status_code=204)
async def clear_diagnostic(viewer_id: str):
    """Viewer navigated away; late results are discarded"""
    diagnostic_tasks.clear(viewer_id)


@router.get("/mentors/{mentor_id}/overview", response_model=MentorOverview)
async def mentor_overview(
    mentor_id: str,
    search: str = "",
    performance: PerformanceFilter = "all",
    exam_count: ExamCountFilter = "all",
    recency: RecencyFilter = "all"
):
    """
    Cross-student aggregates and the filtered student list

    - Average is exam-weighted (mean of per-exam ratios)
    - Top missed subjects ranked by raw error count
    """
    mentor = user_service.get(mentor_id)
    if mentor.role != "mentor":
        raise PermissionDeniedError("Painel disponível apenas para a mentoria.")

    students = result_store.students()
    all_results = result_store.all_results()
    listed = filter_students(
        students, all_results,
        search=search, performance=performance, exam_count=exam_count, recency=recency
    )
    logger.info(f"Mentor {mentor_id} overview: {len(listed)}/{len(students)} students listed")
    return analytics_service.mentor_overview(students, all_results, listed=listed)
