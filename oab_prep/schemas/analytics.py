"""
Pydantic schemas for dashboard and mentor analytics
"""
from pydantic import BaseModel
from typing import List, Literal, Optional

from oab_prep.schemas.exam import Diagnostic, ExamResult, ResultDetail
from oab_prep.schemas.user import UserPublic

HistorySort = Literal["newest", "oldest", "score-high", "score-low"]
DetailFilter = Literal["all", "errors", "success"]
PerformanceFilter = Literal["all", "above", "below"]
ExamCountFilter = Literal["all", "none", "atleast1", "atleast5"]
RecencyFilter = Literal["all", "week", "month"]
DiagnosticStatus = Literal["idle", "pending", "ready"]


class ResultReview(BaseModel):
    """One stored result with its details filtered for review"""
    result: ExamResult
    filter: DetailFilter
    details: List[ResultDetail]
    errors_count: int
    success_count: int


class SubjectAccuracy(BaseModel):
    """Accuracy for one subject over the weekly window"""
    name: str
    accuracy: int  # rounded percentage
    count: int


class WeeklyStats(BaseModel):
    """Question-weighted performance over the last 7 days"""
    total_exams: int
    total_questions: int
    accuracy: int  # rounded percentage
    subjects: List[SubjectAccuracy]


class DiagnosticState(BaseModel):
    """Latest historical diagnostic applied for a viewer"""
    status: DiagnosticStatus
    request_id: Optional[str] = None
    target_user_id: Optional[str] = None
    diagnostic: Optional[Diagnostic] = None


class DiagnosticRefreshRequest(BaseModel):
    """Whose history the viewer wants analysed"""
    target_user_id: str


class Dashboard(BaseModel):
    """Student dashboard payload"""
    user: UserPublic
    total_exams: int
    weekly: Optional[WeeklyStats] = None
    latest_result: Optional[ExamResult] = None
    diagnostic: DiagnosticState


class StudentSummary(BaseModel):
    """One row in the mentor's student list"""
    student: UserPublic
    total_exams: int
    average_accuracy: int  # exam-weighted rounded percentage
    last_exam_date: Optional[str] = None


class MentorOverview(BaseModel):
    """Cross-student aggregates for a mentor"""
    total_students: int
    total_exams: int
    avg_score: int  # exam-weighted rounded percentage
    top_missed: List[str]
    students: List[StudentSummary]
