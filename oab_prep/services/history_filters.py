"""
Filtering and sorting for history, result review and the mentor student list
"""
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from oab_prep.schemas.exam import ExamResult, ResultDetail, subject_name
from oab_prep.schemas.user import UserProfile

PERFORMANCE_THRESHOLD = 50.0


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC"""
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def exam_weighted_accuracy(results: List[ExamResult]) -> float:
    """Average of per-exam ratios, as a percentage"""
    if not results:
        return 0.0
    return sum(r.accuracy for r in results) / len(results) * 100


def filter_history(
    history: List[ExamResult],
    subject: str = "all",
    sort: str = "newest"
) -> List[ExamResult]:
    """Restrict to one subject (or "Geral"), then order the list"""
    items = list(history)
    if subject != "all":
        items = [r for r in items if subject_name(r.subject) == subject]

    if sort == "newest":
        items.sort(key=lambda r: as_utc(r.date), reverse=True)
    elif sort == "oldest":
        items.sort(key=lambda r: as_utc(r.date))
    elif sort == "score-high":
        items.sort(key=lambda r: r.accuracy, reverse=True)
    elif sort == "score-low":
        items.sort(key=lambda r: r.accuracy)
    return items


def filter_details(result: ExamResult, mode: str = "all") -> List[ResultDetail]:
    if mode == "errors":
        return [d for d in result.details if not d.is_correct]
    if mode == "success":
        return [d for d in result.details if d.is_correct]
    return list(result.details)


def filter_students(
    students: List[UserProfile],
    all_results: Dict[str, List[ExamResult]],
    search: str = "",
    performance: str = "all",
    exam_count: str = "all",
    recency: str = "all",
    now: Optional[datetime] = None
) -> List[UserProfile]:
    """
    Mentor student list filters

    Args:
        search: case-insensitive substring of name or email
        performance: "above" / "below" the 50% exam-weighted average;
            "below" also drops students without exams
        exam_count: "none", "atleast1" or "atleast5"
        recency: "week" / "month" since the latest exam
        now: reference time for recency (defaults to current UTC time)
    """
    now = as_utc(now or datetime.now(timezone.utc))
    term = search.lower()
    selected = []

    for student in students:
        results = all_results.get(student.id, [])

        if term not in student.name.lower() and term not in student.email.lower():
            continue

        avg = exam_weighted_accuracy(results)
        if performance == "above" and avg < PERFORMANCE_THRESHOLD:
            continue
        if performance == "below" and (avg >= PERFORMANCE_THRESHOLD or not results):
            continue

        if exam_count == "none" and results:
            continue
        if exam_count == "atleast1" and len(results) < 1:
            continue
        if exam_count == "atleast5" and len(results) < 5:
            continue

        if recency != "all":
            if not results:
                continue
            # history[0] is the latest exam
            since_last = now - as_utc(results[0].date)
            if recency == "week" and since_last > timedelta(days=7):
                continue
            if recency == "month" and since_last > timedelta(days=30):
                continue

        selected.append(student)

    return selected
