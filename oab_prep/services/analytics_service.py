"""
Analytics service for student dashboards and mentor overviews

Two accuracy measures coexist on purpose:
- weekly stats are question-weighted (total correct / total questions)
- mentor averages are exam-weighted (mean of per-exam ratios)
"""
import logging
import math
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from oab_prep.schemas.analytics import MentorOverview, StudentSummary, SubjectAccuracy, WeeklyStats
from oab_prep.schemas.exam import ExamResult, subject_name
from oab_prep.schemas.user import UserProfile, UserPublic
from oab_prep.services.history_filters import as_utc, exam_weighted_accuracy

logger = logging.getLogger(__name__)


def _percent(value: float) -> int:
    """Round half up to a whole percentage"""
    return int(math.floor(value + 0.5))


class AnalyticsService:
    """Derived read-only views over stored results"""

    WEEK = timedelta(days=7)
    TOP_MISSED = 3

    def weekly_stats(self, history: List[ExamResult], now: Optional[datetime] = None) -> Optional[WeeklyStats]:
        """
        Performance over the last 7 days

        Args:
            history: Results of one user
            now: Reference time (defaults to current UTC time)

        Returns:
            WeeklyStats, or None when no exam falls in the window
        """
        cutoff = as_utc(now or datetime.now(timezone.utc)) - self.WEEK
        weekly = [r for r in history if as_utc(r.date) >= cutoff]
        if not weekly:
            return None

        total_questions = sum(r.total_questions for r in weekly)
        total_correct = sum(r.score for r in weekly)
        accuracy = total_correct / total_questions * 100 if total_questions > 0 else 0.0

        # Accuracy per subject
        subject_data: Dict[str, Dict[str, int]] = {}
        for result in weekly:
            for detail in result.details:
                data = subject_data.setdefault(subject_name(detail.subject), {"correct": 0, "total": 0})
                data["total"] += 1
                if detail.is_correct:
                    data["correct"] += 1

        subjects = [
            SubjectAccuracy(
                name=name,
                accuracy=_percent(data["correct"] / data["total"] * 100),
                count=data["total"]
            )
            for name, data in subject_data.items()
        ]
        subjects.sort(key=lambda s: s.accuracy, reverse=True)

        return WeeklyStats(
            total_exams=len(weekly),
            total_questions=total_questions,
            accuracy=_percent(accuracy),
            subjects=subjects
        )

    def mentor_overview(
        self,
        students: List[UserProfile],
        all_results: Dict[str, List[ExamResult]],
        listed: Optional[List[UserProfile]] = None
    ) -> MentorOverview:
        """
        Cross-student aggregates

        Args:
            students: Every student profile
            all_results: History per user id
            listed: Students to include in the list (defaults to all)

        Returns:
            MentorOverview with exam-weighted average and top missed subjects
        """
        flattened = [r for history in all_results.values() for r in history]

        subject_errors: Dict[str, int] = defaultdict(int)
        for result in flattened:
            for detail in result.details:
                if not detail.is_correct:
                    subject_errors[subject_name(detail.subject)] += 1

        top_missed = [
            subject for subject, _ in sorted(subject_errors.items(), key=lambda item: item[1], reverse=True)
        ][:self.TOP_MISSED]

        rows = []
        for student in (students if listed is None else listed):
            history = all_results.get(student.id, [])
            rows.append(StudentSummary(
                student=UserPublic.from_profile(student),
                total_exams=len(history),
                average_accuracy=_percent(exam_weighted_accuracy(history)),
                last_exam_date=as_utc(history[0].date).isoformat() if history else None
            ))

        return MentorOverview(
            total_students=len(students),
            total_exams=len(flattened),
            avg_score=_percent(exam_weighted_accuracy(flattened)),
            top_missed=top_missed,
            students=rows
        )


# Global instance
analytics_service = AnalyticsService()
