"""
Exam session state machine

One timed attempt at a question set: navigation, reveal-on-answer,
a countdown that freezes while the exam surface is hidden, and scoring
on submission.
"""
import logging
import math
import time
import uuid
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Set

from oab_prep.config import settings
from oab_prep.schemas.exam import (
    ExamResult, ExamSessionView, GENERAL_SUBJECT, LETTERS, Question, QuestionView,
    ResultDetail, UNANSWERED,
)

logger = logging.getLogger(__name__)


def time_budget(question_count: int, minutes_per_question: Optional[float] = None) -> int:
    """Seconds allowed for an exam; at least one question is assumed"""
    minutes = settings.MINUTES_PER_QUESTION if minutes_per_question is None else minutes_per_question
    return math.ceil(max(question_count, 1) * minutes * 60)


class ExamSession:
    """
    Timed exam over a fixed list of questions

    on_finish is called exactly once, with the scored ExamResult, when the
    session is submitted manually or by the timer. After that every
    transition is ignored.
    """

    def __init__(
        self,
        user_id: str,
        questions: List[Question],
        on_finish: Callable[[ExamResult], None],
        clock: Callable[[], float] = time.monotonic
    ):
        self.id = str(uuid.uuid4())
        self.user_id = user_id
        self.questions = list(questions)
        self._on_finish = on_finish
        self._clock = clock

        self.current_index = 0
        self.answers: Dict[str, str] = {}
        self.revealed: Set[str] = set()
        self.initial_time = time_budget(len(self.questions))
        self.time_left = self.initial_time
        self.is_paused = False
        self.tab_exit_count = 0
        self.is_finished = False
        self.result: Optional[ExamResult] = None

        self._last_sync = clock()

    @property
    def current_question(self) -> Optional[Question]:
        if not self.questions:
            return None
        return self.questions[self.current_index]

    @property
    def progress(self) -> float:
        return (self.current_index + 1) / max(len(self.questions), 1) * 100

    @property
    def answered_count(self) -> int:
        return len(self.answers)

    def select(self, letter: str) -> bool:
        """Answer the current question once; returns False when ignored"""
        if letter not in LETTERS:
            raise ValueError(f"Invalid option letter: {letter!r}")

        question = self.current_question
        if self.is_finished or question is None or question.id in self.revealed:
            return False

        self.answers[question.id] = letter
        self.revealed.add(question.id)
        return True

    def advance(self) -> bool:
        question = self.current_question
        if self.is_finished or question is None or question.id not in self.revealed:
            return False
        if self.current_index >= len(self.questions) - 1:
            return False
        self.current_index += 1
        return True

    def retreat(self) -> bool:
        if self.is_finished or self.current_index == 0:
            return False
        self.current_index -= 1
        return True

    def tick(self, seconds: int = 1) -> None:
        """Run the countdown; reaching zero submits the exam"""
        if self.is_finished or self.is_paused or seconds <= 0:
            return

        self.time_left = max(self.time_left - seconds, 0)
        if self.time_left == 0:
            logger.info(f"Session {self.id} ran out of time, submitting")
            self.submit()

    def sync(self) -> None:
        """Convert whole seconds elapsed on the clock into ticks"""
        if self.is_finished:
            return

        elapsed = int(self._clock() - self._last_sync)
        if elapsed <= 0:
            return

        self._last_sync += elapsed
        self.tick(elapsed)

    def focus_lost(self) -> None:
        """Exam surface hidden: count the exit and freeze the clock"""
        if self.is_finished:
            return
        self.sync()
        if self.is_finished:
            return
        self.tab_exit_count += 1
        self.is_paused = True

    def focus_regained(self) -> None:
        """Exam surface visible again: the paused interval is not charged"""
        if self.is_finished:
            return
        self.sync()
        self.is_paused = False

    resume = focus_regained

    def abandon(self) -> None:
        """Student gave up; nothing is scored or reported"""
        self.is_finished = True

    def submit(self) -> Optional[ExamResult]:
        """Score the session and report it; later calls return None"""
        if self.is_finished:
            return None
        self.sync()
        if self.is_finished:
            # the clock ran out while catching up
            return self.result
        self.is_finished = True

        details = [self._build_detail(q) for q in self.questions]
        subjects = {q.subject for q in self.questions}

        self.result = ExamResult(
            id=str(uuid.uuid4()),
            user_id=self.user_id,
            date=datetime.now(timezone.utc),
            subject=subjects.pop() if len(subjects) == 1 else GENERAL_SUBJECT,
            score=sum(1 for d in details if d.is_correct),
            total_questions=len(details),
            time_spent_seconds=self.initial_time - self.time_left,
            tab_exit_count=self.tab_exit_count,
            details=details,
        )

        logger.info(
            f"Session {self.id} submitted: {self.result.score}/{self.result.total_questions}, "
            f"{self.result.time_spent_seconds}s, tab exits: {self.tab_exit_count}"
        )

        self._on_finish(self.result)
        return self.result

    def _build_detail(self, question: Question) -> ResultDetail:
        answer = self.answers.get(question.id)
        return ResultDetail(
            question_id=question.id,
            subject=question.subject,
            is_correct=answer == question.correct_option,
            user_answer=answer or UNANSWERED,
            question_text=question.text,
            options=list(question.options),
            correct_option=question.correct_option,
            explanation=question.explanation,
        )

    def snapshot(self) -> ExamSessionView:
        """Client view; the correct option stays hidden until the question is answered"""
        question = self.current_question
        question_view = None
        if question is not None:
            revealed = question.id in self.revealed
            question_view = QuestionView(
                id=question.id,
                subject=question.subject,
                text=question.text,
                options=list(question.options),
                user_answer=self.answers.get(question.id),
                revealed=revealed,
                correct_option=question.correct_option if revealed else None,
                explanation=question.explanation if revealed else None,
            )

        return ExamSessionView(
            session_id=self.id,
            user_id=self.user_id,
            current_index=self.current_index,
            total_questions=len(self.questions),
            answered_count=self.answered_count,
            progress=round(self.progress, 2),
            time_left=self.time_left,
            initial_time=self.initial_time,
            is_paused=self.is_paused,
            tab_exit_count=self.tab_exit_count,
            is_finished=self.is_finished,
            current_question=question_view,
            result_id=self.result.id if self.result else None,
        )
