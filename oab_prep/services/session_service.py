"""
Active exam sessions

Creates sessions from generated questions, routes user actions to them,
drives their countdown from a background ticker and finalizes submitted
results (instant diagnostic, then persistence). Gemini calls run in worker
threads so the event loop keeps serving requests and other countdowns.
"""
import asyncio
import logging
import time
from typing import Callable, Dict, List, Optional

from oab_prep.config import settings
from oab_prep.exceptions import (
    GenerationError, PermissionDeniedError, SessionNotFoundError, UserNotFoundError, ValidationError,
)
from oab_prep.schemas.exam import ExamResult, ExamSubject
from oab_prep.services.exam_session import ExamSession
from oab_prep.services.gemini_service import GeminiService, gemini_service
from oab_prep.services.result_store import ResultStore, result_store

logger = logging.getLogger(__name__)

RECENT_RESULTS_FOR_TOPICS = 3


class SessionService:
    """Registry of exam sessions, one active session per student"""

    def __init__(
        self,
        store: ResultStore = result_store,
        gateway: GeminiService = gemini_service,
        clock: Callable[[], float] = time.monotonic
    ):
        self.store = store
        self.gateway = gateway
        self._clock = clock
        self._sessions: Dict[str, ExamSession] = {}
        self._finalized: Dict[str, ExamResult] = {}
        self._finalizing: Dict[str, asyncio.Task] = {}

    def recent_topics(self, history: List[ExamResult]) -> List[str]:
        """Subjects seen in the latest exams, deduplicated and bounded"""
        subjects = [
            d.subject for result in history[:RECENT_RESULTS_FOR_TOPICS] for d in result.details
        ]
        return self.gateway.normalize_recent_topics(subjects)

    async def start(self, user_id: str, subject: ExamSubject, count: int) -> ExamSession:
        """
        Generate questions and open a session

        Raises:
            UserNotFoundError: unknown user
            PermissionDeniedError: mentors do not take exams
            ValidationError: question count out of range
            GenerationError: no valid question set could be produced
        """
        user = self.store.find_user(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        if user.role != "student":
            raise PermissionDeniedError("Mentores não realizam simulados.")
        if not 1 <= count <= settings.MAX_EXAM_QUESTIONS:
            raise ValidationError(f"O simulado deve ter entre 1 e {settings.MAX_EXAM_QUESTIONS} questões.")

        topics = self.recent_topics(self.store.history(user_id))
        questions = await asyncio.to_thread(self.gateway.generate_questions, subject, count, topics)
        if not questions:
            raise GenerationError("Nenhuma questão foi gerada. Tente novamente.")

        self._drop_user_sessions(user_id)

        session = ExamSession(user_id, questions, on_finish=self._schedule_finalize, clock=self._clock)
        self._sessions[session.id] = session
        logger.info(f"Session {session.id} started for {user_id}: {len(questions)} questions, {session.initial_time}s")
        return session

    def get(self, session_id: str) -> ExamSession:
        """Look up a session, catching its clock up first"""
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        session.sync()
        return session

    def answer(self, session_id: str, letter: str) -> ExamSession:
        session = self.get(session_id)
        if session.is_paused:
            raise ValidationError("Simulado pausado. Retome a prova para responder.")
        session.select(letter)
        return session

    def advance(self, session_id: str) -> ExamSession:
        session = self.get(session_id)
        session.advance()
        return session

    def retreat(self, session_id: str) -> ExamSession:
        session = self.get(session_id)
        session.retreat()
        return session

    def set_focus(self, session_id: str, visible: bool) -> ExamSession:
        session = self.get(session_id)
        if visible:
            session.focus_regained()
        else:
            session.focus_lost()
        return session

    def resume(self, session_id: str) -> ExamSession:
        session = self.get(session_id)
        session.resume()
        return session

    async def submit(self, session_id: str) -> ExamResult:
        """Submit (or fetch the outcome of an already finished session)"""
        session = self.get(session_id)
        session.submit()
        if session.result is None:
            raise SessionNotFoundError(session_id)

        task = self._finalizing.get(session.result.id)
        if task is not None:
            return await task
        return self._finalized.get(session.result.id, session.result)

    def cancel(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        if session is None:
            raise SessionNotFoundError(session_id)
        session.abandon()
        logger.info(f"Session {session_id} abandoned")

    def active_count(self) -> int:
        """Sessions still running"""
        return sum(1 for s in self._sessions.values() if not s.is_finished)

    def tick_all(self) -> None:
        """Catch every running session up with the clock"""
        for session in list(self._sessions.values()):
            session.sync()

    async def run_ticker(self, interval: Optional[float] = None) -> None:
        """Background countdown; expired sessions auto-submit"""
        interval = interval or settings.SESSION_TICK_SECONDS
        while True:
            await asyncio.sleep(interval)
            try:
                self.tick_all()
            except Exception as e:
                logger.error(f"Session ticker failed: {str(e)}", exc_info=True)

    async def drain(self) -> None:
        """Wait for finalizations still in flight"""
        if self._finalizing:
            await asyncio.gather(*self._finalizing.values())

    def _schedule_finalize(self, result: ExamResult) -> None:
        """Engine callback; must run on the event loop"""
        self._finalizing[result.id] = asyncio.get_running_loop().create_task(self._finalize(result))

    async def _finalize(self, result: ExamResult) -> ExamResult:
        """Attach the instant diagnostic, then store the result"""
        try:
            diagnostic = await asyncio.to_thread(self.gateway.instant_diagnostic, result)
            enriched = result.model_copy(update={"ai_diagnostic": diagnostic})
            self.store.record_result(result.user_id, enriched)
            self._finalized[enriched.id] = enriched
            return enriched
        finally:
            self._finalizing.pop(result.id, None)

    def _drop_user_sessions(self, user_id: str) -> None:
        for session_id, session in list(self._sessions.items()):
            if session.user_id == user_id:
                del self._sessions[session_id]
                if session.result is not None:
                    self._finalized.pop(session.result.id, None)
                else:
                    session.abandon()


# Global instance
session_service = SessionService()
