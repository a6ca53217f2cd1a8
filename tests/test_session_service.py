import asyncio
import time
from datetime import datetime, timezone

import pytest

from oab_prep.exceptions import PermissionDeniedError
from oab_prep.schemas.user import UserProfile
from oab_prep.services.result_store import ResultStore
from oab_prep.services.session_service import SessionService


class SlowGateway:
    """Gemini stand-in whose feedback call blocks like a network round trip"""

    def __init__(self, questions, delay=0.5):
        self.questions = questions
        self.delay = delay

    def normalize_recent_topics(self, topics):
        return list(topics)

    def generate_questions(self, subject, count, recent_topics=()):
        return self.questions[:count]

    def instant_diagnostic(self, result):
        time.sleep(self.delay)
        return f"{result.score}/{result.total_questions}"


def _store_with(role="student"):
    store = ResultStore()
    store.register_user(UserProfile(
        id="u1", name="Ana", email="ana@example.com", password="pw", role=role,
        created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
    ))
    return store


@pytest.fixture
def questions(make_question):
    return [make_question("q1"), make_question("q2"), make_question("q3")]


def test_expired_session_is_finalized_off_the_event_loop(questions, clock):
    store = _store_with()
    service = SessionService(store=store, gateway=SlowGateway(questions), clock=clock)

    async def scenario():
        session = await service.start("u1", "Geral", 3)
        session.select("A")
        clock.advance(session.initial_time)

        service.tick_all()
        started = time.perf_counter()
        await asyncio.sleep(0.05)
        lag = time.perf_counter() - started

        result = await service.submit(session.id)
        return session, lag, result

    session, lag, result = asyncio.run(scenario())

    assert session.is_finished
    assert lag < 0.3
    assert result.score == 1
    assert result.ai_diagnostic == "1/3"
    assert [d.user_answer for d in result.details] == ["A", "N/A", "N/A"]
    assert store.history("u1") == [result]


def test_drain_waits_for_pending_results(questions, clock):
    store = _store_with()
    service = SessionService(store=store, gateway=SlowGateway(questions, delay=0.1), clock=clock)

    async def scenario():
        session = await service.start("u1", "Geral", 2)
        clock.advance(session.initial_time + 5)
        service.tick_all()
        await service.drain()

    asyncio.run(scenario())

    assert len(store.history("u1")) == 1
    assert store.history("u1")[0].ai_diagnostic == "0/2"


def test_new_exam_replaces_the_active_one(questions, clock):
    service = SessionService(store=_store_with(), gateway=SlowGateway(questions), clock=clock)

    async def scenario():
        first = await service.start("u1", "Geral", 2)
        second = await service.start("u1", "Geral", 3)
        return first, second

    first, second = asyncio.run(scenario())

    assert first.is_finished and first.result is None
    assert service.active_count() == 1
    assert len(second.questions) == 3


def test_mentors_do_not_take_exams(questions, clock):
    service = SessionService(store=_store_with(role="mentor"), gateway=SlowGateway(questions), clock=clock)

    with pytest.raises(PermissionDeniedError):
        asyncio.run(service.start("u1", "Geral", 2))
