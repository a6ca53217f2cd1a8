import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["GEMINI_API_KEY"] = ""
os.environ["REDIS_URL"] = ""

import json  # noqa: E402
import uuid  # noqa: E402
from datetime import datetime, timezone  # noqa: E402
from types import SimpleNamespace  # noqa: E402

import pytest  # noqa: E402

from oab_prep.database import Base, engine, init_db  # noqa: E402
from oab_prep.schemas.exam import ExamResult, OABSubject, Question, ResultDetail  # noqa: E402
from oab_prep.services import gemini_service as gemini_module  # noqa: E402
from oab_prep.services.result_store import result_store  # noqa: E402
from oab_prep.services.session_service import session_service  # noqa: E402
from oab_prep.state import AppState  # noqa: E402
from oab_prep.utils.cache import cache_service  # noqa: E402
from oab_prep.utils import diagnostic_tasks as diagnostic_module  # noqa: E402


class FakeModel:
    """Stands in for genai.GenerativeModel; replies are queued strings or exceptions"""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.prompts = []
        self.configs = []

    def queue(self, *replies):
        self.replies.extend(replies)

    def generate_content(self, prompt, generation_config=None):
        self.prompts.append(prompt)
        self.configs.append(generation_config)
        if not self.replies:
            raise RuntimeError("no reply queued")
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return SimpleNamespace(text=reply)


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def question_payload(qid="q1", subject=OABSubject.CIVIL, correct="A"):
    return {
        "id": qid,
        "subject": subject.value,
        "text": f"Enunciado {qid}",
        "options": [{"letter": letter, "text": f"Alternativa {letter}"} for letter in "ABCD"],
        "correct_option": correct,
        "explanation": f"Fundamentação {qid}",
    }


@pytest.fixture(autouse=True)
def reset_state():
    """Fresh storage, caches and registries for every test"""
    init_db()
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    result_store.state = AppState()
    cache_service._entries.clear()
    session_service._sessions.clear()
    session_service._finalized.clear()
    session_service._finalizing.clear()
    diagnostic_module.diagnostic_tasks.__init__()
    yield


@pytest.fixture
def fake_model(monkeypatch):
    model = FakeModel()
    monkeypatch.setattr(gemini_module.gemini_service, "model", model)
    return model


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_question():
    def _make(qid="q1", subject=OABSubject.CIVIL, correct="A"):
        return Question.model_validate(question_payload(qid, subject, correct))
    return _make


@pytest.fixture
def questions_json():
    def _dump(count, subject=OABSubject.CIVIL, correct="A"):
        return json.dumps([question_payload(f"q{i + 1}", subject, correct) for i in range(count)])
    return _dump


@pytest.fixture
def make_result():
    def _make(score, total, date=None, user_id="u1", subject=OABSubject.CIVIL, subjects=None):
        subjects = subjects or [subject] * total
        details = [
            ResultDetail(
                question_id=f"q{i + 1}",
                subject=subjects[i],
                is_correct=i < score,
                user_answer="A" if i < score else "B",
            )
            for i in range(total)
        ]
        return ExamResult(
            id=str(uuid.uuid4()),
            user_id=user_id,
            date=date or datetime.now(timezone.utc),
            subject=subject,
            score=score,
            total_questions=total,
            time_spent_seconds=60,
            tab_exit_count=0,
            details=details,
        )
    return _make
