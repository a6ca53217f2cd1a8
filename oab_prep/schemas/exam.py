"""
Pydantic schemas for questions, exam results and diagnostics
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import List, Literal, Optional, Union
from datetime import datetime
from enum import Enum
import unicodedata

from oab_prep.config import settings


class OABSubject(str, Enum):
    """The 17 subjects of the OAB first phase"""
    ETICA = "Ética Profissional"
    CONSTITUCIONAL = "Direito Constitucional"
    CIVIL = "Direito Civil"
    PROCESSUAL_CIVIL = "Direito Processual Civil"
    PENAL = "Direito Penal"
    PROCESSUAL_PENAL = "Direito Processual Penal"
    TRABALHO = "Direito do Trabalho"
    PROCESSUAL_TRABALHO = "Direito Processual do Trabalho"
    ADMINISTRATIVO = "Direito Administrativo"
    TRIBUTARIO = "Direito Tributário"
    EMPRESARIAL = "Direito Empresarial"
    DIREITOS_HUMANOS = "Direitos Humanos"
    INTERNACIONAL = "Direito Internacional"
    AMBIENTAL = "Direito Ambiental"
    CONSUMIDOR = "Direito do Consumidor"
    FILOSOFIA = "Filosofia do Direito"
    ECA = "ECA"

    @classmethod
    def from_label(cls, label: str) -> "OABSubject":
        """
        Resolve a subject label ignoring case, accents and common short forms

        Raises:
            ValueError: label matches no subject
        """
        key = _fold(label)
        subject = _SUBJECTS_BY_KEY.get(key) or _SUBJECT_ALIASES.get(key)
        if subject is None:
            raise ValueError(f"Unknown OAB subject: {label!r}")
        return subject


def _fold(label: str) -> str:
    decomposed = unicodedata.normalize("NFKD", label)
    return " ".join("".join(c for c in decomposed if not unicodedata.combining(c)).lower().split())


_SUBJECTS_BY_KEY = {_fold(s.value): s for s in OABSubject}
_SUBJECT_ALIASES = {
    "etica": OABSubject.ETICA,
    "etica profissional e estatuto da oab": OABSubject.ETICA,
    "estatuto da oab": OABSubject.ETICA,
    "direito empresarial e comercial": OABSubject.EMPRESARIAL,
    "direito comercial": OABSubject.EMPRESARIAL,
    "direito do trabalho e processo do trabalho": OABSubject.TRABALHO,
    "processo civil": OABSubject.PROCESSUAL_CIVIL,
    "processo penal": OABSubject.PROCESSUAL_PENAL,
    "processo do trabalho": OABSubject.PROCESSUAL_TRABALHO,
    "direito internacional publico": OABSubject.INTERNACIONAL,
    "filosofia": OABSubject.FILOSOFIA,
    "estatuto da crianca e do adolescente": OABSubject.ECA,
}


GENERAL_SUBJECT = "Geral"

Letter = Literal["A", "B", "C", "D"]
LETTERS = ("A", "B", "C", "D")
ExamSubject = Union[OABSubject, Literal["Geral"]]

UNANSWERED = "N/A"


def subject_name(subject) -> str:
    """Plain string name of an OABSubject, "Geral" or any other label"""
    if isinstance(subject, OABSubject):
        return subject.value
    return str(subject)


class Option(BaseModel):
    """One lettered alternative of a question"""
    model_config = ConfigDict(frozen=True)

    letter: Letter
    text: str


class Question(BaseModel):
    """
    Multiple-choice question as produced by the generation gateway

    Immutable once built; letters A-D appear exactly once.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    subject: OABSubject
    text: str = Field(..., min_length=1)
    options: List[Option]
    correct_option: Letter
    explanation: str

    @field_validator("subject", mode="before")
    @classmethod
    def _resolve_subject(cls, value):
        if isinstance(value, str) and not isinstance(value, OABSubject):
            return OABSubject.from_label(value)
        return value

    @model_validator(mode="after")
    def _check_options(self):
        letters = sorted(option.letter for option in self.options)
        if letters != list(LETTERS):
            raise ValueError("options must contain the letters A, B, C and D exactly once")
        return self


class ResultDetail(BaseModel):
    """Per-question record inside an ExamResult, with the question snapshotted"""
    question_id: str
    subject: OABSubject
    is_correct: bool
    user_answer: str  # letter or "N/A"
    question_text: Optional[str] = None
    options: Optional[List[Option]] = None
    correct_option: Optional[Letter] = None
    explanation: Optional[str] = None


class ExamResult(BaseModel):
    """Scored outcome of one exam session"""
    id: str
    user_id: str
    date: datetime
    subject: ExamSubject
    score: int = Field(..., ge=0)
    total_questions: int = Field(..., ge=0)
    time_spent_seconds: int = Field(..., ge=0)
    tab_exit_count: int = Field(0, ge=0)
    details: List[ResultDetail]
    ai_diagnostic: Optional[str] = None

    @model_validator(mode="after")
    def _check_score(self):
        if self.total_questions != len(self.details):
            raise ValueError("total_questions must equal the number of details")
        if self.score != sum(1 for d in self.details if d.is_correct):
            raise ValueError("score must equal the number of correct details")
        return self

    @property
    def accuracy(self) -> float:
        """Fraction of correct answers in this exam"""
        return self.score / self.total_questions if self.total_questions > 0 else 0.0


class Diagnostic(BaseModel):
    """Structured strategic feedback over a result history"""
    summary: str
    strengths: List[str]
    weaknesses: List[str]
    recommendation: str


class ExamStartRequest(BaseModel):
    """Request schema for starting an exam session"""
    user_id: str
    subject: ExamSubject = GENERAL_SUBJECT
    count: int = Field(settings.DEFAULT_EXAM_SIZE, ge=1, le=80, description="Number of questions")


class AnswerRequest(BaseModel):
    """Answer selection for the current question"""
    letter: Letter


class FocusRequest(BaseModel):
    """Visibility signal from the exam surface"""
    visible: bool


class QuestionView(BaseModel):
    """Question as shown during an exam; correct option hidden until revealed"""
    id: str
    subject: OABSubject
    text: str
    options: List[Option]
    user_answer: Optional[Letter] = None
    revealed: bool = False
    correct_option: Optional[Letter] = None
    explanation: Optional[str] = None


class ExamSessionView(BaseModel):
    """Current state of an exam session"""
    session_id: str
    user_id: str
    current_index: int
    total_questions: int
    answered_count: int
    progress: float
    time_left: int
    initial_time: int
    is_paused: bool
    tab_exit_count: int
    is_finished: bool
    current_question: Optional[QuestionView] = None
    result_id: Optional[str] = None
