"""
Gemini AI service for question generation and performance diagnostics
"""
import google.generativeai as genai
from pydantic import ValidationError as SchemaValidationError
from oab_prep.config import settings
from oab_prep.exceptions import DiagnosticError, GenerationError
from oab_prep.schemas.exam import (
    Diagnostic, ExamResult, ExamSubject, GENERAL_SUBJECT, OABSubject, Question,
    subject_name,
)
from oab_prep.utils.cache import cache_service
import json
import logging
from typing import Any, Dict, List, Sequence

logger = logging.getLogger(__name__)

# Configure Gemini API
if settings.GEMINI_API_KEY:
    genai.configure(api_key=settings.GEMINI_API_KEY)


# Official first-phase distribution for an 80-question general exam
OFFICIAL_DISTRIBUTION: Dict[OABSubject, int] = {
    OABSubject.ETICA: 8,
    OABSubject.CONSTITUCIONAL: 7,
    OABSubject.CIVIL: 7,
    OABSubject.PROCESSUAL_CIVIL: 7,
    OABSubject.ADMINISTRATIVO: 6,
    OABSubject.PENAL: 6,
    OABSubject.PROCESSUAL_PENAL: 6,
    OABSubject.TRABALHO: 6,
    OABSubject.PROCESSUAL_TRABALHO: 6,
    OABSubject.TRIBUTARIO: 5,
    OABSubject.EMPRESARIAL: 5,
    OABSubject.DIREITOS_HUMANOS: 2,
    OABSubject.INTERNACIONAL: 2,
    OABSubject.ECA: 2,
    OABSubject.AMBIENTAL: 2,
    OABSubject.CONSUMIDOR: 2,
    OABSubject.FILOSOFIA: 2,
}
FULL_EXAM_SIZE = 80

INSTANT_EMPTY_FEEDBACK = "Continue estudando para melhorar seus resultados."
INSTANT_UNAVAILABLE = "O diagnóstico automático está temporariamente indisponível."


def no_data_diagnostic() -> Diagnostic:
    return Diagnostic(
        summary="Sem dados para análise.",
        strengths=[],
        weaknesses=[],
        recommendation="Realize seu primeiro simulado."
    )


def unavailable_diagnostic() -> Diagnostic:
    return Diagnostic(
        summary="Análise estratégica temporariamente indisponível.",
        strengths=[],
        weaknesses=[],
        recommendation="Continue realizando simulados."
    )


class GeminiService:
    """Service for all Gemini AI operations"""

    JSON_CONFIG = {"response_mime_type": "application/json"}

    def __init__(self):
        self.model = genai.GenerativeModel(settings.GEMINI_MODEL)

    def generate_questions(
        self,
        subject: ExamSubject,
        count: int,
        recent_topics: Sequence[str] = ()
    ) -> List[Question]:
        """
        Generate a batch of OAB-style questions

        Served from the question cache when an identical request was
        answered within the cache window.

        Args:
            subject: An OABSubject or "Geral"
            count: Number of questions
            recent_topics: Topics seen recently, used to steer away from repeats

        Returns:
            List of validated questions (empty if the model returned nothing)

        Raises:
            GenerationError: upstream failure or malformed payload
        """
        topics = self.normalize_recent_topics(recent_topics)
        cache_key = cache_service.generate_cache_key(subject_name(subject), count, topics)

        cached = cache_service.get(cache_key)
        if cached:
            logger.debug(f"Serving cached questions for {subject_name(subject)} ({count}Q)")
            return cached

        prompt = self._create_questions_prompt(subject, count, topics)

        try:
            response = self.model.generate_content(prompt, generation_config=self.JSON_CONFIG)
            response_text = response.text
        except Exception as e:
            logger.error(f"Failed to generate questions: {str(e)}")
            raise GenerationError(
                f"Falha ao conectar com o servidor de questões: {str(e) or 'Erro desconhecido'}",
                cause=e
            ) from e

        questions = self._parse_questions_response(response_text)

        if questions:
            cache_service.set(cache_key, questions)

        logger.info(f"Generated {len(questions)} questions for {subject_name(subject)}")
        return questions

    def normalize_recent_topics(self, recent_topics: Sequence[Any]) -> List[str]:
        """Deduplicate topics keeping first-seen order, bounded to the configured limit"""
        unique: List[str] = []
        for topic in recent_topics:
            name = subject_name(topic)
            if name and name not in unique:
                unique.append(name)
        return unique[:settings.RECENT_TOPICS_LIMIT]

    def _create_questions_prompt(
        self,
        subject: ExamSubject,
        count: int,
        recent_topics: List[str]
    ) -> str:
        """Create structured prompt for question generation"""

        if subject_name(subject) == GENERAL_SUBJECT and count == FULL_EXAM_SIZE:
            table = "\n".join(
                f"    - {s.value}: {n} questões" for s, n in OFFICIAL_DISTRIBUTION.items()
            )
            subject_instruction = (
                f"Siga EXATAMENTE a distribuição oficial da 1ª fase da OAB ({FULL_EXAM_SIZE} questões):\n{table}"
            )
        elif subject_name(subject) == GENERAL_SUBJECT:
            subject_instruction = "Disciplina: Mistura equilibrada das 17 disciplinas da OAB."
        else:
            subject_instruction = f"Disciplina: {subject_name(subject)}."

        allowed_subjects = ", ".join(f'"{s.value}"' for s in OABSubject)

        return f"""
Gere {count} questões no estilo da prova da OAB 1ª Fase (FGV).
{subject_instruction}

REQUISITOS DE NOVIDADE:
- EVITE temas já abordados recentemente: {', '.join(recent_topics) or 'Nenhum específico'}.
- Crie CASOS PRÁTICOS novos, nomes de personagens fictícios variados e situações jurídicas complexas.

REQUISITOS TÉCNICOS:
1. 4 alternativas (A, B, C, D).
2. EXPLICAÇÃO DETALHADA: Forneça a fundamentação jurídica completa, citando ARTIGOS DE LEI (CF, CC, CP, CLT, etc.) e súmulas pertinentes.
3. O campo "subject" deve ser exatamente um destes valores: {allowed_subjects}.

Return ONLY valid JSON in this exact format (no markdown, no preamble):

[
  {{
    "id": "q1",
    "subject": "Direito Civil",
    "text": "Enunciado da questão...",
    "options": [
      {{"letter": "A", "text": "..."}},
      {{"letter": "B", "text": "..."}},
      {{"letter": "C", "text": "..."}},
      {{"letter": "D", "text": "..."}}
    ],
    "correct_option": "B",
    "explanation": "Fundamentação com artigos de lei..."
  }}
]
"""

    def _parse_questions_response(self, response_text: str) -> List[Question]:
        """Parse Gemini's question payload; any shape mismatch fails the whole batch"""
        cleaned = self._strip_code_fence(response_text)
        if not cleaned:
            logger.warning("Empty question payload from Gemini")
            return []

        try:
            payload = json.loads(cleaned)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse questions JSON: {str(e)}")
            logger.error(f"Response text: {cleaned[:500]}")
            raise GenerationError("Resposta do servidor de questões em formato inválido.", cause=e) from e

        if not isinstance(payload, list):
            raise GenerationError("Resposta do servidor de questões não é uma lista de questões.")

        try:
            questions = [Question.model_validate(item) for item in payload]
        except SchemaValidationError as e:
            logger.error(f"Question payload failed validation: {e.error_count()} errors")
            raise GenerationError("Questões geradas não respeitam o formato esperado.", cause=e) from e

        # Sessions track answers by question id
        ids = [q.id for q in questions]
        if len(set(ids)) != len(ids):
            logger.error(f"Question payload repeats ids: {ids}")
            raise GenerationError("Questões geradas com identificadores repetidos.")

        return questions

    def instant_diagnostic(self, result: ExamResult) -> str:
        """
        Short free-text feedback on one finished exam

        Never raises; upstream failures become a generic message.
        """
        summary = ", ".join(
            f"{subject_name(d.subject)}: {'Acerto' if d.is_correct else 'Erro'}" for d in result.details
        )
        prompt = f"""
Analise este resultado de simulado OAB: {summary}.
O aluno acertou {result.score} de {result.total_questions}.
Dê um feedback curto focado no erro mais crítico e mencione a base legal que o aluno deve revisar.
"""
        try:
            text = self._request_text(prompt)
        except DiagnosticError as e:
            logger.warning(f"Instant diagnostic unavailable: {e.message}")
            return INSTANT_UNAVAILABLE

        return text or INSTANT_EMPTY_FEEDBACK

    def historical_diagnostic(self, history: Sequence[ExamResult]) -> Diagnostic:
        """
        Strategic diagnostic over the most recent results

        Args:
            history: Results, most recent first

        Returns:
            Diagnostic; fixed fallbacks for empty history or upstream failure
        """
        if not history:
            return no_data_diagnostic()

        results_summary = [
            {
                "date": r.date.isoformat(),
                "score": r.score,
                "total": r.total_questions,
                "errors": [subject_name(d.subject) for d in r.details if not d.is_correct],
            }
            for r in list(history)[:settings.DIAGNOSTIC_HISTORY_WINDOW]
        ]

        prompt = f"""
Aja como um mentor especializado em aprovação na OAB.
Analise os resultados históricos do aluno: {json.dumps(results_summary, ensure_ascii=False)}.
Identifique padrões de erro e forneça um plano estratégico.

Return ONLY valid JSON (no markdown):
{{
  "summary": "...",
  "strengths": ["..."],
  "weaknesses": ["..."],
  "recommendation": "..."
}}
"""
        try:
            text = self._request_text(prompt, generation_config=self.JSON_CONFIG)
            return Diagnostic.model_validate(json.loads(self._strip_code_fence(text) or "{}"))
        except (DiagnosticError, json.JSONDecodeError, SchemaValidationError) as e:
            logger.warning(f"Historical diagnostic unavailable: {str(e)}")
            return unavailable_diagnostic()

    def _request_text(self, prompt: str, generation_config: Dict[str, Any] = None) -> str:
        """Call the model and return its text, wrapping every failure"""
        try:
            if generation_config:
                response = self.model.generate_content(prompt, generation_config=generation_config)
            else:
                response = self.model.generate_content(prompt)
            return (response.text or "").strip()
        except Exception as e:
            raise DiagnosticError(str(e) or e.__class__.__name__) from e

    @staticmethod
    def _strip_code_fence(text: str) -> str:
        cleaned = (text or "").strip()
        # Remove markdown code blocks if present
        if cleaned.startswith("```json"):
            cleaned = cleaned[7:-3].strip()
        elif cleaned.startswith("```"):
            cleaned = cleaned[3:-3].strip()
        return cleaned


# Global instance
gemini_service = GeminiService()
