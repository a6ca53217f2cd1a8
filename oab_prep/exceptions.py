"""
Domain exceptions

Each carries the HTTP status and error code it is rendered with. Diagnostic
and persistence failures are recovered into safe defaults by their services.
"""
from typing import Any, Dict, Optional


class ExamPrepError(Exception):
    """Base exception for the exam prep service"""

    status_code = 500
    error_code = "exam_prep_error"

    def __init__(self, message: str, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}


class ValidationError(ExamPrepError):
    """Malformed user input (login, registration, exam requests)"""

    status_code = 400
    error_code = "validation_error"


class DuplicateEmailError(ValidationError):
    """Registration with an email already in the registry"""

    status_code = 409
    error_code = "duplicate_email"

    def __init__(self, email: str):
        super().__init__(
            "Este e-mail já está em uso na plataforma.",
            extra={"email": email}
        )


class GenerationError(ExamPrepError):
    """Question batch could not be produced by the upstream model"""

    status_code = 502
    error_code = "generation_failed"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class DiagnosticError(ExamPrepError):
    """Upstream feedback call failed; always recovered into a fallback"""

    status_code = 502
    error_code = "diagnostic_failed"


class PersistenceError(ExamPrepError):
    """Storage read or write failed"""

    status_code = 500
    error_code = "persistence_error"


class SessionNotFoundError(ExamPrepError):
    """No active exam session with the given id"""

    status_code = 404
    error_code = "session_not_found"

    def __init__(self, session_id: str):
        super().__init__(
            f"Exam session '{session_id}' not found",
            extra={"session_id": session_id}
        )


class UserNotFoundError(ExamPrepError):
    """No profile with the given id"""

    status_code = 404
    error_code = "user_not_found"

    def __init__(self, user_id: str):
        super().__init__(
            f"User '{user_id}' not found",
            extra={"user_id": user_id}
        )


class PermissionDeniedError(ExamPrepError):
    """Action not available for the user's role"""

    status_code = 403
    error_code = "permission_denied"


class ResultNotFoundError(ExamPrepError):
    """No stored result with the given id for the user"""

    status_code = 404
    error_code = "result_not_found"

    def __init__(self, result_id: str):
        super().__init__(
            f"Result '{result_id}' not found",
            extra={"result_id": result_id}
        )
