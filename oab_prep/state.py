"""
Application state and pure reducers

Reducers never mutate their input; they return a new AppState. Persisting
the outcome is the caller's job (see services.result_store).
"""
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional

from oab_prep.schemas.exam import ExamResult
from oab_prep.schemas.user import Theme, UserProfile


@dataclass(frozen=True)
class AppState:
    """Profiles, per-user histories (most recent first) and the theme flag"""
    users: List[UserProfile] = field(default_factory=list)
    results: Dict[str, List[ExamResult]] = field(default_factory=dict)
    theme: Theme = "light"

    def find_user(self, user_id: str) -> Optional[UserProfile]:
        return next((u for u in self.users if u.id == user_id), None)

    def find_user_by_email(self, email: str) -> Optional[UserProfile]:
        email = email.strip().lower()
        return next((u for u in self.users if u.email.lower() == email), None)

    def history(self, user_id: str) -> List[ExamResult]:
        return list(self.results.get(user_id, []))

    def students(self) -> List[UserProfile]:
        return [u for u in self.users if u.role == "student"]


def add_user(state: AppState, profile: UserProfile) -> AppState:
    """Newest profile first, like the registry on disk"""
    return replace(state, users=[profile, *state.users])


def add_result(state: AppState, user_id: str, result: ExamResult) -> AppState:
    """Prepend a result; history[0] is always the latest exam"""
    results = dict(state.results)
    results[user_id] = [result, *state.results.get(user_id, [])]
    return replace(state, results=results)


def set_history(state: AppState, user_id: str, history: List[ExamResult]) -> AppState:
    results = dict(state.results)
    results[user_id] = list(history)
    return replace(state, results=results)


def set_theme(state: AppState, theme: Theme) -> AppState:
    return replace(state, theme=theme)
