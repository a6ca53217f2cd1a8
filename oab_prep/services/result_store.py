"""
Result store: durable profiles, per-user exam histories and theme

The per-user document under oab_history_{user_id} is the source of truth.
The in-memory AppState is rehydrated from those documents by load_all()
and updated through the reducers in oab_prep.state, then persisted.
"""
import logging
from typing import Dict, List, Optional

from pydantic import TypeAdapter, ValidationError as SchemaValidationError

from oab_prep.exceptions import PersistenceError
from oab_prep.schemas.exam import ExamResult
from oab_prep.schemas.user import Theme, UserProfile
from oab_prep.state import AppState, add_result, add_user, set_history, set_theme
from oab_prep.utils.storage import KeyValueStorage

logger = logging.getLogger(__name__)

USERS_KEY = "oab_users"
THEME_KEY = "theme"

_users_adapter = TypeAdapter(List[UserProfile])
_results_adapter = TypeAdapter(List[ExamResult])


def history_key(user_id: str) -> str:
    return f"oab_history_{user_id}"


class ResultStore:
    """Append-only result persistence plus the profile registry"""

    def __init__(self, storage: Optional[KeyValueStorage] = None):
        self.storage = storage or KeyValueStorage()
        self.state = AppState()

    def load_all(self) -> Dict[str, List[ExamResult]]:
        """
        Rehydrate profiles, every user's history and the theme

        Unreadable documents are logged and treated as empty.

        Returns:
            Map of user id to history, most recent first
        """
        users = self._read(USERS_KEY, _users_adapter, [])
        state = AppState(users=users, theme=self._read_theme())

        for user in users:
            history = self._read(history_key(user.id), _results_adapter, None)
            if history is not None:
                state = set_history(state, user.id, history)

        self.state = state
        logger.info(f"Loaded {len(users)} profiles and {sum(len(h) for h in state.results.values())} results")
        return dict(state.results)

    def users(self) -> List[UserProfile]:
        return list(self.state.users)

    def students(self) -> List[UserProfile]:
        return self.state.students()

    def find_user(self, user_id: str) -> Optional[UserProfile]:
        return self.state.find_user(user_id)

    def find_user_by_email(self, email: str) -> Optional[UserProfile]:
        return self.state.find_user_by_email(email)

    def history(self, user_id: str) -> List[ExamResult]:
        """Results of one user, history[0] being the latest"""
        return self.state.history(user_id)

    def all_results(self) -> Dict[str, List[ExamResult]]:
        return {user_id: list(history) for user_id, history in self.state.results.items()}

    def register_user(self, profile: UserProfile) -> UserProfile:
        self.state = add_user(self.state, profile)
        self._write(USERS_KEY, _users_adapter.dump_python(self.state.users, mode="json"))
        return profile

    def record_result(self, user_id: str, result: ExamResult) -> ExamResult:
        """Prepend a result and rewrite the user's whole list"""
        self.state = add_result(self.state, user_id, result)
        history = self.state.results[user_id]
        self._write(history_key(user_id), _results_adapter.dump_python(history, mode="json"))
        logger.info(f"Recorded result {result.id} for user {user_id} ({len(history)} total)")
        return result

    def theme(self) -> Theme:
        return self.state.theme

    def set_theme(self, theme: Theme) -> Theme:
        self.state = set_theme(self.state, theme)
        self._write(THEME_KEY, theme)
        return theme

    def _read(self, key: str, adapter: TypeAdapter, default):
        try:
            raw = self.storage.get(key)
            if raw is None:
                return default
            return adapter.validate_python(raw)
        except PersistenceError as e:
            logger.error(f"Treating '{key}' as empty: {e.message}")
        except SchemaValidationError as e:
            logger.error(f"Treating '{key}' as empty: {e.error_count()} invalid fields")
        return default

    def _read_theme(self) -> Theme:
        try:
            theme = self.storage.get(THEME_KEY)
        except PersistenceError as e:
            logger.error(f"Theme preference unreadable: {e.message}")
            return "light"
        return theme if theme in ("light", "dark") else "light"

    def _write(self, key: str, value) -> None:
        try:
            self.storage.set(key, value)
        except PersistenceError as e:
            logger.error(f"Persisting '{key}' failed, keeping in-memory state: {e.message}")


# Global instance
result_store = ResultStore()
