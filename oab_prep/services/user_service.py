"""
Registration and login against the profile registry
"""
import logging
import re
import uuid
from datetime import datetime, timezone

from oab_prep.exceptions import DuplicateEmailError, UserNotFoundError, ValidationError
from oab_prep.schemas.user import UserProfile, UserRole
from oab_prep.services.result_store import ResultStore, result_store

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class UserService:
    """Profile registry operations; no credential security is attempted"""

    def __init__(self, store: ResultStore = result_store):
        self.store = store

    def register(self, name: str, email: str, password: str, role: UserRole = "student") -> UserProfile:
        """
        Create a profile

        Raises:
            ValidationError: invalid email or missing fields
            DuplicateEmailError: email already registered (any case)
        """
        self._check_email(email)
        if not name or not password:
            raise ValidationError("Preencha todos os campos obrigatórios.")

        if self.store.find_user_by_email(email):
            logger.info("Registration rejected: email already in use")
            raise DuplicateEmailError(email.lower())

        profile = UserProfile(
            id=str(uuid.uuid4()),
            name=name,
            email=email.lower(),
            password=password,
            role=role,
            created_at=datetime.now(timezone.utc),
        )
        self.store.register_user(profile)
        logger.info(f"Registered {role} {profile.id}")
        return profile

    def login(self, email: str, password: str) -> UserProfile:
        """
        Find the profile matching email (any case) and password

        Raises:
            ValidationError: bad email format or no matching profile
        """
        self._check_email(email)
        user = self.store.find_user_by_email(email)
        if user is None or user.password != password:
            raise ValidationError("E-mail ou senha inválidos.")
        return user

    def get(self, user_id: str) -> UserProfile:
        user = self.store.find_user(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    @staticmethod
    def _check_email(email: str) -> None:
        if not EMAIL_PATTERN.match(email or ""):
            raise ValidationError("Por favor, insira um endereço de e-mail válido.")


# Global instance
user_service = UserService()
