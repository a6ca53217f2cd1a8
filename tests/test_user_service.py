import pytest

from oab_prep.exceptions import DuplicateEmailError, UserNotFoundError, ValidationError
from oab_prep.services.result_store import ResultStore
from oab_prep.services.user_service import UserService


@pytest.fixture
def users():
    return UserService(store=ResultStore())


def test_register_lowercases_email(users):
    profile = users.register("Clara Silva", "Clara@Example.com", "pw")

    assert profile.email == "clara@example.com"
    assert profile.role == "student"
    assert users.get(profile.id) == profile


def test_duplicate_email_is_rejected_case_insensitively(users):
    users.register("Clara", "clara@example.com", "pw")

    with pytest.raises(DuplicateEmailError):
        users.register("Outra Clara", "CLARA@example.com", "pw2")

    assert len(users.store.users()) == 1


@pytest.mark.parametrize("name,email,password", [
    ("Clara", "not-an-email", "pw"),
    ("", "clara@example.com", "pw"),
    ("Clara", "clara@example.com", ""),
])
def test_invalid_registration(users, name, email, password):
    with pytest.raises(ValidationError):
        users.register(name, email, password)
    assert users.store.users() == []


def test_login_matches_email_in_any_case(users):
    created = users.register("Tamara", "tamara@example.com", "pw", role="mentor")

    assert users.login("TAMARA@example.com", "pw") == created


def test_login_rejects_wrong_password(users):
    users.register("Tamara", "tamara@example.com", "pw")

    with pytest.raises(ValidationError):
        users.login("tamara@example.com", "PW")


def test_unknown_user(users):
    with pytest.raises(UserNotFoundError):
        users.get("missing")
