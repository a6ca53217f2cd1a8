from datetime import datetime, timezone

from oab_prep.exceptions import PersistenceError
from oab_prep.schemas.user import UserProfile
from oab_prep.services.result_store import ResultStore, history_key
from oab_prep.state import AppState, add_result
from oab_prep.utils.storage import KeyValueStorage


def _profile(user_id="u1", email="ana@example.com", role="student"):
    return UserProfile(
        id=user_id,
        name="Ana",
        email=email,
        password="secret",
        role=role,
        created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )


class BrokenStorage:
    def get(self, key):
        raise PersistenceError("disk unavailable")

    def set(self, key, value):
        raise PersistenceError("quota exceeded")


def test_record_result_prepends_and_persists(make_result):
    store = ResultStore()
    store.register_user(_profile())
    older, newer = make_result(2, 5), make_result(4, 5)

    store.record_result("u1", older)
    store.record_result("u1", newer)

    assert [r.id for r in store.history("u1")] == [newer.id, older.id]
    persisted = KeyValueStorage().get(history_key("u1"))
    assert [r["id"] for r in persisted] == [newer.id, older.id]


def test_load_all_rehydrates_every_user(make_result):
    first = ResultStore()
    first.register_user(_profile("u1", "ana@example.com"))
    first.register_user(_profile("u2", "bia@example.com"))
    first.record_result("u1", make_result(3, 4, user_id="u1"))
    first.set_theme("dark")

    second = ResultStore()
    loaded = second.load_all()

    assert set(loaded) == {"u1"}
    assert loaded["u1"][0].score == 3
    assert [u.id for u in second.users()] == ["u2", "u1"]
    assert second.theme() == "dark"
    assert second.history("u2") == []


def test_corrupt_history_degrades_to_empty(make_result):
    store = ResultStore()
    store.register_user(_profile())
    KeyValueStorage().set(history_key("u1"), [{"id": "broken"}])

    loaded = store.load_all()

    assert loaded == {}
    assert [u.id for u in store.users()] == ["u1"]


def test_unreadable_storage_is_treated_as_no_data():
    store = ResultStore(storage=BrokenStorage())

    assert store.load_all() == {}
    assert store.users() == []
    assert store.theme() == "light"


def test_failed_writes_do_not_block(make_result):
    store = ResultStore(storage=BrokenStorage())
    result = make_result(1, 1)

    assert store.record_result("u1", result) is result
    assert store.history("u1") == [result]


def test_reducers_do_not_mutate_input(make_result):
    state = AppState()
    result = make_result(1, 2)

    updated = add_result(state, "u1", result)

    assert state.results == {}
    assert updated.history("u1") == [result]
