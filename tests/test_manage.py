"""Unit tests for manage.py create-user. getpass is patched; nothing is typed."""

from __future__ import annotations

import pytest

import manage
from auth.passwords import Password
from auth.store import UserStore

GOOD_PASSWORD = "a-long-enough-password"


@pytest.fixture
def typed(monkeypatch):
    """Feed a sequence of answers to getpass.getpass."""

    def _typed(*answers: str) -> None:
        replies = iter(answers)
        monkeypatch.setattr(manage.getpass, "getpass", lambda prompt="": next(replies))

    return _typed


@pytest.fixture
def user_store(db_url: str):
    store = UserStore(db_url)
    yield store
    store.close()


def test_create_user_stores_a_hashed_password(typed, db_url, user_store):
    typed(GOOD_PASSWORD, GOOD_PASSWORD)

    assert manage.main(["create-user", "editor", "--database-url", db_url]) == 0

    stored = user_store.get_stored_credentials("editor")
    assert stored is not None
    assert stored.password_hash.startswith("$argon2id$")
    assert Password(GOOD_PASSWORD).matches(stored.password_hash)


def test_duplicate_username_exits_1(typed, db_url, user_store):
    typed(GOOD_PASSWORD, GOOD_PASSWORD, GOOD_PASSWORD, GOOD_PASSWORD)
    assert manage.main(["create-user", "editor", "--database-url", db_url]) == 0
    assert manage.main(["create-user", "editor", "--database-url", db_url]) == 1


def test_mismatched_confirmation_exits_2(typed, db_url, user_store):
    typed(GOOD_PASSWORD, "something-else-entirely")

    assert manage.main(["create-user", "editor", "--database-url", db_url]) == 2
    assert user_store.get_stored_credentials("editor") is None


def test_short_password_exits_2(typed, db_url, user_store):
    typed("short")

    assert manage.main(["create-user", "editor", "--database-url", db_url]) == 2
    assert not user_store.has_users()


def test_blank_username_exits_2(typed, db_url):
    typed(GOOD_PASSWORD, GOOD_PASSWORD)
    assert manage.main(["create-user", "   ", "--database-url", db_url]) == 2
