import pytest

from errors import (
    AuthenticationFailed,
    Conflict,
    DuplicateEmail,
    DuplicateUsername,
    InvalidCredential,
    UserNotFound,
)
from models import Role, Task
from security import verify_password, verify_token


def test_register_returns_token_and_user(accounts):
    token, user = accounts.register("carol", "carol@example.com", "secret123", "Carol", "Danvers")
    assert verify_token(token) == "carol"
    assert user.id is not None
    assert user.role == Role.USER
    assert user.enabled and user.account_non_locked
    assert user.password != "secret123"
    assert user.created_at is not None


def test_duplicate_username_is_conflict(accounts, alice):
    with pytest.raises(DuplicateUsername) as info:
        accounts.register("alice", "other@example.com", "secret123")
    assert isinstance(info.value, Conflict)


def test_duplicate_email_is_conflict(accounts, alice):
    with pytest.raises(DuplicateEmail):
        accounts.register("alice2", "alice@example.com", "secret123")


def test_login(accounts, alice):
    token, user = accounts.login("alice", "secret123")
    assert user.id == alice.id
    assert verify_token(token, expected_identity="alice") == "alice"

    with pytest.raises(AuthenticationFailed):
        accounts.login("alice", "bad-password")


def test_get_current_user(accounts, alice):
    assert accounts.get_current_user("alice").id == alice.id
    with pytest.raises(UserNotFound):
        accounts.get_current_user("ghost")


def test_update_profile_applies_present_fields_only(accounts, alice):
    user = accounts.update_profile("alice", {"first_name": "Alicia"})
    assert user.first_name == "Alicia"
    assert user.last_name == "Liddell"
    assert user.email == "alice@example.com"


def test_update_profile_email_taken(accounts, alice, bob):
    with pytest.raises(DuplicateEmail):
        accounts.update_profile("alice", {"email": "bob@example.com"})
    # unchanged email is not a conflict with itself
    assert accounts.update_profile("alice", {"email": "alice@example.com"}).email == "alice@example.com"


def test_change_password_requires_current(accounts, alice):
    with pytest.raises(InvalidCredential):
        accounts.update_profile("alice", {"new_password": "newsecret"})
    with pytest.raises(InvalidCredential):
        accounts.update_profile("alice", {"current_password": "wrongpass", "new_password": "newsecret"})

    user = accounts.update_profile("alice", {"current_password": "secret123", "new_password": "newsecret"})
    assert verify_password("newsecret", user.password)
    accounts.login("alice", "newsecret")


def test_delete_account_removes_tasks(db, accounts, tasks, alice, bob):
    tasks.create(alice, "one")
    tasks.create(alice, "two")
    tasks.create(bob, "bob's")

    accounts.delete_account("alice")

    with pytest.raises(UserNotFound):
        accounts.get_current_user("alice")
    assert [t.title for t in db.query(Task).all()] == ["bob's"]


def test_ensure_admin_is_idempotent(accounts, bob):
    first = accounts.ensure_admin("root", "root@example.com", "rootpass1")
    again = accounts.ensure_admin("root", "root@example.com", "rootpass1")
    assert first.id == again.id
    assert again.role == Role.ADMIN

    promoted = accounts.ensure_admin("bob", "bob@example.com", "ignored1")
    assert promoted.id == bob.id
    assert promoted.role == Role.ADMIN
