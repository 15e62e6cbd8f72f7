import pytest

from errors import AccessDenied
from models import Role, Task, User
from policy import AuthorizationPolicy

policy = AuthorizationPolicy()


def make_user(user_id, role=Role.USER):
    return User(id=user_id, username=f"user{user_id}", role=role)


def test_owner_can_access():
    owner = make_user(1)
    task = Task(title="mine", user_id=1)
    assert policy.can_access(task, owner)
    policy.enforce(task, owner)


def test_other_user_is_denied():
    task = Task(title="not yours", user_id=1)
    intruder = make_user(2)
    assert not policy.can_access(task, intruder)
    with pytest.raises(AccessDenied):
        policy.enforce(task, intruder)


def test_admin_can_access_anything():
    task = Task(title="someone's", user_id=1)
    admin = make_user(99, Role.ADMIN)
    assert policy.is_admin(admin)
    assert policy.can_access(task, admin)


def test_scope_filters_non_admin(db, tasks, alice, bob, admin):
    tasks.create(alice, "alice task")
    tasks.create(bob, "bob task")

    assert [t.title for t in policy.scope(db.query(Task), alice).all()] == ["alice task"]
    assert len(policy.scope(db.query(Task), admin).all()) == 2
