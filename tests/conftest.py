# tests/conftest.py

import os

# must be set before the application modules read their configuration
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ.setdefault("SECRET_KEY", "test-secret")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, build_engine, get_db
from main import app
from models import Role
from services import AccountService, TaskService


@pytest.fixture()
def engine():
    """
    One in-memory SQLite database per test. StaticPool keeps a single
    connection so every session (and the TestClient thread) sees the same data.
    """
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def accounts(db):
    return AccountService(db)


@pytest.fixture()
def tasks(db):
    return TaskService(db)


@pytest.fixture()
def alice(accounts):
    _, user = accounts.register("alice", "alice@example.com", "secret123", "Alice", "Liddell")
    return user


@pytest.fixture()
def bob(accounts):
    _, user = accounts.register("bob", "bob@example.com", "secret123", "Bob", "Builder")
    return user


@pytest.fixture()
def admin(accounts):
    user = accounts.ensure_admin("root", "root@example.com", "rootpass1")
    assert user.role == Role.ADMIN
    return user


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def register(client):
    """Register through the API and return the Authorization header."""

    def _register(username: str, password: str = "secret123") -> dict:
        resp = client.post(
            "/auth/register",
            json={
                "username": username,
                "email": f"{username}@example.com",
                "password": password,
                "firstName": username.title(),
                "lastName": "Tester",
            },
        )
        assert resp.status_code == 201, resp.text
        return {"Authorization": f"Bearer {resp.json()['token']}"}

    return _register
