"""
Test configuration and fixtures for pytest.
"""

import os

# Must be set before the app modules read their configuration
os.environ["TESTING"] = "True"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

import app.db.models  # noqa: F401
from app.db.base import Base
from app.main import app
from app.dependencies import db_dependency
from app.core.security import create_access_token, get_password_hash
from app.services.spotify.token_cache import token_cache

TEST_PASSWORD = "Str0ng!Pass"


@pytest.fixture(scope="function")
def test_engine():
    """Fresh in-memory database for each test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)

    yield engine

    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(test_engine):
    """Create a new database session for a test."""
    session_factory = sessionmaker(bind=test_engine, autocommit=False, autoflush=False)
    session = session_factory()

    yield session

    session.close()


@pytest.fixture(autouse=True)
def reset_token_cache():
    """Cached tokens and their locks must not leak between tests."""
    token_cache.reset()
    yield
    token_cache.reset()


@pytest.fixture
def client(db_session):
    """Create a test client with a session override."""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[db_dependency] = override_get_db

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


def make_user(db_session, username="testuser", email="test@example.com", **kwargs):
    from app.db.models import User

    user = User(
        username=username,
        email=email,
        password_hash=get_password_hash(TEST_PASSWORD),
        is_active=True,
        **kwargs,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


def auth_headers_for(user):
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}


@pytest.fixture
def user_factory(db_session):
    """Create extra users: user_factory(username=..., email=...)."""

    def factory(**kwargs):
        return make_user(db_session, **kwargs)

    return factory


@pytest.fixture
def headers_for():
    return auth_headers_for


@pytest.fixture
def test_user(db_session):
    """Create a test user."""
    return make_user(db_session)


@pytest.fixture
def other_user(db_session):
    return make_user(db_session, username="otheruser", email="other@example.com")


@pytest.fixture
def auth_headers(test_user):
    return auth_headers_for(test_user)


@pytest.fixture
def other_headers(other_user):
    return auth_headers_for(other_user)


@pytest.fixture
def test_room(db_session, test_user):
    """An active room owned by test_user with password TEST_PASSWORD."""
    from app.db.models import Room

    room = Room(
        user_id=test_user.id,
        name="Friday Party",
        slug="friday-party",
        password_hash=get_password_hash(TEST_PASSWORD),
        is_active=True,
    )
    db_session.add(room)
    db_session.commit()
    db_session.refresh(room)
    return room


# Reset test environment at the end of session
def pytest_sessionfinish(session, exitstatus):
    """Clean up after all tests have run."""
    os.environ.pop("TESTING", None)
