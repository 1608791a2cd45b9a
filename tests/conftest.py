import os

# Settings are read at import time
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["GOOGLE_CLIENT_ID"] = "test-google-client"

from typing import Dict, Generator, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from campus_connect.db.models import Base, StudentProfile, User, UserRole
from campus_connect.db.session import get_sync_session
from campus_connect.main import app
from campus_connect.utils.auth import AuthUtils

TEST_PASSWORD = "password123"


@pytest.fixture
def test_engine():
    """Fresh in-memory database per test; every session shares one connection."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return sessionmaker(bind=test_engine, class_=Session, expire_on_commit=False)


@pytest.fixture
def db_session(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory) -> Generator[TestClient, None, None]:
    """API client whose requests, auth lookups and websockets use the test database."""

    def override_get_sync_session():
        db = session_factory()
        try:
            yield db
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    app.dependency_overrides[get_sync_session] = override_get_sync_session
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# Test data factories
@pytest.fixture
def make_user(db_session: Session):
    counter = {"n": 0}

    def _make_user(
        first_name: Optional[str] = None,
        last_name: str = "Tester",
        role: UserRole = UserRole.STUDENT,
        department: Optional[str] = "Computer Science",
        email: Optional[str] = None,
        password: Optional[str] = TEST_PASSWORD,
    ) -> User:
        counter["n"] += 1
        first_name = first_name or f"User{counter['n']}"
        user = User(
            first_name=first_name,
            last_name=last_name,
            email=email or f"{first_name.lower()}{counter['n']}@university.edu",
            password_hash=AuthUtils.hash_password(password) if password else None,
            role=role,
        )
        if role == UserRole.STUDENT:
            user.student_profile = StudentProfile(department=department or "General")
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def student_a(make_user) -> User:
    return make_user(first_name="Alice", last_name="Anders", department="CS")


@pytest.fixture
def student_b(make_user) -> User:
    return make_user(first_name="Bob", last_name="Baker", department="EE")


@pytest.fixture
def student_c(make_user) -> User:
    return make_user(first_name="Carol", last_name="Chen", department="Math")


@pytest.fixture
def admin_user(make_user) -> User:
    return make_user(
        first_name="Ada", last_name="Admin", role=UserRole.ADMIN, department=None
    )


def auth_headers(user: User) -> Dict[str, str]:
    token = AuthUtils.generate_access_token(user.id, user.email, user.role.value)
    return {"Authorization": f"Bearer {token}"}


def token_for(user: User) -> str:
    return AuthUtils.generate_access_token(user.id, user.email, user.role.value)


@pytest.fixture
def make_friends(client: TestClient):
    """Drive the friend-request flow over HTTP so both users end up accepted friends."""

    def _make_friends(requester: User, recipient: User) -> None:
        response = client.post(
            "/api/v1/friends/request",
            json={"targetId": recipient.id},
            headers=auth_headers(requester),
        )
        assert response.status_code == 201, response.text
        response = client.put(
            "/api/v1/friends/respond",
            json={"senderId": requester.id, "action": "accept"},
            headers=auth_headers(recipient),
        )
        assert response.status_code == 200, response.text

    return _make_friends


@pytest.fixture
def headers_for():
    return auth_headers


@pytest.fixture
def token_of():
    return token_for
