"""
Pytest configuration and fixtures for the test suite.
"""
import os
import pytest
from typing import Callable, Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

# Use SQLite for testing (file database shared with background workers)
SQLALCHEMY_TEST_DATABASE_URL = os.getenv(
    "TEST_DATABASE_URL",
    "sqlite:///./test.db"
)

# Set test environment before importing app
os.environ["ENV"] = "development"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-testing-purposes-only-32chars"
os.environ["DATABASE_URL"] = SQLALCHEMY_TEST_DATABASE_URL
os.environ["SUBMISSION_POLICY"] = "permissive"

from meetpulse.main import app
from meetpulse.db.base import Base
from meetpulse.core.deps import get_db
from meetpulse.models.meeting import Meeting
from meetpulse.models.user import User
from meetpulse.schemas.meeting import MeetingCreate
from meetpulse.services.auth import get_password_hash, create_user_token
from meetpulse.services.meetings import create_meeting


engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False} if "sqlite" in SQLALCHEMY_TEST_DATABASE_URL else {},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db: Session) -> Generator[TestClient, None, None]:
    """Create a test client with database override."""

    def override_get_db_with_session():
        """Return the test database session."""
        yield db

    app.dependency_overrides[get_db] = override_get_db_with_session
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _make_user(db: Session, email: str, full_name: str) -> User:
    user = User(
        email=email,
        password_hash=get_password_hash("TestPassword123"),
        full_name=full_name,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def headers_for(user: User) -> dict:
    """Bearer headers for a user."""
    return {"Authorization": f"Bearer {create_user_token(user)}"}


@pytest.fixture
def make_user(db: Session) -> Callable[[str, str], User]:
    """Factory for additional users."""

    def factory(email: str, full_name: str) -> User:
        return _make_user(db, email, full_name)

    return factory


@pytest.fixture
def creator(db: Session) -> User:
    """The user who creates and runs meetings."""
    return _make_user(db, "creator@example.com", "Carol Creator")


@pytest.fixture
def alice(db: Session) -> User:
    """An invited participant."""
    return _make_user(db, "alice@example.com", "Alice Participant")


@pytest.fixture
def bob(db: Session) -> User:
    """A second invited participant."""
    return _make_user(db, "bob@example.com", "Bob Participant")


@pytest.fixture
def outsider(db: Session) -> User:
    """A registered user who was not invited."""
    return _make_user(db, "outsider@example.com", "Oscar Outsider")


@pytest.fixture
def creator_headers(creator: User) -> dict:
    return headers_for(creator)


@pytest.fixture
def alice_headers(alice: User) -> dict:
    return headers_for(alice)


@pytest.fixture
def bob_headers(bob: User) -> dict:
    return headers_for(bob)


@pytest.fixture
def outsider_headers(outsider: User) -> dict:
    return headers_for(outsider)


@pytest.fixture
def meeting(db: Session, creator: User, alice: User, bob: User) -> Meeting:
    """An active meeting run by the creator with Alice and Bob invited."""
    return create_meeting(
        db,
        MeetingCreate(
            title="Sprint retrospective",
            question="How did the sprint go?",
            participant_ids=[alice.id, bob.id],
        ),
        creator,
    )


@pytest.fixture
def meeting_url(meeting: Meeting) -> str:
    return f"/api/v1/meetings/{meeting.id}"
