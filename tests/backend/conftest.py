"""Pytest fixtures for backend tests."""

import os

# Settings are read at import time; provide test values before importing the app
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-pytest")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime, timedelta, timezone  # noqa: E402
from pathlib import Path  # noqa: E402
from typing import Callable, Generator  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from backend.core.dependencies import get_reset_password_limiter  # noqa: E402
from backend.core.email import EmailSender, get_email_sender  # noqa: E402
from backend.core.rate_limit import SlidingWindowRateLimiter  # noqa: E402
from backend.core.security import create_access_token, hash_password  # noqa: E402
from backend.core.storage import LocalStorage, get_storage  # noqa: E402
from backend.database import Base, get_db  # noqa: E402
from backend.main import app  # noqa: E402
from backend.models.user import User  # noqa: E402

TEST_PASSWORD = "Password@1"


class RecordingEmailSender(EmailSender):
    """Email sender that keeps messages in memory."""

    def __init__(self) -> None:
        self.sent: list[dict[str, str]] = []
        self.reset_links: list[tuple[str, str]] = []

    def send(self, recipient: str, subject: str, body: str) -> None:
        self.sent.append({"recipient": recipient, "subject": subject, "body": body})

    def send_password_reset(self, recipient: str, reset_link: str) -> None:
        self.reset_links.append((recipient, reset_link))
        super().send_password_reset(recipient, reset_link)

    def last_reset_token(self) -> str:
        """Token at the end of the most recent reset link."""
        return self.reset_links[-1][1].rsplit("/", 1)[-1]


@pytest.fixture(scope="function")
def test_db_engine():
    """Create an in-memory SQLite engine shared by the test and the app."""
    test_db_url = os.getenv("TEST_DATABASE_URL", "sqlite://")
    if test_db_url.startswith("sqlite"):
        engine = create_engine(
            test_db_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(test_db_url, pool_pre_ping=True)

    # Create all tables
    Base.metadata.create_all(bind=engine)

    yield engine

    # Cleanup: drop all tables
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def test_db_session(test_db_engine) -> Generator[Session, None, None]:
    """Create a database session for testing with automatic rollback."""
    TestingSessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=test_db_engine,
    )

    session = TestingSessionLocal()

    try:
        yield session
    finally:
        # Rollback any uncommitted changes to clean up test data
        session.rollback()
        session.close()


@pytest.fixture(scope="function")
def temp_storage(tmp_path: Path) -> LocalStorage:
    """Create a temporary storage directory for profile pictures."""
    return LocalStorage(base_path=tmp_path / "test_uploads")


@pytest.fixture(scope="function")
def email_outbox() -> RecordingEmailSender:
    """In-memory email sender; inspect ``reset_links`` after requests."""
    return RecordingEmailSender()


@pytest.fixture(scope="function")
def reset_limiter() -> SlidingWindowRateLimiter:
    """Fresh password reset limiter (3 requests per minute) for each test."""
    return SlidingWindowRateLimiter(max_requests=3, window_seconds=60)


@pytest.fixture(scope="function")
def test_client(
    test_db_session: Session,
    temp_storage: LocalStorage,
    email_outbox: RecordingEmailSender,
    reset_limiter: SlidingWindowRateLimiter,
) -> Generator[TestClient, None, None]:
    """Create a test client with database, storage, email and rate limiter overrides."""

    def override_get_db() -> Generator[Session, None, None]:
        """Override get_db dependency to use test database session."""
        try:
            yield test_db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: temp_storage
    app.dependency_overrides[get_email_sender] = lambda: email_outbox
    app.dependency_overrides[get_reset_password_limiter] = lambda: reset_limiter

    client = TestClient(app)

    try:
        yield client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def create_user(test_db_session: Session) -> Callable:
    """Factory function to create users directly in the database.

    Returns:
        Function that creates a user with given parameters and returns (user, token)

    Example:
        ```python
        def test_example(create_user):
            user, token = create_user(email="test@example.com", name="Test User")
            assert user.email == "test@example.com"
        ```
    """
    counter = {"created": 0}

    def _create_user(
        email: str,
        password: str = TEST_PASSWORD,
        name: str = "Test User",
        role: str = "user",
        **fields,
    ) -> tuple[User, str]:
        """Create a user in the database and return user with access token.

        Users are given increasing ``created_at`` values so newest-first order is deterministic.
        """
        counter["created"] += 1
        fields.setdefault(
            "created_at",
            datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=counter["created"]),
        )
        user = User(
            email=email,
            name=name,
            password_hash=hash_password(password),
            role=role,
            **fields,
        )
        test_db_session.add(user)
        test_db_session.commit()
        test_db_session.refresh(user)

        token = create_access_token(user.id, role=user.role)

        return user, token

    return _create_user


def auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers() -> Callable[[str], dict[str, str]]:
    """Build an ``Authorization: Bearer`` header for a token."""
    return auth_header
