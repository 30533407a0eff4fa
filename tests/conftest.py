import os

# Must be set before the application (and its settings) is imported
os.environ.setdefault("ENV", "testing")
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key-that-is-long-enough-for-hs256-signing")
os.environ.setdefault("ALGORITHM", "HS256")
os.environ.setdefault("JWT_ISSUER", "session-service-tests")
os.environ.setdefault("JWT_AUDIENCES", '["web-app", "mobile-app", "browser-extension"]')
os.environ.setdefault("ACCESS_TOKEN_EXPIRE_MINUTES", "15")
os.environ.setdefault("REFRESH_TOKEN_EXPIRE_DAYS", "7")
os.environ.setdefault("MAX_ACTIVE_DEVICES", "2")
os.environ.setdefault("LOG_DIR", "logs/test")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from typing import Generator

from main import app
from core.config import SessionPolicy, settings
from core.database import Base
from models.users import User
from services.session_manager import SessionManager
from services.token_cleanup import TokenCleanupWorker
from utils.deps import get_cleanup_worker, get_db, token_signer
from utils.hashing import get_password_hash

# SYNC SQLite for testing (matches sync service layer)
SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

TEST_PASSWORD = "TestPassword123!"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False, "timeout": 30}
)

TestingSessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)


@pytest.fixture
def session() -> Generator[Session, None, None]:
    """
    Creates a fresh, empty database for each test.
    """
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

    Base.metadata.drop_all(bind=engine)


@pytest.fixture
async def client(session: Session, cleanup_worker: TokenCleanupWorker):
    """
    Yields an HTTP client that talks to the app using the test database.
    """
    def override_get_db():
        try:
            yield session
        finally:
            pass  # Session cleanup handled by session fixture

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cleanup_worker] = lambda: cleanup_worker

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


def make_user(session: Session, email: str = "user@example.com", role: str = "customer",
              is_active: bool = True, max_devices: int | None = None) -> User:
    user = User(
        email=email,
        first_name="Test",
        last_name="User",
        hashed_password=get_password_hash(TEST_PASSWORD),
        is_active=is_active,
        role=role,
        max_devices=max_devices,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def user(session: Session) -> User:
    return make_user(session)


@pytest.fixture
def admin_user(session: Session) -> User:
    return make_user(session, email="admin@example.com", role="admin")


@pytest.fixture
def policy() -> SessionPolicy:
    return SessionPolicy.from_settings(settings)


@pytest.fixture
def manager(session: Session, policy: SessionPolicy) -> SessionManager:
    return SessionManager(session, policy, token_signer)


async def login_user(client: AsyncClient, user: User, **extra) -> dict:
    """Log a user in through the API and return the response body."""
    response = await client.post("/auth/login", json={
        "email": user.email,
        "password": TEST_PASSWORD,
        **extra
    })
    assert response.status_code == 200, response.text
    return response.json()


def bearer(tokens: dict) -> dict:
    return {"Authorization": f"Bearer {tokens['access_token']['token']}"}


@pytest.fixture
def cleanup_worker(policy: SessionPolicy) -> TokenCleanupWorker:
    """A worker on the test database; never started, sweeps run on demand."""
    return TokenCleanupWorker(TestingSessionLocal, policy, token_signer, interval_seconds=0)
