"""
Shared test fixtures for FitSense tests

Provides database setup, client creation, and user fixtures
"""
import os

# Configure before the app (and its settings) are imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SUPER_ADMIN_EMAILS", "owner@fitsense.test")
os.environ.setdefault("LOG_FORMAT", "text")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.main import app  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.db.session import get_db  # noqa: E402
from app.core.security import create_access_token  # noqa: E402
from app.core.limiter import limiter  # noqa: E402
from app.services.sync_scheduler import SyncScheduler  # noqa: E402
from tests.factories import create_test_user, reset_sequences  # noqa: E402

# Disable rate limiting for tests
limiter.enabled = False


# Create in-memory SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

SUPER_ADMIN_EMAIL = "owner@fitsense.test"


def create_tables(engine):
    """Create all tables for testing using SQLAlchemy metadata"""
    import app.models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def drop_tables(engine):
    """Drop all tables after testing"""
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    """Create a fresh database session for each test"""
    create_tables(engine)
    reset_sequences()

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        drop_tables(engine)


@pytest.fixture
def sync_scheduler():
    """Throttle with a frozen clock so only forced or first syncs run"""
    return SyncScheduler(interval_seconds=60, clock=lambda: 1000.0)


@pytest.fixture
def client(db_session, sync_scheduler):
    """Create a test client with database override"""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.state.member_sync_scheduler = sync_scheduler
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def admin_user(db_session):
    """Create an admin user for testing"""
    user = create_test_user(db_session, email="admin@fitsense.test", name="Gym Admin", role="ADMIN")
    db_session.commit()
    return user


@pytest.fixture
def super_admin_user(db_session):
    """Create the configured super admin"""
    user = create_test_user(db_session, email=SUPER_ADMIN_EMAIL, name="Owner", role="ADMIN")
    db_session.commit()
    return user


@pytest.fixture
def member_user(db_session):
    """Create a signed-up member (not an admin)"""
    user = create_test_user(db_session, email="member@fitsense.test", name="Regular Member")
    db_session.commit()
    return user


@pytest.fixture
def admin_headers(admin_user):
    """Return authorization headers for admin user"""
    return {"Authorization": f"Bearer {create_access_token(admin_user.id)}"}


@pytest.fixture
def super_admin_headers(super_admin_user):
    """Return authorization headers for the super admin"""
    return {"Authorization": f"Bearer {create_access_token(super_admin_user.id)}"}


@pytest.fixture
def member_headers(member_user):
    """Return authorization headers for a member"""
    return {"Authorization": f"Bearer {create_access_token(member_user.id)}"}
