"""
Shared test fixtures for PlantOps ERP tests

Provides database setup, client creation, and per-role user fixtures
"""
import os

# Settings are read at import time; point them at SQLite before plantops loads
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOG_FORMAT", "text")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from plantops.main import app
from plantops.db.base import Base
from plantops.db.session import get_db
from plantops.core.security import create_access_token
from plantops.core.limiter import limiter

from tests.factories import create_test_user, reset_sequences

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


def create_tables(engine):
    """Create all tables for testing using SQLAlchemy metadata"""
    # Registers every model with Base
    import plantops.models  # noqa: F401

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
def client(db_session):
    """Create a test client with database override"""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# =============================================================================
# Users, one per role
# =============================================================================

def _role_user(db_session, role):
    user = create_test_user(db_session, email=f"{role}@example.com", role=role, full_name=f"{role.title()} User")
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def admin_user(db_session):
    return _role_user(db_session, "admin")


@pytest.fixture
def sales_user(db_session):
    return _role_user(db_session, "sales")


@pytest.fixture
def production_user(db_session):
    return _role_user(db_session, "production")


@pytest.fixture
def quality_user(db_session):
    return _role_user(db_session, "quality")


@pytest.fixture
def stores_user(db_session):
    return _role_user(db_session, "stores")


@pytest.fixture
def logistics_user(db_session):
    return _role_user(db_session, "logistics")


@pytest.fixture
def accounts_user(db_session):
    return _role_user(db_session, "accounts")


@pytest.fixture
def viewer_user(db_session):
    return _role_user(db_session, "viewer")


def _headers(user):
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
def admin_headers(admin_user):
    """Return authorization headers for the admin user"""
    return _headers(admin_user)


@pytest.fixture
def sales_headers(sales_user):
    return _headers(sales_user)


@pytest.fixture
def production_headers(production_user):
    return _headers(production_user)


@pytest.fixture
def quality_headers(quality_user):
    return _headers(quality_user)


@pytest.fixture
def stores_headers(stores_user):
    return _headers(stores_user)


@pytest.fixture
def logistics_headers(logistics_user):
    return _headers(logistics_user)


@pytest.fixture
def accounts_headers(accounts_user):
    return _headers(accounts_user)


@pytest.fixture
def viewer_headers(viewer_user):
    return _headers(viewer_user)
