# ABOUTME: Pytest fixtures and configuration
# ABOUTME: Provides test database, client, seeded admin and session token fixtures

import pytest
import os

# Point the app at SQLite before app.database builds its engine
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret")

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.config import Settings
from app.main import app
from app.models.database import Base, Admin, KeyGroup
from app.database import get_db
from app.services.security import AdminContext, issue_session_token


# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TEST_SETTINGS = Settings(
    database_url=TEST_DATABASE_URL,
    admin_username="admin",
    admin_password="admin123",
    secret_key="test-secret",
)


def override_get_db():
    """Override database dependency for tests."""
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function", autouse=True)
def setup_database():
    """Create tables before each test, drop after."""
    Base.metadata.create_all(bind=engine)
    yield
    # Drop all tables including ones created by migration scripts
    from sqlalchemy import MetaData
    metadata = MetaData()
    metadata.reflect(bind=engine)
    metadata.drop_all(bind=engine)


@pytest.fixture(name="engine")
def engine_fixture():
    """The engine behind the test database."""
    return engine


@pytest.fixture
def db_session():
    """Provides a database session for tests."""
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def seeded(db_session):
    """Seeds the default key groups and admin; returns the admin."""
    from app.services.bootstrap import seed_reference_data
    seed_reference_data(db_session, TEST_SETTINGS)
    return db_session.query(Admin).filter_by(username="admin").one()


@pytest.fixture
def fbx_group(seeded, db_session):
    return db_session.query(KeyGroup).filter_by(code="FBX").one()


@pytest.fixture
def auth_headers(seeded):
    """Authorization header carrying a session token for the seeded admin."""
    token = issue_session_token(
        AdminContext(admin_id=seeded.id, username=seeded.username),
        "test-secret",
        ttl_minutes=60,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(setup_database):
    """Provides a FastAPI test client with test database."""
    app.dependency_overrides[get_db] = override_get_db
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()
