"""Shared test fixtures for all test modules."""

import contextlib

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core import database as db_module
from app.core.auth import create_access_token
from app.core.database import Base, get_db
from app.main import app
from app.models.user import UserRole
from app.repositories.restaurant_repository import RestaurantRepository
from app.repositories.user_repository import UserRepository
from app.services.realtime_gateway import gateway

# Create an in-memory SQLite engine with StaticPool so all connections
# share the same database state and there are no file-locking issues.
_test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
_TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_test_engine)


@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test and truncate all data after.

    Patches the module-level engine and SessionLocal so all application code
    uses the in-memory test database. Clears data after each test.
    """
    original_engine = db_module.engine
    original_session = db_module.SessionLocal
    db_module.engine = _test_engine
    db_module.SessionLocal = _TestSessionLocal

    Base.metadata.create_all(bind=_test_engine)

    yield
    with _test_engine.connect() as conn:
        conn.execute(text("PRAGMA foreign_keys = OFF"))
        for table in reversed(Base.metadata.sorted_tables):
            with contextlib.suppress(OperationalError):
                conn.execute(table.delete())
        conn.execute(text("PRAGMA foreign_keys = ON"))
        conn.commit()

    db_module.engine = original_engine
    db_module.SessionLocal = original_session


@pytest.fixture(autouse=True)
def reset_gateway():
    """Drop realtime subscribers and restore transport toggles between tests."""
    ws_enabled, sse_enabled = gateway.ws_enabled, gateway.sse_enabled
    yield
    gateway._subscribers.clear()
    gateway.ws_enabled, gateway.sse_enabled = ws_enabled, sse_enabled


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)


@pytest.fixture
def db_session():
    """Create a database session for direct repository testing."""
    gen = get_db()
    db = next(gen)
    try:
        yield db
    finally:
        for _ in gen:
            pass


@pytest.fixture
def admin_user(db_session):
    return UserRepository(db_session).create(
        username="admin",
        role=UserRole.SUPER_ADMIN,
        full_name="Site Admin",
        email="admin@menux.test",
    )


@pytest.fixture
def owner_user(db_session):
    return UserRepository(db_session).create(
        username="owner",
        role=UserRole.RESTAURANT_OWNER,
        full_name="Olive Owner",
        email="owner@menux.test",
    )


@pytest.fixture
def restaurant(db_session, owner_user):
    return RestaurantRepository(db_session).create(
        name="Cedar Grill",
        owner_id=owner_user.id,
        address="12 Harbor Road",
        phone="+1 555 0100",
    )


@pytest.fixture
def admin_token(admin_user):
    return create_access_token(admin_user.id, admin_user.role)


@pytest.fixture
def owner_token(owner_user):
    return create_access_token(owner_user.id, owner_user.role)


@pytest.fixture
def admin_headers(admin_token):
    return {"Authorization": f"Bearer {admin_token}"}


@pytest.fixture
def owner_headers(owner_token):
    return {"Authorization": f"Bearer {owner_token}"}
