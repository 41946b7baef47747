"""
Test configuration and fixtures for the analytics service.
This centralizes all test setup, making individual tests clean.
"""

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from main import app
from analytics_app.database.connection import Base, get_db
from analytics_app.admission.strategies import InMemoryAdmissionGuard
from analytics_app.dependencies import get_admission_guard, get_broadcaster
from analytics_app.realtime.broadcaster import AnalyticsBroadcaster
from analytics_app.security import create_access_token

# Test database configuration
SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FakeClock:
    """Controllable replacement for datetime.now"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)

    def timestamp(self) -> float:
        return self.now.timestamp()


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    This ensures tests are isolated and don't affect each other.
    """
    # Create tables
    Base.metadata.create_all(bind=engine)
    
    # Create session
    db = TestingSessionLocal()
    
    try:
        yield db
    finally:
        # Cleanup
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 3, 12, 10, 0, 0))


@pytest.fixture
def guard():
    """Fresh admission guard so claims never leak between tests"""
    return InMemoryAdmissionGuard()


@pytest.fixture
def broadcaster(db_session):
    """Broadcaster whose snapshots read the test database"""
    return AnalyticsBroadcaster(session_factory=TestingSessionLocal)


@pytest.fixture(scope="function")
def client(db_session, guard, broadcaster):
    """
    Create a test client with database, guard and broadcaster overridden.
    This is the main fixture that tests will use.
    """
    def override_get_db():
        yield db_session
    
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_admission_guard] = lambda: guard
    app.dependency_overrides[get_broadcaster] = lambda: broadcaster
    
    with TestClient(app) as test_client:
        yield test_client
    
    # Clean up overrides
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    token = create_access_token("admin-1", email="admin@example.com")
    return {"Authorization": f"Bearer {token}"}
