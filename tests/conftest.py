"""
Shared fixtures: in-memory database, fake clock, services and a TestClient.
"""

import os
from datetime import datetime, timedelta

import pytest

TEST_SECRET = "test-secret-key-for-unit-tests-0123456789"

# Set before anything reads the environment
os.environ.setdefault("JWT_SECRET", TEST_SECRET)

from fastapi.testclient import TestClient  # noqa: E402

from apikeys.config import ServiceConfig  # noqa: E402
from apikeys.database import DatabaseManager  # noqa: E402
from apikeys.service import KeyLifecycleService  # noqa: E402
from apps.api.main import create_app  # noqa: E402
from auth.auth_manager import AuthManager  # noqa: E402


class FakeClock:
    """Callable clock whose time only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def config():
    return ServiceConfig(
        jwt_secret=TEST_SECRET,
        database_url="sqlite://",
        bcrypt_rounds=4,
        cors_origins=[],
    )


@pytest.fixture
def db(config):
    manager = DatabaseManager(config)
    manager.initialize()
    yield manager
    manager.dispose()


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 1, 15, 12, 0, 0))


@pytest.fixture
def service(db, config, clock):
    return KeyLifecycleService(db, config, clock=clock)


@pytest.fixture
def auth_manager(db, config):
    # Real clock: PyJWT checks exp/iat against the wall clock
    return AuthManager(db, config)


@pytest.fixture
def app(config, db, service, auth_manager):
    return create_app(config=config, db_manager=db, key_service=service, auth_manager=auth_manager)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def admin_token(auth_manager):
    auth_manager.register("admin@example.com", "secret123")
    return auth_manager.login("admin@example.com", "secret123")


@pytest.fixture
def admin_headers(admin_token):
    return {"Authorization": f"Bearer {admin_token}"}
