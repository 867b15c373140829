import os
import tempfile

# Set environment variables BEFORE any imports that might use settings
_test_db_dir = tempfile.mkdtemp()
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_test_db_dir, 'test_crm.db')}"
os.environ["SECRET_KEY"] = "test-secret-key-min-32-characters-long-for-testing"
os.environ["ALGORITHM"] = "HS256"
os.environ["ACCESS_TOKEN_EXPIRE_MINUTES"] = "30"
os.environ["APP_ENV"] = "production"

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.api.deps import get_db
from app.core.config import Environment
from app.core.security import create_access_token
from app.db.base import Base
from app.main import create_app


class ManualTimer:
    def __init__(self, scheduler: "ManualScheduler", when: float, callback):
        self.scheduler = scheduler
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Fake clock: timers only fire when the test advances time."""

    def __init__(self):
        self.now = 0.0
        self.timers: list[ManualTimer] = []

    def call_later(self, delay: float, callback) -> ManualTimer:
        timer = ManualTimer(self, self.now + delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def active(self) -> list[ManualTimer]:
        return [t for t in self.timers if not t.cancelled]

    def advance(self, seconds: float) -> None:
        deadline = self.now + seconds
        while True:
            due = sorted(
                (t for t in self.active if t.when <= deadline), key=lambda t: t.when
            )
            if not due:
                break
            timer = due[0]
            self.now = timer.when
            timer.cancelled = True
            timer.callback()
        self.now = deadline


@pytest.fixture(scope="function")
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture(scope="function")
def db_session(tmp_path):
    """Create a fresh SQLite database for each test."""
    test_engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=test_engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        test_engine.dispose()


@pytest.fixture(scope="function")
def db(db_session):
    """Alias for db_session to match test naming conventions."""
    return db_session


def _build_app(db_session, environment: Environment):
    application = create_app(environment=environment)

    def override_get_db():
        yield db_session

    application.dependency_overrides[get_db] = override_get_db
    return application


@pytest.fixture(scope="function")
def production_app(db_session):
    return _build_app(db_session, Environment.PRODUCTION)


@pytest.fixture(scope="function")
def development_app(db_session):
    return _build_app(db_session, Environment.DEVELOPMENT)


@pytest.fixture(scope="function")
def client(production_app):
    """Test client for the production disclosure policy."""
    return TestClient(production_app)


@pytest.fixture(scope="function")
def dev_client(development_app):
    return TestClient(development_app)


@pytest.fixture(scope="function")
def token() -> str:
    return create_access_token(data={"sub": "1"})


@pytest.fixture(scope="function")
def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="function")
def expired_token() -> str:
    return create_access_token(data={"sub": "1"}, expires_delta=timedelta(minutes=-5))
