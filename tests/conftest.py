"""Pytest configuration and fixtures."""

import os
import secrets
import tempfile
from contextlib import nullcontext
from datetime import datetime, timedelta

import pytest

_TEST_DIR = tempfile.mkdtemp(prefix="timecapsule-tests-")

# Settings are read once at import time, so the environment is fixed up first.
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TEST_DIR, 'test.db')}"
os.environ["SCHEDULER_BACKEND"] = "off"
os.environ["UPLOAD_DIR"] = os.path.join(_TEST_DIR, "uploads")
os.environ["SMTP_HOST"] = ""
os.environ.setdefault("SECRET_KEY", f"test-only-{secrets.token_urlsafe(32)}")

from fastapi.testclient import TestClient  # noqa: E402

from timecapsule.auth import create_access_token, hash_password  # noqa: E402
from timecapsule.database import Base, SessionLocal, engine  # noqa: E402
from timecapsule.errors import DependencyFailure  # noqa: E402
from timecapsule.main import app  # noqa: E402
from timecapsule.models import Capsule, User, utcnow  # noqa: E402
from timecapsule.scheduler import UnlockScheduler  # noqa: E402
from timecapsule.service import CapsuleService  # noqa: E402
from timecapsule.store import CapsuleStore  # noqa: E402

T0 = datetime(2026, 3, 1, 12, 0, 0)


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now += timedelta(seconds=seconds)
        return self.now


class FakeNotifier:
    """Records notifications; raises for titles listed in ``fail_for``."""

    def __init__(self, fail_for=()):
        self.calls = []
        self.fail_for = set(fail_for)

    def notify_unlocked(self, address, title):
        if title in self.fail_for:
            raise DependencyFailure(f"mail server rejected '{title}'")
        self.calls.append((address, title))


@pytest.fixture(autouse=True)
def fresh_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def store(db):
    return CapsuleStore(db)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def service(store, clock):
    return CapsuleService(store, clock=clock)


@pytest.fixture
def scheduler(store, notifier, clock):
    return UnlockScheduler(lambda: nullcontext(store), notifier, clock=clock)


@pytest.fixture
def make_user(store):
    def _make_user(username="alice", role="USER"):
        return store.create_user(
            User(
                username=username,
                password_hash=hash_password("s3cret-pass"),
                email=f"{username}@example.com",
                role=role,
            )
        )

    return _make_user


@pytest.fixture
def make_capsule(store):
    """Insert a capsule directly, skipping the lifecycle checks."""

    def _make_capsule(owner, unlock_at, title="note", message="hello", unlocked=False):
        return store.save(
            Capsule(
                title=title,
                message=message,
                unlock_at=unlock_at,
                unlocked=unlocked,
                owner_id=owner.id,
                created_at=utcnow(),
            )
        )

    return _make_capsule


@pytest.fixture
def client():
    """Create a test client."""
    return TestClient(app)


@pytest.fixture
def auth_headers():
    def _auth_headers(user):
        return {"Authorization": f"Bearer {create_access_token(user)}"}

    return _auth_headers
