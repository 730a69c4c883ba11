import os

# Keep tests off the real database file and any configured mail provider
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["MAILGUN_API_KEY"] = ""
os.environ["SENDGRID_API_KEY"] = ""
os.environ["KV_BACKEND"] = "memory"
os.environ["EXPOSE_OTP"] = "false"
os.environ["ADMIN_EMAIL"] = ""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storefront.database import Base, get_db
from storefront.dependencies import get_kv_store, get_signup_workflow, get_verification_codes
from storefront.main import app
from storefront.services.kv_store import MemoryStore
from storefront.services.signup import SignupWorkflow
from storefront.services.verification import VerificationCodes

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Clock:
    def __init__(self):
        self.now = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class Outbox:
    """Records (to, code, expire_minutes) instead of sending mail."""

    def __init__(self):
        self.sent = []

    def __call__(self, to_email, code, expire_minutes):
        self.sent.append((to_email, code, expire_minutes))

    def last_code(self, to_email):
        codes = [code for to, code, _ in self.sent if to == to_email]
        return codes[-1] if codes else None


def other_code(code: str) -> str:
    """A different valid 6-digit code."""
    return str((int(code) - 100000 + 1) % 900000 + 100000)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def outbox():
    return Outbox()


@pytest.fixture
def workflow(db, store, outbox, clock):
    return SignupWorkflow(db, store, notify=outbox, clock=clock)


@pytest.fixture
def codes(store, outbox, clock):
    return VerificationCodes(store, notify=outbox, clock=clock)


@pytest.fixture
def client(db, store, outbox, clock):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_kv_store] = lambda: store
    app.dependency_overrides[get_signup_workflow] = lambda: SignupWorkflow(db, store, notify=outbox, clock=clock)
    app.dependency_overrides[get_verification_codes] = lambda: VerificationCodes(store, notify=outbox, clock=clock)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def wired_client(db, store):
    """Client using the production workflow, code and notifier providers."""
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_kv_store] = lambda: store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def mail(monkeypatch):
    """Captures (to, subject, html) for every email the app tries to send."""
    from storefront.services import notifications

    class Mail:
        def __init__(self):
            self.sent = []
            self.accept = True

        def __call__(self, to_email, subject, html_content, text_content=None):
            self.sent.append((to_email, subject, html_content))
            return self.accept

        def subjects(self, to_email):
            return [subject for to, subject, _ in self.sent if to == to_email]

    recorder = Mail()
    monkeypatch.setattr(notifications, "send_email", recorder)
    return recorder
