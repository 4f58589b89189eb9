import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Ensure predictable environment variables for tests before importing the app.
BASE_DIR = Path(__file__).resolve().parents[1]
TEST_DB_PATH = BASE_DIR / "test.db"

if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

os.environ.setdefault("DATABASE_URL", f"sqlite:///{TEST_DB_PATH}")
os.environ.setdefault("ENV", "test")
os.environ.setdefault("JWT_ACCESS_SECRET", "test-access-secret")
os.environ.setdefault("JWT_REFRESH_SECRET", "test-refresh-secret")
os.environ.setdefault("JWT_ISSUER", "notes-auth-test")
os.environ.setdefault("FRONTEND_URL", "http://frontend.example.com")
os.environ.setdefault("GOOGLE_CLIENT_ID", "test-client-id")
os.environ.setdefault("GOOGLE_CLIENT_SECRET", "test-client-secret")
os.environ.setdefault("OAUTH_STATE_SECRET", "test-state-secret")

import app.main as main  # noqa: E402  (import after env vars are set)
from app.core.security import TokenConfig, TokenIssuer  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.db.session import SessionLocal, engine  # noqa: E402
from app.services.auth_service import AuthService  # noqa: E402
from app.services.notifier import get_notifier  # noqa: E402
from app.services.user_store import UserStore  # noqa: E402


class RecordingNotifier:
    """Keeps every OTP it is asked to deliver instead of sending email."""

    def __init__(self):
        self.sent = []
        self.fail_with = None

    def notify(self, email, code, purpose):
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append((email, code, purpose))

    def last_code(self, email):
        for sent_to, code, _ in reversed(self.sent):
            if sent_to == email:
                return code
        raise AssertionError(f"no OTP sent to {email}")


class Clock:
    def __init__(self, now=None):
        self.now = now or datetime.now(timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def clock():
    return Clock()


@pytest.fixture()
def issuer():
    return TokenIssuer(
        TokenConfig(
            access_secret="unit-access", refresh_secret="unit-refresh", issuer="unit"
        )
    )


@pytest.fixture()
def service(db, notifier, issuer, clock):
    return AuthService(store=UserStore(db), notifier=notifier, tokens=issuer, clock=clock)


@pytest.fixture()
def client(notifier):
    main.app.dependency_overrides[get_notifier] = lambda: notifier
    with TestClient(main.app) as test_client:
        yield test_client
    main.app.dependency_overrides.pop(get_notifier, None)


@pytest.fixture()
def signed_up(client, notifier):
    """Signs up and verifies a user over HTTP; returns the auth response body."""

    def _signup(email="alice@example.com", name="Alice", dob="2000-01-01"):
        r = client.post(
            "/auth/signup/send-otp", json={"name": name, "dob": dob, "email": email}
        )
        assert r.status_code == 200, r.text
        r = client.post(
            "/auth/signup/verify-otp",
            json={
                "name": name,
                "dob": dob,
                "email": email,
                "otp": notifier.last_code(email),
            },
        )
        assert r.status_code == 200, r.text
        return r.json()

    return _signup


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
