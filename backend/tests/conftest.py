import os

# Settings are cached at import time; point them at throwaway values before the app loads.
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-session-tokens")

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.deps import get_clock, get_db, get_senders
from app.core.config import Settings, get_settings
from app.db.base import Base
from app.main import app
from app.models.otp_code import ChannelType
from app.services.rate_limit import clear_rate_limiter

TEST_SECRET = "test-secret-key-for-session-tokens"


class FakeClock:
    """Deterministic clock; every reading moves forward by one millisecond."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + timedelta(milliseconds=1)
        return value

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


class RecordingSender:
    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []
        self.error: Exception | None = None

    def send_code(self, recipient: str, code: str) -> None:
        if self.error is not None:
            raise self.error
        self.sent.append((recipient, code))

    @property
    def last_code(self) -> str:
        return self.sent[-1][1]


def make_settings(**overrides) -> Settings:
    values = dict(
        database_url="sqlite+pysqlite://",
        jwt_secret_key=TEST_SECRET,
        smtp_host=None,
        smtp_from_email=None,
        twilio_account_sid=None,
        twilio_auth_token=None,
        twilio_from_number=None,
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture()
def settings():
    return make_settings()


@pytest.fixture()
def clock():
    return FakeClock(datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture()
def senders():
    return {ChannelType.email: RecordingSender(), ChannelType.sms: RecordingSender()}


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture()
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def client(session_factory, settings, clock, senders):
    clear_rate_limiter()

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_senders] = lambda: senders

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    clear_rate_limiter()
