import os
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

# Set required environment variables BEFORE importing app code
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["SKIP_EMAIL"] = "false"
os.environ["SENDGRID_API_KEY"] = ""
os.environ["SMTP_HOST"] = ""

from app.core.config import Settings
from app.db.base import Base, SessionLocal, engine
from app.models.account import Account
from app.services.auth import AuthService
from app.services.notifications import NotificationDispatcher
from app.services.otp import OtpGenerator
from app.services.store import AccountStore

T0 = datetime(2025, 1, 1, 12, 0, 0)


class FakeClock:
    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: int):
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def db_session():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def otp_generator(clock):
    # randbelow -> 23456 always yields "123456"
    return OtpGenerator(clock=clock, randbelow=lambda span: 23456)


@pytest.fixture
def dispatcher():
    mock = MagicMock(spec=NotificationDispatcher)
    mock.send_otp = AsyncMock(return_value="sendgrid")
    return mock


@pytest.fixture
def store(db_session):
    return AccountStore(db_session)


@pytest.fixture
def service(store, dispatcher, otp_generator, clock):
    return AuthService(store, dispatcher, otp_generator, config=Settings(SKIP_EMAIL=False), clock=clock)


@pytest.fixture
def bypass_service(store, dispatcher, otp_generator, clock):
    return AuthService(store, dispatcher, otp_generator, config=Settings(SKIP_EMAIL=True), clock=clock)


def count_accounts(db_session) -> int:
    return db_session.query(Account).count()
