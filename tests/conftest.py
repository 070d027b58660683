import os
import tempfile
from datetime import datetime, timedelta, timezone

import pytest

_TEST_DB_DIR = tempfile.mkdtemp(prefix='auth-core-tests-')
DEFAULT_TEST_DB_URL = f"sqlite:///{os.path.join(_TEST_DB_DIR, 'test.db')}"
TEST_DB_URL = os.getenv("TEST_DB_URL", DEFAULT_TEST_DB_URL)
TEST_SECRET = 'test-secret'
os.environ["DATABASE_URL"] = TEST_DB_URL
os.environ["SECRET_KEY"] = TEST_SECRET
os.environ["BLOCK_SWEEP_ENABLED"] = "false"

from fastapi.testclient import TestClient
from sqlmodel import Session

from app.api.deps import get_block_sweeper, get_session_service
from app.core.events import EventBus
from app.core.security import TokenCodec, hash_password
from app.db.init_db import init_db
from app.db.session import engine
from app.main import app
from app.models.user import User
from app.services.block_sweeper import BlockSweeper
from app.services.session_service import SessionService
from app.services.user_locks import UserLockRegistry

PASSWORD = 'secret123'
_PASSWORD_HASH = hash_password(PASSWORD)


class FakeClock:
    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def _reset_database():
    init_db(drop_all=True)
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def codec(clock) -> TokenCodec:
    return TokenCodec(
        TEST_SECRET,
        access_ttl=timedelta(minutes=1),
        refresh_ttl=timedelta(days=30),
        clock=clock,
    )


@pytest.fixture
def events():
    bus = EventBus()
    yield bus
    bus.shutdown()


@pytest.fixture
def session_service(codec, events) -> SessionService:
    return SessionService(codec, UserLockRegistry(timeout=5), events)


@pytest.fixture
def sweeper(clock):
    sweeper = BlockSweeper(lambda: Session(engine), interval_seconds=0.05, timeout_seconds=5, clock=clock)
    yield sweeper
    sweeper.shutdown()


@pytest.fixture
def db():
    with Session(engine) as session:
        yield session


@pytest.fixture
def make_user(db):
    def _make_user(email: str = 'a@x.com', roles: tuple[str, ...] = ('user',)) -> User:
        user = User(email=email, hashed_password=_PASSWORD_HASH, roles=list(roles))
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def client(session_service, sweeper):
    app.dependency_overrides[get_session_service] = lambda: session_service
    app.dependency_overrides[get_block_sweeper] = lambda: sweeper
    with TestClient(app) as test_client:
        yield test_client
