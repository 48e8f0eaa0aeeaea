"""
Shared fixtures: an in-memory SQLite database per test and a TestClient
around an app bound to its own in-memory database.
"""
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from luukahead.app.db.session import Database
from luukahead.app.main import create_app
from luukahead.app.models.user import User
from luukahead.app.security.sessions import generate_user_id

IN_MEMORY_URL = "sqlite+aiosqlite:///:memory:"


class FakeClock:
    """Controllable replacement for SessionStore's ``now``."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(datetime.now(timezone.utc).replace(microsecond=0))


@pytest_asyncio.fixture
async def database():
    db = Database(IN_MEMORY_URL)
    await db.create_all()
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def db_session(database):
    async with database.session() as session:
        yield session


@pytest_asyncio.fixture
async def user(db_session):
    new_user = User(id=generate_user_id(), username="alice", password_hash=None, google_id="g-alice")
    db_session.add(new_user)
    await db_session.commit()
    return new_user


@pytest.fixture
def app():
    return create_app(Database(IN_MEMORY_URL))


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
