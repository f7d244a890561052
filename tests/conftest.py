import os
import tempfile
from datetime import datetime

# Keep the app's default database out of the working tree
os.environ.setdefault("DB_PATH", os.path.join(tempfile.mkdtemp(), "time_tracker.sqlite3"))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from freelance_tracker.database import get_db, init_db
from freelance_tracker.main import app, get_clock
from freelance_tracker.store import Store
from freelance_tracker.timer import TimerService
from freelance_tracker.utils import to_ms

HOUR = 3_600_000

# Wednesday, the week starts on Sunday 2024-03-10
START = to_ms(datetime(2024, 3, 13, 10, 0))


class FakeClock:
    def __init__(self, now: int):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def store(db):
    return Store(db)


@pytest.fixture
def clock():
    return FakeClock(START)


@pytest.fixture
def timer(store, clock):
    return TimerService(store, clock=clock)


@pytest.fixture
def client(db, clock):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
