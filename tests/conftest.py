import os
from datetime import datetime, time, timedelta, timezone

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-access-secret")
os.environ.setdefault("JWT_REFRESH_SECRET", "test-refresh-secret")
os.environ.setdefault("TIMEZONE", "Asia/Amman")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

import pytest
from passlib.context import CryptContext
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from pitchbook.core import security
from pitchbook.db.session import Base
from pitchbook.db import models


# Fast hashes for tests; production keeps bcrypt
security.pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=4)


@pytest.fixture()
def db_session():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


def _create_user(session, username="player", role=models.UserRole.USER, password="secret123"):
    user = models.User(
        username=username,
        email=f"{username}@example.com",
        name=username.title(),
        password_hash=security.get_password_hash(password),
        role=role,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def _create_pitch(session, name="Pitch F1", city="AMMAN", open_time=time(8, 0), close_time=time(22, 0)):
    pitch = models.Pitch(
        name=name,
        city=city,
        address="Main street 1",
        price_per_hour=30,
        open_time=open_time,
        close_time=close_time,
    )
    session.add(pitch)
    session.commit()
    session.refresh(pitch)
    return pitch


@pytest.fixture()
def make_user(db_session):
    def factory(username="player", **kwargs):
        return _create_user(db_session, username, **kwargs)

    return factory


@pytest.fixture()
def make_pitch(db_session):
    def factory(**kwargs):
        return _create_pitch(db_session, **kwargs)

    return factory


@pytest.fixture()
def pitch(make_pitch):
    return make_pitch()


@pytest.fixture()
def users(make_user):
    return [make_user(f"user{i}") for i in (1, 2, 3)]


class FrozenClock:
    """Callable clock for code that takes a ``clock`` argument."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture()
def clock():
    return FrozenClock(datetime(2024, 6, 1, 9, 0, tzinfo=timezone.utc))
