"""
Shared test fixtures.

Uses an in-memory SQLite database (via aiosqlite) so tests run without
Docker / PostgreSQL / Redis.  SQLite's driver is switched to explicit BEGIN
so savepoints behave as they do on PostgreSQL.

Also provides two test doubles:

* ``InMemoryRideRepository`` honours the ``conditional_update`` contract
  with a check-and-apply that never yields, and yields to the event loop
  before every call so ``asyncio.gather`` interleaves competing requests.
* ``FakeRedis`` covers the handful of commands the idempotency store uses.
"""

from __future__ import annotations

import asyncio
import copy
import dataclasses
import itertools
import uuid
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Optional

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool, StaticPool

from src.config import settings
from src.domain.entities import Principal, Ride
from src.domain.enums import ApprovalStatus, Role
from src.domain.exceptions import PreconditionFailed
from src.domain.inventory import RideCondition, RideMutation
from src.infrastructure.database import Base
from src.infrastructure import models  # noqa: F401  (registers tables)

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


# ── Test doubles ──────────────────────────────────────────────────────


class InMemoryRideRepository:
    """Mirrors ``RideRepository`` over a dict of ``Ride`` entities."""

    def __init__(self):
        self.rides: dict[str, Ride] = {}
        self.conditional_writes = 0
        self._clock = itertools.count()
        self._epoch = datetime(2026, 1, 1, tzinfo=timezone.utc)

    async def insert(self, ride: Ride) -> Ride:
        await asyncio.sleep(0)
        now = self._epoch + timedelta(seconds=next(self._clock))
        stored = dataclasses.replace(
            ride, id=ride.id or str(uuid.uuid4()), created_at=now, updated_at=now
        )
        self.rides[stored.id] = stored
        return copy.deepcopy(stored)

    async def get_by_id(self, ride_id: str) -> Optional[Ride]:
        await asyncio.sleep(0)
        ride = self.rides.get(ride_id)
        return copy.deepcopy(ride) if ride else None

    async def list_rides(self, *, driver_id=None, active_only=True) -> list[Ride]:
        await asyncio.sleep(0)
        rides = [
            r
            for r in self.rides.values()
            if (driver_id is None or r.driver_id == driver_id)
            and (not active_only or r.active)
        ]
        rides.sort(key=lambda r: r.created_at, reverse=True)
        return copy.deepcopy(rides)

    async def conditional_update(
        self, ride_id: str, condition: RideCondition, mutation: RideMutation
    ) -> Ride:
        await asyncio.sleep(0)
        self.conditional_writes += 1
        ride = self.rides.get(ride_id)
        if ride is None or not condition.holds(ride):
            raise PreconditionFailed(ride_id)
        updated = mutation.apply(ride)
        self.rides[ride_id] = updated
        return copy.deepcopy(updated)


class FakeRedis:
    def __init__(self):
        self.data: dict[str, str] = {}

    async def set(self, key, value, nx=False, ex=None):
        if nx and key in self.data:
            return None
        self.data[key] = value
        return True

    async def get(self, key):
        return self.data.get(key)

    async def eval(self, script, numkeys, key, expected):
        # compare-and-delete, the only script the app runs
        if self.data.get(key) == expected:
            del self.data[key]
            return 1
        return 0


# ── Principals & tokens ───────────────────────────────────────────────


def driver(identity: str = "driver-1", status=ApprovalStatus.APPROVED) -> Principal:
    return Principal(identity, Role.DRIVER, status)


def student(identity: str = "student-1", status=ApprovalStatus.APPROVED) -> Principal:
    return Principal(identity, Role.STUDENT, status)


def make_token(
    sub: str,
    role: str,
    status: str = "approved",
    *,
    secret: Optional[str] = None,
    expires_in: int = 3600,
) -> str:
    claims = {
        "sub": sub,
        "role": role,
        "status": status,
        "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
    }
    return jwt.encode(claims, secret or settings.jwt_secret, algorithm=settings.jwt_algorithm)


def auth_headers(sub: str, role: str, status: str = "approved") -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(sub, role, status)}"}


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest.fixture
def memory_repo() -> InMemoryRideRepository:
    return InMemoryRideRepository()


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


async def _sqlite_engine(url: str, begin: str = "BEGIN", **kwargs) -> AsyncEngine:
    engine = create_async_engine(url, echo=False, **kwargs)

    @event.listens_for(engine.sync_engine, "connect")
    def _connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql(begin)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return engine


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """Fresh in-memory database per test; tables created from the ORM models."""
    engine = await _sqlite_engine(TEST_DB_URL, poolclass=StaticPool)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def file_session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """SQLite file database, one connection per session.

    ``BEGIN IMMEDIATE`` takes the write lock up front, so competing sessions
    queue on SQLite's busy timeout the way PostgreSQL queues on a row lock.
    """
    engine = await _sqlite_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'rydy.db'}",
        begin="BEGIN IMMEDIATE",
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory, fake_redis) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient over the real app, backed by SQLite and ``FakeRedis``."""
    from src.api.app import create_app
    from src.api.dependencies import get_db
    from src.api.middleware import limiter
    from src.infrastructure.redis_client import get_redis

    async def _test_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def _test_redis():
        return fake_redis

    app = create_app()
    app.dependency_overrides[get_db] = _test_db
    app.dependency_overrides[get_redis] = _test_redis
    limiter.enabled = False

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    limiter.enabled = settings.rate_limit_enabled
