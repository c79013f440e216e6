"""
Shared test fixtures.

Uses a file-backed SQLite database (via aiosqlite) so tests run without
Docker / PostgreSQL / Redis.  The production models are created as-is.

Every transaction opens with ``BEGIN IMMEDIATE``: SQLite then hands out the
write lock at transaction start, so two sessions racing on the same ride
are serialised the way PostgreSQL's row locks serialise them.  A session
must commit (or roll back) before another session can start its own
transaction.
"""

from __future__ import annotations

from datetime import timedelta
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from src.domain.distance import HaversineEstimator
from src.domain.entities import (
    Actor,
    Location,
    RideDraft,
    Waypoint,
    utcnow,
)
from src.domain.enums import UserRole
from src.domain.events import Notification
from src.infrastructure.database import Base
from src.infrastructure.models import UserModel
from src.infrastructure.notifications import NotificationSink
from src.services import booking_lifecycle, ride_lifecycle

AIRPORT = Waypoint("Airport", Location(19.0896, 72.8656))
ANDHERI = Waypoint("Andheri", Location(19.1136, 72.8697))


# ── Test DB (SQLite file) ─────────────────────────────────────────────


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'rides.db'}",
        poolclass=NullPool,
        echo=False,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ── Users ─────────────────────────────────────────────────────────────


async def _add_user(session: AsyncSession, name: str, role: UserRole, verified=False) -> Actor:
    user = UserModel(
        name=name,
        email=f"{name.lower()}@example.com",
        role=role,
        is_verified_driver=verified,
    )
    session.add(user)
    await session.flush()
    return Actor(id=user.id, role=role, is_verified_driver=verified)


@pytest_asyncio.fixture
async def users(db_session) -> dict[str, Actor]:
    cast = {
        "driver": await _add_user(db_session, "Driver", UserRole.DRIVER, verified=True),
        "unverified": await _add_user(db_session, "Rookie", UserRole.DRIVER),
        "passenger": await _add_user(db_session, "Alice", UserRole.PASSENGER),
        "passenger2": await _add_user(db_session, "Bob", UserRole.PASSENGER),
        "passenger3": await _add_user(db_session, "Carol", UserRole.PASSENGER),
        "admin": await _add_user(db_session, "Admin", UserRole.ADMIN),
    }
    await db_session.commit()
    return cast


@pytest.fixture
def driver(users) -> Actor:
    return users["driver"]


@pytest.fixture
def passenger(users) -> Actor:
    return users["passenger"]


@pytest.fixture
def passenger2(users) -> Actor:
    return users["passenger2"]


@pytest.fixture
def admin(users) -> Actor:
    return users["admin"]


# ── Rides and bookings ────────────────────────────────────────────────


@pytest.fixture
def estimator() -> HaversineEstimator:
    return HaversineEstimator(avg_speed_kmh=40.0)


def make_draft(seats: int = 3, price: float = 150.0, hours_ahead: int = 24) -> RideDraft:
    return RideDraft(
        source=AIRPORT,
        destination=ANDHERI,
        departure_time=utcnow() + timedelta(hours=hours_ahead),
        seats_total=seats,
        price_per_seat=price,
    )


@pytest.fixture
def make_ride(db_session, driver, estimator):
    """Publish a committed SCHEDULED ride for ``driver``."""

    async def _make(seats: int = 3, price: float = 150.0):
        outcome = await ride_lifecycle.create(
            db_session, driver, make_draft(seats, price), estimator
        )
        await db_session.commit()
        return outcome.entity

    return _make


@pytest.fixture
def make_booking(db_session):
    """Request (and optionally approve) a committed booking."""

    async def _make(ride, passenger: Actor, seats: int = 1, approve: bool = False):
        outcome = await booking_lifecycle.request(db_session, passenger, ride.id, seats)
        if approve:
            driver = Actor(id=ride.driver_id, role=UserRole.DRIVER, is_verified_driver=True)
            outcome = await booking_lifecycle.approve(db_session, driver, outcome.entity.id)
        await db_session.commit()
        return outcome.entity

    return _make


@pytest.fixture
def completed_booking(db_session, driver, make_ride, make_booking):
    """A COMPLETED booking between ``driver`` and the given passenger."""

    async def _make(passenger, seats: int = 1):
        ride = await make_ride(seats=3)
        booking = await make_booking(ride, passenger, seats=seats, approve=True)
        await ride_lifecycle.start(db_session, driver, ride.id)
        await ride_lifecycle.complete(db_session, driver, ride.id)
        await db_session.commit()
        await db_session.refresh(booking)
        return booking

    return _make


# ── Notifications ─────────────────────────────────────────────────────


class RecordingSink(NotificationSink):
    def __init__(self):
        self.sent: list[Notification] = []

    async def emit(self, notification: Notification) -> None:
        self.sent.append(notification)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
