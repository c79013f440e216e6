"""
Async SQLAlchemy engine and session factory.

One ``AsyncSession`` is one unit of work: a seat debit and the booking
transition that caused it are flushed in the same transaction and commit
or roll back together.  Sessions keep attributes after commit
(``expire_on_commit=False``) so routes can serialise entities and hand
events to the dispatcher without another round-trip.
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from src.config import settings

engine = create_async_engine(
    settings.database_url,
    echo=False,
    pool_size=20,
    max_overflow=10,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Declarative base for users, rides, bookings and ratings."""


async def dispose_engine() -> None:
    await engine.dispose()
