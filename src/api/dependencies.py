"""FastAPI dependency injection helpers."""

from __future__ import annotations

from typing import Optional

from fastapi import Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.domain.distance import HaversineEstimator, TravelTimeEstimator
from src.domain.entities import Actor
from src.domain.enums import UserRole
from src.infrastructure.database import async_session_factory
from src.infrastructure.notifications import RedisNotificationSink
from src.infrastructure.redis_client import get_redis
from src.services.effects import EffectDispatcher

_TRUTHY = {"1", "true", "yes"}


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_actor(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
    x_driver_verified: Optional[str] = Header(None),
) -> Actor:
    """Build the caller from the identity headers set by the gateway."""
    if x_user_id is None:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    try:
        user_id = int(x_user_id)
        role = UserRole((x_user_role or UserRole.PASSENGER.value).upper())
    except ValueError:
        raise HTTPException(status_code=401, detail="Malformed identity headers")
    verified = (x_driver_verified or "").strip().lower() in _TRUTHY
    return Actor(id=user_id, role=role, is_verified_driver=verified)


def get_estimator() -> TravelTimeEstimator:
    return HaversineEstimator(avg_speed_kmh=settings.avg_speed_kmh)


async def get_dispatcher() -> EffectDispatcher:
    client = await get_redis()
    return EffectDispatcher(RedisNotificationSink(client, settings.notification_queue_key))
