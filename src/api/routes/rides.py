"""
Ride endpoints
==============

POST  /api/v1/rides                  -- publish a ride (verified drivers)
GET   /api/v1/rides                  -- list rides by status, date, seats and price
GET   /api/v1/rides/{ride_id}        -- ride details and seat availability
PATCH /api/v1/rides/{ride_id}        -- edit a scheduled ride
PATCH /api/v1/rides/{ride_id}/cancel -- cancel; cascades to active bookings
PATCH /api/v1/rides/{ride_id}/start  -- SCHEDULED -> IN_PROGRESS
PATCH /api/v1/rides/{ride_id}/complete -- IN_PROGRESS -> COMPLETED
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_actor, get_db, get_dispatcher, get_estimator
from src.api.middleware import limiter
from src.api.schemas import (
    RideCancelRequest,
    RideCreateRequest,
    RideResponse,
    RideUpdateRequest,
)
from src.config import settings
from src.domain.distance import TravelTimeEstimator
from src.domain.entities import Actor
from src.domain.enums import LISTED_RIDE_STATUSES, RideStatus
from src.domain.errors import NotFound
from src.infrastructure.repositories import RideRepository
from src.services import ride_lifecycle
from src.services.effects import EffectDispatcher

router = APIRouter(prefix="/rides", tags=["rides"])


@router.post(
    "",
    status_code=201,
    response_model=RideResponse,
    summary="Publish a ride",
)
@limiter.limit(settings.rate_limit)
async def create_ride(
    request: Request,
    body: RideCreateRequest,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    estimator: TravelTimeEstimator = Depends(get_estimator),
):
    outcome = await ride_lifecycle.create(db, actor, body.to_draft(), estimator)
    return outcome.entity


@router.get("", response_model=list[RideResponse], summary="List rides")
@limiter.limit(settings.rate_limit)
async def list_rides(
    request: Request,
    status: Optional[RideStatus] = None,
    departure_date: Optional[date] = None,
    seats: Optional[int] = Query(None, ge=1),
    max_price: Optional[float] = Query(None, ge=0),
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    """Scheduled and in-progress rides unless ``status`` says otherwise."""
    return await RideRepository(db).search(
        statuses=[status] if status else LISTED_RIDE_STATUSES,
        departure_date=departure_date,
        min_seats=seats,
        max_price=max_price,
        limit=limit,
        offset=offset,
    )


@router.get(
    "/{ride_id}",
    response_model=RideResponse,
    summary="Get ride details",
)
@limiter.limit(settings.rate_limit)
async def get_ride(
    request: Request,
    ride_id: int,
    db: AsyncSession = Depends(get_db),
):
    ride = await RideRepository(db).get_by_id(ride_id)
    if not ride:
        raise NotFound("Ride not found")
    return ride


@router.patch(
    "/{ride_id}",
    response_model=RideResponse,
    summary="Update a scheduled ride",
    description=(
        "Only the ride's driver (or an admin) may update it, and only while "
        "it is SCHEDULED.  Seat capacity cannot drop below seats already "
        "committed to approved bookings.  Active passengers are notified."
    ),
)
@limiter.limit(settings.rate_limit)
async def update_ride(
    request: Request,
    ride_id: int,
    body: RideUpdateRequest,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    estimator: TravelTimeEstimator = Depends(get_estimator),
    dispatcher: EffectDispatcher = Depends(get_dispatcher),
):
    outcome = await ride_lifecycle.update(db, actor, ride_id, body.to_patch(), estimator)
    await db.commit()
    await dispatcher.dispatch(outcome.events)
    return outcome.entity


@router.patch(
    "/{ride_id}/cancel",
    response_model=RideResponse,
    summary="Cancel a ride",
    description=(
        "Transitions a SCHEDULED ride to CANCELLED. Every PENDING or "
        "APPROVED booking is cancelled with it and its passenger notified."
    ),
)
@limiter.limit(settings.rate_limit)
async def cancel_ride(
    request: Request,
    ride_id: int,
    body: Optional[RideCancelRequest] = None,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    dispatcher: EffectDispatcher = Depends(get_dispatcher),
):
    reason = body.reason if body else None
    outcome = await ride_lifecycle.cancel(db, actor, ride_id, reason)
    await db.commit()
    await dispatcher.dispatch(outcome.events)
    return outcome.entity


@router.patch("/{ride_id}/start", response_model=RideResponse, summary="Start a ride")
@limiter.limit(settings.rate_limit)
async def start_ride(
    request: Request,
    ride_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    dispatcher: EffectDispatcher = Depends(get_dispatcher),
):
    outcome = await ride_lifecycle.start(db, actor, ride_id)
    await db.commit()
    await dispatcher.dispatch(outcome.events)
    return outcome.entity


@router.patch(
    "/{ride_id}/complete",
    response_model=RideResponse,
    summary="Complete a ride",
    description="Approved bookings become COMPLETED and eligible for rating.",
)
@limiter.limit(settings.rate_limit)
async def complete_ride(
    request: Request,
    ride_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    dispatcher: EffectDispatcher = Depends(get_dispatcher),
):
    outcome = await ride_lifecycle.complete(db, actor, ride_id)
    await db.commit()
    await dispatcher.dispatch(outcome.events)
    return outcome.entity
