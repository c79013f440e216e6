"""
Booking endpoints
=================

POST  /api/v1/bookings                      -- request seats on a ride
GET   /api/v1/bookings                      -- my bookings (by role), filterable
GET   /api/v1/bookings/requests             -- driver: pending requests, newest first
GET   /api/v1/bookings/upcoming             -- passenger: approved, not yet departed
GET   /api/v1/bookings/{booking_id}         -- booking details
PATCH /api/v1/bookings/{booking_id}/approve -- driver approves (debits seats)
PATCH /api/v1/bookings/{booking_id}/reject  -- driver rejects
PATCH /api/v1/bookings/{booking_id}/cancel  -- passenger, driver or admin cancels
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_actor, get_db, get_dispatcher
from src.api.middleware import limiter
from src.api.schemas import (
    BookingCancelRequest,
    BookingCreateRequest,
    BookingDecisionRequest,
    BookingResponse,
)
from src.config import settings
from src.domain.entities import Actor, as_utc, utcnow
from src.domain.enums import BookingStatus, UserRole
from src.domain.errors import Forbidden, NotFound
from src.infrastructure.repositories import BookingRepository
from src.services import booking_lifecycle
from src.services.effects import EffectDispatcher

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post(
    "",
    status_code=201,
    response_model=BookingResponse,
    summary="Request a booking",
    responses={409: {"description": "Ride not bookable, no seats, or duplicate."}},
)
@limiter.limit(settings.rate_limit)
async def create_booking(
    request: Request,
    body: BookingCreateRequest,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    dispatcher: EffectDispatcher = Depends(get_dispatcher),
):
    outcome = await booking_lifecycle.request(
        db,
        actor,
        body.ride_id,
        body.seats_booked,
        pickup=body.pickup.to_domain() if body.pickup else None,
        dropoff=body.dropoff.to_domain() if body.dropoff else None,
        passenger_notes=body.passenger_notes,
    )
    await db.commit()
    await dispatcher.dispatch(outcome.events)
    return outcome.entity


@router.get("", response_model=list[BookingResponse], summary="List my bookings")
@limiter.limit(settings.rate_limit)
async def list_bookings(
    request: Request,
    status: Optional[BookingStatus] = None,
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Drivers see bookings on their rides; everyone else sees their own."""
    repo = BookingRepository(db)
    lister = repo.list_for_driver if actor.role == UserRole.DRIVER else repo.list_for_passenger
    return await lister(
        actor.id,
        status,
        as_utc(from_date) if from_date else None,
        as_utc(to_date) if to_date else None,
        limit,
        offset,
    )


@router.get(
    "/requests",
    response_model=list[BookingResponse],
    summary="Pending requests on my rides",
)
@limiter.limit(settings.rate_limit)
async def booking_requests(
    request: Request,
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    if actor.role != UserRole.DRIVER:
        raise Forbidden("Only drivers can access booking requests")
    return await BookingRepository(db).list_for_driver(
        actor.id, BookingStatus.PENDING, limit=limit, offset=offset
    )


@router.get(
    "/upcoming",
    response_model=list[BookingResponse],
    summary="My approved bookings on rides yet to depart",
)
@limiter.limit(settings.rate_limit)
async def upcoming_bookings(
    request: Request,
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await BookingRepository(db).upcoming_for_passenger(
        actor.id, utcnow(), limit, offset
    )


@router.get("/{booking_id}", response_model=BookingResponse, summary="Get a booking")
@limiter.limit(settings.rate_limit)
async def get_booking(
    request: Request,
    booking_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    booking = await BookingRepository(db).get_by_id(booking_id)
    if not booking:
        raise NotFound("Booking not found")
    if actor.id not in (booking.passenger_id, booking.driver_id) and not actor.is_admin:
        raise Forbidden("Not authorized to view this booking")
    return booking


@router.patch(
    "/{booking_id}/approve",
    response_model=BookingResponse,
    summary="Approve a booking",
    description=(
        "Debits the requested seats from the ride atomically.  When two "
        "approvals race for the last seats, exactly one succeeds; the other "
        "returns 409 insufficient_seats and its booking stays PENDING."
    ),
)
@limiter.limit(settings.rate_limit)
async def approve_booking(
    request: Request,
    booking_id: int,
    body: Optional[BookingDecisionRequest] = None,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    dispatcher: EffectDispatcher = Depends(get_dispatcher),
):
    notes = body.notes if body else None
    outcome = await booking_lifecycle.approve(db, actor, booking_id, notes)
    await db.commit()
    await dispatcher.dispatch(outcome.events)
    return outcome.entity


@router.patch("/{booking_id}/reject", response_model=BookingResponse, summary="Reject a booking")
@limiter.limit(settings.rate_limit)
async def reject_booking(
    request: Request,
    booking_id: int,
    body: Optional[BookingDecisionRequest] = None,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    dispatcher: EffectDispatcher = Depends(get_dispatcher),
):
    notes = body.notes if body else None
    outcome = await booking_lifecycle.reject(db, actor, booking_id, notes)
    await db.commit()
    await dispatcher.dispatch(outcome.events)
    return outcome.entity


@router.patch(
    "/{booking_id}/cancel",
    response_model=BookingResponse,
    summary="Cancel a booking",
    description="Seats of an APPROVED booking are returned to the ride.",
)
@limiter.limit(settings.rate_limit)
async def cancel_booking(
    request: Request,
    booking_id: int,
    body: Optional[BookingCancelRequest] = None,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    dispatcher: EffectDispatcher = Depends(get_dispatcher),
):
    reason = body.reason if body else None
    outcome = await booking_lifecycle.cancel(db, actor, booking_id, reason)
    await db.commit()
    await dispatcher.dispatch(outcome.events)
    return outcome.entity
