"""
Booking Lifecycle
=================

  PENDING  -> APPROVED | REJECTED | CANCELLED
  APPROVED -> CANCELLED | COMPLETED
  REJECTED, CANCELLED, COMPLETED are terminal.

Seat policy
-----------
Requesting a booking does **not** debit seats; pending requests only
soft-hold them through the one-active-booking-per-passenger rule.  Seats
are debited on approval, which is where races are resolved: the first
approval to debit wins, a later one fails with ``InsufficientSeats`` and
its booking stays PENDING for the driver to reject or leave open.

Completion happens only through the ride lifecycle's ``complete`` cascade.

Callers must roll back the session when an operation raises: the seat
debit and the status change share one transaction.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.entities import Actor, Waypoint, ensure_transition
from src.domain.enums import (
    BOOKING_TRANSITIONS,
    BookingStatus,
    EventKind,
    RideStatus,
)
from src.domain.errors import (
    DuplicateActiveBooking,
    Forbidden,
    InsufficientSeats,
    InvalidInput,
    InvalidState,
    NotFound,
    RideNotBookable,
    SelfBooking,
)
from src.domain.events import DomainEvent
from src.infrastructure.models import BookingModel, RideModel
from src.infrastructure.repositories import BookingRepository, RideRepository
from src.services import Outcome
from src.services.seat_ledger import SeatLedger

logger = logging.getLogger(__name__)

DEFAULT_CANCELLATION_REASON = "No reason provided"


async def request(
    session: AsyncSession,
    actor: Actor,
    ride_id: int,
    seats_booked: int,
    pickup: Optional[Waypoint] = None,
    dropoff: Optional[Waypoint] = None,
    passenger_notes: Optional[str] = None,
) -> Outcome[BookingModel]:
    """Create a PENDING booking for *actor* on *ride_id*."""
    rides = RideRepository(session)
    bookings = BookingRepository(session)

    ride = await rides.get_for_update(ride_id)
    if ride is None:
        raise NotFound("Ride not found")
    if seats_booked < 1:
        raise InvalidInput("At least one seat must be booked")
    if ride.driver_id == actor.id:
        raise SelfBooking("You cannot book your own ride")
    if ride.status != RideStatus.SCHEDULED:
        raise RideNotBookable(
            f"Cannot book a ride that is {RideStatus(ride.status).value}"
        )
    if seats_booked > ride.seats_available:
        raise InsufficientSeats(f"Only {ride.seats_available} seats available")
    if await bookings.find_active(ride.id, actor.id) is not None:
        raise DuplicateActiveBooking("You already have a booking for this ride")
    for point in (pickup, dropoff):
        if point is not None:
            point.location.validate()

    booking = BookingModel(
        ride_id=ride.id,
        passenger_id=actor.id,
        driver_id=ride.driver_id,
        status=BookingStatus.PENDING,
        seats_booked=seats_booked,
        total_price=round(ride.price_per_seat * seats_booked, 2),
        passenger_notes=passenger_notes,
        **_point_columns("pickup", pickup, ride.source_address, ride.source_lat, ride.source_lng),
        **_point_columns(
            "dropoff",
            dropoff,
            ride.destination_address,
            ride.destination_lat,
            ride.destination_lng,
        ),
    )
    try:
        booking = await bookings.create(booking)
    except IntegrityError as exc:
        # A concurrent request by the same passenger won the unique index
        raise DuplicateActiveBooking("You already have a booking for this ride") from exc

    logger.info(
        "Booking %s requested: passenger %s, ride %s, %d seats",
        booking.id, actor.id, ride.id, seats_booked,
    )
    return Outcome(booking, [_event(EventKind.BOOKING_REQUESTED, actor.id, booking, ride)])


async def approve(
    session: AsyncSession,
    actor: Actor,
    booking_id: int,
    notes: Optional[str] = None,
) -> Outcome[BookingModel]:
    bookings = BookingRepository(session)
    booking = await _load(bookings, booking_id)
    if booking.driver_id != actor.id:
        raise Forbidden("Not authorized to approve this booking")
    ensure_transition(
        "booking", BookingStatus(booking.status), BookingStatus.APPROVED, BOOKING_TRANSITIONS
    )

    ride = await _load_ride(session, booking.ride_id)
    ledger = SeatLedger(session)
    await ledger.reserve(ride, booking.seats_booked)
    await ledger.debit(ride, booking.seats_booked)

    values = {"driver_notes": notes} if notes else {}
    if not await bookings.transition(
        booking.id, [BookingStatus.PENDING], BookingStatus.APPROVED, **values
    ):
        raise InvalidState(f"Booking {booking.id} is no longer pending")
    await session.refresh(booking)

    logger.info(
        "Booking %s approved; ride %s now has %d seats available",
        booking.id, ride.id, ride.seats_available,
    )
    return Outcome(booking, [_event(EventKind.BOOKING_APPROVED, actor.id, booking, ride)])


async def reject(
    session: AsyncSession,
    actor: Actor,
    booking_id: int,
    notes: Optional[str] = None,
) -> Outcome[BookingModel]:
    bookings = BookingRepository(session)
    booking = await _load(bookings, booking_id)
    if booking.driver_id != actor.id:
        raise Forbidden("Not authorized to reject this booking")
    ensure_transition(
        "booking", BookingStatus(booking.status), BookingStatus.REJECTED, BOOKING_TRANSITIONS
    )

    ride = await _load_ride(session, booking.ride_id)
    values = {"driver_notes": notes} if notes else {}
    if not await bookings.transition(
        booking.id, [BookingStatus.PENDING], BookingStatus.REJECTED, **values
    ):
        raise InvalidState(f"Booking {booking.id} is no longer pending")
    await session.refresh(booking)

    logger.info("Booking %s rejected by driver %s", booking.id, actor.id)
    return Outcome(
        booking,
        [_event(EventKind.BOOKING_REJECTED, actor.id, booking, ride, reason=notes)],
    )


async def cancel(
    session: AsyncSession,
    actor: Actor,
    booking_id: int,
    reason: Optional[str] = None,
) -> Outcome[BookingModel]:
    bookings = BookingRepository(session)
    booking = await _load(bookings, booking_id)
    if actor.id not in (booking.passenger_id, booking.driver_id) and not actor.is_admin:
        raise Forbidden("Not authorized to cancel this booking")

    current = BookingStatus(booking.status)
    ensure_transition("booking", current, BookingStatus.CANCELLED, BOOKING_TRANSITIONS)

    ride = await _load_ride(session, booking.ride_id)
    reason = reason or DEFAULT_CANCELLATION_REASON
    if not await bookings.transition(
        booking.id,
        [current],
        BookingStatus.CANCELLED,
        cancellation_reason=reason,
        cancelled_by_id=actor.id,
    ):
        raise InvalidState(f"Booking {booking.id} changed while cancelling")

    if current == BookingStatus.APPROVED:
        await SeatLedger(session).credit(ride, booking.seats_booked)
    await session.refresh(booking)

    logger.info(
        "Booking %s cancelled by user %s (was %s)", booking.id, actor.id, current.value
    )
    return Outcome(
        booking,
        [_event(EventKind.BOOKING_CANCELLED, actor.id, booking, ride, reason=reason)],
    )


# ── Internals ─────────────────────────────────────────────────────────


async def _load(bookings: BookingRepository, booking_id: int) -> BookingModel:
    booking = await bookings.get_by_id(booking_id)
    if booking is None:
        raise NotFound("Booking not found")
    await bookings.session.refresh(booking)
    return booking


async def _load_ride(session: AsyncSession, ride_id: int) -> RideModel:
    ride = await RideRepository(session).get_for_update(ride_id)
    if ride is None:
        raise NotFound("Ride not found")
    return ride


def _point_columns(
    prefix: str,
    point: Optional[Waypoint],
    default_address: str,
    default_lat: float,
    default_lng: float,
) -> dict:
    if point is None:
        return {
            f"{prefix}_address": default_address,
            f"{prefix}_lat": default_lat,
            f"{prefix}_lng": default_lng,
        }
    return {
        f"{prefix}_address": point.address,
        f"{prefix}_lat": point.location.latitude,
        f"{prefix}_lng": point.location.longitude,
    }


def _event(
    kind: EventKind,
    actor_id: int,
    booking: BookingModel,
    ride: RideModel,
    reason: Optional[str] = None,
) -> DomainEvent:
    return DomainEvent(
        kind=kind,
        actor_id=actor_id,
        ride_id=booking.ride_id,
        booking_id=booking.id,
        passenger_id=booking.passenger_id,
        driver_id=booking.driver_id,
        reason=reason,
        source_address=ride.source_address,
        destination_address=ride.destination_address,
    )
