"""
Ride Lifecycle
==============

  SCHEDULED -> IN_PROGRESS -> COMPLETED
  SCHEDULED -> CANCELLED

Rides are mutable only while SCHEDULED.  ``cancel`` and ``complete``
cascade to the ride's bookings inside the same transaction:

* cancel   -- every PENDING/APPROVED booking becomes CANCELLED (approved
  seats are credited back so the seat invariant keeps holding)
* complete -- every APPROVED booking becomes COMPLETED (rating-eligible)

Each status change is a conditional UPDATE on the expected status, so two
concurrent lifecycle calls on the same ride cannot both succeed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.distance import TravelTimeEstimator
from src.domain.entities import (
    Actor,
    Location,
    RideDraft,
    RidePatch,
    as_utc,
    ensure_transition,
    utcnow,
)
from src.domain.enums import (
    ACTIVE_BOOKING_STATUSES,
    RIDE_TRANSITIONS,
    BookingStatus,
    EventKind,
    RideStatus,
    UserRole,
)
from src.domain.errors import Forbidden, InvalidInput, InvalidState, NotFound
from src.domain.events import DomainEvent
from src.infrastructure.models import BookingModel, RideModel
from src.infrastructure.repositories import BookingRepository, RideRepository
from src.services import Outcome
from src.services.seat_ledger import SeatLedger

logger = logging.getLogger(__name__)

RIDE_CANCELLATION_NOTE = "Ride cancelled by driver"
_PREFERENCE_COLUMNS = {
    "smoking": "pref_smoking",
    "pets": "pref_pets",
    "music": "pref_music",
    "luggage": "pref_luggage",
}


# ── Public API ────────────────────────────────────────────────────────


async def create(
    session: AsyncSession,
    actor: Actor,
    draft: RideDraft,
    estimator: TravelTimeEstimator,
    now: Optional[datetime] = None,
) -> Outcome[RideModel]:
    if actor.role != UserRole.DRIVER:
        raise Forbidden("Only drivers can create rides")
    if not actor.is_verified_driver:
        raise Forbidden("Driver account is not verified yet")

    now = now or utcnow()
    _require_future(draft.departure_time, now)
    if draft.seats_total < 1:
        raise InvalidInput("At least one seat must be available")
    if draft.price_per_seat < 0:
        raise InvalidInput("Price cannot be negative")
    for waypoint in (draft.source, draft.destination, *draft.intermediate_stops):
        waypoint.location.validate()
    if draft.recurrence is not None:
        draft.recurrence.validate()

    ride = RideModel(
        driver_id=actor.id,
        source_address=draft.source.address,
        source_lat=draft.source.location.latitude,
        source_lng=draft.source.location.longitude,
        destination_address=draft.destination.address,
        destination_lat=draft.destination.location.latitude,
        destination_lng=draft.destination.location.longitude,
        intermediate_stops=[stop.as_dict() for stop in draft.intermediate_stops],
        departure_time=draft.departure_time,
        estimated_arrival_time=_estimate_arrival(
            draft.departure_time,
            draft.source.location,
            draft.destination.location,
            estimator,
        ),
        seats_total=draft.seats_total,
        seats_available=draft.seats_total,
        price_per_seat=draft.price_per_seat,
        status=RideStatus.SCHEDULED,
        pref_smoking=draft.preferences.smoking,
        pref_pets=draft.preferences.pets,
        pref_music=draft.preferences.music,
        pref_luggage=draft.preferences.luggage,
        vehicle_details=draft.vehicle_details,
        additional_notes=draft.additional_notes,
        is_recurring=draft.recurrence is not None,
        recurrence_frequency=draft.recurrence.frequency if draft.recurrence else None,
        recurrence_days=list(draft.recurrence.days) if draft.recurrence else None,
        recurrence_end_date=draft.recurrence.end_date if draft.recurrence else None,
    )
    ride = await RideRepository(session).create(ride)
    logger.info("Ride %s created by driver %s", ride.id, actor.id)
    return Outcome(ride)


async def update(
    session: AsyncSession,
    actor: Actor,
    ride_id: int,
    patch: RidePatch,
    estimator: TravelTimeEstimator,
    now: Optional[datetime] = None,
) -> Outcome[RideModel]:
    rides = RideRepository(session)
    ride = await _load_owned(rides, actor, ride_id, allow_admin=True, action="update")
    _require_scheduled(ride, "update")

    if patch.is_empty():
        return Outcome(ride)

    values: dict = {}
    if patch.departure_time is not None:
        _require_future(patch.departure_time, now or utcnow())
        values["departure_time"] = patch.departure_time
        values["estimated_arrival_time"] = _estimate_arrival(
            patch.departure_time,
            Location(ride.source_lat, ride.source_lng),
            Location(ride.destination_lat, ride.destination_lng),
            estimator,
        )
    if patch.price_per_seat is not None:
        if patch.price_per_seat < 0:
            raise InvalidInput("Price cannot be negative")
        values["price_per_seat"] = patch.price_per_seat
    if patch.preferences:
        unknown = set(patch.preferences) - set(_PREFERENCE_COLUMNS)
        if unknown:
            raise InvalidInput(f"Unknown preferences: {', '.join(sorted(unknown))}")
        for name, value in patch.preferences.items():
            values[_PREFERENCE_COLUMNS[name]] = bool(value)
    if patch.additional_notes is not None:
        values["additional_notes"] = patch.additional_notes

    # The ledger refreshes the ride row, so seats go before the field patch
    if patch.seats_available is not None:
        await SeatLedger(session).resize(ride, patch.seats_available)
    if values and not await rides.update_scheduled(ride.id, **values):
        raise InvalidState("Ride is no longer scheduled")
    await session.refresh(ride)

    bookings = await BookingRepository(session).list_for_ride(
        ride.id, ACTIVE_BOOKING_STATUSES
    )
    events = [
        _ride_event(EventKind.RIDE_UPDATED, actor.id, ride, booking)
        for booking in bookings
    ]
    logger.info("Ride %s updated (%d bookings notified)", ride.id, len(events))
    return Outcome(ride, events, bookings)


async def cancel(
    session: AsyncSession,
    actor: Actor,
    ride_id: int,
    reason: Optional[str] = None,
) -> Outcome[RideModel]:
    rides = RideRepository(session)
    bookings_repo = BookingRepository(session)
    ledger = SeatLedger(session)

    ride = await _load_owned(rides, actor, ride_id, allow_admin=True, action="cancel")
    ensure_transition("ride", RideStatus(ride.status), RideStatus.CANCELLED, RIDE_TRANSITIONS)

    notes = ride.additional_notes
    if reason:
        notes = f"{ride.additional_notes or ''}\n\nCancellation reason: {reason}".lstrip()
    await _transition(rides, ride, RideStatus.CANCELLED, additional_notes=notes)

    cancelled: list[BookingModel] = []
    events: list[DomainEvent] = []
    for booking in await bookings_repo.list_for_ride(ride.id, ACTIVE_BOOKING_STATUSES):
        was_approved = booking.status == BookingStatus.APPROVED
        if not await bookings_repo.transition(
            booking.id,
            [booking.status],
            BookingStatus.CANCELLED,
            cancellation_reason=RIDE_CANCELLATION_NOTE,
            cancelled_by_id=ride.driver_id,
        ):
            logger.warning("Booking %s changed during ride %s cancel", booking.id, ride.id)
            continue
        if was_approved:
            await ledger.credit(ride, booking.seats_booked)
        await session.refresh(booking)
        cancelled.append(booking)
        events.append(
            _ride_event(
                EventKind.BOOKING_CANCELLED,
                ride.driver_id,
                ride,
                booking,
                reason=reason or RIDE_CANCELLATION_NOTE,
            )
        )

    await session.refresh(ride)
    logger.info("Ride %s cancelled; %d bookings cascaded", ride.id, len(cancelled))
    return Outcome(ride, events, cancelled)


async def start(session: AsyncSession, actor: Actor, ride_id: int) -> Outcome[RideModel]:
    rides = RideRepository(session)
    ride = await _load_owned(rides, actor, ride_id, allow_admin=False, action="start")
    ensure_transition("ride", RideStatus(ride.status), RideStatus.IN_PROGRESS, RIDE_TRANSITIONS)
    await _transition(rides, ride, RideStatus.IN_PROGRESS)

    approved = await BookingRepository(session).list_for_ride(
        ride.id, [BookingStatus.APPROVED]
    )
    events = [
        _ride_event(EventKind.RIDE_STARTED, actor.id, ride, booking)
        for booking in approved
    ]
    logger.info("Ride %s started with %d approved bookings", ride.id, len(approved))
    return Outcome(ride, events, approved)


async def complete(session: AsyncSession, actor: Actor, ride_id: int) -> Outcome[RideModel]:
    rides = RideRepository(session)
    bookings_repo = BookingRepository(session)
    ride = await _load_owned(rides, actor, ride_id, allow_admin=False, action="complete")
    ensure_transition("ride", RideStatus(ride.status), RideStatus.COMPLETED, RIDE_TRANSITIONS)
    await _transition(rides, ride, RideStatus.COMPLETED)

    completed: list[BookingModel] = []
    events: list[DomainEvent] = []
    for booking in await bookings_repo.list_for_ride(ride.id, [BookingStatus.APPROVED]):
        if not await bookings_repo.transition(
            booking.id, [BookingStatus.APPROVED], BookingStatus.COMPLETED
        ):
            logger.warning("Booking %s changed during ride %s completion", booking.id, ride.id)
            continue
        await session.refresh(booking)
        completed.append(booking)
        events.append(_ride_event(EventKind.RIDE_COMPLETED, actor.id, ride, booking))

    logger.info("Ride %s completed; %d bookings completed", ride.id, len(completed))
    return Outcome(ride, events, completed)


# ── Internals ─────────────────────────────────────────────────────────


async def _load_owned(
    rides: RideRepository,
    actor: Actor,
    ride_id: int,
    *,
    allow_admin: bool,
    action: str,
) -> RideModel:
    ride = await rides.get_for_update(ride_id)
    if ride is None:
        raise NotFound("Ride not found")
    if ride.driver_id != actor.id and not (allow_admin and actor.is_admin):
        raise Forbidden(f"Not authorized to {action} this ride")
    return ride


async def _transition(
    rides: RideRepository, ride: RideModel, target: RideStatus, **values
) -> None:
    current = RideStatus(ride.status)
    if not await rides.transition(ride.id, current, target, **values):
        await rides.session.refresh(ride)
        raise InvalidState(
            f"Cannot move ride {ride.id} to {target.value}: it is now "
            f"{RideStatus(ride.status).value}"
        )
    await rides.session.refresh(ride)


def _require_scheduled(ride: RideModel, action: str) -> None:
    if ride.status != RideStatus.SCHEDULED:
        raise InvalidState(
            f"Cannot {action} a ride that is {RideStatus(ride.status).value}"
        )


def _require_future(departure_time: datetime, now: datetime) -> None:
    if as_utc(departure_time) <= as_utc(now):
        raise InvalidInput("Departure time must be in the future")


def _estimate_arrival(
    departure_time: datetime,
    origin: Location,
    destination: Location,
    estimator: TravelTimeEstimator,
) -> datetime:
    minutes = estimator.travel_minutes(origin, destination)
    return departure_time + timedelta(minutes=minutes)


def _ride_event(
    kind: EventKind,
    actor_id: int,
    ride: RideModel,
    booking: BookingModel,
    reason: Optional[str] = None,
) -> DomainEvent:
    return DomainEvent(
        kind=kind,
        actor_id=actor_id,
        ride_id=ride.id,
        booking_id=booking.id,
        passenger_id=booking.passenger_id,
        driver_id=booking.driver_id,
        reason=reason,
        source_address=ride.source_address,
        destination_address=ride.destination_address,
    )
