"""
Seat inventory arithmetic.

Invariant
---------
  0 <= seats_available <= seats_total
  seats_total - seats_available == sum(seats_booked) over APPROVED/COMPLETED

Seats are soft-held by pending bookings and only debited on approval, so
several pending requests may together exceed availability.  The first
approval to debit wins; later ones fail the reservation check.
"""

from __future__ import annotations

from .enums import RideStatus
from .errors import BelowBookedSeats, InsufficientSeats, InvalidInput, RideNotBookable


def committed_seats(seats_total: int, seats_available: int) -> int:
    return seats_total - seats_available


def check_reservation(status: RideStatus, seats_available: int, seats: int) -> None:
    if seats < 1:
        raise InvalidInput("At least one seat must be booked")
    if status != RideStatus.SCHEDULED:
        raise RideNotBookable(f"Cannot reserve seats on a ride that is {status.value}")
    if seats > seats_available:
        raise InsufficientSeats(
            f"Not enough seats available. Only {seats_available} seats left"
        )


def resized_inventory(
    seats_total: int, seats_available: int, new_seats_total: int
) -> tuple[int, int]:
    """Return ``(seats_total, seats_available)`` after a driver changes capacity."""
    if new_seats_total < 1:
        raise InvalidInput("A ride must offer at least one seat")
    booked = committed_seats(seats_total, seats_available)
    if new_seats_total < booked:
        raise BelowBookedSeats(
            f"Cannot reduce seats below the number of booked seats ({booked})"
        )
    return new_seats_total, new_seats_total - booked
