"""
Error taxonomy for the booking core.

Every error carries a ``kind`` tag.  The transport layer maps kinds to
protocol responses; the core never deals in HTTP status codes.
"""

from __future__ import annotations


class BookingCoreError(Exception):
    """Base class for all tagged core errors."""

    kind = "error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


class NotFound(BookingCoreError):
    kind = "not_found"


class Forbidden(BookingCoreError):
    kind = "forbidden"


class NotParticipant(Forbidden):
    """Rater is neither the passenger nor the driver of the booking."""


class NotOwner(Forbidden):
    """Actor did not create the rating."""


class InvalidState(BookingCoreError):
    kind = "invalid_state"


class InvalidStateTransition(InvalidState):
    """Raised when a status change violates the state machine."""


class RideNotBookable(InvalidState):
    """Ride is no longer accepting bookings or seat reservations."""


class BookingNotCompleted(InvalidState):
    """Only completed bookings can be rated."""


class InsufficientSeats(BookingCoreError):
    kind = "insufficient_seats"


class DuplicateActiveBooking(BookingCoreError):
    kind = "duplicate_active_booking"


class DuplicateRating(BookingCoreError):
    kind = "duplicate_rating"


class EditWindowExpired(BookingCoreError):
    kind = "edit_window_expired"


class BelowBookedSeats(BookingCoreError):
    kind = "below_booked_seats"


class InvalidInput(BookingCoreError):
    kind = "invalid_input"


class SelfBooking(InvalidInput):
    """A driver tried to book a seat on their own ride."""
