"""Domain enumerations and state-transition rules."""

import enum


class RideStatus(str, enum.Enum):
    SCHEDULED = "SCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class BookingStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


# State machine: maps current status -> set of valid next statuses
RIDE_TRANSITIONS: dict[RideStatus, set[RideStatus]] = {
    RideStatus.SCHEDULED: {RideStatus.IN_PROGRESS, RideStatus.CANCELLED},
    RideStatus.IN_PROGRESS: {RideStatus.COMPLETED},
    RideStatus.COMPLETED: set(),
    RideStatus.CANCELLED: set(),
}

BOOKING_TRANSITIONS: dict[BookingStatus, set[BookingStatus]] = {
    BookingStatus.PENDING: {
        BookingStatus.APPROVED,
        BookingStatus.REJECTED,
        BookingStatus.CANCELLED,
    },
    BookingStatus.APPROVED: {BookingStatus.CANCELLED, BookingStatus.COMPLETED},
    BookingStatus.REJECTED: set(),
    BookingStatus.CANCELLED: set(),
    BookingStatus.COMPLETED: set(),
}

# A passenger may hold at most one booking in these states per ride
ACTIVE_BOOKING_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.APPROVED})

# Bookings whose seats have been debited from the ride
SEAT_HOLDING_STATUSES = frozenset({BookingStatus.APPROVED, BookingStatus.COMPLETED})

# Rides shown in listings unless a status filter is given
LISTED_RIDE_STATUSES = frozenset({RideStatus.SCHEDULED, RideStatus.IN_PROGRESS})


class UserRole(str, enum.Enum):
    PASSENGER = "PASSENGER"
    DRIVER = "DRIVER"
    ADMIN = "ADMIN"


class RecurrenceFrequency(str, enum.Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    WEEKDAYS = "WEEKDAYS"
    WEEKENDS = "WEEKENDS"
    CUSTOM = "CUSTOM"


class NotificationType(str, enum.Enum):
    BOOKING_REQUEST = "booking_request"
    BOOKING_APPROVED = "booking_approved"
    BOOKING_REJECTED = "booking_rejected"
    BOOKING_CANCELLED = "booking_cancelled"
    RIDE_STARTED = "ride_started"
    RIDE_COMPLETED = "ride_completed"
    NEW_RATING = "new_rating"
    SYSTEM_NOTIFICATION = "system_notification"


class ResourceType(str, enum.Enum):
    BOOKING = "booking"
    RIDE = "ride"
    RATING = "rating"


class EventKind(str, enum.Enum):
    BOOKING_REQUESTED = "BOOKING_REQUESTED"
    BOOKING_APPROVED = "BOOKING_APPROVED"
    BOOKING_REJECTED = "BOOKING_REJECTED"
    BOOKING_CANCELLED = "BOOKING_CANCELLED"
    RIDE_UPDATED = "RIDE_UPDATED"
    RIDE_STARTED = "RIDE_STARTED"
    RIDE_COMPLETED = "RIDE_COMPLETED"
    RATING_SUBMITTED = "RATING_SUBMITTED"
