"""
Domain value objects and input records.

Patterns used
-------------
- **State Pattern** via ``ensure_transition``: every status change on a
  ride or booking is checked against the transition tables in ``enums``.
- Inputs to the lifecycle services (``RideDraft``, ``RidePatch``,
  ``RatingPatch``) are plain dataclasses so the services stay independent
  of the transport layer's schemas.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Mapping, Optional, TypeVar

from .enums import RecurrenceFrequency, UserRole
from .errors import InvalidInput, InvalidStateTransition

S = TypeVar("S")


def ensure_transition(
    entity: str, current: S, target: S, transitions: Mapping[S, set[S]]
) -> None:
    """Raise unless *current* -> *target* is a legal transition."""
    allowed = transitions.get(current, set())
    if target not in allowed:
        raise InvalidStateTransition(
            f"Cannot transition {entity} from {_label(current)} to {_label(target)}"
        )


def _label(status) -> str:
    return getattr(status, "value", str(status))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (e.g. read back from SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float

    def validate(self) -> None:
        if not -90 <= self.latitude <= 90 or not -180 <= self.longitude <= 180:
            raise InvalidInput(
                f"Invalid coordinates ({self.latitude}, {self.longitude})"
            )


@dataclass(frozen=True)
class Waypoint:
    address: str
    location: Location

    def as_dict(self) -> dict:
        return {
            "address": self.address,
            "lat": self.location.latitude,
            "lng": self.location.longitude,
        }


@dataclass(frozen=True)
class Actor:
    """Authenticated caller as supplied by the identity collaborator."""

    id: int
    role: UserRole = UserRole.PASSENGER
    is_verified_driver: bool = False

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


@dataclass(frozen=True)
class Preferences:
    smoking: bool = False
    pets: bool = False
    music: bool = True
    luggage: bool = True


@dataclass(frozen=True)
class Recurrence:
    frequency: RecurrenceFrequency
    days: tuple[int, ...] = ()
    end_date: Optional[datetime] = None

    def validate(self) -> None:
        if any(d < 0 or d > 6 for d in self.days):
            raise InvalidInput("Recurrence days must be between 0 and 6")


# ── Service inputs ────────────────────────────────────────────────────


@dataclass
class RideDraft:
    source: Waypoint
    destination: Waypoint
    departure_time: datetime
    seats_total: int
    price_per_seat: float
    intermediate_stops: list[Waypoint] = field(default_factory=list)
    preferences: Preferences = field(default_factory=Preferences)
    vehicle_details: Optional[dict] = None
    additional_notes: Optional[str] = None
    recurrence: Optional[Recurrence] = None


@dataclass
class RidePatch:
    departure_time: Optional[datetime] = None
    seats_available: Optional[int] = None
    price_per_seat: Optional[float] = None
    preferences: Optional[dict[str, bool]] = None
    additional_notes: Optional[str] = None

    def is_empty(self) -> bool:
        return all(
            value is None
            for value in (
                self.departure_time,
                self.seats_available,
                self.price_per_seat,
                self.preferences,
                self.additional_notes,
            )
        )


@dataclass
class RatingPatch:
    score: Optional[int] = None
    review: Optional[str] = None
    categories: Optional[dict[str, int]] = None
