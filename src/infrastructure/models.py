"""
SQLAlchemy ORM models.

Tables
------
* ``users``     -- minimal mirror of the identity service (role, rating cache)
* ``rides``     -- driver-published trips with seat inventory
* ``bookings``  -- passenger seat requests on a ride
* ``ratings``   -- one per (booking, rater, ratee)

Constraints
-----------
* CHECK ``0 <= seats_available <= seats_total`` on ``rides``.
* Partial UNIQUE on ``bookings (ride_id, passenger_id)`` while the booking
  is PENDING or APPROVED: one active booking per passenger per ride.
* UNIQUE ``ratings (booking_id, rater_id, ratee_id)``.

Indexes
-------
* **B-Tree** on ``status``, ``driver_id``, ``ride_id``, ``passenger_id``
  and ``ratee_id`` for the lifecycle cascades and rating queries.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)

from .database import Base
from src.domain.entities import utcnow
from src.domain.enums import (
    BookingStatus,
    RecurrenceFrequency,
    RideStatus,
    UserRole,
)
from src.domain.ratings import CATEGORY_NAMES

_ACTIVE_BOOKING = text("status IN ('PENDING', 'APPROVED')")


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    role = Column(Enum(UserRole), default=UserRole.PASSENGER, nullable=False)
    is_verified_driver = Column(Boolean, default=False, nullable=False)
    avg_rating = Column(Float, default=0.0, nullable=False)
    total_ratings = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class RideModel(Base):
    __tablename__ = "rides"

    id = Column(Integer, primary_key=True, autoincrement=True)
    driver_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    source_address = Column(String(255), nullable=False)
    source_lat = Column(Float, nullable=False)
    source_lng = Column(Float, nullable=False)
    destination_address = Column(String(255), nullable=False)
    destination_lat = Column(Float, nullable=False)
    destination_lng = Column(Float, nullable=False)
    intermediate_stops = Column(JSON, default=list, nullable=False)

    departure_time = Column(DateTime(timezone=True), nullable=False)
    estimated_arrival_time = Column(DateTime(timezone=True), nullable=True)

    seats_total = Column(Integer, nullable=False)
    seats_available = Column(Integer, nullable=False)
    price_per_seat = Column(Float, nullable=False)
    status = Column(Enum(RideStatus), default=RideStatus.SCHEDULED, nullable=False)

    pref_smoking = Column(Boolean, default=False, nullable=False)
    pref_pets = Column(Boolean, default=False, nullable=False)
    pref_music = Column(Boolean, default=True, nullable=False)
    pref_luggage = Column(Boolean, default=True, nullable=False)

    vehicle_details = Column(JSON, nullable=True)
    additional_notes = Column(Text, nullable=True)

    is_recurring = Column(Boolean, default=False, nullable=False)
    recurrence_frequency = Column(Enum(RecurrenceFrequency), nullable=True)
    recurrence_days = Column(JSON, nullable=True)
    recurrence_end_date = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("seats_available >= 0", name="ck_rides_seats_non_negative"),
        CheckConstraint(
            "seats_available <= seats_total", name="ck_rides_seats_within_total"
        ),
        CheckConstraint("price_per_seat >= 0", name="ck_rides_price_non_negative"),
        Index("idx_rides_status", "status"),
        Index("idx_rides_driver", "driver_id"),
        Index("idx_rides_departure", "departure_time"),
    )

    @property
    def preferences(self) -> dict[str, bool]:
        return {
            "smoking": self.pref_smoking,
            "pets": self.pref_pets,
            "music": self.pref_music,
            "luggage": self.pref_luggage,
        }


class BookingModel(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ride_id = Column(Integer, ForeignKey("rides.id"), nullable=False)
    passenger_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    # Copied from the ride at request time and never updated
    driver_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    status = Column(
        Enum(BookingStatus), default=BookingStatus.PENDING, nullable=False
    )
    seats_booked = Column(Integer, nullable=False)
    total_price = Column(Float, nullable=False)

    pickup_address = Column(String(255), nullable=True)
    pickup_lat = Column(Float, nullable=True)
    pickup_lng = Column(Float, nullable=True)
    dropoff_address = Column(String(255), nullable=True)
    dropoff_lat = Column(Float, nullable=True)
    dropoff_lng = Column(Float, nullable=True)

    passenger_notes = Column(Text, nullable=True)
    driver_notes = Column(Text, nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    cancelled_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    is_rated_by_passenger = Column(Boolean, default=False, nullable=False)
    is_rated_by_driver = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("seats_booked >= 1", name="ck_bookings_seats_positive"),
        Index(
            "uq_bookings_active_passenger",
            "ride_id",
            "passenger_id",
            unique=True,
            postgresql_where=_ACTIVE_BOOKING,
            sqlite_where=_ACTIVE_BOOKING,
        ),
        Index("idx_bookings_ride_status", "ride_id", "status"),
        Index("idx_bookings_passenger", "passenger_id"),
        Index("idx_bookings_driver", "driver_id"),
    )


class RatingModel(Base):
    __tablename__ = "ratings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False)
    rater_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    ratee_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    score = Column(Integer, nullable=False)
    review = Column(String(500), default="", nullable=False)
    punctuality = Column(Integer, nullable=True)
    cleanliness = Column(Integer, nullable=True)
    communication = Column(Integer, nullable=True)
    driving = Column(Integer, nullable=True)
    courtesy = Column(Integer, nullable=True)
    is_passenger_rating = Column(Boolean, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint(
            "booking_id", "rater_id", "ratee_id", name="uq_ratings_direction"
        ),
        CheckConstraint("score BETWEEN 1 AND 5", name="ck_ratings_score_range"),
        Index("idx_ratings_ratee", "ratee_id"),
    )

    @property
    def categories(self) -> dict[str, int]:
        return {
            name: getattr(self, name)
            for name in CATEGORY_NAMES
            if getattr(self, name) is not None
        }
