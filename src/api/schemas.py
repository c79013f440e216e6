"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from src.domain.entities import (
    Location,
    Preferences,
    Recurrence,
    RideDraft,
    RidePatch,
    Waypoint,
)
from src.domain.enums import BookingStatus, RecurrenceFrequency, RideStatus


# ── Requests ──────────────────────────────────────────────────────────


class WaypointIn(BaseModel):
    address: str = Field(..., min_length=1, max_length=255)
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)

    def to_domain(self) -> Waypoint:
        return Waypoint(address=self.address, location=Location(self.lat, self.lng))


class PreferencesIn(BaseModel):
    smoking: bool = False
    pets: bool = False
    music: bool = True
    luggage: bool = True


class RecurrenceIn(BaseModel):
    frequency: RecurrenceFrequency
    days: list[int] = []
    end_date: Optional[datetime] = None


class RideCreateRequest(BaseModel):
    source: WaypointIn
    destination: WaypointIn
    intermediate_stops: list[WaypointIn] = []
    departure_time: datetime
    available_seats: int = Field(..., ge=1, le=8)
    price_per_seat: float = Field(..., ge=0)
    preferences: PreferencesIn = PreferencesIn()
    vehicle_details: Optional[dict] = None
    additional_notes: Optional[str] = Field(None, max_length=1000)
    recurrence: Optional[RecurrenceIn] = None

    def to_draft(self) -> RideDraft:
        recurrence = None
        if self.recurrence is not None:
            recurrence = Recurrence(
                frequency=self.recurrence.frequency,
                days=tuple(self.recurrence.days),
                end_date=self.recurrence.end_date,
            )
        return RideDraft(
            source=self.source.to_domain(),
            destination=self.destination.to_domain(),
            intermediate_stops=[stop.to_domain() for stop in self.intermediate_stops],
            departure_time=self.departure_time,
            seats_total=self.available_seats,
            price_per_seat=self.price_per_seat,
            preferences=Preferences(**self.preferences.model_dump()),
            vehicle_details=self.vehicle_details,
            additional_notes=self.additional_notes,
            recurrence=recurrence,
        )


class RideUpdateRequest(BaseModel):
    departure_time: Optional[datetime] = None
    available_seats: Optional[int] = Field(None, ge=1, le=8)
    price_per_seat: Optional[float] = None
    preferences: Optional[dict[str, bool]] = None
    additional_notes: Optional[str] = Field(None, max_length=1000)

    def to_patch(self) -> RidePatch:
        return RidePatch(
            departure_time=self.departure_time,
            seats_available=self.available_seats,
            price_per_seat=self.price_per_seat,
            preferences=self.preferences,
            additional_notes=self.additional_notes,
        )


class RideCancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class BookingCreateRequest(BaseModel):
    ride_id: int
    seats_booked: int = 1
    pickup: Optional[WaypointIn] = None
    dropoff: Optional[WaypointIn] = None
    passenger_notes: Optional[str] = Field(None, max_length=500)


class BookingDecisionRequest(BaseModel):
    notes: Optional[str] = Field(None, max_length=500)


class BookingCancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class RatingCreateRequest(BaseModel):
    booking_id: int
    score: int
    review: Optional[str] = None
    categories: Optional[dict[str, int]] = None


class RatingUpdateRequest(BaseModel):
    score: Optional[int] = None
    review: Optional[str] = None
    categories: Optional[dict[str, int]] = None


# ── Responses ─────────────────────────────────────────────────────────


class RideResponse(BaseModel):
    id: int
    driver_id: int
    source_address: str
    source_lat: float
    source_lng: float
    destination_address: str
    destination_lat: float
    destination_lng: float
    intermediate_stops: list[dict] = []
    departure_time: datetime
    estimated_arrival_time: Optional[datetime] = None
    seats_total: int
    seats_available: int
    price_per_seat: float
    status: RideStatus
    preferences: dict[str, bool]
    vehicle_details: Optional[dict] = None
    additional_notes: Optional[str] = None
    is_recurring: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class BookingResponse(BaseModel):
    id: int
    ride_id: int
    passenger_id: int
    driver_id: int
    status: BookingStatus
    seats_booked: int
    total_price: float
    pickup_address: Optional[str] = None
    dropoff_address: Optional[str] = None
    passenger_notes: Optional[str] = None
    driver_notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancelled_by_id: Optional[int] = None
    is_rated_by_passenger: bool = False
    is_rated_by_driver: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class RatingResponse(BaseModel):
    id: int
    booking_id: int
    rater_id: int
    ratee_id: int
    score: int
    review: str = ""
    categories: dict[str, int] = {}
    is_passenger_rating: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class RatingStatsResponse(BaseModel):
    avg_rating: float
    total_ratings: int
    distribution: dict[int, int]


class UserRatingsResponse(BaseModel):
    ratings: list[RatingResponse]
    stats: RatingStatsResponse


class PendingRatingsResponse(BaseModel):
    as_passenger: list[BookingResponse]
    as_driver: list[BookingResponse]


class SeatAuditResponse(BaseModel):
    ride_id: int
    seats_total: int
    seats_available: int
    committed_seats: int
    consistent: bool


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    detail: str
    error: str
