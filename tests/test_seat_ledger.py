"""Tests for seat arithmetic and the atomic seat ledger."""

from __future__ import annotations

import pytest

from src.domain.enums import BookingStatus, RideStatus
from src.domain.errors import (
    BelowBookedSeats,
    InsufficientSeats,
    InvalidInput,
    InvalidState,
    RideNotBookable,
)
from src.domain.seats import check_reservation, committed_seats, resized_inventory
from src.infrastructure.repositories import RideRepository
from src.services.seat_ledger import SeatLedger


class TestSeatArithmetic:
    def test_committed_seats(self):
        assert committed_seats(4, 1) == 3

    def test_reservation_within_availability(self):
        check_reservation(RideStatus.SCHEDULED, 2, 2)

    def test_reservation_over_availability(self):
        with pytest.raises(InsufficientSeats, match="Only 1 seats left"):
            check_reservation(RideStatus.SCHEDULED, 1, 2)

    def test_reservation_on_started_ride(self):
        with pytest.raises(RideNotBookable):
            check_reservation(RideStatus.IN_PROGRESS, 3, 1)

    def test_reservation_needs_a_seat(self):
        with pytest.raises(InvalidInput):
            check_reservation(RideStatus.SCHEDULED, 3, 0)

    def test_resize_keeps_committed_seats(self):
        # 3 committed, driver raises capacity to 5
        assert resized_inventory(4, 1, 5) == (5, 2)

    def test_resize_to_exactly_committed(self):
        assert resized_inventory(4, 1, 3) == (3, 0)

    def test_resize_below_committed(self):
        with pytest.raises(BelowBookedSeats, match=r"\(3\)"):
            resized_inventory(5, 2, 2)

    def test_resize_to_no_seats(self):
        with pytest.raises(InvalidInput):
            resized_inventory(4, 4, 0)


class TestSeatLedger:
    @pytest.mark.asyncio
    async def test_debit_and_credit(self, db_session, make_ride):
        ride = await make_ride(seats=3)
        ledger = SeatLedger(db_session)

        await ledger.debit(ride, 2)
        assert ride.seats_available == 1

        await ledger.credit(ride, 1)
        assert ride.seats_available == 2

    @pytest.mark.asyncio
    async def test_debit_more_than_available(self, db_session, make_ride):
        ride = await make_ride(seats=2)
        with pytest.raises(InsufficientSeats):
            await SeatLedger(db_session).debit(ride, 3)
        await db_session.refresh(ride)
        assert ride.seats_available == 2

    @pytest.mark.asyncio
    async def test_credit_is_capped_at_total(self, db_session, make_ride):
        ride = await make_ride(seats=3)
        await SeatLedger(db_session).credit(ride, 5)
        assert ride.seats_available == ride.seats_total == 3

    @pytest.mark.asyncio
    async def test_reserve_refreshes_ride_row(self, db_session, make_ride):
        ride = await make_ride(seats=2)
        await RideRepository(db_session).debit_seats(ride.id, 2)
        # The ORM instance still says 2, the row says 0
        with pytest.raises(InsufficientSeats):
            await SeatLedger(db_session).reserve(ride, 1)

    @pytest.mark.asyncio
    async def test_resize_with_approved_bookings(
        self, db_session, make_ride, make_booking, passenger, passenger2
    ):
        ride = await make_ride(seats=4)
        await make_booking(ride, passenger, seats=2, approve=True)
        await make_booking(ride, passenger2, seats=1, approve=True)
        ledger = SeatLedger(db_session)

        await ledger.resize(ride, 5)
        assert (ride.seats_total, ride.seats_available) == (5, 2)
        assert await ledger.committed(ride.id) == 3

    @pytest.mark.asyncio
    async def test_resize_to_exactly_committed(
        self, db_session, make_ride, make_booking, passenger
    ):
        ride = await make_ride(seats=4)
        await make_booking(ride, passenger, seats=2, approve=True)

        await SeatLedger(db_session).resize(ride, 2)
        assert (ride.seats_total, ride.seats_available) == (2, 0)

    @pytest.mark.asyncio
    async def test_resize_to_zero_is_rejected(self, db_session, make_ride):
        ride = await make_ride(seats=3)
        with pytest.raises(InvalidInput):
            await SeatLedger(db_session).resize(ride, 0)
        await db_session.refresh(ride)
        assert (ride.seats_total, ride.seats_available) == (3, 3)

    @pytest.mark.asyncio
    async def test_resize_below_booked(self, db_session, make_ride, make_booking, passenger):
        ride = await make_ride(seats=4)
        await make_booking(ride, passenger, seats=3, approve=True)
        with pytest.raises(BelowBookedSeats):
            await SeatLedger(db_session).resize(ride, 2)
        await db_session.refresh(ride)
        assert (ride.seats_total, ride.seats_available) == (4, 1)

    @pytest.mark.asyncio
    async def test_resize_ignores_pending_bookings(
        self, db_session, make_ride, make_booking, passenger
    ):
        ride = await make_ride(seats=3)
        booking = await make_booking(ride, passenger, seats=3)
        assert booking.status == BookingStatus.PENDING
        await SeatLedger(db_session).resize(ride, 1)
        assert (ride.seats_total, ride.seats_available) == (1, 1)

    @pytest.mark.asyncio
    async def test_resize_non_scheduled_ride(self, db_session, make_ride):
        ride = await make_ride(seats=3)
        await RideRepository(db_session).transition(
            ride.id, RideStatus.SCHEDULED, RideStatus.CANCELLED
        )
        with pytest.raises(InvalidState):
            await SeatLedger(db_session).resize(ride, 5)
