"""Tests for the ride and booking listing queries."""

from __future__ import annotations

from datetime import timedelta

import pytest

from src.domain.entities import as_utc, utcnow
from src.domain.enums import BookingStatus, RideStatus
from src.infrastructure.repositories import BookingRepository, RideRepository
from src.services import booking_lifecycle, ride_lifecycle
from tests.conftest import make_draft


class TestRideSearch:
    @pytest.mark.asyncio
    async def test_hides_closed_rides_by_default(self, db_session, driver, make_ride):
        open_ride = await make_ride()
        closed = await make_ride()
        await ride_lifecycle.cancel(db_session, driver, closed.id)
        await db_session.commit()

        rides = await RideRepository(db_session).search()
        assert [r.id for r in rides] == [open_ride.id]

        cancelled = await RideRepository(db_session).search(statuses=[RideStatus.CANCELLED])
        assert [r.id for r in cancelled] == [closed.id]

    @pytest.mark.asyncio
    async def test_seat_and_price_filters(self, db_session, make_ride):
        small = await make_ride(seats=1, price=100.0)
        large = await make_ride(seats=4, price=300.0)
        repo = RideRepository(db_session)

        assert [r.id for r in await repo.search(min_seats=2)] == [large.id]
        assert [r.id for r in await repo.search(max_price=150.0)] == [small.id]

    @pytest.mark.asyncio
    async def test_departure_date_and_order(self, db_session, driver, estimator):
        later = await ride_lifecycle.create(
            db_session, driver, make_draft(hours_ahead=72), estimator
        )
        sooner = await ride_lifecycle.create(
            db_session, driver, make_draft(hours_ahead=24), estimator
        )
        await db_session.commit()
        repo = RideRepository(db_session)

        assert [r.id for r in await repo.search()] == [sooner.entity.id, later.entity.id]

        day = as_utc(sooner.entity.departure_time).date()
        assert [r.id for r in await repo.search(departure_date=day)] == [sooner.entity.id]

    @pytest.mark.asyncio
    async def test_pagination(self, db_session, make_ride):
        for _ in range(3):
            await make_ride()
        repo = RideRepository(db_session)
        assert len(await repo.search(limit=2)) == 2
        assert len(await repo.search(limit=2, offset=2)) == 1


class TestBookingLists:
    @pytest.mark.asyncio
    async def test_passenger_and_driver_views(
        self, db_session, driver, passenger, passenger2, make_ride, make_booking
    ):
        ride = await make_ride()
        mine = await make_booking(ride, passenger)
        theirs = await make_booking(ride, passenger2, approve=True)
        repo = BookingRepository(db_session)

        assert [b.id for b in await repo.list_for_passenger(passenger.id)] == [mine.id]
        # Newest first
        assert [b.id for b in await repo.list_for_driver(driver.id)] == [theirs.id, mine.id]
        pending = await repo.list_for_driver(driver.id, BookingStatus.PENDING)
        assert [b.id for b in pending] == [mine.id]

    @pytest.mark.asyncio
    async def test_created_date_range(self, db_session, passenger, make_ride, make_booking):
        ride = await make_ride()
        booking = await make_booking(ride, passenger)
        repo = BookingRepository(db_session)
        now = utcnow()

        later = await repo.list_for_passenger(passenger.id, created_from=now + timedelta(hours=1))
        assert later == []
        found = await repo.list_for_passenger(
            passenger.id,
            created_from=now - timedelta(hours=1),
            created_to=now + timedelta(hours=1),
        )
        assert [b.id for b in found] == [booking.id]

    @pytest.mark.asyncio
    async def test_upcoming_only_approved_and_not_departed(
        self, db_session, driver, passenger, make_ride, make_booking
    ):
        ride = await make_ride()
        approved = await make_booking(ride, passenger, approve=True)
        other_ride = await make_ride()
        await make_booking(other_ride, passenger)
        departed_ride = await make_ride()
        await make_booking(departed_ride, passenger, approve=True)
        await RideRepository(db_session).update_scheduled(
            departed_ride.id, departure_time=utcnow() - timedelta(hours=1)
        )
        await db_session.commit()

        upcoming = await BookingRepository(db_session).upcoming_for_passenger(
            passenger.id, utcnow()
        )
        assert [b.id for b in upcoming] == [approved.id]

    @pytest.mark.asyncio
    async def test_cancelled_booking_leaves_upcoming(
        self, db_session, passenger, make_ride, make_booking
    ):
        ride = await make_ride()
        booking = await make_booking(ride, passenger, approve=True)
        await booking_lifecycle.cancel(db_session, passenger, booking.id)
        await db_session.commit()

        assert await BookingRepository(db_session).upcoming_for_passenger(
            passenger.id, utcnow()
        ) == []
