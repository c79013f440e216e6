"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.

Atomic updates
--------------
Every mutation of shared state is a single conditional ``UPDATE`` whose
``WHERE`` clause re-checks the precondition (expected status, enough
seats).  The affected row count tells the caller whether it won.  Two
concurrent writers on the same row are serialised by the database, and
the loser re-evaluates the predicate against the committed row, so no
update is lost.  Callers refresh ORM instances afterwards because the
statements run with ``synchronize_session=False``.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, Optional

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import BookingModel, RatingModel, RideModel, UserModel
from src.domain.enums import (
    LISTED_RIDE_STATUSES,
    SEAT_HOLDING_STATUSES,
    BookingStatus,
    RideStatus,
)
from src.domain.ratings import RatingAggregate


class RideRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, ride: RideModel) -> RideModel:
        self.session.add(ride)
        await self.session.flush()
        return ride

    async def get_by_id(self, ride_id: int) -> Optional[RideModel]:
        return await self.session.get(RideModel, ride_id)

    async def get_for_update(self, ride_id: int) -> Optional[RideModel]:
        """SELECT ... FOR UPDATE so cascades see a stable ride row."""
        result = await self.session.execute(
            select(RideModel)
            .where(RideModel.id == ride_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def transition(
        self,
        ride_id: int,
        from_status: RideStatus,
        to_status: RideStatus,
        **values,
    ) -> bool:
        result = await self.session.execute(
            update(RideModel)
            .where(RideModel.id == ride_id, RideModel.status == from_status)
            .values(status=to_status, **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def update_scheduled(self, ride_id: int, **values) -> bool:
        """Patch ride fields, but only while the ride is still scheduled."""
        result = await self.session.execute(
            update(RideModel)
            .where(
                RideModel.id == ride_id,
                RideModel.status == RideStatus.SCHEDULED,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def debit_seats(self, ride_id: int, seats: int) -> bool:
        result = await self.session.execute(
            update(RideModel)
            .where(
                RideModel.id == ride_id,
                RideModel.status == RideStatus.SCHEDULED,
                RideModel.seats_available >= seats,
            )
            .values(seats_available=RideModel.seats_available - seats)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def credit_seats(self, ride_id: int, seats: int) -> bool:
        credited = RideModel.seats_available + seats
        result = await self.session.execute(
            update(RideModel)
            .where(RideModel.id == ride_id)
            .values(
                seats_available=case(
                    (credited > RideModel.seats_total, RideModel.seats_total),
                    else_=credited,
                )
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def resize_seats(self, ride_id: int, new_seats_total: int) -> bool:
        """Change capacity; availability keeps the committed seats subtracted."""
        committed = RideModel.seats_total - RideModel.seats_available
        result = await self.session.execute(
            update(RideModel)
            .where(
                RideModel.id == ride_id,
                RideModel.status == RideStatus.SCHEDULED,
                committed <= new_seats_total,
            )
            .values(
                seats_total=new_seats_total,
                seats_available=new_seats_total - committed,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def committed_seats(self, ride_id: int) -> int:
        """Sum of seats held by approved/completed bookings on the ride."""
        result = await self.session.execute(
            select(func.coalesce(func.sum(BookingModel.seats_booked), 0)).where(
                BookingModel.ride_id == ride_id,
                BookingModel.status.in_(list(SEAT_HOLDING_STATUSES)),
            )
        )
        return int(result.scalar() or 0)

    async def search(
        self,
        statuses: Iterable[RideStatus] = LISTED_RIDE_STATUSES,
        departure_date: Optional[date] = None,
        min_seats: Optional[int] = None,
        max_price: Optional[float] = None,
        limit: int = 10,
        offset: int = 0,
    ) -> list[RideModel]:
        """Rides matching the filters, earliest departure first."""
        query = select(RideModel).where(RideModel.status.in_(list(statuses)))
        if departure_date is not None:
            day = datetime.combine(departure_date, time.min, tzinfo=timezone.utc)
            query = query.where(
                RideModel.departure_time >= day,
                RideModel.departure_time < day + timedelta(days=1),
            )
        if min_seats is not None:
            query = query.where(RideModel.seats_available >= min_seats)
        if max_price is not None:
            query = query.where(RideModel.price_per_seat <= max_price)
        result = await self.session.execute(
            query.order_by(RideModel.departure_time, RideModel.id)
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())


class BookingRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, booking: BookingModel) -> BookingModel:
        self.session.add(booking)
        await self.session.flush()
        return booking

    async def get_by_id(self, booking_id: int) -> Optional[BookingModel]:
        return await self.session.get(BookingModel, booking_id)

    async def find_active(
        self, ride_id: int, passenger_id: int
    ) -> Optional[BookingModel]:
        result = await self.session.execute(
            select(BookingModel).where(
                BookingModel.ride_id == ride_id,
                BookingModel.passenger_id == passenger_id,
                BookingModel.status.in_(
                    [BookingStatus.PENDING, BookingStatus.APPROVED]
                ),
            )
        )
        return result.scalars().first()

    async def list_for_ride(
        self, ride_id: int, statuses: Iterable[BookingStatus]
    ) -> list[BookingModel]:
        result = await self.session.execute(
            select(BookingModel)
            .where(
                BookingModel.ride_id == ride_id,
                BookingModel.status.in_(list(statuses)),
            )
            .order_by(BookingModel.id)
        )
        return list(result.scalars().all())

    async def list_for_passenger(
        self,
        passenger_id: int,
        status: Optional[BookingStatus] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
        limit: int = 10,
        offset: int = 0,
    ) -> list[BookingModel]:
        return await self._list(
            BookingModel.passenger_id == passenger_id,
            status, created_from, created_to, limit, offset,
        )

    async def list_for_driver(
        self,
        driver_id: int,
        status: Optional[BookingStatus] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
        limit: int = 10,
        offset: int = 0,
    ) -> list[BookingModel]:
        return await self._list(
            BookingModel.driver_id == driver_id,
            status, created_from, created_to, limit, offset,
        )

    async def upcoming_for_passenger(
        self, passenger_id: int, now: datetime, limit: int = 10, offset: int = 0
    ) -> list[BookingModel]:
        """Approved bookings whose ride has not departed, soonest first."""
        result = await self.session.execute(
            select(BookingModel)
            .join(RideModel, RideModel.id == BookingModel.ride_id)
            .where(
                BookingModel.passenger_id == passenger_id,
                BookingModel.status == BookingStatus.APPROVED,
                RideModel.departure_time > now,
            )
            .order_by(RideModel.departure_time, BookingModel.id)
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def _list(
        self, owner, status, created_from, created_to, limit, offset
    ) -> list[BookingModel]:
        query = select(BookingModel).where(owner)
        if status is not None:
            query = query.where(BookingModel.status == status)
        if created_from is not None:
            query = query.where(BookingModel.created_at >= created_from)
        if created_to is not None:
            query = query.where(BookingModel.created_at <= created_to)
        result = await self.session.execute(
            query.order_by(BookingModel.created_at.desc(), BookingModel.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def transition(
        self,
        booking_id: int,
        from_statuses: Iterable[BookingStatus],
        to_status: BookingStatus,
        **values,
    ) -> bool:
        result = await self.session.execute(
            update(BookingModel)
            .where(
                BookingModel.id == booking_id,
                BookingModel.status.in_(list(from_statuses)),
            )
            .values(status=to_status, **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def set_rated_flag(
        self, booking_id: int, is_passenger_rating: bool, value: bool
    ) -> None:
        column = "is_rated_by_passenger" if is_passenger_rating else "is_rated_by_driver"
        await self.session.execute(
            update(BookingModel)
            .where(BookingModel.id == booking_id)
            .values({column: value})
            .execution_options(synchronize_session=False)
        )

    async def unrated_completed(
        self, user_id: int, as_passenger: bool
    ) -> list[BookingModel]:
        """Completed bookings the user still has to rate, newest first."""
        if as_passenger:
            criteria = (
                BookingModel.passenger_id == user_id,
                BookingModel.is_rated_by_passenger.is_(False),
            )
        else:
            criteria = (
                BookingModel.driver_id == user_id,
                BookingModel.is_rated_by_driver.is_(False),
            )
        result = await self.session.execute(
            select(BookingModel)
            .where(BookingModel.status == BookingStatus.COMPLETED, *criteria)
            .order_by(BookingModel.updated_at.desc(), BookingModel.id.desc())
        )
        return list(result.scalars().all())


class RatingRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, rating: RatingModel) -> RatingModel:
        self.session.add(rating)
        await self.session.flush()
        return rating

    async def get_by_id(self, rating_id: int) -> Optional[RatingModel]:
        return await self.session.get(RatingModel, rating_id)

    async def find(
        self, booking_id: int, rater_id: int, ratee_id: int
    ) -> Optional[RatingModel]:
        result = await self.session.execute(
            select(RatingModel).where(
                RatingModel.booking_id == booking_id,
                RatingModel.rater_id == rater_id,
                RatingModel.ratee_id == ratee_id,
            )
        )
        return result.scalar_one_or_none()

    async def delete(self, rating: RatingModel) -> None:
        await self.session.delete(rating)
        await self.session.flush()

    async def scores_for(self, ratee_id: int) -> list[int]:
        result = await self.session.execute(
            select(RatingModel.score).where(RatingModel.ratee_id == ratee_id)
        )
        return list(result.scalars().all())

    async def list_for_ratee(
        self, ratee_id: int, limit: int = 10, offset: int = 0
    ) -> list[RatingModel]:
        result = await self.session.execute(
            select(RatingModel)
            .where(RatingModel.ratee_id == ratee_id)
            .order_by(RatingModel.created_at.desc(), RatingModel.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: int) -> Optional[UserModel]:
        return await self.session.get(UserModel, user_id)

    async def get_for_update(self, user_id: int) -> Optional[UserModel]:
        """Lock the user row so aggregate rebuilds for one ratee run one at a time."""
        result = await self.session.execute(
            select(UserModel)
            .where(UserModel.id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def set_rating_aggregate(
        self, user_id: int, aggregate: RatingAggregate
    ) -> None:
        await self.session.execute(
            update(UserModel)
            .where(UserModel.id == user_id)
            .values(
                avg_rating=aggregate.avg_rating,
                total_ratings=aggregate.total_ratings,
            )
            .execution_options(synchronize_session=False)
        )
