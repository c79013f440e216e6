"""
Seat Ledger
===========

Atomic bookkeeping for a ride's seat inventory.

* ``reserve``  -- validate a reservation against the current ride row.
* ``debit``    -- decrement ``seats_available`` (approval).
* ``credit``   -- increment, capped at ``seats_total`` (cancellation).
* ``resize``   -- driver sets total capacity; never below committed seats.

``debit``, ``credit`` and ``resize`` are each one conditional UPDATE (see
``repositories``), so they are linearizable per ride: when two approvals
race, the second debit re-evaluates ``seats_available >= n`` against the
committed row and affects nothing.
"""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.enums import RideStatus
from src.domain.errors import InsufficientSeats, InvalidInput, InvalidState
from src.domain.seats import check_reservation, resized_inventory
from src.infrastructure.models import RideModel
from src.infrastructure.repositories import RideRepository

logger = logging.getLogger(__name__)


class SeatLedger:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.rides = RideRepository(session)

    async def reserve(self, ride: RideModel, seats: int) -> None:
        await self.session.refresh(ride)
        check_reservation(RideStatus(ride.status), ride.seats_available, seats)

    async def debit(self, ride: RideModel, seats: int) -> RideModel:
        if seats < 1:
            raise InvalidInput("Seats to debit must be positive")
        if not await self.rides.debit_seats(ride.id, seats):
            await self.session.refresh(ride)
            logger.warning(
                "Seat debit lost on ride %s: wanted %d, %d available",
                ride.id, seats, ride.seats_available,
            )
            raise InsufficientSeats(
                f"Not enough seats available. Only {ride.seats_available} seats left"
            )
        await self.session.refresh(ride)
        return ride

    async def credit(self, ride: RideModel, seats: int) -> RideModel:
        if seats < 1:
            raise InvalidInput("Seats to credit must be positive")
        await self.rides.credit_seats(ride.id, seats)
        await self.session.refresh(ride)
        return ride

    async def resize(self, ride: RideModel, new_seats_total: int) -> RideModel:
        if new_seats_total < 1:
            raise InvalidInput("A ride must offer at least one seat")
        if not await self.rides.resize_seats(ride.id, new_seats_total):
            await self.session.refresh(ride)
            if ride.status != RideStatus.SCHEDULED:
                raise InvalidState(
                    f"Cannot update a ride that is {RideStatus(ride.status).value}"
                )
            # Raises BelowBookedSeats with the current numbers
            resized_inventory(ride.seats_total, ride.seats_available, new_seats_total)
            raise InvalidState("Seat resize conflicted with a concurrent update")
        await self.session.refresh(ride)
        return ride

    async def committed(self, ride_id: int) -> int:
        return await self.rides.committed_seats(ride_id)
