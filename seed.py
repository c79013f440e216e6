"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 3 verified drivers, 5 passengers and 1 admin
  - 6 rides (mostly SCHEDULED, one COMPLETED, one CANCELLED)
  - bookings in every status, with seat counters consistent with them
"""

import asyncio
from datetime import timedelta

from sqlalchemy import text

from src.domain.entities import utcnow
from src.domain.enums import BookingStatus, RideStatus, UserRole
from src.infrastructure.database import async_session_factory, engine
from src.infrastructure.models import BookingModel, RideModel, UserModel

DRIVERS = [
    {"name": "Aarav Sharma", "email": "aarav@example.com"},
    {"name": "Priya Patel", "email": "priya@example.com"},
    {"name": "Rohan Mehta", "email": "rohan@example.com"},
]

PASSENGERS = [
    {"name": "Sneha Gupta", "email": "sneha@example.com"},
    {"name": "Vikram Singh", "email": "vikram@example.com"},
    {"name": "Ananya Reddy", "email": "ananya@example.com"},
    {"name": "Karan Joshi", "email": "karan@example.com"},
    {"name": "Meera Nair", "email": "meera@example.com"},
]

PLACES = {
    "Airport": (19.0896, 72.8656),
    "Andheri": (19.1136, 72.8697),
    "Bandra": (19.0596, 72.8295),
    "Powai": (19.1176, 72.9060),
    "Dadar": (19.0178, 72.8478),
    "Thane": (19.2183, 72.9781),
}


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM users"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        # ── Users ─────────────────────────────────────────────────────
        drivers = [
            UserModel(role=UserRole.DRIVER, is_verified_driver=True, **d)
            for d in DRIVERS
        ]
        passengers = [UserModel(role=UserRole.PASSENGER, **p) for p in PASSENGERS]
        admin = UserModel(name="Ops Admin", email="admin@example.com", role=UserRole.ADMIN)
        session.add_all([*drivers, *passengers, admin])
        await session.flush()
        print(f"  Created {len(drivers) + len(passengers) + 1} users")

        # ── Rides ─────────────────────────────────────────────────────
        now = utcnow()
        rides_data = [
            # (driver, source, destination, hours from now, seats, price, status)
            (0, "Airport", "Andheri", 4, 3, 150.0, RideStatus.SCHEDULED),
            (0, "Andheri", "Thane", 28, 4, 220.0, RideStatus.SCHEDULED),
            (1, "Bandra", "Powai", 6, 2, 180.0, RideStatus.SCHEDULED),
            (1, "Dadar", "Airport", 50, 3, 260.0, RideStatus.SCHEDULED),
            (2, "Powai", "Bandra", -30, 3, 175.0, RideStatus.COMPLETED),
            (2, "Thane", "Dadar", 10, 4, 200.0, RideStatus.CANCELLED),
        ]
        rides = []
        for driver, src, dst, hours, seats, price, status in rides_data:
            departure = now + timedelta(hours=hours)
            ride = RideModel(
                driver_id=drivers[driver].id,
                source_address=src,
                source_lat=PLACES[src][0],
                source_lng=PLACES[src][1],
                destination_address=dst,
                destination_lat=PLACES[dst][0],
                destination_lng=PLACES[dst][1],
                intermediate_stops=[],
                departure_time=departure,
                estimated_arrival_time=departure + timedelta(minutes=45),
                seats_total=seats,
                seats_available=seats,
                price_per_seat=price,
                status=status,
            )
            session.add(ride)
            rides.append(ride)
        await session.flush()
        print(f"  Created {len(rides)} rides")

        # ── Bookings ──────────────────────────────────────────────────
        bookings_data = [
            # (ride, passenger, seats, status)
            (0, 0, 1, BookingStatus.APPROVED),
            (0, 1, 1, BookingStatus.PENDING),
            (1, 2, 2, BookingStatus.APPROVED),
            (2, 3, 1, BookingStatus.REJECTED),
            (2, 4, 2, BookingStatus.PENDING),
            (4, 0, 1, BookingStatus.COMPLETED),
            (4, 1, 1, BookingStatus.COMPLETED),
            (5, 2, 1, BookingStatus.CANCELLED),
        ]
        for ride_idx, passenger_idx, seats, status in bookings_data:
            ride = rides[ride_idx]
            booking = BookingModel(
                ride_id=ride.id,
                passenger_id=passengers[passenger_idx].id,
                driver_id=ride.driver_id,
                status=status,
                seats_booked=seats,
                total_price=round(ride.price_per_seat * seats, 2),
                pickup_address=ride.source_address,
                pickup_lat=ride.source_lat,
                pickup_lng=ride.source_lng,
                dropoff_address=ride.destination_address,
                dropoff_lat=ride.destination_lat,
                dropoff_lng=ride.destination_lng,
            )
            if status == BookingStatus.CANCELLED:
                booking.cancellation_reason = "Ride cancelled by driver"
                booking.cancelled_by_id = ride.driver_id
            # Approved and completed bookings hold seats
            if status in (BookingStatus.APPROVED, BookingStatus.COMPLETED):
                ride.seats_available -= seats
            session.add(booking)
        await session.flush()
        print(f"  Created {len(bookings_data)} bookings")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
