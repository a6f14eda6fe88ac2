"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 6 sample rides from 3 approved drivers (one deactivated)
  - bookings from 8 approved students, filling one ride completely
  - one driver seat override, so seatsAvailable and the roster disagree

All writes go through the lifecycle and seat inventory services, exactly as
API requests would.
"""

import asyncio

from sqlalchemy import text

from src.domain.entities import Location, Principal, Stop
from src.domain.enums import ApprovalStatus, Role
from src.infrastructure.database import async_session_factory, engine
from src.infrastructure.repositories import RideRepository
from src.services.ride_lifecycle import RideLifecycle
from src.services.seat_inventory import SeatInventory

CAMPUS = Location(lat=6.7970, lng=79.9018)

DRIVERS = [
    Principal(f"driver-{n}", Role.DRIVER, ApprovalStatus.APPROVED) for n in range(1, 4)
]
STUDENTS = [
    Principal(f"student-{n}", Role.STUDENT, ApprovalStatus.APPROVED) for n in range(1, 9)
]

RIDES = [
    # (driver index, from, to, time, seats, stops)
    (0, "Main Gate", "Colombo Fort", "07:15 AM", 4, [Stop("Nugegoda", 6.8649, 79.8997, 1)]),
    (0, "Colombo Fort", "Main Gate", "05:30 PM", 4, []),
    (1, "Hostel A", "Moratuwa Station", "08:00 AM", 3, []),
    (1, "Library", "Mount Lavinia", "06:45 PM", 2, [Stop("Ratmalana", 6.8195, 79.8864, 1)]),
    (2, "Main Gate", "Kandy", "06:00 AM", 6, [
        Stop("Kadawatha", 7.0010, 79.9530, 1),
        Stop("Kegalle", 7.2513, 80.3464, 2),
    ]),
    (2, "Engineering Faculty", "Panadura", "04:00 PM", 3, []),
]


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM rides"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        repo = RideRepository(session)
        lifecycle = RideLifecycle(repo)
        inventory = SeatInventory(repo)

        # ── Rides ─────────────────────────────────────────────────────
        rides = []
        for driver_idx, origin, destination, time, seats, stops in RIDES:
            ride = await lifecycle.create_ride(
                DRIVERS[driver_idx],
                route_from=origin,
                route_from_loc=CAMPUS if origin == "Main Gate" else None,
                route_to=destination,
                time=time,
                total_seats=seats,
                stops=stops,
            )
            rides.append(ride)
        print(f"  Created {len(rides)} rides")

        # ── Bookings ──────────────────────────────────────────────────
        bookings = [
            (rides[2], STUDENTS[0:3]),  # fills the 3-seat ride
            (rides[0], STUDENTS[3:5]),
            (rides[4], STUDENTS[5:8]),
        ]
        count = 0
        for ride, students in bookings:
            for student in students:
                await inventory.book(student, ride.id)
                count += 1
        print(f"  Created {count} bookings")

        # ── Driver overrides ──────────────────────────────────────────
        await inventory.adjust_seats(DRIVERS[2], rides[4].id, "decrement", 1)
        await lifecycle.deactivate_ride(DRIVERS[1], rides[3].id)
        print("  Applied 1 seat override and 1 deactivation")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
