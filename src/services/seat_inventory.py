"""
Seat Inventory Engine
=====================

Owns the ``(total_seats, seats_available, booked_riders)`` state of each
ride.  Every transition is a single conditional write against the ride
repository; the engine holds no locks and keeps no state between calls.

When a conditional write is rejected the engine re-reads the ride and
raises the specific reason (already booked, full, inactive, not found,
not owner).  If the fresh state no longer explains the rejection, a
competing write has resolved in the meantime and the write is attempted
again, up to ``max_attempts`` times.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from src.config import settings
from src.domain.entities import Principal, Ride
from src.domain.enums import Role, SeatAction
from src.domain.exceptions import (
    ConcurrencyConflictError,
    PreconditionFailed,
    RydyError,
    ValidationError,
)
from src.domain.inventory import (
    MAX_SEATS,
    RideCondition,
    RideMutation,
    booking_failure,
    cancellation_failure,
    owner_write_failure,
    require_seat_count,
)
from src.infrastructure.repositories import RideRepository

logger = logging.getLogger(__name__)

Classifier = Callable[[Optional[Ride]], Optional[RydyError]]


class SeatInventory:
    def __init__(
        self,
        rides: RideRepository,
        max_attempts: int = settings.booking_max_attempts,
    ):
        self.rides = rides
        self.max_attempts = max(1, max_attempts)

    async def book(self, principal: Principal, ride_id: str) -> Ride:
        """Reserve one seat on *ride_id* for the calling student."""
        principal.require(Role.STUDENT)
        rider_id = principal.identity

        ride = await self._write(
            "book",
            ride_id,
            RideCondition(active=True, min_seats_available=1, rider_not_booked=rider_id),
            RideMutation(seat_delta=-1, add_rider=rider_id),
            lambda current: booking_failure(current, rider_id),
        )
        logger.info(
            "Rider %s booked ride %s (%d seats left)", rider_id, ride_id, ride.seats_available
        )
        return ride

    async def cancel_booking(self, principal: Principal, ride_id: str) -> Ride:
        """Give the calling student's seat back; allowed on inactive rides."""
        principal.require(Role.STUDENT, approved=False)
        rider_id = principal.identity

        ride = await self._write(
            "cancel",
            ride_id,
            RideCondition(rider_booked=rider_id),
            RideMutation(seat_delta=1, remove_rider=rider_id),
            lambda current: cancellation_failure(current, rider_id),
        )
        logger.info(
            "Rider %s cancelled on ride %s (%d seats left)", rider_id, ride_id, ride.seats_available
        )
        return ride

    async def adjust_seats(
        self, principal: Principal, ride_id: str, action: str, amount: int = 1
    ) -> Ride:
        """Driver override of ``seats_available``.  The roster is not touched.

        Increment / decrement are not idempotent; callers must not retry them
        blindly after an ambiguous failure.
        """
        principal.require(Role.DRIVER, approved=False)
        try:
            seat_action = SeatAction(action)
        except ValueError:
            raise ValidationError('action must be "increment"|"decrement"|"set"') from None
        try:
            amount = require_seat_count(amount, "amount", minimum=0, maximum=None)
        except ValidationError:
            raise ValidationError("Invalid amount") from None

        set_seats = amount if seat_action == SeatAction.SET else None
        if amount > MAX_SEATS:
            if set_seats is None:
                raise ValidationError("Invalid amount")
            # exceeds every ride's total; classify without writing
            current = await self.rides.get_by_id(ride_id)
            raise owner_write_failure(current, principal.identity, set_seats=set_seats)

        ride = await self._write(
            f"adjust:{seat_action.value}",
            ride_id,
            RideCondition(owner_id=principal.identity, min_total_seats=set_seats),
            RideMutation.for_seat_action(seat_action, amount),
            lambda current: owner_write_failure(
                current, principal.identity, set_seats=set_seats
            ),
        )
        logger.info(
            "Driver %s %s ride %s seats by %d -> %d/%d",
            principal.identity,
            seat_action.value,
            ride_id,
            amount,
            ride.seats_available,
            ride.total_seats,
        )
        return ride

    # ── Internals ─────────────────────────────────────────────────────

    async def _write(
        self,
        operation: str,
        ride_id: str,
        condition: RideCondition,
        mutation: RideMutation,
        classify: Classifier,
    ) -> Ride:
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await self.rides.conditional_update(ride_id, condition, mutation)
            except PreconditionFailed:
                current = await self.rides.get_by_id(ride_id)
                error = classify(current)
                if error is not None:
                    logger.info(
                        "%s on ride %s rejected: %s", operation, ride_id, error.message
                    )
                    raise error from None
                logger.warning(
                    "%s on ride %s lost a concurrent write (attempt %d/%d)",
                    operation,
                    ride_id,
                    attempt,
                    self.max_attempts,
                )

        raise ConcurrencyConflictError(details={"ride_id": ride_id, "operation": operation})
