"""
Seat inventory rules
====================

Bounded arithmetic
------------------
* capacity change:  seats' = max(0, seats + (new_total - old_total))
* increment:        seats' = min(seats + n, total)
* decrement:        seats' = max(0, seats - n)
* set:              seats' = n          (requires n <= total)

Seat counts are capped at ``MAX_SEATS`` so every value fits the INTEGER
columns; a ride can never hold more seats than that.

Conditional writes
------------------
``RideCondition`` is the precondition half and ``RideMutation`` the update
half of a compare-and-apply on one ride.  The SQL repository translates both
into a single ``UPDATE ... WHERE``; ``holds`` / ``apply`` give the same
semantics over an in-memory ``Ride``.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Optional

from .entities import Ride
from .enums import SeatAction
from .exceptions import (
    AlreadyBookedError,
    NoSeatsAvailableError,
    NotBookedError,
    NotFoundError,
    PermissionDeniedError,
    RideInactiveError,
    RydyError,
    ValidationError,
)

MAX_SEATS = 1000


def resized_availability(seats_available: int, old_total: int, new_total: int) -> int:
    return max(0, seats_available + (new_total - old_total))


def shifted_availability(seats_available: int, total_seats: int, delta: int) -> int:
    return min(max(0, seats_available + delta), total_seats)


def require_seat_count(
    value: Any, name: str, *, minimum: int, maximum: Optional[int] = MAX_SEATS
) -> int:
    """Validate an integer seat count.  ``bool`` is rejected explicitly.

    Pass ``maximum=None`` to leave the upper bound to the caller.
    """
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        qualifier = "positive" if minimum > 0 else "non-negative"
        raise ValidationError(f"{name} must be a {qualifier} integer.")
    if maximum is not None and value > maximum:
        raise ValidationError(f"{name} must be at most {maximum}.")
    return value


@dataclass(frozen=True)
class RideCondition:
    owner_id: Optional[str] = None
    active: Optional[bool] = None
    min_seats_available: Optional[int] = None
    min_total_seats: Optional[int] = None
    rider_booked: Optional[str] = None
    rider_not_booked: Optional[str] = None

    def holds(self, ride: Ride) -> bool:
        if self.owner_id is not None and ride.driver_id != self.owner_id:
            return False
        if self.active is not None and ride.active != self.active:
            return False
        if self.min_seats_available is not None and ride.seats_available < self.min_seats_available:
            return False
        if self.min_total_seats is not None and ride.total_seats < self.min_total_seats:
            return False
        if self.rider_booked is not None and not ride.has_rider(self.rider_booked):
            return False
        if self.rider_not_booked is not None and ride.has_rider(self.rider_not_booked):
            return False
        return True


@dataclass(frozen=True)
class RideMutation:
    fields: dict[str, Any] = field(default_factory=dict)
    total_seats: Optional[int] = None
    seat_delta: int = 0
    seats_set: Optional[int] = None
    add_rider: Optional[str] = None
    remove_rider: Optional[str] = None

    def __post_init__(self) -> None:
        seat_writes = sum(
            (self.total_seats is not None, self.seat_delta != 0, self.seats_set is not None)
        )
        if seat_writes > 1:
            raise ValueError("A mutation may change seats in one way only")

    @classmethod
    def for_seat_action(cls, action: SeatAction, amount: int) -> "RideMutation":
        if action == SeatAction.INCREMENT:
            return cls(seat_delta=amount)
        if action == SeatAction.DECREMENT:
            return cls(seat_delta=-amount)
        return cls(seats_set=amount)

    def apply(self, ride: Ride) -> Ride:
        """Return a copy of *ride* with this mutation applied."""
        updated = dataclasses.replace(ride, **self.fields)
        if self.total_seats is not None:
            updated.seats_available = resized_availability(
                ride.seats_available, ride.total_seats, self.total_seats
            )
            updated.total_seats = self.total_seats
        elif self.seats_set is not None:
            updated.seats_available = self.seats_set
        elif self.seat_delta:
            updated.seats_available = shifted_availability(
                ride.seats_available, ride.total_seats, self.seat_delta
            )
        riders = list(ride.booked_riders)
        if self.add_rider is not None:
            riders.append(self.add_rider)
        if self.remove_rider is not None:
            riders.remove(self.remove_rider)
        updated.booked_riders = riders
        return updated


# ── Failure classification ────────────────────────────────────────────
#
# After a conditional write is rejected the caller re-reads the ride and
# asks why.  ``None`` means the stored state no longer explains the
# rejection (a competing write has since resolved) and the write may be
# attempted again.


def booking_failure(ride: Optional[Ride], rider_id: str) -> Optional[RydyError]:
    if ride is None:
        return NotFoundError()
    if ride.has_rider(rider_id):
        return AlreadyBookedError()
    if not ride.active:
        return RideInactiveError()
    if ride.seats_available <= 0:
        return NoSeatsAvailableError()
    return None


def cancellation_failure(ride: Optional[Ride], rider_id: str) -> Optional[RydyError]:
    if ride is None:
        return NotFoundError()
    if not ride.has_rider(rider_id):
        return NotBookedError()
    return None


def owner_write_failure(
    ride: Optional[Ride], owner_id: str, *, set_seats: Optional[int] = None
) -> Optional[RydyError]:
    if ride is None:
        return NotFoundError()
    if not ride.is_owned_by(owner_id):
        return PermissionDeniedError("Not authorized to update this ride")
    if set_seats is not None and set_seats > ride.total_seats:
        return ValidationError("seatsAvailable cannot exceed totalSeats")
    return None
