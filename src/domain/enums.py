"""Domain enumerations."""

import enum


class Role(str, enum.Enum):
    DRIVER = "driver"
    STUDENT = "student"


class ApprovalStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class SeatAction(str, enum.Enum):
    INCREMENT = "increment"
    DECREMENT = "decrement"
    SET = "set"


# Ride fields the owning driver may patch through ``update_ride``
PATCHABLE_RIDE_FIELDS: frozenset[str] = frozenset(
    {
        "route_from",
        "route_from_loc",
        "route_to",
        "route_to_loc",
        "stops",
        "time",
        "active",
        "total_seats",
    }
)
